from __future__ import annotations

import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import streamlit as st

import ops_scoring
from ops_scoring.data.db import connect, init_db
from ops_scoring.app.pages import score, step_config

st.set_page_config(page_title="Performance score", layout="wide")

# --- DB init (once per app start) ---
DATA_DIR = Path(os.getenv("OPS_SCORING_DATA_DIR", "./data"))
DB_PATH = Path(os.getenv("OPS_SCORING_DB_PATH", DATA_DIR / "app.db"))

con = connect(DB_PATH)
init_db(con)

st.sidebar.title("Operations dashboard")

build_number = (
    os.getenv("APP_BUILD")
    or os.getenv("BUILD_NUMBER")
    or ops_scoring.__version__
)
st.sidebar.markdown(
    f"""
    <style>
    [data-testid="stSidebar"] .build-info {{
        position: fixed;
        bottom: 0.5rem;
        left: 1rem;
        color: #6c757d;
        font-size: 0.75rem;
    }}
    </style>
    <div class="build-info">Build: {build_number}</div>
    """,
    unsafe_allow_html=True,
)

PAGES = {
    "Performance score": lambda: score.render(con),
    "O2D step configuration": lambda: step_config.render(con),
}

selected = st.sidebar.radio("Pages", list(PAGES.keys()), index=0, key="sidebar_page")

# --- Render selected page ---
PAGES[selected]()
