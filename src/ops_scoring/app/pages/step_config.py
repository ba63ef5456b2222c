from __future__ import annotations

import sqlite3

import pandas as pd
import streamlit as st

from ops_scoring.data.repositories import StepConfigRepository, UserRepository
from ops_scoring.services.tasks import DEFAULT_PIPELINE_STEPS, TAT_UNITS


def render(con: sqlite3.Connection) -> None:
    st.header("O2D step configuration")
    st.caption("Who owns each order pipeline step and its turnaround time (TAT).")

    repo = StepConfigRepository(con)
    config = repo.list_config()
    by_step = {row["step"]: row for row in config}

    if config:
        df = pd.DataFrame(config).rename(
            columns={
                "step": "Step",
                "stepName": "Name",
                "doerName": "Doer",
                "tatValue": "TAT",
                "tatUnit": "Unit",
            }
        )
        st.dataframe(df, use_container_width=True, hide_index=True)
    else:
        st.info("No pipeline steps configured yet.")

    st.divider()

    # =========================
    # ADD / EDIT STEP
    # =========================
    st.subheader("Add or update a step")
    usernames = [user["username"] for user in UserRepository(con).list_users()]
    step = int(
        st.number_input("Step", min_value=1, max_value=DEFAULT_PIPELINE_STEPS, value=1, step=1)
    )
    current = by_step.get(step, {})
    units = sorted(TAT_UNITS)

    with st.form("edit_step_config"):
        step_name = st.text_input("Step name", value=current.get("stepName") or "")
        if usernames:
            doer_default = current.get("doerName")
            doer_name = st.selectbox(
                "Doer",
                usernames,
                index=usernames.index(doer_default) if doer_default in usernames else 0,
            )
        else:
            doer_name = st.text_input("Doer", value=current.get("doerName") or "")
        c1, c2 = st.columns(2)
        tat_value = c1.number_input(
            "TAT",
            min_value=0.0,
            value=float(current.get("tatValue") or 1.0),
            step=0.5,
        )
        unit_default = current.get("tatUnit")
        tat_unit = c2.selectbox(
            "TAT unit",
            units,
            index=units.index(unit_default) if unit_default in units else 0,
        )
        submitted = st.form_submit_button("Save step")

    if submitted:
        try:
            repo.upsert_step(
                {
                    "step": step,
                    "stepName": step_name.strip(),
                    "doerName": doer_name,
                    "tatValue": tat_value,
                    "tatUnit": tat_unit,
                }
            )
            st.success(f"Saved step {step}.")
            st.rerun()
        except (ValueError, sqlite3.Error) as exc:
            st.error(str(exc))

    if step in by_step:
        confirm = st.checkbox(f"Confirm removal of step {step}")
        if st.button("Remove step", disabled=not confirm):
            repo.delete_step(step)
            st.success(f"Removed step {step}.")
            st.rerun()
