from __future__ import annotations

import os
import sqlite3
from datetime import date, datetime

import altair as alt
import pandas as pd
import streamlit as st

from ops_scoring.data.repositories import load_score_inputs
from ops_scoring.services.date_classifier import DateRange
from ops_scoring.services.periods import FilterMode, default_range
from ops_scoring.services.scoring import (
    compute_scores,
    scores_to_frame,
    tasks_to_frame,
    trend_to_frame,
)
from ops_scoring.services.tasks import DEFAULT_PIPELINE_STEPS, SourceKind

FILTER_LABELS = {
    FilterMode.WEEK: "This week",
    FilterMode.MONTH: "This month",
    FilterMode.CUSTOM: "Custom range",
    FilterMode.TILL_DATE: "Till date",
}

SOURCE_LABELS = {
    SourceKind.DELEGATION: "Delegations",
    SourceKind.CHECKLIST: "Checklists",
    SourceKind.PIPELINE: "O2D steps",
}


def _pipeline_steps() -> int:
    try:
        return max(int(os.getenv("OPS_SCORING_PIPELINE_STEPS", DEFAULT_PIPELINE_STEPS)), 1)
    except ValueError:
        return DEFAULT_PIPELINE_STEPS


def _select_range(mode: FilterMode, today: date) -> DateRange | None:
    if mode is not FilterMode.CUSTOM:
        return default_range(mode, today)
    picked = st.date_input("Date range", value=(today.replace(day=1), today))
    if not isinstance(picked, (list, tuple)) or len(picked) != 2:
        st.info("Pick both the start and the end date.")
        return None
    return DateRange(picked[0], picked[1])


def build_trend_chart(trend_df: pd.DataFrame) -> alt.Chart:
    bucket_order = trend_df["Bucket"].tolist()
    return (
        alt.Chart(trend_df[["Bucket", "Score %", "On-time %"]])
        .transform_fold(["Score %", "On-time %"], as_=["metric", "value"])
        .mark_line(point=True)
        .encode(
            x=alt.X("Bucket:N", sort=bucket_order, title="Period"),
            y=alt.Y("value:Q", title="%", scale=alt.Scale(domain=[0, 100])),
            color=alt.Color("metric:N", legend=alt.Legend(title=None)),
            tooltip=[
                alt.Tooltip("Bucket:N", title="Period"),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("value:Q", title="%"),
            ],
        )
        .properties(height=260)
    )


def render(con: sqlite3.Connection) -> None:
    st.title("Performance score")
    st.caption("Completion and on-time rates across delegations, checklists and O2D steps.")

    now = datetime.now()
    today = now.date()

    c1, c2 = st.columns([1.2, 1.8])
    mode = c1.selectbox(
        "Period",
        list(FILTER_LABELS),
        index=1,
        format_func=lambda m: FILTER_LABELS[m],
    )
    search = c2.text_input("Search user", value="")

    date_range = _select_range(mode, today)
    if date_range is None:
        return
    st.caption(f"Window: {date_range.date_from.isoformat()} → {date_range.date_to.isoformat()} ({date_range.days} days)")

    inputs = load_score_inputs(con)
    scores = compute_scores(
        inputs["users"],
        inputs["delegations"],
        inputs["checklists"],
        inputs["orders"],
        inputs["step_config"],
        date_range,
        mode,
        search=search,
        max_steps=_pipeline_steps(),
    )

    if not scores:
        st.info("No users match the selected filters.")
        return

    total = sum(score.total_tasks for score in scores)
    completed = sum(score.completed_tasks for score in scores)
    on_time = sum(score.on_time_tasks for score in scores)
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Users", len(scores))
    k2.metric("Tasks in window", total)
    k3.metric("Completed", f"{completed / total:.0%}" if total else "—")
    k4.metric("On time (of completed)", f"{on_time / completed:.0%}" if completed else "—")

    st.subheader("Leaderboard")
    st.dataframe(scores_to_frame(scores), use_container_width=True, hide_index=True, height=360)

    st.subheader("Drilldown")
    usernames = [score.username for score in scores]
    selected = st.selectbox("User to inspect", usernames, index=0)
    score = scores[usernames.index(selected)]

    columns = st.columns(len(SOURCE_LABELS))
    for column, (kind, label) in zip(columns, SOURCE_LABELS.items()):
        stats = score.per_source_stats[kind]
        column.metric(
            label,
            f"{stats.score_percentage}%",
            help=f"{stats.completed}/{stats.total} completed, {stats.on_time} on time",
        )

    trend_df = trend_to_frame(score)
    if not trend_df.empty:
        st.markdown("**Trend**")
        st.altair_chart(build_trend_chart(trend_df), use_container_width=True)

    for kind, label in SOURCE_LABELS.items():
        stats = score.per_source_stats[kind]
        with st.expander(f"{label} ({stats.total})", expanded=False):
            if stats.total:
                st.dataframe(tasks_to_frame(stats, now=now), use_container_width=True, hide_index=True)
            else:
                st.caption("No tasks in the selected window.")
