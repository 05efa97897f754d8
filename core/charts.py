from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

LINE_COLOR = "#4bc0c0"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def date_totals_line(df: pd.DataFrame, title: Optional[str] = None, *, height: int = 300) -> alt.Chart:
    """Line of summed amount per date; the x-axis keeps the row order of `df`."""
    src = df.assign(date=df["date"].astype(str), amount=df["amount"].astype(float))
    chart = (
        alt.Chart(src)
        .mark_line(point=True, color=LINE_COLOR)
        .encode(
            x=alt.X("date:N", title="Date", sort=src["date"].tolist(), axis=alt.Axis(labelAngle=-45)),
            y=alt.Y("amount:Q", title="Total Transaction Amount per Day", axis=alt.Axis(format=",.2f", gridDash=[3, 3])),
            tooltip=[alt.Tooltip("date:N", title="Date"), alt.Tooltip("amount:Q", title="Amount", format=",.2f")],
        )
        .properties(height=height)
    )
    if title:
        chart = chart.properties(title=title)
    return chart
