import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .capture import ChartPanel, ChartView
from .config import (
    CHART_HEIGHT_PX,
    CHART_WIDTH_PX,
    PERFORMANCE_OVERVIEW_CHART,
    STAGE_DISTRIBUTION_CHART,
    STAGE_TRANSITION_CHART,
    STAGE_TREND_CHART,
)
from .model import ReportModel

STAGE_COLORS = ["#1e90ff", "#00e0b8", "#f5a623", "#d14b4b", "#7aa6c2", "#9b59b6"]


def apply_layout(fig: go.Figure, height: int = CHART_HEIGHT_PX, showlegend: bool = False) -> go.Figure:
    """Centralize layout tweaks so dashboard charts and their snapshots match."""
    fig.update_layout(
        height=height,
        margin=dict(l=24, r=24, t=24, b=24),
        showlegend=showlegend,
        template="plotly_white",
        font=dict(color="#1f2933"),
    )
    return fig


def stage_distribution_figure(model: ReportModel) -> go.Figure:
    stages = model.interpretation.distribution if model.interpretation else ()
    df = pd.DataFrame(
        [{"Stage": s.stage, "Score %": s.score_percentage} for s in stages],
        columns=["Stage", "Score %"],
    )
    fig = go.Figure()
    if not df.empty:
        fig.add_trace(
            go.Barpolar(
                r=df["Score %"],
                theta=df["Stage"],
                marker_color=STAGE_COLORS[: len(df)],
            )
        )
        fig.update_layout(polar=dict(radialaxis=dict(range=[0, 100])))
    return apply_layout(fig)


def performance_overview_figure(model: ReportModel) -> go.Figure:
    main = model.main_stage
    details = main.sub_stage_details if main else ()
    fig = go.Figure()
    if details:
        labels = [d.sub_stage for d in details]
        scores = [d.sub_stage_score for d in details]
        # Close the polygon.
        fig.add_trace(
            go.Scatterpolar(r=scores + scores[:1], theta=labels + labels[:1], fill="toself")
        )
    return apply_layout(fig)


def stage_transition_figure(model: ReportModel) -> go.Figure:
    stages = model.interpretation.distribution if model.interpretation else ()
    fig = go.Figure()
    if stages:
        levels = sorted({s.level or "Unrated" for s in stages})
        nodes = [s.stage for s in stages] + levels
        fig.add_trace(
            go.Sankey(
                node=dict(label=nodes, pad=12),
                link=dict(
                    source=list(range(len(stages))),
                    target=[len(stages) + levels.index(s.level or "Unrated") for s in stages],
                    value=[max(s.score_percentage, 0.1) for s in stages],
                ),
            )
        )
    return apply_layout(fig)


def stage_trend_figure(model: ReportModel) -> go.Figure:
    stages = model.interpretation.distribution if model.interpretation else ()
    rows = [
        {"Stage": s.stage, "Sub-stage": d.sub_stage, "Score": d.sub_stage_score}
        for s in stages
        for d in s.sub_stage_details
    ]
    if not rows:
        return apply_layout(go.Figure())
    fig = px.area(pd.DataFrame(rows), x="Sub-stage", y="Score", color="Stage")
    return apply_layout(fig, showlegend=True)


def build_chart_view(model: ReportModel) -> ChartView:
    """
    Build the dashboard's chart panels from a report model. A panel whose
    figure has no data is still added; capture treats it as not drawn.
    """
    builders = [
        (STAGE_DISTRIBUTION_CHART, stage_distribution_figure),
        (PERFORMANCE_OVERVIEW_CHART, performance_overview_figure),
        (STAGE_TRANSITION_CHART, stage_transition_figure),
        (STAGE_TREND_CHART, stage_trend_figure),
    ]
    return ChartView(
        ChartPanel(chart_id, builder(model), width_px=CHART_WIDTH_PX, height_px=CHART_HEIGHT_PX)
        for chart_id, builder in builders
    )
