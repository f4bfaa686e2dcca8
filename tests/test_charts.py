from assessment_report.charts import build_chart_view, performance_overview_figure
from assessment_report.config import CHART_IDS
from assessment_report.model import ReportModel


def test_full_model_draws_every_chart(sample_report):
    view = build_chart_view(ReportModel.from_dict(sample_report))
    assert [panel.chart_id for panel in view] == list(CHART_IDS)
    assert all(panel.has_drawing() for panel in view)


def test_missing_data_leaves_panels_empty():
    view = build_chart_view(ReportModel.from_dict({"overview": {"text": ["Para A."]}}))
    assert len(view) == len(CHART_IDS)
    assert not any(panel.has_drawing() for panel in view)


def test_radar_polygon_is_closed(sample_report):
    fig = performance_overview_figure(ReportModel.from_dict(sample_report))
    trace = fig.data[0]
    assert list(trace.theta) == ["Excitement", "Curiosity", "Excitement"]
    assert trace.r[0] == trace.r[-1]
