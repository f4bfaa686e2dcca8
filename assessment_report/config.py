import os
from pathlib import Path

# Output location for generated PDFs; REPORT_DIR overrides it.
DEFAULT_REPORT_DIR = Path(__file__).resolve().parent.parent / "reports"
ENV_REPORT_DIR = "REPORT_DIR"

# Chart capture. The settle delay gives a chart's renderer time to finish drawing.
ENV_CHART_SETTLE_SECONDS = "CHART_SETTLE_SECONDS"
DEFAULT_CHART_SETTLE_SECONDS = 1.0
CAPTURE_SCALE = 2
CAPTURE_BACKGROUND = "#ffffff"
CHART_WIDTH_PX = 900
CHART_HEIGHT_PX = 500

STAGE_DISTRIBUTION_CHART = "radial_bar"
PERFORMANCE_OVERVIEW_CHART = "radar"
STAGE_TRANSITION_CHART = "chord"
STAGE_TREND_CHART = "area_bump"
CHART_IDS = (
    STAGE_DISTRIBUTION_CHART,
    PERFORMANCE_OVERVIEW_CHART,
    STAGE_TRANSITION_CHART,
    STAGE_TREND_CHART,
)
CHART_TITLES = {
    STAGE_DISTRIBUTION_CHART: "Stage Distribution Chart",
    PERFORMANCE_OVERVIEW_CHART: "Performance Overview Chart",
    STAGE_TRANSITION_CHART: "Stage Transition Chart",
    STAGE_TREND_CHART: "Stage Trend Chart",
}
CHART_DESCRIPTIONS = {
    STAGE_DISTRIBUTION_CHART: (
        "This radial bar chart shows the distribution of scores across the organizational stages."
    ),
    PERFORMANCE_OVERVIEW_CHART: (
        "This radar chart displays performance metrics across the sub-stages of the main stage."
    ),
}

# Page geometry in mm (A4 portrait).
PAGE_WIDTH_MM = 210.0
PAGE_HEIGHT_MM = 297.0
PAGE_MARGIN_MM = 20.0
CHART_IMAGE_HEIGHT_MM = 80.0

# Typography: one family, fixed sizes. Heading level -> (font size pt, reserved height mm).
FONT_FAMILY = "Helvetica"
HEADING_STYLES = {
    0: (24, 20.0),
    1: (18, 15.0),
    2: (14, 10.0),
    3: (12, 8.0),
}
BODY_FONT_SIZE = 11
DETAIL_FONT_SIZE = 10
ROW_FONT_SIZE = 12
ROW_HEIGHT_MM = 8.0
LINE_HEIGHT_FACTOR = 0.45  # mm of line height per pt of font size
PARAGRAPH_SPACING_MM = 3.0
LIST_INDENT_MM = 5.0
BULLET_WIDTH_MM = 4.0
BULLET_GLYPH = "-"
KEEP_WITH_NEXT_MM = 10.0

REPORT_TITLE = "Employee Assessment Report"
REPORT_FILENAME_PREFIX = "Employee_Assessment_Report"
DEFAULT_SUBJECT_TOKEN = "Employee"

# Shared Plotly defaults for the dashboard preview.
PLOTLY_CONFIG = {
    "displaylogo": False,
    "modeBarButtonsToRemove": [
        "lasso2d",
        "select2d",
        "autoScale2d",
        "resetScale2d",
        "toImage",
    ],
}


def resolve_report_dir() -> Path:
    """Output directory for saved reports, honouring REPORT_DIR when set."""
    env_path = os.getenv(ENV_REPORT_DIR, "").strip()
    if env_path:
        return Path(env_path)
    return DEFAULT_REPORT_DIR


def chart_settle_seconds() -> float:
    raw = os.getenv(ENV_CHART_SETTLE_SECONDS, "").strip()
    if not raw:
        return DEFAULT_CHART_SETTLE_SECONDS
    try:
        return max(0.0, float(raw))
    except ValueError:
        return DEFAULT_CHART_SETTLE_SECONDS
