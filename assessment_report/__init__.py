"""
Assessment report export pipeline.

Captures dashboard charts as PNG snapshots, flows the assessment result
across fixed-size pages and serializes the finished document to PDF.
"""

from .capture import ChartPanel, ChartSnapshot, ChartView, capture_charts
from .layout import LayoutCursor, PageFlow
from .model import ReportModel, ReportModelError, Subject
from .pdf import RenderedReport, generate_pdf, render_report, report_filename
from .report_store import ReportExportError, save_report_pdf

__version__ = "0.1.0"

__all__ = [
    "ChartPanel",
    "ChartSnapshot",
    "ChartView",
    "LayoutCursor",
    "PageFlow",
    "RenderedReport",
    "ReportExportError",
    "ReportModel",
    "ReportModelError",
    "Subject",
    "capture_charts",
    "generate_pdf",
    "render_report",
    "report_filename",
    "save_report_pdf",
]
