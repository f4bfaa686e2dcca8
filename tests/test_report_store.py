import json

import pytest

from assessment_report.model import Subject
from assessment_report.pdf import RenderedReport
from assessment_report.report_store import ReportExportError, save_report_pdf


@pytest.fixture
def report():
    return RenderedReport(
        filename="Employee_Assessment_Report_Jane_Doe.pdf",
        pdf_bytes=b"%PDF-1.3 test",
        page_count=3,
        errors=("5. SWOT Analysis: bad data",),
    )


def test_saves_pdf_and_metadata(tmp_path, report, subject):
    path = save_report_pdf(report, subject, tmp_path / "out")
    assert path.read_bytes() == b"%PDF-1.3 test"
    meta = json.loads(path.with_suffix(".json").read_text())
    assert meta["filename"] == report.filename
    assert meta["department"] == "Engineering"
    assert meta["page_count"] == 3
    assert meta["rendering_notes"] == ["5. SWOT Analysis: bad data"]


def test_report_dir_from_environment(tmp_path, report, monkeypatch):
    monkeypatch.setenv("REPORT_DIR", str(tmp_path))
    path = save_report_pdf(report, Subject("Jane Doe"))
    assert path.parent == tmp_path


def test_unwritable_location_raises(tmp_path, report, subject):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied")
    with pytest.raises(ReportExportError):
        save_report_pdf(report, subject, blocker)
    assert blocker.read_text() == "occupied"
