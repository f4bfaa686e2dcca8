import asyncio
import json

import pytest

from assessment_report import pdf
from assessment_report.capture import ChartSnapshot, capture_charts
from assessment_report.charts import build_chart_view
from assessment_report.config import CHART_IDS
from assessment_report.model import ReportModel, ReportModelError, Subject
from assessment_report.pdf import (
    SECTION_RENDERERS,
    generate_pdf,
    plan_sections,
    render_report,
    report_filename,
)
from assessment_report.report_store import ReportExportError


@pytest.fixture
def snapshots(png_bytes):
    return {cid: ChartSnapshot(cid, png_bytes, 900, 500) for cid in CHART_IDS}


def headings_are_followed_on_same_page(blocks):
    for prev, nxt in zip(blocks, blocks[1:]):
        if prev.kind == "heading" and nxt.page != prev.end_page:
            return False
    return True


def distribution_report(stages: int = 4, summary_lines: int = 10) -> dict:
    return {
        "interpretation": {
            "distribution": [
                {
                    "stage": f"Stage {i}",
                    "score": 10 + i,
                    "scorePercentage": 20 + i,
                    "level": "moderate",
                    "text": "Signals of this stage appear in day to day behaviour.",
                    "subStageSummary": [f"Stage {i} observation {n}." for n in range(summary_lines)],
                }
                for i in range(stages)
            ]
        }
    }


class TestFilename:
    def test_whitespace_collapsed(self):
        assert report_filename("  Jane   Doe  ") == "Employee_Assessment_Report_Jane_Doe.pdf"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_uses_default_token(self, name):
        assert report_filename(name) == "Employee_Assessment_Report_Employee.pdf"

    def test_path_separators_removed(self):
        assert report_filename("A/B") == "Employee_Assessment_Report_A_B.pdf"


class TestPlan:
    def test_full_report_order_and_numbering(self, sample_report, snapshots, subject):
        model = ReportModel.from_dict(sample_report)
        sections = plan_sections(model, snapshots, subject, "2024-01-01")
        assert [s.kind for s in sections] == [
            "identity",
            "paragraphs",
            "paragraphs",
            "chart",
            "distribution",
            "main_stage",
            "sub_stages",
            "swot",
            "guidance",
            "guidance",
            "paragraphs",
        ]
        numbered = [s.title for s in sections if s.numbered]
        assert numbered == [
            "1. Overview",
            "2. Interpretation",
            "3. Main Stage Analysis - Honeymoon",
            "4. Sub-Stage Analysis within Honeymoon",
            "5. SWOT Analysis",
            "6. Recommendations",
            "7. Action Plan",
            "8. Conclusion",
        ]

    def test_absent_sections_are_skipped(self, subject):
        model = ReportModel.from_dict({"overview": {"text": ["Para A."]}})
        sections = plan_sections(model, {}, subject, "2024-01-01")
        assert [s.kind for s in sections] == ["identity", "paragraphs", "chart", "sub_stages"]
        assert sections[1].title == "1. Overview"
        assert sections[-1].title == "2. Sub-Stage Analysis"


class TestRenderScenarios:
    def test_overview_only_without_charts(self, fake_rasterizer, subject):
        model = ReportModel.from_dict({"overview": {"text": ["Para A.", "Para B."]}})
        view = build_chart_view(model)
        snaps = asyncio.run(capture_charts(view, settle_delay=0, rasterizer=fake_rasterizer))
        assert all(snap is None for snap in snaps.values())

        report = render_report(model, snaps, subject)
        assert report.page_count >= 1
        assert report.pdf_bytes.startswith(b"%PDF")
        paragraphs = [b.label for b in report.blocks if b.kind == "paragraph"]
        assert "Para A." in paragraphs
        assert "Para B." in paragraphs
        placeholders = {b.label for b in report.blocks if b.kind == "placeholder"}
        assert placeholders == {"Stage Distribution Chart", "Performance Overview Chart"}
        assert report.errors == ()

    def test_distribution_cards_break_between_entries(self, subject):
        report = render_report(distribution_report(), {}, subject)
        assert report.page_count > 1
        blocks = list(report.blocks)
        for i in range(4):
            row = next(b for b in blocks if b.kind == "row" and b.label == f"Stage {i}")
            last = next(b for b in blocks if b.label == f"Stage {i} observation 9.")
            assert row.page == last.end_page
        assert headings_are_followed_on_same_page(blocks)

    def test_empty_swot_quadrant_takes_no_item_space(self, sample_report, snapshots, subject):
        sample_report["swot"]["weaknesses"] = []
        report = render_report(sample_report, snapshots, subject)
        blocks = list(report.blocks)
        idx = next(i for i, b in enumerate(blocks) if b.kind == "heading" and b.label == "Weaknesses")
        weaknesses, following = blocks[idx], blocks[idx + 1]
        assert following.kind == "heading"
        assert following.label == "Opportunities"
        assert following.page == weaknesses.end_page
        assert following.top == pytest.approx(weaknesses.bottom)


def padded_report(report: dict, extra: int) -> dict:
    """Shift everything after the overview down by a varying amount."""
    report["overview"]["text"] = report["overview"]["text"] + [
        f"Additional context {n}: the assessment covered several review cycles and team changes."
        for n in range(extra)
    ]
    return report


class TestKeepWithNext:
    @pytest.mark.parametrize("extra", range(0, 30, 2))
    def test_paragraphs_that_fit_are_never_split(self, sample_report, snapshots, subject, extra):
        sample_report["conclusion"]["text"] = " ".join(
            ["Overall the employee is well placed for growth in the coming cycle."] * 6
        )
        report = render_report(padded_report(sample_report, extra), snapshots, subject)
        text_blocks = [b for b in report.blocks if b.kind in ("paragraph", "list_item", "callout")]
        assert all(b.page == b.end_page for b in text_blocks)
        assert headings_are_followed_on_same_page(list(report.blocks))

    @pytest.mark.parametrize("extra", range(0, 30, 2))
    def test_item_after_empty_quadrant_stays_whole(self, sample_report, snapshots, subject, extra):
        sample_report["swot"]["strengths"] = []
        report = render_report(padded_report(sample_report, extra), snapshots, subject)
        blocks = list(report.blocks)
        start = next(i for i, b in enumerate(blocks) if b.kind == "list_item" and b.label == "Limited context")
        strengths, weaknesses = blocks[start - 2], blocks[start - 1]
        item = blocks[start:start + 4]
        assert (strengths.label, weaknesses.label) == ("Strengths", "Weaknesses")
        assert [b.kind for b in item] == ["list_item", "paragraph", "paragraph", "paragraph"]
        assert strengths.page == weaknesses.page
        assert {b.page for b in item} | {b.end_page for b in item} == {weaknesses.page}


class TestRenderReport:
    def test_full_report(self, sample_report, snapshots, subject):
        report = render_report(sample_report, snapshots, subject, generated_on="2024-01-01")
        assert report.filename == "Employee_Assessment_Report_Jane_Doe.pdf"
        assert report.pdf_bytes.startswith(b"%PDF")
        assert report.errors == ()
        images = [b for b in report.blocks if b.kind == "image"]
        assert {b.label for b in images} == {"Stage Distribution Chart", "Performance Overview Chart"}
        assert all(b.page == b.end_page for b in images)
        assert headings_are_followed_on_same_page(list(report.blocks))

    def test_page_numbers_never_decrease(self, sample_report, snapshots, subject):
        report = render_report(sample_report, snapshots, subject)
        pages = [b.page for b in report.blocks]
        assert pages == sorted(pages)
        assert pages[-1] <= report.page_count

    def test_failed_section_is_noted_and_rest_rendered(self, sample_report, snapshots, subject, monkeypatch):
        def boom(flow, section):
            raise RuntimeError("bad swot data")

        monkeypatch.setitem(SECTION_RENDERERS, "swot", boom)
        report = render_report(sample_report, snapshots, subject)
        assert report.errors == ("5. SWOT Analysis: bad swot data",)
        labels = [b.label for b in report.blocks]
        assert "Rendering Notes" in labels
        assert any(label.startswith("8. Conclusion") for label in labels)

    def test_serialization_failure_raises(self, sample_report, snapshots, subject, monkeypatch):
        def broken_output(self):
            raise RuntimeError("disk full")

        monkeypatch.setattr(pdf.PageFlow, "output", broken_output)
        with pytest.raises(ReportExportError):
            render_report(sample_report, snapshots, subject)

    def test_dict_input_is_validated(self, subject):
        with pytest.raises(ReportModelError):
            render_report({"overview": {"text": "not a list"}}, {}, subject)

    def test_missing_snapshot_map(self, sample_report, subject):
        report = render_report(sample_report, None, subject)
        kinds = {b.kind for b in report.blocks if b.kind in ("image", "placeholder")}
        assert kinds == {"placeholder"}

    def test_renders_are_independent(self, sample_report, snapshots):
        first = render_report(sample_report, snapshots, Subject("Ann"), generated_on="2024-01-01")
        second = render_report(sample_report, snapshots, Subject("Ann"), generated_on="2024-01-01")
        assert first.blocks == second.blocks
        assert first.page_count == second.page_count


def test_generate_pdf_end_to_end(tmp_path, sample_report, fake_rasterizer, subject):
    model = ReportModel.from_dict(sample_report)
    view = build_chart_view(model)
    path = asyncio.run(
        generate_pdf(view, model, subject, output_dir=tmp_path, settle_delay=0, rasterizer=fake_rasterizer)
    )
    assert path == tmp_path / "Employee_Assessment_Report_Jane_Doe.pdf"
    assert path.read_bytes().startswith(b"%PDF")
    meta = json.loads(path.with_suffix(".json").read_text())
    assert meta["employee_name"] == "Jane Doe"
    assert meta["rendering_notes"] == []
    assert len(fake_rasterizer.calls) == len(CHART_IDS)
