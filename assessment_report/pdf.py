"""
Document assembly: walks the fixed report section order and drives the
page flow engine, then serializes the finished pages to one PDF.

Sections are planned as data first (plan_sections) and dispatched by kind
to renderers that only decide what is emitted and in which order; all
measurement and page breaking lives in PageFlow.
"""

import logging
import re
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .capture import ChartSnapshotMap, ChartView, Rasterizer, capture_charts, rasterize_figure
from .config import (
    CHART_DESCRIPTIONS,
    CHART_IDS,
    CHART_IMAGE_HEIGHT_MM,
    CHART_TITLES,
    DEFAULT_SUBJECT_TOKEN,
    DETAIL_FONT_SIZE,
    KEEP_WITH_NEXT_MM,
    PARAGRAPH_SPACING_MM,
    PERFORMANCE_OVERVIEW_CHART,
    REPORT_FILENAME_PREFIX,
    REPORT_TITLE,
    ROW_HEIGHT_MM,
    STAGE_DISTRIBUTION_CHART,
)
from .layout import PALETTE, LayoutCursor, PageFlow, PlacedBlock
from .model import (
    GuidanceGroup,
    GuidanceItem,
    Interpretation,
    ReportModel,
    StageEntry,
    Subject,
    SubStage,
    Swot,
    SwotItem,
)
from .report_store import ReportExportError, save_report_pdf

logger = logging.getLogger(__name__)

ITEM_INDENT_MM = 10.0
BODY_ITEM_FONT_SIZE = 11
SECTION_GAP_MM = 4.0


# ---- Section plan
@dataclass(frozen=True)
class Section:
    kind: str
    title: str
    data: Any = None
    numbered: bool = False


@dataclass(frozen=True)
class IdentityBlock:
    subject: Subject
    generated_on: str


@dataclass(frozen=True)
class ChartBlock:
    chart_id: str
    title: str
    description: str
    snapshot: Any = None


@dataclass(frozen=True)
class MainStageAnalysis:
    main_stage: Optional[StageEntry]
    employee_assessment: Tuple[str, ...] = ()
    stage_description: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SubStageAnalysis:
    main_stage: Optional[StageEntry]
    chart: ChartBlock


@dataclass(frozen=True)
class Guidance:
    intro: str
    groups: Tuple[GuidanceGroup, ...]


@dataclass(frozen=True)
class RenderedReport:
    filename: str
    pdf_bytes: bytes
    page_count: int
    blocks: Tuple[PlacedBlock, ...] = ()
    errors: Tuple[str, ...] = ()


def _texts(values: Sequence[str]) -> Tuple[str, ...]:
    return tuple(v for v in values if v and v.strip())


def _chart_block(chart_id: str, snapshots: ChartSnapshotMap) -> ChartBlock:
    return ChartBlock(
        chart_id=chart_id,
        title=CHART_TITLES[chart_id],
        description=CHART_DESCRIPTIONS.get(chart_id, ""),
        snapshot=snapshots.get(chart_id),
    )


def plan_sections(
    model: ReportModel,
    snapshots: ChartSnapshotMap,
    subject: Subject,
    generated_on: str,
) -> List[Section]:
    """Fixed report order. Sections without data are left out entirely."""
    interp = model.interpretation or Interpretation()
    main = model.main_stage
    stage_name = main.stage if main and main.stage else ""

    sections = [Section("identity", REPORT_TITLE, IdentityBlock(subject, generated_on))]
    if _texts(model.overview):
        sections.append(Section("paragraphs", "Overview", _texts(model.overview), numbered=True))
    if _texts(interp.paragraphs):
        sections.append(Section("paragraphs", "Interpretation", _texts(interp.paragraphs), numbered=True))
    sections.append(Section("chart", CHART_TITLES[STAGE_DISTRIBUTION_CHART],
                            _chart_block(STAGE_DISTRIBUTION_CHART, snapshots)))
    if interp.distribution:
        sections.append(Section("distribution", "Stage Distribution Analysis", interp.distribution))

    employee_assessment = _texts(interp.employee_stage_description)
    stage_description = _texts(interp.dominant_stage_description)
    if main is not None or employee_assessment or stage_description:
        title = f"Main Stage Analysis - {stage_name}" if stage_name else "Main Stage Analysis"
        sections.append(
            Section(
                "main_stage",
                title,
                MainStageAnalysis(main, employee_assessment, stage_description),
                numbered=True,
            )
        )

    title = f"Sub-Stage Analysis within {stage_name}" if stage_name else "Sub-Stage Analysis"
    sections.append(
        Section(
            "sub_stages",
            title,
            SubStageAnalysis(main, _chart_block(PERFORMANCE_OVERVIEW_CHART, snapshots)),
            numbered=True,
        )
    )

    if model.swot is not None:
        sections.append(Section("swot", "SWOT Analysis", model.swot, numbered=True))
    recs = model.recommendations
    if recs is not None and (recs.intro.strip() or recs.sections):
        sections.append(
            Section("guidance", "Recommendations", Guidance(recs.intro, recs.sections), numbered=True)
        )
    plan = model.action_plan
    if plan is not None and plan.categories:
        sections.append(Section("guidance", "Action Plan", Guidance("", plan.categories), numbered=True))
    if model.conclusion.strip():
        sections.append(Section("paragraphs", "Conclusion", (model.conclusion,), numbered=True))

    numbered = []
    number = 0
    for section in sections:
        if section.numbered:
            number += 1
            section = replace(section, title=f"{number}. {section.title}")
        numbered.append(section)
    return numbered


# ---- Formatting helpers
def _fmt_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def _stage_badge(entry: StageEntry) -> str:
    pct = f"{_fmt_number(entry.score_percentage)}%"
    return f"{pct} | {entry.level.upper()}" if entry.level else pct


# ---- Section renderers
def _render_identity(flow: PageFlow, section: Section) -> None:
    block = section.data
    flow.heading(section.title, level=0)
    flow.heading("Employee Information", level=2)
    flow.key_value_row("Name", block.subject.name.strip() or "-", style="")
    flow.key_value_row("Department", block.subject.department.strip() or "-", style="")
    flow.key_value_row("Generated", block.generated_on, style="")


def _render_paragraphs(flow: PageFlow, section: Section) -> None:
    paragraphs = section.data
    flow.heading(section.title, level=1, keep_with=flow.paragraph_height(paragraphs[0]))
    for paragraph in paragraphs:
        flow.paragraph(paragraph)


def _chart_height(flow: PageFlow, chart: ChartBlock) -> float:
    return (
        flow.heading_height(2, chart.title)
        + flow.paragraph_height(chart.description, DETAIL_FONT_SIZE)
        + CHART_IMAGE_HEIGHT_MM
    )


def _emit_chart(flow: PageFlow, chart: ChartBlock) -> None:
    description_h = flow.paragraph_height(chart.description, DETAIL_FONT_SIZE)
    flow.heading(chart.title, level=2, keep_with=description_h + CHART_IMAGE_HEIGHT_MM)
    flow.paragraph(chart.description, DETAIL_FONT_SIZE, color=PALETTE["muted"])
    flow.image(chart.snapshot, height=CHART_IMAGE_HEIGHT_MM, title=chart.title)


def _render_chart(flow: PageFlow, section: Section) -> None:
    _emit_chart(flow, section.data)


def _card_height(flow: PageFlow, entry: StageEntry) -> float:
    return (
        ROW_HEIGHT_MM
        + flow.paragraph_height(entry.text, DETAIL_FONT_SIZE)
        + sum(flow.list_item_height(line) for line in _texts(entry.sub_stage_summary))
    )


def _render_distribution(flow: PageFlow, section: Section) -> None:
    stages = section.data
    flow.heading(section.title, level=2, keep_with=_card_height(flow, stages[0]))
    for entry in stages:
        with flow.keep_together(_card_height(flow, entry)):
            flow.key_value_row(entry.stage, _stage_badge(entry))
            flow.paragraph(entry.text, DETAIL_FONT_SIZE)
            for line in _texts(entry.sub_stage_summary):
                flow.list_item(line)
        flow.space(PARAGRAPH_SPACING_MM)


def _paragraph_group_height(flow: PageFlow, title: str, paragraphs: Sequence[str]) -> float:
    if not paragraphs:
        return 0.0
    first = flow.paragraph_height(paragraphs[0], DETAIL_FONT_SIZE)
    return flow.heading_height(3, title) + max(first, KEEP_WITH_NEXT_MM)


def _paragraph_group(flow: PageFlow, title: str, paragraphs: Sequence[str]) -> None:
    if not paragraphs:
        return
    flow.heading(title, level=3, keep_with=flow.paragraph_height(paragraphs[0], DETAIL_FONT_SIZE))
    for paragraph in paragraphs:
        flow.paragraph(paragraph, DETAIL_FONT_SIZE)


def _render_main_stage(flow: PageFlow, section: Section) -> None:
    analysis = section.data
    main = analysis.main_stage
    stage_title = f"Understanding the {main.stage} Stage" if main and main.stage else "Understanding the Stage"
    if main is not None:
        lead = ROW_HEIGHT_MM
    elif analysis.employee_assessment:
        lead = _paragraph_group_height(flow, "Employee Assessment", analysis.employee_assessment)
    else:
        lead = _paragraph_group_height(flow, stage_title, analysis.stage_description)
    flow.heading(section.title, level=1, keep_with=lead)
    if main is not None:
        flow.key_value_row("Current Stage", main.stage or "-")
        flow.key_value_row("Stage Score", _fmt_number(main.score))
        if main.level:
            flow.key_value_row("Level", main.level.title())
        flow.space(PARAGRAPH_SPACING_MM)
    _paragraph_group(flow, "Employee Assessment", analysis.employee_assessment)
    _paragraph_group(flow, stage_title, analysis.stage_description)


def _detail_height(flow: PageFlow, detail: SubStage) -> float:
    height = ROW_HEIGHT_MM + flow.paragraph_height(detail.intro, style="B")
    height += sum(flow.list_item_height(line) for line in _texts(detail.description))
    if detail.conclusion.strip():
        height += flow.callout_height(f"Conclusion: {detail.conclusion}")
    return height


def _emit_detail(flow: PageFlow, detail: SubStage) -> None:
    flow.key_value_row(detail.sub_stage, _fmt_number(detail.sub_stage_score), font_size=14)
    flow.paragraph(detail.intro, style="B")
    for line in _texts(detail.description):
        flow.list_item(line)
    if detail.conclusion.strip():
        flow.callout(f"Conclusion: {detail.conclusion}")


def _render_sub_stages(flow: PageFlow, section: Section) -> None:
    analysis = section.data
    main = analysis.main_stage
    summary = _texts(main.sub_stage_summary) if main else ()
    details = main.sub_stage_details if main else ()

    if summary:
        summary_h = flow.paragraph_height(summary[0])
        keep = flow.heading_height(2, "Summary") + max(summary_h, KEEP_WITH_NEXT_MM)
    else:
        keep = _chart_height(flow, analysis.chart)
    flow.heading(section.title, level=1, keep_with=keep)
    if summary:
        flow.heading("Summary", level=2, keep_with=summary_h)
        for line in summary:
            flow.paragraph(line)
    _emit_chart(flow, analysis.chart)
    if not details:
        return
    flow.heading("Detailed Analysis", level=2, keep_with=_detail_height(flow, details[0]))
    for detail in details:
        with flow.keep_together(_detail_height(flow, detail)):
            _emit_detail(flow, detail)
        flow.space(PARAGRAPH_SPACING_MM)


def _swot_item_height(flow: PageFlow, item: SwotItem) -> float:
    height = flow.list_item_height(item.title, font_size=12, style="B")
    for text in _swot_item_lines(item):
        height += flow.paragraph_height(text, DETAIL_FONT_SIZE, indent=ITEM_INDENT_MM)
    return height


def _swot_item_lines(item: SwotItem) -> List[str]:
    lines = []
    if item.text.strip():
        lines.append(item.text)
    if item.why_matters.strip():
        lines.append(f"Why it matters: {item.why_matters}")
    if item.actionable_insight.strip():
        lines.append(f"Action: {item.actionable_insight}")
    return lines


def _swot_follows(flow: PageFlow, quadrants: Sequence[Tuple[str, Sequence[SwotItem]]]) -> List[float]:
    """
    Room each quadrant heading keeps below itself: its first item, or for an
    empty quadrant the next quadrant heading and whatever that one keeps.
    """
    follows = [KEEP_WITH_NEXT_MM] * len(quadrants)
    for i in range(len(quadrants) - 1, -1, -1):
        items = quadrants[i][1]
        if items:
            follows[i] = _swot_item_height(flow, items[0])
        elif i + 1 < len(quadrants):
            next_label = quadrants[i + 1][0]
            follows[i] = flow.heading_height(2, next_label) + max(follows[i + 1], KEEP_WITH_NEXT_MM)
    return follows


def _render_swot(flow: PageFlow, section: Section) -> None:
    swot: Swot = section.data
    quadrants = list(swot.quadrants())
    follows = _swot_follows(flow, quadrants)
    first_label = quadrants[0][0]
    flow.heading(
        section.title,
        level=1,
        keep_with=flow.heading_height(2, first_label) + max(follows[0], KEEP_WITH_NEXT_MM),
    )
    for (label, items), follow in zip(quadrants, follows):
        flow.heading(label, level=2, keep_with=follow)
        if not items:
            continue
        for item in items:
            with flow.keep_together(_swot_item_height(flow, item)):
                flow.list_item(item.title, font_size=12, style="B")
                for text in _swot_item_lines(item):
                    flow.paragraph(text, DETAIL_FONT_SIZE, indent=ITEM_INDENT_MM)


def _guidance_item_height(flow: PageFlow, item: GuidanceItem) -> float:
    return flow.list_item_height(item.title, font_size=BODY_ITEM_FONT_SIZE, style="B") + flow.paragraph_height(
        item.description, DETAIL_FONT_SIZE, indent=ITEM_INDENT_MM
    )


def _group_title(group: GuidanceGroup) -> str:
    return f"{group.id}. {group.title}" if group.title else f"{group.id}."


def _group_follow(flow: PageFlow, group: GuidanceGroup) -> float:
    if group.description.strip():
        return flow.paragraph_height(group.description)
    if group.items:
        return _guidance_item_height(flow, group.items[0])
    return KEEP_WITH_NEXT_MM


def _render_guidance(flow: PageFlow, section: Section) -> None:
    guidance: Guidance = section.data
    if guidance.intro.strip():
        lead = flow.paragraph_height(guidance.intro)
    elif guidance.groups:
        first = guidance.groups[0]
        lead = flow.heading_height(2, _group_title(first)) + max(_group_follow(flow, first), KEEP_WITH_NEXT_MM)
    else:
        lead = KEEP_WITH_NEXT_MM
    flow.heading(section.title, level=1, keep_with=lead)
    flow.paragraph(guidance.intro)
    for group in guidance.groups:
        flow.heading(_group_title(group), level=2, keep_with=_group_follow(flow, group))
        flow.paragraph(group.description)
        for item in group.items:
            with flow.keep_together(_guidance_item_height(flow, item)):
                flow.list_item(item.title, font_size=BODY_ITEM_FONT_SIZE, style="B")
                flow.paragraph(item.description, DETAIL_FONT_SIZE, indent=ITEM_INDENT_MM)
        flow.space(PARAGRAPH_SPACING_MM)


SECTION_RENDERERS: Dict[str, Callable[[PageFlow, Section], None]] = {
    "identity": _render_identity,
    "paragraphs": _render_paragraphs,
    "chart": _render_chart,
    "distribution": _render_distribution,
    "main_stage": _render_main_stage,
    "sub_stages": _render_sub_stages,
    "swot": _render_swot,
    "guidance": _render_guidance,
}


# ---- Rendering and export
def report_filename(name: str) -> str:
    """Employee_Assessment_Report_<Name_With_Underscores>.pdf"""
    token = "_".join((name or "").split())
    token = re.sub(r"[\\/]", "_", token) or DEFAULT_SUBJECT_TOKEN
    return f"{REPORT_FILENAME_PREFIX}_{token}.pdf"


def _footer_label(subject: Subject) -> str:
    parts = [p.strip() for p in (subject.name, subject.department) if p and p.strip()]
    return " | ".join([REPORT_TITLE] + parts)


def render_report(
    model: Union[ReportModel, Mapping[str, Any]],
    snapshots: Optional[ChartSnapshotMap],
    subject: Subject,
    generated_on: Optional[str] = None,
) -> RenderedReport:
    """
    Lay out the full report on a fresh engine and serialize it. Sections that
    fail are listed in a trailing Rendering Notes section; only a failure to
    serialize the finished document raises.
    """
    if not isinstance(model, ReportModel):
        model = ReportModel.from_dict(model)
    snapshots = snapshots or {}
    generated_on = generated_on or date.today().isoformat()

    flow = PageFlow(footer_label=_footer_label(subject))
    errors: List[str] = []
    for section in plan_sections(model, snapshots, subject, generated_on):
        if section.numbered:
            flow.rule(space_before=SECTION_GAP_MM)
        try:
            SECTION_RENDERERS[section.kind](flow, section)
        except Exception as exc:
            logger.exception("Section '%s' failed to render", section.title)
            errors.append(f"{section.title}: {exc}")

    if errors:
        notice = "Some sections failed to render. The report is still usable; see notes below."
        flow.heading("Rendering Notes", level=1, keep_with=flow.paragraph_height(notice, DETAIL_FONT_SIZE))
        flow.paragraph(notice, DETAIL_FONT_SIZE)
        for note in errors:
            flow.list_item(note, font_size=9)

    filename = report_filename(subject.name)
    try:
        pdf_bytes = flow.output()
    except Exception as exc:
        raise ReportExportError(f"Could not serialize {filename}: {exc}") from exc

    cursor: LayoutCursor = flow.cursor
    logger.info("Rendered %s: %d pages, %d section errors", filename, cursor.page_count, len(errors))
    return RenderedReport(
        filename=filename,
        pdf_bytes=pdf_bytes,
        page_count=cursor.page_count,
        blocks=tuple(flow.blocks),
        errors=tuple(errors),
    )


async def generate_pdf(
    view: Optional[ChartView],
    model: Union[ReportModel, Mapping[str, Any]],
    subject: Subject,
    output_dir: Optional[Path] = None,
    settle_delay: Optional[float] = None,
    rasterizer: Rasterizer = rasterize_figure,
) -> Path:
    """
    Capture the dashboard charts, render the report and save it. The model is
    validated before any chart is captured.
    """
    if not isinstance(model, ReportModel):
        model = ReportModel.from_dict(model)
    snapshots = await capture_charts(view, CHART_IDS, settle_delay, rasterizer)
    report = render_report(model, snapshots, subject)
    return save_report_pdf(report, subject, output_dir)
