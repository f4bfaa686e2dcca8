import json
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional, Tuple, Union


class ReportModelError(ValueError):
    """Raised when report data does not match the expected report schema."""


@dataclass(frozen=True)
class Subject:
    """The employee the report is about."""

    name: str
    department: str = ""


@dataclass(frozen=True)
class SubStage:
    sub_stage: str
    sub_stage_score: float
    intro: str = ""
    description: Tuple[str, ...] = ()
    conclusion: str = ""


@dataclass(frozen=True)
class StageEntry:
    stage: str
    score: float
    score_percentage: float
    level: str = ""
    text: str = ""
    sub_stage_summary: Tuple[str, ...] = ()
    sub_stage_details: Tuple[SubStage, ...] = ()


@dataclass(frozen=True)
class Interpretation:
    paragraphs: Tuple[str, ...] = ()
    distribution: Tuple[StageEntry, ...] = ()
    employee_stage_description: Tuple[str, ...] = ()
    dominant_stage_description: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SwotItem:
    title: str
    text: str = ""
    why_matters: str = ""
    actionable_insight: str = ""


@dataclass(frozen=True)
class Swot:
    strengths: Tuple[SwotItem, ...] = ()
    weaknesses: Tuple[SwotItem, ...] = ()
    opportunities: Tuple[SwotItem, ...] = ()
    threats: Tuple[SwotItem, ...] = ()

    def quadrants(self) -> Iterator[Tuple[str, Tuple[SwotItem, ...]]]:
        yield "Strengths", self.strengths
        yield "Weaknesses", self.weaknesses
        yield "Opportunities", self.opportunities
        yield "Threats", self.threats


@dataclass(frozen=True)
class GuidanceItem:
    title: str
    description: str = ""


@dataclass(frozen=True)
class GuidanceGroup:
    """A numbered recommendation section or action-plan category."""

    id: str
    title: str
    description: str = ""
    items: Tuple[GuidanceItem, ...] = ()


@dataclass(frozen=True)
class Recommendations:
    intro: str = ""
    sections: Tuple[GuidanceGroup, ...] = ()


@dataclass(frozen=True)
class ActionPlan:
    categories: Tuple[GuidanceGroup, ...] = ()


@dataclass(frozen=True)
class ReportModel:
    """
    Immutable, fully materialized assessment result. Built once at the
    render boundary; absent sections are None or empty tuples.
    """

    overview: Tuple[str, ...] = ()
    interpretation: Optional[Interpretation] = None
    swot: Optional[Swot] = None
    recommendations: Optional[Recommendations] = None
    action_plan: Optional[ActionPlan] = None
    conclusion: str = ""

    @property
    def main_stage(self) -> Optional[StageEntry]:
        if self.interpretation and self.interpretation.distribution:
            return self.interpretation.distribution[0]
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportModel":
        root = _mapping(data, "report")
        overview = _optional_mapping(root.get("overview"), "overview")
        conclusion = _optional_mapping(root.get("conclusion"), "conclusion")
        if not conclusion:
            conclusion = _optional_mapping(root.get("detailedInterpretation"), "detailedInterpretation")
        return cls(
            overview=_str_list(overview.get("text"), "overview.text"),
            interpretation=_interpretation(root.get("interpretation")),
            swot=_swot(root.get("swot")),
            recommendations=_recommendations(root.get("recommendations")),
            action_plan=_action_plan(root.get("actionPlan")),
            conclusion=_str(conclusion.get("text"), "conclusion.text"),
        )

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "ReportModel":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ReportModelError(f"report: invalid JSON ({exc.msg})") from exc
        return cls.from_dict(data)


# ---- field coercion helpers
def _mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ReportModelError(f"{path}: expected an object, got {type(value).__name__}")
    return value


def _optional_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    return _mapping(value, path)


def _str(value: Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ReportModelError(f"{path}: expected a string, got {type(value).__name__}")
    return value


def _number(value: Any, path: str) -> float:
    if value is None:
        return 0
    # bool is an int subclass but never a valid score.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ReportModelError(f"{path}: expected a number, got {type(value).__name__}")
    return value


def _list(value: Any, path: str) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ReportModelError(f"{path}: expected a list, got {type(value).__name__}")
    return list(value)


def _str_list(value: Any, path: str) -> Tuple[str, ...]:
    return tuple(_str(v, f"{path}[{i}]") for i, v in enumerate(_list(value, path)))


def _sub_stage(value: Any, path: str) -> SubStage:
    row = _mapping(value, path)
    return SubStage(
        sub_stage=_str(row.get("subStage"), f"{path}.subStage"),
        sub_stage_score=_number(row.get("subStageScore"), f"{path}.subStageScore"),
        intro=_str(row.get("subStageIntro"), f"{path}.subStageIntro"),
        description=_str_list(row.get("subStageDescription"), f"{path}.subStageDescription"),
        conclusion=_str(row.get("subStageConclusion"), f"{path}.subStageConclusion"),
    )


def _stage_entry(value: Any, path: str) -> StageEntry:
    row = _mapping(value, path)
    details = _list(row.get("subStageDetails"), f"{path}.subStageDetails")
    return StageEntry(
        stage=_str(row.get("stage"), f"{path}.stage"),
        score=_number(row.get("score"), f"{path}.score"),
        score_percentage=_number(row.get("scorePercentage"), f"{path}.scorePercentage"),
        level=_str(row.get("level"), f"{path}.level"),
        text=_str(row.get("text"), f"{path}.text"),
        sub_stage_summary=_str_list(row.get("subStageSummary"), f"{path}.subStageSummary"),
        sub_stage_details=tuple(
            _sub_stage(d, f"{path}.subStageDetails[{i}]") for i, d in enumerate(details)
        ),
    )


def _interpretation(value: Any) -> Optional[Interpretation]:
    if value is None:
        return None
    row = _mapping(value, "interpretation")
    paragraphs = row.get("text", row.get("stageInterpretation"))
    distribution = _list(row.get("distribution"), "interpretation.distribution")
    return Interpretation(
        paragraphs=_str_list(paragraphs, "interpretation.text"),
        distribution=tuple(
            _stage_entry(d, f"interpretation.distribution[{i}]") for i, d in enumerate(distribution)
        ),
        employee_stage_description=_str_list(
            row.get("employeeStageDescription"), "interpretation.employeeStageDescription"
        ),
        dominant_stage_description=_str_list(
            row.get("dominantStageDescription"), "interpretation.dominantStageDescription"
        ),
    )


def _swot_items(value: Any, path: str) -> Tuple[SwotItem, ...]:
    items = []
    for i, raw in enumerate(_list(value, path)):
        row = _mapping(raw, f"{path}[{i}]")
        items.append(
            SwotItem(
                title=_str(row.get("title"), f"{path}[{i}].title"),
                text=_str(row.get("text"), f"{path}[{i}].text"),
                why_matters=_str(row.get("whyMatters"), f"{path}[{i}].whyMatters"),
                actionable_insight=_str(row.get("actionableInsight"), f"{path}[{i}].actionableInsight"),
            )
        )
    return tuple(items)


def _swot(value: Any) -> Optional[Swot]:
    if value is None:
        return None
    row = _mapping(value, "swot")
    return Swot(
        strengths=_swot_items(row.get("strengths"), "swot.strengths"),
        weaknesses=_swot_items(row.get("weaknesses"), "swot.weaknesses"),
        opportunities=_swot_items(row.get("opportunities"), "swot.opportunities"),
        threats=_swot_items(row.get("threats"), "swot.threats"),
    )


def _guidance_groups(value: Any, path: str, items_key: str) -> Tuple[GuidanceGroup, ...]:
    groups = []
    for i, raw in enumerate(_list(value, path)):
        row = _mapping(raw, f"{path}[{i}]")
        items = []
        for j, item in enumerate(_list(row.get(items_key), f"{path}[{i}].{items_key}")):
            item_path = f"{path}[{i}].{items_key}[{j}]"
            item_row = _mapping(item, item_path)
            items.append(
                GuidanceItem(
                    title=_str(item_row.get("title"), f"{item_path}.title"),
                    description=_str(item_row.get("description"), f"{item_path}.description"),
                )
            )
        group_id = row.get("id", i + 1)
        groups.append(
            GuidanceGroup(
                id=str(group_id),
                title=_str(row.get("title"), f"{path}[{i}].title"),
                description=_str(row.get("description"), f"{path}[{i}].description"),
                items=tuple(items),
            )
        )
    return tuple(groups)


def _recommendations(value: Any) -> Optional[Recommendations]:
    if value is None:
        return None
    row = _mapping(value, "recommendations")
    intro = row.get("intro", row.get("recommendationsIntro"))
    return Recommendations(
        intro=_str(intro, "recommendations.intro"),
        sections=_guidance_groups(row.get("sections"), "recommendations.sections", "recommendations"),
    )


def _action_plan(value: Any) -> Optional[ActionPlan]:
    if value is None:
        return None
    row = _mapping(value, "actionPlan")
    return ActionPlan(
        categories=_guidance_groups(row.get("categories"), "actionPlan.categories", "actions"),
    )
