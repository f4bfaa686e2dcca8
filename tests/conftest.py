"""Shared fixtures: a sample assessment result, PNG bytes and chart views."""

import io

import plotly.graph_objects as go
import pytest
from PIL import Image

from assessment_report.capture import ChartPanel, ChartView
from assessment_report.config import CHART_IDS
from assessment_report.model import Subject


def make_png(color: str = "white", size=(8, 6)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def sample_report_dict() -> dict:
    return {
        "overview": {
            "text": [
                "This report summarises the assessment results for the employee across all stages.",
                "Scores are normalised to a 0-100 scale and compared with the organisation average.",
            ]
        },
        "interpretation": {
            "stageInterpretation": [
                "The employee shows a clear dominant stage with moderate presence in adjacent stages.",
            ],
            "employeeStageDescription": ["The employee is enthusiastic and engaged with new work."],
            "dominantStageDescription": ["The honeymoon stage is marked by optimism and energy."],
            "distribution": [
                {
                    "stage": "Honeymoon",
                    "score": 42,
                    "scorePercentage": 64,
                    "level": "high",
                    "text": "Strong optimism about the role and the team.",
                    "subStageSummary": ["Excitement is high.", "Expectations are still forming."],
                    "subStageDetails": [
                        {
                            "subStage": "Excitement",
                            "subStageScore": 8.5,
                            "subStageIntro": "Energy for new tasks is high.",
                            "subStageDescription": ["Volunteers for projects.", "Speaks positively."],
                            "subStageConclusion": "Channel this energy into stretch goals.",
                        },
                        {
                            "subStage": "Curiosity",
                            "subStageScore": 7,
                            "subStageIntro": "Asks many questions about processes.",
                            "subStageDescription": ["Seeks out documentation."],
                            "subStageConclusion": "Pair with a mentor.",
                        },
                    ],
                },
                {
                    "stage": "Frustration",
                    "score": 12,
                    "scorePercentage": 18,
                    "level": "low",
                    "text": "Few signs of frustration.",
                },
            ],
        },
        "swot": {
            "strengths": [
                {
                    "title": "Initiative",
                    "text": "Takes ownership of new work.",
                    "whyMatters": "Ownership speeds delivery.",
                    "actionableInsight": "Give visible projects.",
                }
            ],
            "weaknesses": [
                {
                    "title": "Limited context",
                    "text": "Still learning team history.",
                    "whyMatters": "Context prevents rework.",
                    "actionableInsight": "Schedule knowledge transfer.",
                }
            ],
            "opportunities": [
                {
                    "title": "Mentoring",
                    "text": "Senior colleagues are available.",
                    "whyMatters": "Accelerates growth.",
                    "actionableInsight": "Set up weekly sessions.",
                }
            ],
            "threats": [
                {
                    "title": "Overload",
                    "text": "Says yes to everything.",
                    "whyMatters": "Risk of burnout.",
                    "actionableInsight": "Agree on priorities.",
                }
            ],
        },
        "recommendations": {
            "recommendationsIntro": "The following recommendations build on current strengths.",
            "sections": [
                {
                    "id": 1,
                    "title": "Growth",
                    "description": "Support continued development.",
                    "recommendations": [
                        {"title": "Stretch goals", "description": "Agree two stretch goals per quarter."}
                    ],
                }
            ],
        },
        "actionPlan": {
            "categories": [
                {
                    "id": 1,
                    "title": "First 30 days",
                    "description": "Immediate actions.",
                    "actions": [{"title": "Mentor", "description": "Assign a mentor."}],
                }
            ]
        },
        "conclusion": {"text": "Overall the employee is well placed for growth."},
    }


@pytest.fixture
def sample_report():
    return sample_report_dict()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def subject():
    return Subject(name="Jane Doe", department="Engineering")


@pytest.fixture
def fake_rasterizer(png_bytes):
    calls = []

    def rasterize(fig, width, height, scale):
        calls.append((width, height, scale))
        return png_bytes

    rasterize.calls = calls
    return rasterize


@pytest.fixture
def drawn_figure():
    return go.Figure(go.Scatter(x=[1, 2, 3], y=[3, 1, 2]))


@pytest.fixture
def full_view(drawn_figure):
    return ChartView(ChartPanel(chart_id, drawn_figure) for chart_id in CHART_IDS)
