"""
Chart snapshot capture.

Live dashboard charts are plotly figures held in ChartPanel containers.
Before a report can be laid out, each requested chart is waited on,
checked for a drawing and rasterized to PNG. Failures are isolated per
chart and recorded as None so the batch always completes.
"""

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, Mapping, Optional

import plotly.graph_objects as go
import plotly.io as pio

from .config import (
    CAPTURE_BACKGROUND,
    CAPTURE_SCALE,
    CHART_HEIGHT_PX,
    CHART_IDS,
    CHART_WIDTH_PX,
    FONT_FAMILY,
    chart_settle_seconds,
)

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

Rasterizer = Callable[[go.Figure, int, int, int], bytes]


@dataclass(frozen=True)
class ChartSnapshot:
    """PNG capture of one chart, sized in source pixels before supersampling."""

    chart_id: str
    png: bytes
    width_px: int
    height_px: int


ChartSnapshotMap = Mapping[str, Optional[ChartSnapshot]]


@dataclass
class ChartPanel:
    chart_id: str
    figure: Optional[go.Figure] = None
    width_px: int = CHART_WIDTH_PX
    height_px: int = CHART_HEIGHT_PX

    def has_drawing(self) -> bool:
        return self.figure is not None and len(self.figure.data) > 0


class ChartView:
    """The on-screen container holding chart panels, looked up by chart id."""

    def __init__(self, panels: Iterable[ChartPanel] = ()):
        self._panels: Dict[str, ChartPanel] = {}
        for panel in panels:
            self.add(panel)

    def add(self, panel: ChartPanel) -> None:
        self._panels[panel.chart_id] = panel

    def find(self, chart_id: str) -> Optional[ChartPanel]:
        return self._panels.get(chart_id)

    def __iter__(self) -> Iterator[ChartPanel]:
        return iter(self._panels.values())

    def __len__(self) -> int:
        return len(self._panels)


def rasterize_figure(fig: go.Figure, width: int, height: int, scale: int = CAPTURE_SCALE) -> bytes:
    """Render a copy of the figure to PNG on an opaque background."""
    scope = pio.kaleido.scope
    if scope:
        scope.mathjax = None
        scope.default_format = "png"

    snapshot = go.Figure(fig)
    snapshot.update_layout(
        font=dict(family=FONT_FAMILY, color="#1f2933"),
        paper_bgcolor=CAPTURE_BACKGROUND,
        plot_bgcolor=CAPTURE_BACKGROUND,
    )
    return pio.to_image(
        snapshot,
        format="png",
        width=width,
        height=height,
        scale=scale,
        engine="kaleido",
    )


async def capture_chart(
    view: ChartView,
    chart_id: str,
    settle_delay: float,
    rasterizer: Rasterizer = rasterize_figure,
) -> Optional[ChartSnapshot]:
    panel = view.find(chart_id)
    if panel is None:
        logger.warning("Chart container not found: %s", chart_id)
        return None

    # The wait is not a cancellation point; whatever is drawn afterwards is final.
    await asyncio.sleep(settle_delay)
    if not panel.has_drawing():
        logger.warning("No drawing found in chart %s, skipping", chart_id)
        return None

    try:
        png = await asyncio.to_thread(
            rasterizer, panel.figure, panel.width_px, panel.height_px, CAPTURE_SCALE
        )
    except Exception:
        logger.exception("Failed to capture chart %s", chart_id)
        return None

    if not isinstance(png, (bytes, bytearray)) or not bytes(png).startswith(PNG_SIGNATURE):
        logger.warning("Failed to capture chart %s: rasterizer returned no PNG data", chart_id)
        return None
    return ChartSnapshot(chart_id=chart_id, png=bytes(png), width_px=panel.width_px, height_px=panel.height_px)


async def capture_charts(
    view: Optional[ChartView],
    chart_ids: Iterable[str] = CHART_IDS,
    settle_delay: Optional[float] = None,
    rasterizer: Rasterizer = rasterize_figure,
) -> ChartSnapshotMap:
    """
    Capture every requested chart, one after another. The result holds one
    entry per chart id, None where capture failed, and is read-only.
    """
    chart_ids = tuple(chart_ids)
    if view is None:
        logger.warning("Chart view not available; no charts captured")
        return MappingProxyType({chart_id: None for chart_id in chart_ids})

    delay = chart_settle_seconds() if settle_delay is None else settle_delay
    images: Dict[str, Optional[ChartSnapshot]] = {}
    for chart_id in chart_ids:
        images[chart_id] = await capture_chart(view, chart_id, delay, rasterizer)

    captured = sum(1 for snapshot in images.values() if snapshot is not None)
    logger.info("Chart capture completed: %d/%d charts captured", captured, len(chart_ids))
    return MappingProxyType(images)
