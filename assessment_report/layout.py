import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Iterator, List, Optional, Sequence, Tuple

from fpdf import FPDF

from .capture import ChartSnapshot
from .config import (
    BODY_FONT_SIZE,
    BULLET_GLYPH,
    BULLET_WIDTH_MM,
    CHART_IMAGE_HEIGHT_MM,
    DETAIL_FONT_SIZE,
    FONT_FAMILY,
    HEADING_STYLES,
    KEEP_WITH_NEXT_MM,
    LINE_HEIGHT_FACTOR,
    LIST_INDENT_MM,
    PAGE_HEIGHT_MM,
    PAGE_MARGIN_MM,
    PAGE_WIDTH_MM,
    PARAGRAPH_SPACING_MM,
    ROW_FONT_SIZE,
    ROW_HEIGHT_MM,
)

logger = logging.getLogger(__name__)

PALETTE = {
    "primary": (30, 144, 255),  # Dodger blue
    "accent": (0, 224, 184),  # teal
    "ink": (16, 35, 58),
    "muted": (100, 110, 125),
    "placeholder": (150, 150, 150),
    "rule": (200, 200, 200),
}

LIST_SPACING_MM = 1.5
CALLOUT_INDENT_MM = 4.0


def _pdf_safe_text(text) -> str:
    # Core fonts only cover latin-1.
    if text is None:
        return ""
    return str(text).encode("latin-1", "replace").decode("latin-1")


def line_height(font_size: float) -> float:
    return font_size * LINE_HEIGHT_FACTOR


def wrap_text(pdf: FPDF, text: str, max_w: float) -> List[str]:
    """
    Greedy word wrap using the PDF's current font metrics. Words wider than
    max_w are split by character. Blank text wraps to no lines.
    """
    words = _pdf_safe_text(text).split()
    if not words:
        return []
    if max_w <= 0:
        return [" ".join(words)]
    lines = []
    current = ""
    for word in words:
        candidate = word if not current else f"{current} {word}"
        if pdf.get_string_width(candidate) <= max_w:
            current = candidate
            continue
        if current:
            lines.append(current)
            current = ""
        if pdf.get_string_width(word) <= max_w:
            current = word
            continue
        chunk = ""
        for ch in word:
            if not chunk or pdf.get_string_width(chunk + ch) <= max_w:
                chunk += ch
            else:
                lines.append(chunk)
                chunk = ch
        current = chunk
    if current:
        lines.append(current)
    return lines


@dataclass(frozen=True)
class LayoutCursor:
    """Write position over fixed-size pages, in mm from the page top."""

    page_width: float = PAGE_WIDTH_MM
    page_height: float = PAGE_HEIGHT_MM
    margin: float = PAGE_MARGIN_MM
    y_position: float = PAGE_MARGIN_MM
    page_count: int = 1

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    @property
    def remaining(self) -> float:
        return self.bottom - self.y_position

    @property
    def is_fresh(self) -> bool:
        return self.y_position == self.margin


@dataclass(frozen=True)
class PlacedBlock:
    kind: str
    page: int
    end_page: int
    top: float
    bottom: float
    label: str = ""


class ReportPDF(FPDF):
    def __init__(self, page_width: float, page_height: float, footer_label: str = ""):
        super().__init__(orientation="P", unit="mm", format=(page_width, page_height))
        self.footer_label = footer_label

    def footer(self):
        self.set_y(-12)
        self.set_text_color(120, 120, 120)
        self.set_font(FONT_FAMILY, "", 8)
        w = self.w - self.l_margin - self.r_margin
        self.cell(w, 4, _pdf_safe_text(self.footer_label), align="L")
        self.set_x(self.l_margin)
        self.cell(w, 4, f"Page {self.page_no()}", align="R")
        self.set_text_color(*PALETTE["ink"])


class PageFlow:
    """
    Cursor-based block layout over fixed-size pages.

    Every emission checks space first through ensure_space, the only place a
    page break is decided, and returns the updated cursor. Lines of text may
    continue on the next page; images never do. Headings reserve room for what
    follows so they are not left alone at the bottom of a page.
    """

    def __init__(
        self,
        page_width: float = PAGE_WIDTH_MM,
        page_height: float = PAGE_HEIGHT_MM,
        margin: float = PAGE_MARGIN_MM,
        footer_label: str = "",
    ):
        if page_height - 2 * margin <= 0 or page_width - 2 * margin <= 0:
            raise ValueError("Page margins leave no room for content.")
        self.pdf = ReportPDF(page_width, page_height, footer_label)
        self.pdf.set_margins(margin, margin, margin)
        self.pdf.set_auto_page_break(auto=False, margin=margin)
        self.pdf.add_page()
        self._cursor = LayoutCursor(page_width, page_height, margin, margin, 1)
        self.blocks: List[PlacedBlock] = []
        self._after_heading = False
        self._heading_room = 0.0
        self._held = 0

    @property
    def cursor(self) -> LayoutCursor:
        return self._cursor

    # ---- page breaking
    def ensure_space(self, required: float) -> LayoutCursor:
        cursor = self._cursor
        if required > cursor.usable_height:
            logger.warning(
                "Block of %.1fmm is taller than a page, clipping to %.1fmm",
                required,
                cursor.usable_height,
            )
            required = cursor.usable_height
        if cursor.y_position + required > cursor.bottom and not cursor.is_fresh:
            self._break_page()
        return self._cursor

    def space(self, height: float) -> LayoutCursor:
        if height > 0 and not self._cursor.is_fresh:
            self._advance(height)
        return self._cursor

    @contextmanager
    def keep_together(self, height: float) -> Iterator[LayoutCursor]:
        """
        Keep a group of blocks on one page when it fits. A group that is
        taller than a page keeps at least its first row and line together.
        Directly after a heading, a group that fits in the room the heading
        reserved is not checked again.
        """
        room = self._heading_room if self._after_heading else 0.0
        if height > room:
            if height <= self._cursor.usable_height:
                self.ensure_space(height)
            else:
                self.ensure_space(ROW_HEIGHT_MM + KEEP_WITH_NEXT_MM)
        self._held += 1
        try:
            yield self._cursor
        finally:
            self._held -= 1

    def _break_page(self) -> None:
        self.pdf.add_page()
        self._cursor = replace(
            self._cursor,
            y_position=self._cursor.margin,
            page_count=self._cursor.page_count + 1,
        )
        logger.debug("Page break, now on page %d", self._cursor.page_count)

    def _advance(self, height: float) -> None:
        cursor = self._cursor
        self._cursor = replace(cursor, y_position=min(cursor.y_position + height, cursor.bottom))

    def _record(self, kind: str, start_page: int, top: float, label: str) -> None:
        cursor = self._cursor
        self.blocks.append(
            PlacedBlock(kind, start_page, cursor.page_count, top, cursor.y_position, label)
        )

    # ---- measurement
    def _wrap(self, text: str, font_size: float, style: str, max_w: float) -> List[str]:
        self.pdf.set_font(FONT_FAMILY, style, font_size)
        return wrap_text(self.pdf, text, max_w)

    def _fit_line(self, text: str, max_w: float) -> str:
        safe = _pdf_safe_text(text)
        if self.pdf.get_string_width(safe) <= max_w:
            return safe
        while safe and self.pdf.get_string_width(safe + "...") > max_w:
            safe = safe[:-1]
        return safe.rstrip() + "..."

    def heading_height(self, level: int, text: Optional[str] = None) -> float:
        size, reserved = HEADING_STYLES[level]
        if text is None:
            return reserved
        lines = max(1, len(self._wrap(text, size, "B", self._cursor.usable_width)))
        return reserved + (lines - 1) * line_height(size)

    def heading_reserve(self, level: int) -> float:
        """Room a heading keeps below itself: any deeper heading chain plus one line."""
        deeper = sum(reserved for lvl, (_, reserved) in HEADING_STYLES.items() if lvl > level)
        return deeper + KEEP_WITH_NEXT_MM

    def paragraph_height(
        self,
        text: str,
        font_size: float = BODY_FONT_SIZE,
        style: str = "",
        indent: float = 0.0,
        space_after: float = PARAGRAPH_SPACING_MM,
    ) -> float:
        lines = self._wrap(text, font_size, style, self._cursor.usable_width - indent)
        if not lines:
            return 0.0
        return len(lines) * line_height(font_size) + space_after

    def list_item_height(
        self,
        text: str,
        indent: float = LIST_INDENT_MM,
        font_size: float = DETAIL_FONT_SIZE,
        style: str = "",
    ) -> float:
        return self.paragraph_height(
            text, font_size, style, indent + BULLET_WIDTH_MM, space_after=LIST_SPACING_MM
        )

    def callout_height(self, text: str, font_size: float = DETAIL_FONT_SIZE) -> float:
        return self.paragraph_height(text, font_size, "I", CALLOUT_INDENT_MM)

    # ---- emission
    def heading(self, text: str, level: int = 1, keep_with: Optional[float] = None) -> LayoutCursor:
        level = min(max(level, 0), max(HEADING_STYLES))
        size, _ = HEADING_STYLES[level]
        cursor = self._cursor
        lines = self._wrap(text, size, "B", cursor.usable_width) or [""]
        height = self.heading_height(level, text)
        if keep_with is not None:
            follow = max(keep_with, KEEP_WITH_NEXT_MM)
        elif self._after_heading:
            # The previous heading already reserved room for this one.
            follow = KEEP_WITH_NEXT_MM
        else:
            follow = self.heading_reserve(level)
        reserve = min(height + follow, cursor.usable_height)
        self.ensure_space(reserve)

        cursor = self._cursor
        start_page, top = cursor.page_count, cursor.y_position
        lh = line_height(size)
        self.pdf.set_font(FONT_FAMILY, "B", size)
        self.pdf.set_text_color(*PALETTE["ink"])
        for i, line in enumerate(lines):
            self.pdf.set_xy(cursor.margin, top + i * lh)
            self.pdf.cell(cursor.usable_width, lh, line)
        self._advance(height)
        self._record("heading", start_page, top, text)
        self._after_heading = True
        self._heading_room = max(min(follow, cursor.usable_height - height), 0.0)
        return self._cursor

    def paragraph(
        self,
        text: str,
        font_size: float = BODY_FONT_SIZE,
        style: str = "",
        indent: float = 0.0,
        color: Optional[Tuple[int, int, int]] = None,
        space_after: float = PARAGRAPH_SPACING_MM,
    ) -> LayoutCursor:
        cursor = self._cursor
        width = cursor.usable_width - indent
        lines = self._wrap(text, font_size, style, width)
        if not lines:
            return cursor
        self._flow_lines("paragraph", lines, font_size, style, cursor.margin + indent, width, color, text)
        return self.space(space_after)

    def list_item(
        self,
        text: str,
        indent: float = LIST_INDENT_MM,
        font_size: float = DETAIL_FONT_SIZE,
        style: str = "",
    ) -> LayoutCursor:
        cursor = self._cursor
        width = cursor.usable_width - indent - BULLET_WIDTH_MM
        lines = self._wrap(text, font_size, style, width)
        if not lines:
            return cursor
        x = cursor.margin + indent + BULLET_WIDTH_MM
        self._flow_lines("list_item", lines, font_size, style, x, width, None, text, prefix=BULLET_GLYPH)
        return self.space(LIST_SPACING_MM)

    def callout(self, text: str, font_size: float = DETAIL_FONT_SIZE) -> LayoutCursor:
        """Italic, muted paragraph with an accent bar, for concluding remarks."""
        cursor = self._cursor
        width = cursor.usable_width - CALLOUT_INDENT_MM
        lines = self._wrap(text, font_size, "I", width)
        if not lines:
            return cursor
        x = cursor.margin + CALLOUT_INDENT_MM
        self._flow_lines("callout", lines, font_size, "I", x, width, PALETTE["muted"], text, bar=True)
        return self.space(PARAGRAPH_SPACING_MM)

    def _flow_lines(
        self,
        kind: str,
        lines: Sequence[str],
        font_size: float,
        style: str,
        x: float,
        width: float,
        color: Optional[Tuple[int, int, int]],
        label: str,
        prefix: str = "",
        bar: bool = False,
    ) -> None:
        lh = line_height(font_size)
        total = len(lines) * lh
        if self._held or total > self._cursor.usable_height:
            self.ensure_space(lh)
        elif self._after_heading:
            # Moving the block would strand the heading; rely on its reservation.
            self.ensure_space(total if total <= self._heading_room else lh)
        else:
            self.ensure_space(total)

        start_page, top = self._cursor.page_count, self._cursor.y_position
        for i, line in enumerate(lines):
            self.ensure_space(lh)
            y = self._cursor.y_position
            self.pdf.set_font(FONT_FAMILY, style, font_size)
            self.pdf.set_text_color(*(color or PALETTE["ink"]))
            if i == 0 and prefix:
                self.pdf.set_xy(x - BULLET_WIDTH_MM, y)
                self.pdf.cell(BULLET_WIDTH_MM, lh, prefix)
            if bar:
                self.pdf.set_draw_color(*PALETTE["accent"])
                self.pdf.set_line_width(0.8)
                self.pdf.line(x - 2.5, y, x - 2.5, y + lh)
                self.pdf.set_line_width(0.2)
            self.pdf.set_xy(x, y)
            self.pdf.cell(width, lh, line)
            self._advance(lh)
        self.pdf.set_text_color(*PALETTE["ink"])
        self._record(kind, start_page, top, label)
        self._after_heading = False

    def key_value_row(
        self,
        label: str,
        value: str,
        font_size: float = ROW_FONT_SIZE,
        style: str = "B",
        indent: float = 0.0,
    ) -> LayoutCursor:
        self.ensure_space(ROW_HEIGHT_MM)
        cursor = self._cursor
        x = cursor.margin + indent
        width = cursor.usable_width - indent
        self.pdf.set_font(FONT_FAMILY, style, font_size)
        self.pdf.set_text_color(*PALETTE["ink"])
        value_text = self._fit_line(value, width / 2)
        label_w = max(10.0, width - self.pdf.get_string_width(value_text) - 4)
        self.pdf.set_xy(x, cursor.y_position)
        self.pdf.cell(label_w, ROW_HEIGHT_MM, self._fit_line(label, label_w))
        self.pdf.set_xy(x, cursor.y_position)
        self.pdf.cell(width, ROW_HEIGHT_MM, value_text, align="R")
        start_page, top = cursor.page_count, cursor.y_position
        self._advance(ROW_HEIGHT_MM)
        self._record("row", start_page, top, label)
        self._after_heading = False
        return self._cursor

    def image(
        self,
        snapshot: Optional[ChartSnapshot],
        width: Optional[float] = None,
        height: float = CHART_IMAGE_HEIGHT_MM,
        title: str = "Chart",
    ) -> LayoutCursor:
        """
        Place an image as one atomic block. A missing snapshot becomes a
        framed placeholder of the same size, so later layout does not shift.
        """
        cursor = self._cursor
        width = cursor.usable_width if width is None else min(width, cursor.usable_width)
        if height > cursor.usable_height:
            logger.warning(
                "Image '%s' is %.1fmm tall, clipping to page height %.1fmm",
                title,
                height,
                cursor.usable_height,
            )
            width = width * cursor.usable_height / height
            height = cursor.usable_height
        self.ensure_space(height)

        cursor = self._cursor
        x = cursor.margin + (cursor.usable_width - width) / 2
        start_page, top = cursor.page_count, cursor.y_position
        kind = "image"
        if snapshot is None:
            self._placeholder(x, top, width, height, f"[{title} - Chart not captured]")
            kind = "placeholder"
        else:
            try:
                self.pdf.image(BytesIO(snapshot.png), x=x, y=top, w=width, h=height)
            except Exception:
                logger.exception("Could not embed chart image '%s'", title)
                self._placeholder(x, top, width, height, f"[{title} - Chart could not be rendered]")
                kind = "placeholder"
        self._advance(height)
        self._record(kind, start_page, top, title)
        self._after_heading = False
        return self.space(PARAGRAPH_SPACING_MM)

    def _placeholder(self, x: float, y: float, w: float, h: float, text: str) -> None:
        self.pdf.set_draw_color(*PALETTE["rule"])
        self.pdf.set_line_width(0.2)
        self.pdf.rect(x, y, w, h)
        self.pdf.set_font(FONT_FAMILY, "", DETAIL_FONT_SIZE)
        self.pdf.set_text_color(*PALETTE["placeholder"])
        lh = line_height(DETAIL_FONT_SIZE)
        self.pdf.set_xy(x, y + (h - lh) / 2)
        self.pdf.cell(w, lh, self._fit_line(text, w), align="C")
        self.pdf.set_text_color(*PALETTE["ink"])

    def rule(self, space_before: float = 0.0) -> LayoutCursor:
        """Thin horizontal separator between sections; skipped at a page top or under a heading."""
        if self._cursor.is_fresh or self._after_heading:
            return self._cursor
        self.space(space_before)
        self.ensure_space(4)
        cursor = self._cursor
        self.pdf.set_draw_color(*PALETTE["rule"])
        self.pdf.line(cursor.margin, cursor.y_position, cursor.page_width - cursor.margin, cursor.y_position)
        self._advance(4)
        return self._cursor

    def output(self) -> bytes:
        return bytes(self.pdf.output())
