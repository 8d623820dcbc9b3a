"""Fixed-size pagination of plain text lines.

Wrapping is by character count, not by word: a long token is cut at the
column limit. Page and line counts are therefore a pure function of the
input text and the layout constants.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator


@dataclass(frozen=True)
class LayoutSettings:
    page_width: float = 612.0
    page_height: float = 792.0
    margin: float = 50.0
    font_name: str = "Helvetica"
    font_size: float = 11.0
    line_height: float = 14.0
    max_lines_per_page: int = 45
    max_chars_per_line: int = 90

    @property
    def top(self) -> float:
        return self.page_height - self.margin

    @property
    def bottom(self) -> float:
        return self.margin + self.line_height


DEFAULT_LAYOUT = LayoutSettings()


@dataclass(frozen=True)
class PlacedLine:
    x: float
    y: float
    text: str


@dataclass
class Page:
    index: int
    lines: list[PlacedLine] = field(default_factory=list)


@dataclass
class PageLayoutState:
    page_index: int
    y_position: float
    line_count: int = 0


def split_lines(text: str) -> list[str]:
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def wrap_line(line: str, width: int) -> list[str]:
    if width <= 0:
        raise ValueError("width must be positive")
    if len(line) <= width:
        return [line]
    return [line[i:i + width] for i in range(0, len(line), width)]


def _segments(lines: Iterable[str], width: int) -> Iterator[str]:
    for line in lines:
        yield from wrap_line(line, width)


def layout_lines(lines: Iterable[str], settings: LayoutSettings = DEFAULT_LAYOUT) -> list[Page]:
    """Place ``lines`` onto pages. Always returns at least one (possibly empty) page."""
    pages = [Page(index=0)]
    state = PageLayoutState(page_index=0, y_position=settings.top)

    for segment in _segments(lines, settings.max_chars_per_line):
        if (
            state.line_count >= settings.max_lines_per_page
            or state.y_position < settings.bottom
        ):
            state = PageLayoutState(page_index=state.page_index + 1, y_position=settings.top)
            pages.append(Page(index=state.page_index))

        pages[-1].lines.append(PlacedLine(x=settings.margin, y=state.y_position, text=segment))
        state.y_position -= settings.line_height
        state.line_count += 1

    return pages


def layout_text(text: str, settings: LayoutSettings = DEFAULT_LAYOUT) -> list[Page]:
    return layout_lines(split_lines(text), settings)
