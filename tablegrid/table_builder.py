"""
Table Builder - Assemble OCR lines into a delimited grid

Columns are detected by clustering the horizontal extents of every symbol on
the page. Each OCR line becomes one row: consecutive words that fall in the
same column share a cell, skipped columns become blank cells, and cells whose
weakest word is below the confidence threshold get a text marker.

Independently, every low-confidence word contributes its (unscaled) bbox to
a region list used to highlight it on the original image.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

from .intervals import ClusterSet, Interval
from .page_model import Bbox, Line, Page, Word


Row = List[str]
Table = List[Row]


@dataclass(frozen=True)
class ProcessingOptions:
    """
    Options for one page.

    scale: magnification applied before OCR; also used to unscale output boxes.
    delimiter: only used when rendering text, never by the builder.
    column_threshold: max horizontal gap (unscaled px) inside one column.
    confidence_threshold: words/cells below this (0-100) are flagged.
    low_confidence_marker: suffix appended to a flagged cell.
    """

    scale: int = 3
    delimiter: str = "\t"
    column_threshold: float = 5
    confidence_threshold: float = 90
    low_confidence_marker: str = " (?)"


@dataclass
class OcrProcessingResult:
    table: Table = field(default_factory=list)
    low_confidence_boxes: List[Bbox] = field(default_factory=list)


class RowState(NamedTuple):
    """Open-cell state while walking a line. ``column is None`` means no open cell."""

    column: Optional[int]
    text: Optional[str]
    min_confidence: float


NO_OPEN_CELL = RowState(column=None, text=None, min_confidence=100.0)


def finalize_cell(state: RowState, options: ProcessingOptions) -> Optional[str]:
    """Text of the open cell with the marker applied, or None if nothing is open."""
    if state.text is None:
        return None
    if state.min_confidence < options.confidence_threshold:
        return f"{state.text}{options.low_confidence_marker}"
    return state.text


def advance(
    state: RowState,
    column: int,
    word: Word,
    options: ProcessingOptions,
) -> Tuple[RowState, List[str]]:
    """
    Feed one word (already assigned to ``column``) into the row state.

    Returns the new state and the cells that became final: the previous
    cell (if any) followed by one blank per skipped column.
    """
    if column == state.column:
        text = word.text if state.text is None else f"{state.text} {word.text}"
        return RowState(column, text, min(state.min_confidence, word.confidence)), []

    emitted: List[str] = []
    closed = finalize_cell(state, options)
    if closed is not None:
        emitted.append(closed)

    # With no open cell the previous column counts as 0.
    prev_column = 0 if state.column is None else state.column
    skipped = column - prev_column - 1
    if skipped > 0:
        emitted.extend([""] * skipped)

    return RowState(column, word.text, word.confidence), emitted


def detect_columns(page: Page, options: ProcessingOptions) -> ClusterSet:
    """Cluster every symbol's [x0, x1] with the threshold converted to working px."""
    intervals = [Interval(s.bbox.x0, s.bbox.x1) for s in page.symbols]
    return ClusterSet(intervals, options.column_threshold * options.scale)


def build_row(
    line: Line,
    columns: ClusterSet,
    options: ProcessingOptions,
    low_confidence_boxes: Optional[List[Bbox]] = None,
) -> Row:
    """
    Build one row from a line. Low-confidence word boxes are appended to
    ``low_confidence_boxes`` when a list is given.
    """
    row: Row = []
    state = NO_OPEN_CELL

    for word in line.words:
        if low_confidence_boxes is not None and word.confidence < options.confidence_threshold:
            low_confidence_boxes.append(word.bbox.unscale(options.scale))

        column = columns.index_of(word.bbox.x0)
        state, emitted = advance(state, column, word, options)
        row.extend(emitted)

    last = finalize_cell(state, options)
    if last is not None:
        row.append(last)

    return row


def process_ocr_data(page: Page, options: ProcessingOptions) -> OcrProcessingResult:
    """
    Convert one OCR page into a jagged table plus the low-confidence regions.

    Pure and deterministic: all state is local to the call.
    """
    columns = detect_columns(page, options)
    result = OcrProcessingResult()

    for line in page.lines:
        result.table.append(build_row(line, columns, options, result.low_confidence_boxes))

    return result
