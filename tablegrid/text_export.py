"""
Text Export - Render and save extracted tables

Creates the delimited text grid, a tab-aligned console preview, a JSON
result file, an XLSX workbook and a batch summary.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import openpyxl
from openpyxl.styles import Font, PatternFill

from . import __version__
from .table_builder import ProcessingOptions, Table


LOW_CONFIDENCE_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
LOW_CONFIDENCE_FONT = Font(color="9C0006")


def render_delimited_text(table: Table, delimiter: str) -> str:
    """
    Join each row's cells with ``delimiter`` and end every row with a newline.

    No trailing delimiter is written; an empty row becomes an empty line.
    """
    return "".join(f"{delimiter.join(row)}\n" for row in table)


def longest_cell_length(table: Table) -> int:
    """Length of the longest cell (at least 1)."""
    longest = 1
    for row in table:
        for cell in row:
            longest = max(longest, len(cell))
    return longest


def render_aligned_preview(table: Table, delimiter: str) -> str:
    """
    Delimited text for the console. Tabs are expanded to the longest cell
    plus two so columns line up.
    """
    text = render_delimited_text(table, delimiter)
    if delimiter != "\t":
        return text
    return text.expandtabs(longest_cell_length(table) + 2)


def _options_dict(options: ProcessingOptions) -> Dict:
    return {
        'scale': options.scale,
        'delimiter': options.delimiter,
        'column_threshold': options.column_threshold,
        'confidence_threshold': options.confidence_threshold,
        'low_confidence_marker': options.low_confidence_marker,
    }


def output_stem(source: Path, page_num: Optional[int] = None) -> str:
    """File stem for one job: ``name`` or ``name_p3`` for PDF pages."""
    if page_num is None:
        return source.stem
    return f"{source.stem}_p{page_num + 1}"


def export_text(table: Table, delimiter: str, output_file: Path) -> Path:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8', newline='') as f:
        f.write(render_delimited_text(table, delimiter))
    return output_file


def export_result_json(result: Dict, options: ProcessingOptions, output_file: Path) -> Path:
    """
    Export one image result to JSON.

    Args:
        result: Pipeline result dict (source, page, table, low_confidence_boxes, ...)
        options: Options the table was built with
        output_file: Target path

    Returns:
        Path to generated JSON file
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        'source': str(result.get('source', '')),
        'page': result.get('page'),
        'img_w': result.get('img_w', 0),
        'img_h': result.get('img_h', 0),
        'scale': options.scale,
        'options': _options_dict(options),
        'table': result.get('table', []),
        'low_confidence_boxes': result.get('low_confidence_boxes', []),
        'duration_sec': result.get('duration_sec'),
        'timestamp': datetime.now().isoformat(),
        'meta': {
            'tablegrid_version': __version__,
            'method': 'symbol_column_clustering',
        },
    }

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    return output_file


def export_table_xlsx(table: Table, output_file: Path, marker: str = "") -> Path:
    """
    Write the table to a one-sheet workbook. Cells ending with ``marker``
    are highlighted.
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Table"

    for row_idx, row in enumerate(table, start=1):
        for col_idx, value in enumerate(row, start=1):
            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            if marker and value.endswith(marker):
                cell.fill = LOW_CONFIDENCE_FILL
                cell.font = LOW_CONFIDENCE_FONT

    wb.save(str(output_file))
    return output_file


def create_summary_report(results: List[Dict], output_dir: Path) -> Path:
    """
    Create batch summary report.

    Args:
        results: List of per-image results
        output_dir: Output directory

    Returns:
        Path to summary JSON file
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    images = []
    for r in results:
        table = r.get('table', [])
        images.append({
            'source': str(r.get('source', '')),
            'page': r.get('page'),
            'rows': len(table),
            'cells': sum(len(row) for row in table),
            'low_confidence_words': len(r.get('low_confidence_boxes', [])),
            'duration_sec': r.get('duration_sec'),
            'error': r.get('error'),
        })

    summary = {
        'total_images': len(results),
        'failed_images': sum(1 for r in results if r.get('error')),
        'total_rows': sum(i['rows'] for i in images),
        'total_low_confidence_words': sum(i['low_confidence_words'] for i in images),
        'timestamp': datetime.now().isoformat(),
        'images': images,
    }

    output_file = output_dir / "summary.json"
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)

    return output_file
