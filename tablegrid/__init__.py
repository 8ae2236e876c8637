"""
Table Grid - OCR table image to delimited text

Rebuilds tabular structure from OCR word positions: glyph extents are
clustered into columns, each OCR line becomes a row, skipped columns become
blank cells and low-confidence text is flagged.

Modules:
- intervals: Interval merging and point-to-column lookup
- page_model: OCR page/line/word/symbol hierarchy
- table_builder: Row assembly and confidence marking
- ocr_engine: Tesseract TSV/makebox wrapper producing a page
- imaging: Image/PDF loading, upscaling and low-confidence annotation
- text_export: Delimited text, JSON, XLSX and summary export
- settings: Defaults and environment overrides
- batch_processor: Pipeline orchestration and worker pool
"""

__version__ = "1.0.0"
__all__ = [
    "intervals",
    "page_model",
    "table_builder",
    "ocr_engine",
    "imaging",
    "text_export",
    "settings",
    "batch_processor",
]
