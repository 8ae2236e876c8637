"""
Imaging - Image loading, scaling and low-confidence annotation

Images are handled as OpenCV BGR arrays. PDF pages are rendered with PyMuPDF
and then treated like any other image.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .page_model import Bbox


PDF_SUFFIXES = {".pdf"}
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}

MARK_COLOR = (0, 0, 255)  # red (BGR)
MARK_THICKNESS = 2
MARK_PADDING = 2


def is_supported(path: Path) -> bool:
    suffix = path.suffix.lower()
    return suffix in IMAGE_SUFFIXES or suffix in PDF_SUFFIXES


def load_image(path: Path) -> np.ndarray:
    """Decode an image file to a BGR array (works with non-ASCII paths)."""
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    data = np.fromfile(str(path), np.uint8)
    img = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError(f"Unable to decode image: {path}")
    return img


def count_pdf_pages(pdf_path: Path) -> int:
    import fitz  # PyMuPDF

    with fitz.open(str(pdf_path)) as doc:
        return len(doc)


def render_pdf_page(pdf_path: Path, page_num: int, dpi: int = 150) -> np.ndarray:
    """
    Render a PDF page to a BGR image.

    Args:
        pdf_path: Path to PDF file
        page_num: Page number (0-indexed)
        dpi: Render DPI
    """
    import fitz  # PyMuPDF

    with fitz.open(str(pdf_path)) as doc:
        if page_num >= len(doc):
            raise ValueError(f"{pdf_path.name} has no page {page_num + 1}")
        page = doc[page_num]
        zoom = dpi / 72.0
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
        img = np.frombuffer(pix.samples, dtype=np.uint8).reshape(pix.height, pix.width, pix.n)

    if pix.n == 1:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return cv2.cvtColor(img, cv2.COLOR_RGB2BGR)


def load_source(path: Path, page_num: Optional[int] = None, pdf_dpi: int = 150) -> np.ndarray:
    """Load an image file, or one page of a PDF when ``page_num`` is given."""
    if path.suffix.lower() in PDF_SUFFIXES:
        return render_pdf_page(path, page_num or 0, dpi=pdf_dpi)
    return load_image(path)


def expand_sources(paths: Iterable[Path]) -> List[Tuple[Path, Optional[int]]]:
    """
    Turn input paths into (path, page_num) jobs. Directories contribute their
    supported files; PDFs contribute one job per page.
    """
    jobs: List[Tuple[Path, Optional[int]]] = []
    for path in paths:
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.is_file() and is_supported(p))
        else:
            files = [path]
        for f in files:
            if f.suffix.lower() in PDF_SUFFIXES:
                jobs.extend((f, i) for i in range(count_pdf_pages(f)))
            else:
                jobs.append((f, None))
    return jobs


def scale_image(img: np.ndarray, scale: int) -> np.ndarray:
    """Enlarge both dimensions by an integer factor before OCR."""
    if scale == 1:
        return img.copy()
    h, w = img.shape[:2]
    return cv2.resize(img, (w * scale, h * scale), interpolation=cv2.INTER_CUBIC)


def mark_boxes(img: np.ndarray, boxes: Iterable[Bbox]) -> np.ndarray:
    """Draw a padded red rectangle around each box on a copy of ``img``."""
    marked = img.copy()
    if marked.ndim == 2:
        marked = cv2.cvtColor(marked, cv2.COLOR_GRAY2BGR)

    for box in boxes:
        x0 = int(round(box.x0)) - MARK_PADDING
        y0 = int(round(box.y0)) - MARK_PADDING
        x1 = int(round(box.x1)) + MARK_PADDING
        y1 = int(round(box.y1)) + MARK_PADDING
        cv2.rectangle(marked, (x0, y0), (x1, y1), MARK_COLOR, MARK_THICKNESS)

    return marked


def save_image(img: np.ndarray, path: Path) -> Path:
    """Encode by suffix and write (works with non-ASCII paths)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    ok, buf = cv2.imencode(path.suffix or ".png", img)
    if not ok:
        raise ValueError(f"Unable to encode image: {path}")
    buf.tofile(str(path))
    return path
