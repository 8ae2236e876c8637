"""
OCR Engine - Tesseract CLI wrapper producing a Page

Words and lines come from Tesseract TSV output, glyph boxes (symbols) from
makebox output. Both passes run on the same (already scaled) image so their
coordinates share one pixel space.
"""

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from .page_model import Bbox, Line, Page, Symbol, Word, save_page_json


def _resolve_tesseract_cmd() -> Tuple[str, Optional[Path]]:
    """Resolve the Tesseract CLI path and optional tessdata dir."""
    for key in ("TESSERACT_CMD", "TESSERACT_BIN", "TESSERACT_PATH"):
        val = (os.getenv(key) or "").strip()
        if val:
            cmd_path = Path(val)
            if cmd_path.is_dir():
                exe_name = "tesseract.exe" if os.name == "nt" else "tesseract"
                cmd_path = cmd_path / exe_name
            tessdata = cmd_path.parent / "tessdata"
            return str(cmd_path), tessdata if tessdata.exists() else None

    # Repo-local fallback: tools/tesseract/tesseract(.exe)
    repo_root = Path(__file__).resolve().parents[1]
    exe_name = "tesseract.exe" if os.name == "nt" else "tesseract"
    repo_cmd = repo_root / "tools" / "tesseract" / exe_name
    if repo_cmd.exists():
        tessdata = repo_cmd.parent / "tessdata"
        return str(repo_cmd), tessdata if tessdata.exists() else None

    return "tesseract", None


def get_tesseract_lang() -> str:
    """Get Tesseract language from environment or default to 'eng'."""
    return os.getenv("TABLEGRID_TESS_LANG", "eng")


def get_tesseract_psm() -> int:
    """Get Tesseract PSM from environment or default to 6."""
    try:
        return int(os.getenv("TABLEGRID_TESS_PSM", "6"))
    except ValueError:
        return 6


def run_tesseract(
    img_path: Path,
    output: str = "tsv",
    lang: str = "eng",
    psm: int = 6,
    timeout_sec: int = 300,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Run Tesseract with one output config (``tsv`` or ``makebox``) to stdout.

    Returns:
        Tuple of (stdout, error_message)
    """
    tesseract_cmd, tessdata_dir = _resolve_tesseract_cmd()
    env = None
    if tessdata_dir:
        env = os.environ.copy()
        env.setdefault("TESSDATA_PREFIX", str(tessdata_dir))

    cmd = [
        tesseract_cmd,
        str(img_path),
        "stdout",
        "-l", lang,
        "--psm", str(psm),
        "--oem", "3",
        output,
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_sec,
            encoding='utf-8',
            errors='replace',
            env=env
        )
    except subprocess.TimeoutExpired:
        return None, "Tesseract timeout"
    except FileNotFoundError:
        return None, "Tesseract not found in PATH"
    except OSError as e:
        return None, str(e)

    if result.returncode != 0:
        return None, result.stderr or f"Tesseract exited with code {result.returncode}"

    return result.stdout, None


def parse_tesseract_tsv(tsv_text: str) -> List[Dict]:
    """
    Parse Tesseract TSV output into word tokens.

    Returns list of dicts with:
        - text: The recognized text
        - conf: Confidence (0-100, as reported)
        - x0, y0, x1, y1: Bounding box in pixels
        - block_num, par_num, line_num, word_num

    Only word-level rows (level 5) with non-empty text are kept. No
    confidence filtering happens here.
    """
    tokens = []
    lines = tsv_text.strip().split('\n')

    if len(lines) < 2:
        return tokens

    # Skip header line
    for line in lines[1:]:
        parts = line.rstrip('\r').split('\t')
        if len(parts) < 12:
            continue

        try:
            level = int(parts[0])
            if level != 5:
                continue

            text = parts[11]
            if not text.strip():
                continue

            left = int(parts[6])
            top = int(parts[7])
            width = int(parts[8])
            height = int(parts[9])
            conf = float(parts[10])

            tokens.append({
                'text': text,
                'conf': max(0.0, conf),
                'x0': float(left),
                'y0': float(top),
                'x1': float(left + width),
                'y1': float(top + height),
                'block_num': int(parts[2]),
                'par_num': int(parts[3]),
                'line_num': int(parts[4]),
                'word_num': int(parts[5]),
            })
        except (ValueError, IndexError):
            continue

    return tokens


def parse_tesseract_boxes(box_text: str, img_h: int) -> List[Dict]:
    """
    Parse makebox output (``ch left bottom right top page``) into glyph boxes.

    Box files use a bottom-left origin; y is flipped with ``img_h`` so the
    result shares the TSV top-left pixel space.
    """
    glyphs = []
    for line in box_text.splitlines():
        parts = line.rsplit(' ', 5)
        if len(parts) != 6:
            continue
        try:
            left, bottom, right, top = (int(v) for v in parts[1:5])
        except ValueError:
            continue
        glyphs.append({
            'text': parts[0],
            'x0': float(left),
            'y0': float(img_h - top),
            'x1': float(right),
            'y1': float(img_h - bottom),
        })
    return glyphs


def build_page(tokens: List[Dict], glyphs: List[Dict], img_w: int = 0, img_h: int = 0) -> Page:
    """
    Group word tokens into lines by (block, paragraph, line) in output order.
    """
    lines: List[Line] = []
    current_key = None
    current_words: List[Word] = []

    for tok in tokens:
        key = (tok.get('block_num'), tok.get('par_num'), tok.get('line_num'))
        if current_key is not None and key != current_key:
            lines.append(Line(words=tuple(current_words)))
            current_words = []
        current_key = key
        current_words.append(Word(
            text=str(tok['text']),
            confidence=float(tok['conf']),
            bbox=Bbox(tok['x0'], tok['y0'], tok['x1'], tok['y1']),
        ))

    if current_words:
        lines.append(Line(words=tuple(current_words)))

    symbols = tuple(
        Symbol(bbox=Bbox(g['x0'], g['y0'], g['x1'], g['y1']), text=str(g.get('text', '')))
        for g in glyphs
    )
    return Page(symbols=symbols, lines=tuple(lines), width=int(img_w), height=int(img_h))


def ocr_image(
    img: np.ndarray,
    lang: Optional[str] = None,
    psm: Optional[int] = None,
    debug_dir: Optional[Path] = None,
    debug_tag: str = "ocr",
) -> Tuple[Optional[Page], Optional[str]]:
    """
    Run both Tesseract passes on an in-memory image.

    Args:
        img: Image (BGR or grayscale) already at working scale
        lang: Tesseract language (default from TABLEGRID_TESS_LANG)
        psm: Page segmentation mode (default from TABLEGRID_TESS_PSM)
        debug_dir: Optional directory to keep the raw TSV/box output and the
            assembled page as ``{debug_tag}.page.json`` (reusable with --page-json)

    Returns:
        Tuple of (page, error_message)
    """
    lang = lang or get_tesseract_lang()
    psm = get_tesseract_psm() if psm is None else psm
    img_h, img_w = img.shape[:2]

    with tempfile.NamedTemporaryFile(suffix='.png', delete=False) as tmp:
        img_path = Path(tmp.name)
    try:
        if not cv2.imwrite(str(img_path), img):
            return None, f"Unable to write temp image {img_path}"

        tsv_text, error = run_tesseract(img_path, "tsv", lang, psm)
        if error:
            return None, error
        box_text, error = run_tesseract(img_path, "makebox", lang, psm)
        if error:
            return None, error
    finally:
        img_path.unlink(missing_ok=True)

    if debug_dir:
        debug_dir.mkdir(parents=True, exist_ok=True)
        (debug_dir / f"{debug_tag}.tsv").write_text(tsv_text or "", encoding="utf-8")
        (debug_dir / f"{debug_tag}.box").write_text(box_text or "", encoding="utf-8")

    tokens = parse_tesseract_tsv(tsv_text or "")
    glyphs = parse_tesseract_boxes(box_text or "", img_h)
    page = build_page(tokens, glyphs, img_w, img_h)
    if debug_dir:
        save_page_json(page, debug_dir / f"{debug_tag}.page.json")
    return page, None
