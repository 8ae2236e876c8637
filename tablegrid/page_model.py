"""
Page Model - Read-only OCR result hierarchy

A Page holds glyph-level symbols (used only for column geometry) and lines
of words in reading order. Coordinates are in the scaled working resolution.

Data are taken as delivered by the OCR engine and not validated here:
x0 <= x1, y0 <= y1 and 0 <= confidence <= 100 are preconditions.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class Bbox:
    x0: float
    y0: float
    x1: float
    y1: float

    def unscale(self, scale: float) -> "Bbox":
        """Divide every coordinate by ``scale`` (working -> original image)."""
        return Bbox(self.x0 / scale, self.y0 / scale, self.x1 / scale, self.y1 / scale)

    def as_dict(self) -> Dict[str, float]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Bbox":
        return cls(float(d["x0"]), float(d["y0"]), float(d["x1"]), float(d["y1"]))


@dataclass(frozen=True)
class Symbol:
    bbox: Bbox
    text: str = ""


@dataclass(frozen=True)
class Word:
    text: str
    confidence: float
    bbox: Bbox


@dataclass(frozen=True)
class Line:
    words: Tuple[Word, ...] = ()


@dataclass(frozen=True)
class Page:
    symbols: Tuple[Symbol, ...] = ()
    lines: Tuple[Line, ...] = ()
    width: int = 0
    height: int = 0

    @property
    def words(self) -> List[Word]:
        return [w for line in self.lines for w in line.words]


def page_from_dict(data: Dict[str, Any]) -> Page:
    """
    Build a Page from a plain dict.

    Accepts the shape produced by :func:`page_to_dict` and by browser OCR
    engines: ``{"symbols": [{"bbox": {...}}], "lines": [{"words": [...]}]}``.
    """
    symbols = tuple(
        Symbol(bbox=Bbox.from_dict(s["bbox"]), text=str(s.get("text", "")))
        for s in data.get("symbols", [])
    )
    lines = []
    for ln in data.get("lines", []):
        words = tuple(
            Word(
                text=str(w.get("text", "")),
                confidence=float(w.get("confidence", 0.0)),
                bbox=Bbox.from_dict(w["bbox"]),
            )
            for w in ln.get("words", [])
        )
        lines.append(Line(words=words))
    return Page(
        symbols=symbols,
        lines=tuple(lines),
        width=int(data.get("width", 0) or 0),
        height=int(data.get("height", 0) or 0),
    )


def page_to_dict(page: Page) -> Dict[str, Any]:
    return {
        "width": page.width,
        "height": page.height,
        "symbols": [{"text": s.text, "bbox": s.bbox.as_dict()} for s in page.symbols],
        "lines": [
            {
                "words": [
                    {"text": w.text, "confidence": w.confidence, "bbox": w.bbox.as_dict()}
                    for w in line.words
                ]
            }
            for line in page.lines
        ],
    }


def load_page_json(path: Path) -> Page:
    """Read a page saved by :func:`save_page_json` (or any dict of that shape)."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Page JSON must be an object: {path}")
    return page_from_dict(data)


def save_page_json(page: Page, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(page_to_dict(page), indent=2, ensure_ascii=False), encoding="utf-8")
    return path
