"""
Settings - Defaults and environment overrides

Env vars (all optional, bad values fall back to defaults):
  - TABLEGRID_SCALE=3  (integer 1-10; a fractional value is rejected, not truncated)
  - TABLEGRID_COLUMN_THRESHOLD=5
  - TABLEGRID_CONFIDENCE_THRESHOLD=90
  - TABLEGRID_LOW_CONFIDENCE_MARKER=" (?)"
  - TABLEGRID_DELIMITER=tab|comma
  - TABLEGRID_NUM_WORKERS=3
  - TABLEGRID_JOB_TIMEOUT_SEC=300  (0 disables)
  - TABLEGRID_PDF_DPI=150
"""

import os
from dataclasses import replace
from typing import Any, Dict, Optional

from .table_builder import ProcessingOptions


DEFAULTS = {
    "scale": 3,  # higher scale improves accuracy but slows OCR
    "column_threshold": 5,  # max px gap (unscaled) inside one column
    "confidence_threshold": 90,
    "low_confidence_marker": " (?)",
    "delimiter": "tab",
    "num_workers": 3,  # images processed simultaneously
    "job_timeout_sec": 300,
    "pdf_dpi": 150,
}

DELIMITERS = {
    "tab": "\t",
    "comma": ",",
}

# Largest accepted upscale factor.
MAX_SCALE = 10

# 101 lets every word (confidence <= 100) count as low confidence.
MAX_CONFIDENCE_THRESHOLD = 101


def _env_int(key: str, default: int) -> int:
    try:
        return int(float(str(os.environ.get(key, str(default)) or str(default)).strip()))
    except Exception:
        return int(default)


def _env_float(key: str, default: float) -> float:
    try:
        return float(str(os.environ.get(key, str(default)) or str(default)).strip())
    except Exception:
        return float(default)


def _env_number(key: str, default: int):
    """Like _env_float, but integral values come back as int."""
    val = _env_float(key, default)
    return int(val) if val.is_integer() else val


def _env_str(key: str, default: str) -> str:
    val = os.environ.get(key)
    if val is None:
        return default
    return val


def resolve_delimiter(name: str) -> str:
    """Map ``tab``/``comma`` to the character; anything else is used literally."""
    key = str(name or "").strip().lower()
    if key in DELIMITERS:
        return DELIMITERS[key]
    if not name:
        return DELIMITERS[DEFAULTS["delimiter"]]
    return name


def env_defaults() -> Dict[str, Any]:
    """DEFAULTS with TABLEGRID_* environment overrides applied."""
    return {
        "scale": _env_number("TABLEGRID_SCALE", DEFAULTS["scale"]),
        "column_threshold": _env_float("TABLEGRID_COLUMN_THRESHOLD", DEFAULTS["column_threshold"]),
        "confidence_threshold": _env_float(
            "TABLEGRID_CONFIDENCE_THRESHOLD", DEFAULTS["confidence_threshold"]
        ),
        "low_confidence_marker": _env_str(
            "TABLEGRID_LOW_CONFIDENCE_MARKER", DEFAULTS["low_confidence_marker"]
        ),
        "delimiter": _env_str("TABLEGRID_DELIMITER", DEFAULTS["delimiter"]),
        "num_workers": _env_int("TABLEGRID_NUM_WORKERS", DEFAULTS["num_workers"]),
        "job_timeout_sec": _env_int("TABLEGRID_JOB_TIMEOUT_SEC", DEFAULTS["job_timeout_sec"]),
        "pdf_dpi": _env_int("TABLEGRID_PDF_DPI", DEFAULTS["pdf_dpi"]),
    }


def validate_options(options: ProcessingOptions) -> ProcessingOptions:
    """Raise ValueError for option values the builder cannot work with."""
    if not 1 <= options.scale <= MAX_SCALE or int(options.scale) != options.scale:
        raise ValueError(f"scale must be an integer within 1-{MAX_SCALE}, got {options.scale!r}")
    if options.column_threshold < 0:
        raise ValueError(f"column threshold must be >= 0, got {options.column_threshold!r}")
    if not 0 <= options.confidence_threshold <= MAX_CONFIDENCE_THRESHOLD:
        raise ValueError(
            f"confidence threshold must be within 0-{MAX_CONFIDENCE_THRESHOLD}, "
            f"got {options.confidence_threshold!r}"
        )
    return options


def build_options(
    scale: Optional[int] = None,
    delimiter: Optional[str] = None,
    column_threshold: Optional[float] = None,
    confidence_threshold: Optional[float] = None,
    low_confidence_marker: Optional[str] = None,
) -> ProcessingOptions:
    """
    Build validated ProcessingOptions. Explicit arguments win over the
    environment, which wins over DEFAULTS.
    """
    base = env_defaults()
    options = ProcessingOptions(
        scale=base["scale"] if scale is None else scale,
        delimiter=resolve_delimiter(base["delimiter"] if delimiter is None else delimiter),
        column_threshold=float(base["column_threshold"] if column_threshold is None else column_threshold),
        confidence_threshold=float(
            base["confidence_threshold"] if confidence_threshold is None else confidence_threshold
        ),
        low_confidence_marker=str(
            base["low_confidence_marker"] if low_confidence_marker is None else low_confidence_marker
        ),
    )
    validate_options(options)
    return replace(options, scale=int(options.scale))
