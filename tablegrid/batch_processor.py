"""
Batch Processor - Image-to-grid pipeline orchestrator

Coordinates one image end to end:
1. Load (or render the PDF page)
2. Upscale by the configured integer factor
3. Tesseract OCR (words + glyph boxes)
4. Table building (column clustering + row assembly)
5. Export: delimited text, JSON, XLSX, marked image

Saved OCR pages (the debug ``.page.json`` files) can be rebuilt into grids
without running OCR again.

Several images run concurrently in a fixed-size process pool.
"""

import multiprocessing
import time
import traceback
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from . import imaging
from . import ocr_engine
from . import settings
from . import table_builder
from . import text_export
from .page_model import load_page_json
from .table_builder import ProcessingOptions


Job = Tuple[Path, Optional[int]]


def _error_result(source: Path, page_num: Optional[int], error: str, **extra) -> Dict:
    result = {
        'source': str(source),
        'page': None if page_num is None else int(page_num) + 1,
        'error': error,
        'table': [],
        'low_confidence_boxes': [],
        'img_w': 0,
        'img_h': 0,
        'duration_sec': None,
    }
    result.update(extra)
    return result


def _process_image_worker(
    pipeline_kwargs: Dict,
    source_str: str,
    page_num: Optional[int],
    output_dir_str: Optional[str],
    verbose: bool,
) -> Dict:
    try:
        pipeline = GridPipeline(**pipeline_kwargs)
        output_dir = Path(output_dir_str) if output_dir_str else None
        return pipeline.process_image(Path(source_str), page_num, output_dir, verbose)
    except Exception as e:
        return _error_result(Path(source_str), page_num, f"{type(e).__name__}: {e}")


class GridPipeline:
    """Turns table images into delimited text grids."""

    def __init__(self, options: Optional[ProcessingOptions] = None,
                 lang: Optional[str] = None, psm: Optional[int] = None,
                 pdf_dpi: Optional[int] = None,
                 write_xlsx: bool = True, write_marked_image: bool = True):
        """
        Args:
            options: Table building options (default: settings.build_options())
            lang: Tesseract language (default TABLEGRID_TESS_LANG or eng)
            psm: Tesseract PSM (default TABLEGRID_TESS_PSM or 6)
            pdf_dpi: Render DPI for PDF inputs (default TABLEGRID_PDF_DPI or 150)
            write_xlsx: Also export an .xlsx workbook per image
            write_marked_image: Also export the image with low-confidence words boxed
        """
        self.options = settings.validate_options(options or settings.build_options())
        self.lang = lang or ocr_engine.get_tesseract_lang()
        self.psm = ocr_engine.get_tesseract_psm() if psm is None else int(psm)
        self.pdf_dpi = int(pdf_dpi or settings.env_defaults()["pdf_dpi"])
        self.write_xlsx = write_xlsx
        self.write_marked_image = write_marked_image

    def _kwargs(self) -> Dict:
        return {
            "options": self.options,
            "lang": self.lang,
            "psm": self.psm,
            "pdf_dpi": self.pdf_dpi,
            "write_xlsx": self.write_xlsx,
            "write_marked_image": self.write_marked_image,
        }

    def process_image(self, source: Path, page_num: Optional[int] = None,
                      output_dir: Optional[Path] = None,
                      verbose: bool = False) -> Dict:
        """
        Process a single image (or one PDF page).

        Returns:
            Result dict with 'table', 'low_confidence_boxes' (original image
            coordinates, as dicts), 'duration_sec' and, on OCR failure, 'error'.
        """
        if not source.exists():
            raise FileNotFoundError(f"Input not found: {source}")

        label = text_export.output_stem(source, page_num)
        start_time = time.perf_counter()

        img = imaging.load_source(source, page_num, pdf_dpi=self.pdf_dpi)
        img_h, img_w = img.shape[:2]

        if verbose:
            print(f"[{label}] Resizing image to improve accuracy...")
        scaled = imaging.scale_image(img, self.options.scale)

        if verbose:
            print(f"[{label}] Converting image to text...")
        debug_dir = output_dir / "debug" if output_dir else None
        page, error = ocr_engine.ocr_image(scaled, self.lang, self.psm, debug_dir=debug_dir, debug_tag=label)
        if error or page is None:
            if verbose:
                print(f"[{label}] OCR failed: {error}")
            return _error_result(source, page_num, f"OCR failed: {error}", img_w=img_w, img_h=img_h)

        if verbose:
            print(f"[{label}] Processing data in image...")
        processed = table_builder.process_ocr_data(page, self.options)

        duration = time.perf_counter() - start_time
        if verbose:
            print(f"[{label}] Image processing completed in {duration:.2f} seconds.")

        result = {
            'source': str(source),
            'page': None if page_num is None else int(page_num) + 1,
            'img_w': img_w,
            'img_h': img_h,
            'symbols': len(page.symbols),
            'words': len(page.words),
            'table': processed.table,
            'low_confidence_boxes': [b.as_dict() for b in processed.low_confidence_boxes],
            'duration_sec': round(duration, 3),
        }

        if output_dir:
            self._export(result, img, processed, output_dir / label)

        return result

    def process_page_json(self, source: Path, output_dir: Optional[Path] = None,
                          verbose: bool = False) -> Dict:
        """
        Build the grid from a saved OCR page instead of an image.

        The page is expected at working resolution for ``options.scale``.
        No marked image is written.
        """
        if not source.exists():
            raise FileNotFoundError(f"Input not found: {source}")

        label = source.name[:-len(".page.json")] if source.name.endswith(".page.json") else source.stem
        start_time = time.perf_counter()

        page = load_page_json(source)
        if verbose:
            print(f"[{label}] Processing data in saved page ({len(page.words)} words)...")
        processed = table_builder.process_ocr_data(page, self.options)
        duration = time.perf_counter() - start_time

        result = {
            'source': str(source),
            'page': None,
            'img_w': int(page.width // self.options.scale),
            'img_h': int(page.height // self.options.scale),
            'symbols': len(page.symbols),
            'words': len(page.words),
            'table': processed.table,
            'low_confidence_boxes': [b.as_dict() for b in processed.low_confidence_boxes],
            'duration_sec': round(duration, 3),
        }

        if output_dir:
            self._export(result, None, processed, output_dir / label)

        return result

    def process_page_jsons(self, sources: Sequence[Path],
                           output_dir: Optional[Path] = None,
                           verbose: bool = False) -> List[Dict]:
        """Rebuild grids from saved pages, one error result per failing file."""
        results: List[Dict] = []
        for source in sources:
            try:
                results.append(self.process_page_json(source, output_dir, verbose))
            except (OSError, ValueError, KeyError, TypeError) as e:
                print(f"Error processing {source.name}: {type(e).__name__}: {e}")
                if verbose:
                    traceback.print_exc()
                results.append(_error_result(source, None, f"{type(e).__name__}: {e}"))

        if output_dir and results:
            text_export.create_summary_report(results, output_dir)
        return results

    def _export(self, result: Dict, img, processed, base: Path) -> None:
        text_export.export_text(processed.table, self.options.delimiter, base.parent / f"{base.name}.txt")
        text_export.export_result_json(result, self.options, base.parent / f"{base.name}.json")
        if self.write_xlsx:
            text_export.export_table_xlsx(
                processed.table, base.parent / f"{base.name}.xlsx", marker=self.options.low_confidence_marker
            )
        if self.write_marked_image and img is not None:
            marked = imaging.mark_boxes(img, processed.low_confidence_boxes)
            imaging.save_image(marked, base.parent / f"{base.name}_marked.png")

    def process_images(self, jobs: Sequence[Job],
                       output_dir: Optional[Path] = None,
                       num_workers: Optional[int] = None,
                       timeout_sec: Optional[int] = None,
                       verbose: bool = False) -> List[Dict]:
        """
        Process many images, ``num_workers`` at a time.

        A failing or timed-out image yields an error result instead of
        aborting the batch. Results keep the order of ``jobs``.

        Args:
            jobs: (path, page_num) pairs; page_num is None for plain images
            output_dir: Output directory (None: nothing written)
            num_workers: Pool size (default TABLEGRID_NUM_WORKERS or 3)
            timeout_sec: Per-image timeout (default TABLEGRID_JOB_TIMEOUT_SEC; 0 disables)
            verbose: Print progress
        """
        env = settings.env_defaults()
        num_workers = int(env["num_workers"] if num_workers is None else num_workers)
        timeout_sec = int(env["job_timeout_sec"] if timeout_sec is None else timeout_sec)
        if timeout_sec < 0:
            timeout_sec = 0

        if verbose:
            print(f"Processing {len(jobs)} image(s) with {max(1, num_workers)} worker(s)...")

        if num_workers <= 1 or len(jobs) <= 1:
            results = [self._run_inline(src, page_num, output_dir, verbose) for src, page_num in jobs]
        else:
            results = self._run_pool(jobs, output_dir, num_workers, timeout_sec, verbose)

        if output_dir and results:
            text_export.create_summary_report(results, output_dir)

        if verbose:
            failed = sum(1 for r in results if r.get('error'))
            rows = sum(len(r.get('table', [])) for r in results)
            print(f"\nCompleted: {len(results)} image(s), {rows} rows, {failed} failed")

        return results

    def _run_inline(self, source: Path, page_num: Optional[int],
                    output_dir: Optional[Path], verbose: bool) -> Dict:
        try:
            return self.process_image(source, page_num, output_dir, verbose)
        except Exception as e:
            print(f"Error processing {source.name}: {e}")
            if verbose:
                traceback.print_exc()
            return _error_result(source, page_num, str(e))

    def _run_pool(self, jobs: Sequence[Job], output_dir: Optional[Path],
                  num_workers: int, timeout_sec: int, verbose: bool) -> List[Dict]:
        ctx = multiprocessing.get_context("spawn")
        pipeline_kwargs = self._kwargs()
        out_dir_str = str(output_dir) if output_dir else None

        results: List[Dict] = []
        with ctx.Pool(processes=num_workers) as pool:
            pending = [
                pool.apply_async(
                    _process_image_worker,
                    (pipeline_kwargs, str(src), page_num, out_dir_str, bool(verbose)),
                )
                for src, page_num in jobs
            ]
            for (src, page_num), async_result in zip(jobs, pending):
                try:
                    if timeout_sec > 0:
                        result = async_result.get(timeout=float(timeout_sec))
                    else:
                        result = async_result.get()
                except multiprocessing.TimeoutError:
                    if verbose:
                        print(f"  - {src.name}: timeout after {timeout_sec}s")
                    result = _error_result(src, page_num, f"Timeout: exceeded {timeout_sec}s", timeout=True)
                if result.get('error'):
                    print(f"Error processing {src.name}: {result['error']}")
                results.append(result)
            pool.terminate()

        return results
