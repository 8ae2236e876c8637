#!/usr/bin/env python3
"""
Table Grid - CLI Entry Point

Converts images of tables into delimited text:
1. Upscale each image (higher scale = better accuracy, slower OCR)
2. Tesseract OCR for words and glyph boxes
3. Cluster glyph extents into columns, one row per OCR line
4. Flag low-confidence cells and box low-confidence words on the image

Usage:
    python run_tablegrid.py <image> [options]
    python run_tablegrid.py <directory> [options]  # All images/PDFs in directory
    python run_tablegrid.py --page-json <scan.page.json|directory> [options]

Options:
    --output DIR                 Output directory (default: tablegrid_output)
    --scale INT                  Upscale factor 1-10 (default: 3)
    --delimiter tab|comma        Column delimiter (default: tab)
    --column-threshold NUM       Max px gap inside one column (default: 5)
    --confidence-threshold NUM   Flag words/cells below this 0-100 (default: 90)
    --marker TEXT                Suffix for low-confidence cells (default: " (?)")
    --workers INT                Images processed simultaneously (default: 3)
    --lang LANG                  Tesseract language (default: eng)
    --psm INT                    Tesseract PSM mode (default: 6)
    --page-json                  Inputs are saved OCR pages (debug/*.page.json), no OCR
    --print                      Print the grid to stdout
    --verbose                    Verbose output

Examples:
    # Single screenshot, comma separated
    python run_tablegrid.py table.png --delimiter comma

    # Directory, looser columns
    python run_tablegrid.py ./scans --column-threshold 12

    # Re-cluster saved OCR output with a looser threshold
    python run_tablegrid.py --page-json tablegrid_output/debug --column-threshold 12
"""

import sys
import argparse
from pathlib import Path

from tablegrid import imaging
from tablegrid import settings
from tablegrid import text_export
from tablegrid.batch_processor import GridPipeline


def expand_page_json_sources(paths):
    """Files as given; directories contribute their *.page.json files, sorted."""
    files = []
    for p in paths:
        if p.is_dir():
            files.extend(sorted(p.glob("*.page.json")))
        else:
            files.append(p)
    return files


def main(argv=None):
    env = settings.env_defaults()

    parser = argparse.ArgumentParser(
        description='Table Grid - OCR table image to delimited text',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('inputs', type=str, nargs='+',
                        help='Image/PDF file(s) or directories')
    parser.add_argument('--output', type=str, default='tablegrid_output',
                        help='Output directory (default: tablegrid_output)')
    parser.add_argument('--scale', type=int, default=env['scale'],
                        help=f"Upscale factor before OCR, 1-10 (default: {env['scale']})")
    parser.add_argument('--delimiter', type=str, default=env['delimiter'],
                        help=f"Column delimiter: tab, comma or a literal string (default: {env['delimiter']})")
    parser.add_argument('--column-threshold', type=float, default=env['column_threshold'],
                        help=f"Max horizontal gap in unscaled px inside one column (default: {env['column_threshold']})")
    parser.add_argument('--confidence-threshold', type=float, default=env['confidence_threshold'],
                        help=f"Confidence cutoff 0-100 (default: {env['confidence_threshold']})")
    parser.add_argument('--marker', type=str, default=env['low_confidence_marker'],
                        help='Suffix appended to low-confidence cells')
    parser.add_argument('--workers', type=int, default=env['num_workers'],
                        help=f"Images processed simultaneously (default: {env['num_workers']})")
    parser.add_argument('--timeout', type=int, default=env['job_timeout_sec'],
                        help=f"Per-image timeout in seconds, 0 disables (default: {env['job_timeout_sec']})")
    parser.add_argument('--lang', type=str, default=None,
                        help='Tesseract language (default: eng)')
    parser.add_argument('--psm', type=int, default=None,
                        help='Tesseract PSM mode (default: 6)')
    parser.add_argument('--page-json', action='store_true',
                        help='Inputs are saved OCR page JSON files (skips OCR)')
    parser.add_argument('--no-xlsx', action='store_true',
                        help='Skip the .xlsx export')
    parser.add_argument('--print', dest='print_table', action='store_true',
                        help='Print each grid to stdout')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Verbose output')

    args = parser.parse_args(argv)

    try:
        options = settings.build_options(
            scale=args.scale,
            delimiter=args.delimiter,
            column_threshold=args.column_threshold,
            confidence_threshold=args.confidence_threshold,
            low_confidence_marker=args.marker,
        )
    except ValueError as e:
        parser.error(str(e))

    input_paths = [Path(p) for p in args.inputs]
    for p in input_paths:
        if not p.exists():
            print(f"Error: Input not found: {p}")
            sys.exit(1)

    output_dir = Path(args.output)

    if args.page_json:
        page_files = expand_page_json_sources(input_paths)
        if not page_files:
            print("Error: No page JSON files found in input")
            sys.exit(1)
    else:
        jobs = imaging.expand_sources(input_paths)
        if not jobs:
            print("Error: No images found in input")
            sys.exit(1)

    pipeline = GridPipeline(
        options=options,
        lang=args.lang,
        psm=args.psm,
        write_xlsx=not args.no_xlsx,
    )

    if args.verbose:
        print("Table Grid (symbol column clustering)")
        print(f"Scale: {options.scale}, Column threshold: {options.column_threshold}, "
              f"Confidence threshold: {options.confidence_threshold}")
        print(f"Output: {output_dir}")

    if args.page_json:
        results = pipeline.process_page_jsons(page_files, output_dir=output_dir, verbose=args.verbose)
    else:
        results = pipeline.process_images(
            jobs,
            output_dir=output_dir,
            num_workers=args.workers,
            timeout_sec=args.timeout,
            verbose=args.verbose,
        )

    if args.print_table:
        for result in results:
            if result.get('error'):
                continue
            if len(results) > 1:
                print(f"\n== {result['source']}" + (f" (page {result['page']})" if result.get('page') else ""))
            print(text_export.render_aligned_preview(result['table'], options.delimiter), end="")

    if any(r.get('error') for r in results):
        sys.exit(1)


if __name__ == "__main__":
    main()
