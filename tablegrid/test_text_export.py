import json
import sys
import tempfile
import unittest
from pathlib import Path

import openpyxl


# Allow `import tablegrid.*` when running from repo root.
APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))


from tablegrid import text_export  # noqa: E402
from tablegrid.table_builder import ProcessingOptions  # noqa: E402


TABLE = [
    ["Parameter", "Spec", "Result"],
    ["Flow Rate", "", "14.4 (?)"],
    [],
    ["Pressure"],
]


class TestDelimitedText(unittest.TestCase):
    def test_rows_joined_without_trailing_delimiter(self) -> None:
        text = text_export.render_delimited_text(TABLE, "\t")
        self.assertEqual(
            text,
            "Parameter\tSpec\tResult\nFlow Rate\t\t14.4 (?)\n\nPressure\n",
        )

    def test_comma_delimiter(self) -> None:
        self.assertEqual(text_export.render_delimited_text([["a", "b"], ["c"]], ","), "a,b\nc\n")

    def test_empty_table(self) -> None:
        self.assertEqual(text_export.render_delimited_text([], "\t"), "")

    def test_longest_cell_length(self) -> None:
        self.assertEqual(text_export.longest_cell_length(TABLE), len("Parameter"))
        self.assertEqual(text_export.longest_cell_length([[""], []]), 1)

    def test_aligned_preview_expands_tabs(self) -> None:
        preview = text_export.render_aligned_preview([["ab", "c"], ["abcd", "e"]], "\t")
        # Tab size = longest (4) + 2 = 6.
        self.assertEqual(preview, "ab    c\nabcd  e\n")

    def test_aligned_preview_leaves_commas(self) -> None:
        self.assertEqual(text_export.render_aligned_preview([["a", "b"]], ","), "a,b\n")


class TestExports(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.out = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_output_stem(self) -> None:
        self.assertEqual(text_export.output_stem(Path("scan.png")), "scan")
        self.assertEqual(text_export.output_stem(Path("doc.pdf"), 2), "doc_p3")

    def test_export_text_keeps_newlines(self) -> None:
        path = text_export.export_text(TABLE, ",", self.out / "t" / "grid.txt")
        self.assertEqual(path.read_bytes().decode("utf-8"), "Parameter,Spec,Result\nFlow Rate,,14.4 (?)\n\nPressure\n")

    def test_export_result_json(self) -> None:
        result = {
            "source": "scan.png",
            "page": None,
            "table": TABLE,
            "low_confidence_boxes": [{"x0": 1.0, "y0": 2.0, "x1": 3.0, "y1": 4.0}],
            "img_w": 100,
            "img_h": 40,
            "duration_sec": 0.5,
        }
        path = text_export.export_result_json(result, ProcessingOptions(scale=4), self.out / "scan.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(data["scale"], 4)
        self.assertEqual((data["img_w"], data["img_h"]), (100, 40))
        self.assertEqual(data["table"], TABLE)
        self.assertEqual(data["low_confidence_boxes"][0]["x1"], 3.0)
        self.assertEqual(data["options"]["scale"], 4)
        self.assertEqual(data["options"]["low_confidence_marker"], " (?)")

    def test_export_table_xlsx_highlights_marked_cells(self) -> None:
        path = text_export.export_table_xlsx(TABLE, self.out / "scan.xlsx", marker=" (?)")
        wb = openpyxl.load_workbook(str(path))
        ws = wb.active
        self.assertEqual(ws.cell(row=1, column=1).value, "Parameter")
        self.assertEqual(ws.cell(row=2, column=3).value, "14.4 (?)")
        self.assertEqual(ws.cell(row=4, column=1).value, "Pressure")
        self.assertEqual(ws.cell(row=2, column=3).fill.fill_type, "solid")
        self.assertNotEqual(ws.cell(row=2, column=1).fill.fill_type, "solid")

    def test_summary_report(self) -> None:
        results = [
            {"source": "a.png", "table": TABLE, "low_confidence_boxes": [{}, {}], "duration_sec": 1.0},
            {"source": "b.png", "error": "OCR failed", "table": [], "low_confidence_boxes": []},
        ]
        path = text_export.create_summary_report(results, self.out)
        summary = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(summary["total_images"], 2)
        self.assertEqual(summary["failed_images"], 1)
        self.assertEqual(summary["total_rows"], 4)
        self.assertEqual(summary["total_low_confidence_words"], 2)
        self.assertEqual(summary["images"][0]["cells"], 7)


if __name__ == "__main__":
    unittest.main()
