import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path


# Allow `import run_tablegrid` / `import tablegrid.*` when running from repo root.
APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))


import run_tablegrid  # noqa: E402
from tablegrid.page_model import Bbox, Line, Page, Symbol, Word, save_page_json  # noqa: E402


def _saved_page() -> Page:
    # Working resolution 2x: columns at [0,40] and [100,140].
    symbols = (Symbol(bbox=Bbox(0, 0, 40, 20), text="N"), Symbol(bbox=Bbox(100, 0, 140, 20), text="Q"))
    lines = (
        Line(words=(Word("Name", 99, Bbox(0, 0, 40, 20)), Word("Qty", 99, Bbox(100, 0, 140, 20)))),
        Line(words=(Word("Bolt", 40, Bbox(0, 30, 40, 50)), Word("12", 98, Bbox(100, 30, 120, 50)))),
    )
    return Page(symbols=symbols, lines=lines, width=200, height=100)


class TestRunTablegrid(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self._saved_env = os.environ.copy()
        for key in list(os.environ):
            if key.startswith("TABLEGRID_"):
                os.environ.pop(key)

    def tearDown(self) -> None:
        os.environ.clear()
        os.environ.update(self._saved_env)
        self._tmp.cleanup()

    def test_page_json_directory_rebuilds_grids(self) -> None:
        debug_dir = self.tmp / "debug"
        save_page_json(_saved_page(), debug_dir / "scan.page.json")
        (debug_dir / "scan.tsv").write_text("ignored", encoding="utf-8")
        out = self.tmp / "out"

        stdout = io.StringIO()
        with redirect_stdout(stdout):
            run_tablegrid.main([
                str(debug_dir), "--page-json", "--output", str(out),
                "--scale", "2", "--delimiter", "comma", "--no-xlsx", "--print",
            ])

        self.assertEqual((out / "scan.txt").read_text(encoding="utf-8"), "Name,Qty\nBolt (?),12\n")
        self.assertFalse((out / "scan.xlsx").exists())
        self.assertTrue((out / "summary.json").exists())
        self.assertIn("Bolt (?),12", stdout.getvalue())

    def test_expand_page_json_sources(self) -> None:
        (self.tmp / "b.page.json").write_text("{}", encoding="utf-8")
        (self.tmp / "a.page.json").write_text("{}", encoding="utf-8")
        (self.tmp / "a.json").write_text("{}", encoding="utf-8")
        single = self.tmp / "a.json"

        files = run_tablegrid.expand_page_json_sources([self.tmp, single])
        self.assertEqual([p.name for p in files], ["a.page.json", "b.page.json", "a.json"])

    def test_scale_outside_range_is_a_usage_error(self) -> None:
        page_file = save_page_json(_saved_page(), self.tmp / "scan.page.json")
        for scale in ("0", "11"):
            with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as ctx:
                run_tablegrid.main([str(page_file), "--page-json", "--scale", scale,
                                    "--output", str(self.tmp / "out")])
            self.assertEqual(ctx.exception.code, 2)

    def test_fractional_env_scale_is_a_usage_error(self) -> None:
        os.environ["TABLEGRID_SCALE"] = "2.5"
        page_file = save_page_json(_saved_page(), self.tmp / "scan.page.json")
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as ctx:
            run_tablegrid.main([str(page_file), "--page-json", "--output", str(self.tmp / "out")])
        self.assertEqual(ctx.exception.code, 2)

    def test_bad_page_json_exits_nonzero(self) -> None:
        bad = self.tmp / "bad.page.json"
        bad.write_text("not json", encoding="utf-8")
        with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit) as ctx:
            run_tablegrid.main([str(bad), "--page-json", "--output", str(self.tmp / "out")])
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
