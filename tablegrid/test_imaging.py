import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np


# Allow `import tablegrid.*` when running from repo root.
APP_ROOT = Path(__file__).resolve().parents[1]
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))


from tablegrid import imaging  # noqa: E402
from tablegrid.page_model import Bbox  # noqa: E402


class TestImaging(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.out = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_scale_image_multiplies_dimensions(self) -> None:
        img = np.zeros((20, 30, 3), dtype=np.uint8)
        self.assertEqual(imaging.scale_image(img, 3).shape, (60, 90, 3))
        same = imaging.scale_image(img, 1)
        self.assertEqual(same.shape, img.shape)
        self.assertIsNot(same, img)

    def test_mark_boxes_draws_padded_red_frame_on_copy(self) -> None:
        img = np.full((50, 50, 3), 255, dtype=np.uint8)
        marked = imaging.mark_boxes(img, [Bbox(10, 10, 20, 20)])

        self.assertTrue((img == 255).all())
        # Frame sits 2px outside the box.
        self.assertEqual(tuple(marked[8, 15]), (0, 0, 255))
        self.assertEqual(tuple(marked[22, 15]), (0, 0, 255))
        # Inside stays untouched.
        self.assertEqual(tuple(marked[15, 15]), (255, 255, 255))

    def test_mark_boxes_accepts_grayscale(self) -> None:
        img = np.full((10, 10), 255, dtype=np.uint8)
        self.assertEqual(imaging.mark_boxes(img, []).shape, (10, 10, 3))

    def test_save_and_load_round_trip(self) -> None:
        img = np.zeros((8, 12, 3), dtype=np.uint8)
        img[:, 6:] = 200
        path = imaging.save_image(img, self.out / "sub" / "img.png")
        loaded = imaging.load_image(path)
        self.assertTrue(np.array_equal(loaded, img))

    def test_load_missing_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            imaging.load_image(self.out / "missing.png")

    def test_load_undecodable_raises(self) -> None:
        bad = self.out / "bad.png"
        bad.write_bytes(b"not an image")
        with self.assertRaises(ValueError):
            imaging.load_image(bad)

    def test_expand_sources_lists_supported_files(self) -> None:
        for name in ("b.png", "a.jpg", "notes.txt"):
            (self.out / name).write_bytes(b"")
        jobs = imaging.expand_sources([self.out])
        self.assertEqual([(p.name, page) for p, page in jobs], [("a.jpg", None), ("b.png", None)])


if __name__ == "__main__":
    unittest.main()
