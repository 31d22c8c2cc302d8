from __future__ import annotations

import unittest

import numpy as np

from layerplot.compile import encode_png, frame_to_tensor, rasterize
from layerplot.raster import draw_marker, draw_segment, draw_text, fill_polygon, fill_rect, new_canvas, text_size
from layerplot.render import DisplayList, Line, Rect

BLACK = (0, 0, 0, 255)
RED = (255, 0, 0, 255)


class CanvasTests(unittest.TestCase):
    def test_new_canvas(self) -> None:
        canvas = new_canvas(4, 3)
        self.assertEqual(canvas.shape, (3, 4, 4))
        self.assertTrue(np.all(canvas == 255))

    def test_fill_rect_clips_to_the_canvas(self) -> None:
        canvas = new_canvas(10, 10)
        fill_rect(canvas, -5.0, 2.0, 3.0, 4.0, RED)
        self.assertEqual(tuple(canvas[2, 0]), RED)
        self.assertEqual(tuple(canvas[3, 2]), RED)
        self.assertEqual(tuple(canvas[4, 0]), (255, 255, 255, 255))
        self.assertEqual(tuple(canvas[2, 3]), (255, 255, 255, 255))

    def test_half_transparent_fill_blends(self) -> None:
        canvas = new_canvas(2, 2)
        fill_rect(canvas, 0.0, 0.0, 2.0, 2.0, (0, 0, 0, 128))
        self.assertTrue(120 <= int(canvas[0, 0, 0]) <= 135)
        self.assertGreaterEqual(int(canvas[0, 0, 3]), 254)

    def test_polygon_fill(self) -> None:
        canvas = new_canvas(20, 20)
        fill_polygon(canvas, np.asarray([2.0, 18.0, 10.0]), np.asarray([18.0, 18.0, 2.0]), BLACK)
        self.assertEqual(tuple(canvas[15, 10]), BLACK)
        self.assertEqual(tuple(canvas[3, 2]), (255, 255, 255, 255))


class StrokeTests(unittest.TestCase):
    def test_horizontal_segment(self) -> None:
        canvas = new_canvas(10, 5)
        draw_segment(canvas, 1.0, 2.0, 8.0, 2.0, BLACK)
        self.assertTrue(np.all(canvas[2, 1:9, 0] == 0))
        self.assertTrue(np.all(canvas[0, :, 0] == 255))

    def test_marker_covers_its_centre_only(self) -> None:
        canvas = new_canvas(20, 20)
        draw_marker(canvas, 10.0, 10.0, RED, radius=3.0)
        self.assertEqual(tuple(canvas[10, 10]), RED)
        self.assertEqual(tuple(canvas[0, 0]), (255, 255, 255, 255))

    def test_marker_shapes(self) -> None:
        for shape in ("circle", "square", "diamond", "triangle"):
            with self.subTest(shape=shape):
                canvas = new_canvas(20, 20)
                draw_marker(canvas, 10.0, 10.0, BLACK, radius=4.0, shape=shape)
                self.assertGreater(int(np.count_nonzero(canvas[..., 0] == 0)), 4)


class TextTests(unittest.TestCase):
    def test_quarter_turn_swaps_the_box(self) -> None:
        w, h = text_size("Sample", font_px=14.0)
        self.assertGreater(w, h)
        self.assertEqual(text_size("Sample", font_px=14.0, rotate=90), (h, w))

    def test_text_leaves_ink(self) -> None:
        canvas = new_canvas(80, 30)
        draw_text(canvas, 40, 15, "Ink", BLACK, font_px=16.0)
        self.assertLess(int(canvas[..., 0].min()), 128)

    def test_text_is_centred_on_its_anchor(self) -> None:
        w, h = text_size("Mid", font_px=16.0, rotate=90)
        canvas = new_canvas(60, 60)
        draw_text(canvas, 30, 30, "Mid", BLACK, font_px=16.0, background=RED, rotate=90)
        ys, xs = np.nonzero(canvas[..., 1] < 255)
        left, top = int(round(30 - w / 2.0)), int(round(30 - h / 2.0))
        self.assertEqual((int(xs.min()), int(xs.max()) + 1), (left, left + w))
        self.assertEqual((int(ys.min()), int(ys.max()) + 1), (top, top + h))

    def test_rotation_must_be_a_quarter_turn(self) -> None:
        with self.assertRaises(ValueError):
            text_size("x", rotate=45)


class CompileTests(unittest.TestCase):
    def test_rasterize_respects_clip_and_order(self) -> None:
        display = DisplayList(
            width=10,
            height=10,
            background=(255, 255, 255, 255),
            items=(
                Rect(0.0, 0.0, 10.0, 10.0, fill=RED, clip=(0, 0, 5, 10)),
                Line(0.0, 8.0, 9.0, 8.0, BLACK),
            ),
        )
        frame = rasterize(display)
        self.assertEqual(tuple(frame[1, 1]), RED)
        self.assertEqual(tuple(frame[1, 7]), (255, 255, 255, 255))
        self.assertEqual(tuple(frame[8, 2]), BLACK)

    def test_encoders_reject_bad_frames(self) -> None:
        with self.assertRaises(ValueError):
            encode_png(np.zeros((4, 4, 3), dtype=np.uint8))
        with self.assertRaises(ValueError):
            frame_to_tensor(np.zeros((4, 4, 4), dtype=np.float32))


if __name__ == "__main__":
    unittest.main()
