"""
Tests for the OpenCV overlay renderer.
"""

import numpy as np

from models.detection import DisplayBox, FrameDimensions
from overlay.renderer import OverlayRenderer, RenderStyle


LIME = (0, 255, 0)


def _box(x=40, y=40, w=50, h=30, label="person", confidence=0.87):
    return DisplayBox(x=x, y=y, width=w, height=h, label=label, confidence=confidence)


class TestDraw:
    def test_draws_outline_not_fill(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, [_box()])

        assert tuple(canvas[55, 40]) == LIME      # left edge
        assert tuple(canvas[40, 65]) == LIME      # top edge
        assert tuple(canvas[55, 65]) == (0, 0, 0)  # interior untouched

    def test_caption_drawn_above_box(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, [_box(y=60)])

        # text sits in the band just above the top edge
        assert canvas[40:58, 40:120].any()

    def test_empty_state_draws_nothing(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, ())

        assert not canvas.any()

    def test_off_surface_box_does_not_fail(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, [_box(x=180, y=-20, w=100, h=100)])

        assert tuple(canvas[50, 180]) == LIME

    def test_far_off_surface_box_does_not_fail(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, [_box(x=1e10, y=-1e10, w=1e12, h=5e11), _box(x=20, y=20, w=1e300, h=1e300)])

        # second box spans the surface from (20, 20) outwards
        assert tuple(canvas[60, 20]) == LIME
        assert tuple(canvas[20, 60]) == LIME

    def test_custom_style(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150), RenderStyle(color=(0, 0, 255)))
        canvas = np.zeros((150, 200, 3), dtype=np.uint8)

        renderer.draw(canvas, [_box()])

        assert tuple(canvas[55, 40]) == (0, 0, 255)


class TestCompose:
    def test_black_canvas_without_preview(self):
        renderer = OverlayRenderer(FrameDimensions(320, 240))

        out = renderer.compose(None, ())

        assert out.shape == (240, 320, 3)
        assert not out.any()

    def test_preview_resized_to_display(self):
        renderer = OverlayRenderer(FrameDimensions(320, 240))
        preview = np.full((48, 64, 3), 80, dtype=np.uint8)

        out = renderer.compose(preview, ())

        assert out.shape == (240, 320, 3)
        assert out[120, 160, 0] == 80

    def test_preview_not_modified(self):
        renderer = OverlayRenderer(FrameDimensions(200, 150))
        preview = np.zeros((150, 200, 3), dtype=np.uint8)

        out = renderer.compose(preview, [_box()])

        assert not preview.any()
        assert out.any()
