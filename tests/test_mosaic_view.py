import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

import numpy as np
import pygame
import pytest

from UI.mosaic_view import HELP_TEXT, MosaicView, fit_scale, gray_to_surface
from logger import get_logger
from mosaic.models import BoundingBox, CompositeCanvas, PreviewResult


def test_fit_scale():
    assert fit_scale((200, 100), (100, 100)) == pytest.approx(0.5)
    assert fit_scale((50, 50), (100, 100)) == 1.0
    assert fit_scale((0, 10), (100, 100)) == 1.0


def test_gray_to_surface_orientation():
    image = np.zeros((3, 5), np.uint8)
    image[2, 4] = 200
    surface = gray_to_surface(image)
    assert surface.get_size() == (5, 3)
    assert tuple(surface.get_at((4, 2)))[:3] == (200, 200, 200)


class TestMosaicView:

    def setup_method(self):
        pygame.init()
        self.screen = pygame.Surface((400, 300))
        self.view = MosaicView(self.screen)

    def teardown_method(self):
        pygame.quit()

    def test_draw_preview_with_outline(self):
        canvas = CompositeCanvas(np.full((50, 80), 128, np.uint8), BoundingBox(0, 80, 0, 50))
        outline = np.array([[10, 5], [60, 5], [60, 45], [10, 45]], float)
        preview = PreviewResult(canvas=canvas, outline=outline)
        self.view.draw(preview, np.zeros((20, 30), np.uint8), "ready", 1)

    def test_draw_nothing(self):
        self.view.draw(None, None, "Press SPACE to add the first frame", 0)

    def test_log_warnings_reach_status_bar(self):
        logger = get_logger()
        logger.register_callback(self.view.on_log)
        try:
            logger.info("routine")
            assert self.view.last_log is None
            logger.warning("Image not added (InsufficientOverlap)")
        finally:
            logger.unregister_callback(self.view.on_log)
        assert self.view.last_log == ("WARNING", "Image not added (InsufficientOverlap)")
        self.view.draw(None, None, "ready", 0)


def test_help_lists_every_key():
    for key in ("[SPACE]", "[P]", "[S]", "[N]", "[ESC]"):
        assert key in HELP_TEXT
