"""
pygame rendering for the live acquisition loop: the composite (or the
preview with the candidate frame), its outline, the live camera inset and a
status overlay.
"""

from typing import Optional, Tuple

import numpy as np
import pygame

from mosaic.models import PreviewResult

BACKGROUND = (30, 30, 30)
OUTLINE_OK = (0, 255, 0)
OUTLINE_FAIL = (255, 80, 80)
INSET_FRACTION = 0.25
HELP_TEXT = "[SPACE] add  [P] snapshot  [S] save  [N] next  [ESC] quit"
LOG_COLORS = {"WARNING": (255, 200, 80), "ERROR": OUTLINE_FAIL}


def gray_to_surface(image: np.ndarray) -> pygame.Surface:
    """2D uint8 image -> pygame surface (pygame wants (w, h, 3))."""
    rgb = np.repeat(image[:, :, None], 3, axis=2)
    return pygame.surfarray.make_surface(np.transpose(rgb, (1, 0, 2)))


def fit_scale(size: Tuple[int, int], area: Tuple[int, int]) -> float:
    """Largest zoom (<= 1) at which `size` fits into `area`, both (w, h)."""
    w, h = size
    aw, ah = area
    if w <= 0 or h <= 0:
        return 1.0
    return min(aw / w, ah / h, 1.0)


class MosaicView:
    """Draws the mosaic state into a pygame display surface."""

    def __init__(self, screen: pygame.Surface, status_height: int = 120):
        self.screen = screen
        self.status_height = status_height
        self.font = pygame.font.Font(None, 36)
        self.small_font = pygame.font.Font(None, 24)
        self.last_log: Optional[Tuple[str, str]] = None

    def on_log(self, level: str, message: str):
        """Logger callback: keep the latest warning or error for the status bar."""
        if level in LOG_COLORS:
            self.last_log = (level, message)

    @property
    def mosaic_area(self) -> Tuple[int, int, int, int]:
        """(x, y, w, h) available for the mosaic below the status bar."""
        w, h = self.screen.get_size()
        return 0, self.status_height, w, max(1, h - self.status_height)

    def draw(
        self,
        preview: Optional[PreviewResult],
        live_frame: Optional[np.ndarray],
        message: str,
        tile_count: int,
    ):
        self.screen.fill(BACKGROUND)
        if preview is not None and preview.canvas is not None:
            self._draw_canvas(preview)
        if live_frame is not None:
            self._draw_inset(live_frame)
        self._draw_status(message, tile_count, preview)

    def _draw_canvas(self, preview: PreviewResult):
        ax, ay, aw, ah = self.mosaic_area
        image = preview.canvas.image
        h, w = image.shape[:2]
        zoom = fit_scale((w, h), (aw - 20, ah - 20))
        scaled_w, scaled_h = max(1, int(w * zoom)), max(1, int(h * zoom))

        surface = pygame.transform.smoothscale(gray_to_surface(image), (scaled_w, scaled_h))
        left = ax + (aw - scaled_w) // 2
        top = ay + (ah - scaled_h) // 2
        self.screen.blit(surface, (left, top))
        pygame.draw.rect(self.screen, (100, 100, 100), (left, top, scaled_w, scaled_h), 1)

        if preview.outline is not None:
            points = [(left + x * zoom, top + y * zoom) for x, y in preview.outline]
            pygame.draw.lines(self.screen, OUTLINE_OK, True, points, 2)

    def _draw_inset(self, frame: np.ndarray):
        sw, sh = self.screen.get_size()
        h, w = frame.shape[:2]
        zoom = fit_scale((w, h), (int(sw * INSET_FRACTION), int(sh * INSET_FRACTION)))
        size = (max(1, int(w * zoom)), max(1, int(h * zoom)))
        surface = pygame.transform.smoothscale(gray_to_surface(frame), size)
        pos = (sw - size[0] - 10, sh - size[1] - 10)
        self.screen.blit(surface, pos)
        pygame.draw.rect(self.screen, (200, 200, 200), (*pos, *size), 1)

    def _draw_status(self, message: str, tile_count: int, preview: Optional[PreviewResult]):
        overlay = pygame.Surface((self.screen.get_width(), self.status_height), pygame.SRCALPHA)
        overlay.fill((30, 30, 30, 200))
        self.screen.blit(overlay, (0, 0))

        center_x = self.screen.get_width() // 2
        text = self.font.render(message, True, (255, 255, 255))
        self.screen.blit(text, text.get_rect(center=(center_x, 25)))

        if preview is None:
            detail = f"Tiles: {tile_count}"
            color = (200, 200, 200)
        elif preview.ok:
            reg = preview.registration
            if reg is None or reg.matched_index is None:
                detail = f"Tiles: {tile_count} | seed frame"
            else:
                detail = f"Tiles: {tile_count} | via tile {reg.matched_index} ({reg.inlier_count} inliers)"
            color = OUTLINE_OK
        else:
            detail = f"Tiles: {tile_count} | {preview.failure.value}"
            color = OUTLINE_FAIL
        info = self.small_font.render(f"{detail}   {HELP_TEXT}", True, color)
        self.screen.blit(info, info.get_rect(center=(center_x, 60)))

        if self.last_log is not None:
            level, log_message = self.last_log
            log_text = self.small_font.render(f"{level}: {log_message}", True, LOG_COLORS[level])
            self.screen.blit(log_text, log_text.get_rect(center=(center_x, 92)))
