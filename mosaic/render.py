"""
Warping and mask blending primitives used by registration and the canvas.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from mosaic.models import SimilarityTransform


def _paste(image: np.ndarray, dx: int, dy: int, output_size: Tuple[int, int]) -> np.ndarray:
    """Place `image` at integer offset (dx, dy) inside a zero frame of output_size (w, h)."""
    out_w, out_h = output_size
    out = np.zeros((out_h, out_w) + image.shape[2:], dtype=image.dtype)
    h, w = image.shape[:2]

    x0, y0 = max(0, dx), max(0, dy)
    x1, y1 = min(out_w, dx + w), min(out_h, dy + h)
    if x1 > x0 and y1 > y0:
        out[y0:y1, x0:x1] = image[y0 - dy:y1 - dy, x0 - dx:x1 - dx]
    return out


def warp(
    image: np.ndarray,
    transform: SimilarityTransform,
    output_size: Tuple[int, int],
    interpolation: int = cv2.INTER_LINEAR,
) -> np.ndarray:
    """
    Warp `image` into an output frame of `output_size` (width, height).
    Pixels outside the source are 0. Integer translations are copied
    without resampling.
    """
    if transform.is_integer_translation():
        tx, ty = transform.translation
        return _paste(image, int(round(tx)), int(round(ty)), output_size)
    return cv2.warpAffine(
        image,
        transform.matrix,
        (int(output_size[0]), int(output_size[1])),
        flags=interpolation,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )


def warp_mask(
    shape: Tuple[int, int],
    transform: SimilarityTransform,
    output_size: Tuple[int, int],
) -> np.ndarray:
    """Footprint (0/255 uint8) of an image of `shape` (h, w) after warping."""
    extent = np.full(shape[:2], 255, dtype=np.uint8)
    return warp(extent, transform, output_size, interpolation=cv2.INTER_NEAREST)


def mask_bounds(mask: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """(x_min, x_max, y_min, y_max) of non-zero pixels, max exclusive; None if empty."""
    ys, xs = np.nonzero(mask)
    if len(xs) == 0:
        return None
    return int(xs.min()), int(xs.max()) + 1, int(ys.min()), int(ys.max()) + 1


def blend(base: np.ndarray, overlay: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    Alpha blend `overlay` onto `base` with `mask` (0..255) as alpha.
    With a binary mask the overlay wins inside its footprint and `base`
    is untouched elsewhere.
    """
    if base.shape != overlay.shape:
        raise ValueError(f"Shape mismatch: base {base.shape} vs overlay {overlay.shape}")
    if mask.shape != base.shape[:2]:
        raise ValueError(f"Mask shape {mask.shape} does not match image {base.shape[:2]}")

    alpha = mask.astype(np.float32) / 255.0
    if base.ndim == 3:
        alpha = alpha[:, :, None]
    mixed = overlay.astype(np.float32) * alpha + base.astype(np.float32) * (1.0 - alpha)
    if np.issubdtype(base.dtype, np.integer):
        info = np.iinfo(base.dtype)
        mixed = np.clip(np.rint(mixed), info.min, info.max)
    return mixed.astype(base.dtype)
