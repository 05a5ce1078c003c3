"""Post-processing: raw network output -> 8-bit alpha mask -> RGBA cutout."""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from PIL import Image

from .errors import ShapeError

logger = logging.getLogger(__name__)


def select_mask_channel(output: np.ndarray) -> np.ndarray:
    """
    Return batch 0 / channel 0 of a (B, C, H, W) output.

    Multi-channel outputs (e.g. cloth segmentation) are reduced to their
    first channel.
    """
    output = np.asarray(output)
    if output.ndim != 4:
        raise ShapeError(f"Expected a 4-D (batch, channel, height, width) output, got shape {output.shape}")
    if output.shape[0] < 1 or output.shape[1] < 1:
        raise ShapeError(f"Output has no batch or channel entries: shape {output.shape}")
    if output.shape[2] < 1 or output.shape[3] < 1:
        raise ShapeError(f"Output has an empty spatial extent: shape {output.shape}")
    return output[0, 0]


def normalize_mask(channel: np.ndarray) -> np.ndarray:
    """Min/max rescale to uint8; a constant channel maps to all zeros."""
    channel = channel.astype(np.float32)
    lo = float(channel.min())
    hi = float(channel.max())
    if not hi > lo:
        logger.debug("postprocess: degenerate output (min == max == %.4f), mask is empty", lo)
        return np.zeros(channel.shape, dtype=np.uint8)
    scaled = (channel - lo) / (hi - lo) * 255.0
    # Truncate toward zero like a float -> u8 cast; clip guards float error.
    return np.clip(scaled, 0.0, 255.0).astype(np.uint8)


def mask_from_output(output: np.ndarray, target_size: Tuple[int, int]) -> Image.Image:
    """Build an "L" mask at `target_size` (width, height) from the raw output."""
    mask_u8 = normalize_mask(select_mask_channel(output))
    mask = Image.fromarray(mask_u8)
    if mask.size != tuple(target_size):
        mask = mask.resize(tuple(target_size), Image.Resampling.LANCZOS)
    return mask


def compose_rgba(rgb_image: Image.Image, mask: Image.Image) -> Image.Image:
    """Copy RGB unchanged and use `mask` verbatim as alpha."""
    if mask.size != rgb_image.size:
        raise ShapeError(f"Mask size {mask.size} does not match image size {rgb_image.size}")
    rgb_np = np.asarray(rgb_image.convert("RGB"), dtype=np.uint8)
    alpha_u8 = np.asarray(mask, dtype=np.uint8)
    rgba = np.dstack((rgb_np, alpha_u8))
    return Image.fromarray(rgba)
