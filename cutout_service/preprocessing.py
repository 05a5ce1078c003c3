"""
Image loading and preprocessing for U2Net-family models.

The preprocessing squashes images to the model's fixed square input and
scales samples to [0, 1]; no mean/std normalization is applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ImageError

DEFAULT_INPUT_SIZE = 320


@dataclass
class PreprocessResult:
    tensor: np.ndarray  # (1, 3, size, size) float32
    original_image: Image.Image  # RGB
    orig_size: Tuple[int, int]  # (width, height)


def load_image(path: Path) -> Image.Image:
    """Decode `path` into an RGB image, raising `ImageError` on anything unreadable."""
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageError(f"Cannot open image {Path(path).name}: {exc}") from exc


def to_input_tensor(image: Image.Image, input_size: int = DEFAULT_INPUT_SIZE) -> np.ndarray:
    resized = image.resize((input_size, input_size), Image.Resampling.LANCZOS).convert("RGB")
    im_np = np.asarray(resized, dtype=np.float32) / 255.0
    im_np = np.transpose(im_np, (2, 0, 1))  # HWC -> CHW, channel order R, G, B
    return np.ascontiguousarray(im_np[np.newaxis, ...])


def preprocess(image: Image.Image, input_size: int = DEFAULT_INPUT_SIZE) -> PreprocessResult:
    """
    Build the model input for `image`.

    The aspect ratio is not preserved: the mask is resized back to the
    original width/height during post-processing.
    """
    rgb = image if image.mode == "RGB" else image.convert("RGB")
    return PreprocessResult(
        tensor=to_input_tensor(rgb, input_size),
        original_image=rgb,
        orig_size=rgb.size,
    )
