"""
Static catalog of the segmentation models the service can download and run.

The table is pure data. `validate_catalog` runs at import time so a broken
table fails fast instead of surfacing later as a missing default.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .errors import ConfigError

REMBG_BASE_URL = "https://github.com/danielgatis/rembg/releases/download/v0.0.0/"


@dataclass(frozen=True)
class ModelFile:
    name: str
    url: str
    size_mb: int  # advisory, display only


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    name: str
    description: str
    files: Tuple[ModelFile, ...]
    is_default: bool = False

    @property
    def primary_file(self) -> Optional[ModelFile]:
        return self.files[0] if self.files else None


def _single(model_id: str, name: str, description: str, file_name: str, size_mb: int, is_default: bool = False) -> ModelDescriptor:
    return ModelDescriptor(
        id=model_id,
        name=name,
        description=description,
        files=(ModelFile(file_name, REMBG_BASE_URL + file_name, size_mb),),
        is_default=is_default,
    )


MODELS: Tuple[ModelDescriptor, ...] = (
    _single("u2net", "U2Net", "A pre-trained model for general use cases.", "u2net.onnx", 176, is_default=True),
    _single("u2netp", "U2Net-P", "A lightweight version of u2net model.", "u2netp.onnx", 4),
    _single(
        "u2net_human_seg",
        "U2Net Human Seg",
        "A pre-trained model for human segmentation.",
        "u2net_human_seg.onnx",
        176,
    ),
    _single(
        "u2net_cloth_seg",
        "U2Net Cloth Seg",
        "A pre-trained model for cloth parsing (Upper body, Lower body, Full body).",
        "u2net_cloth_seg.onnx",
        176,
    ),
    _single("silueta", "Silueta", "Same as u2net but reduced to 43MB.", "silueta.onnx", 43),
    _single(
        "isnet-general-use",
        "ISNet General",
        "A new pre-trained model for general use cases.",
        "isnet-general-use.onnx",
        176,
    ),
    _single(
        "isnet-anime",
        "ISNet Anime",
        "High-accuracy segmentation for anime characters.",
        "isnet-anime.onnx",
        176,
    ),
    ModelDescriptor(
        id="sam",
        name="SAM",
        description="Segment Anything Model for any use cases.",
        files=(
            ModelFile("sam_vit_b_01ec64-encoder.onnx", REMBG_BASE_URL + "vit_b-encoder-quant.onnx", 180),
            ModelFile("sam_vit_b_01ec64-decoder.onnx", REMBG_BASE_URL + "vit_b-decoder-quant.onnx", 16),
        ),
    ),
    _single(
        "birefnet-general",
        "BiRefNet General",
        "A pre-trained model for general use cases.",
        "BiRefNet-general-epoch_244.onnx",
        223,
    ),
    _single(
        "birefnet-general-lite",
        "BiRefNet General Lite",
        "A light pre-trained model for general use cases.",
        "BiRefNet-general-bb_swin_v1_tiny-epoch_232.onnx",
        130,
    ),
    _single(
        "birefnet-portrait",
        "BiRefNet Portrait",
        "A pre-trained model for human portraits.",
        "BiRefNet-portrait-epoch_150.onnx",
        223,
    ),
    _single(
        "birefnet-dis",
        "BiRefNet DIS",
        "A pre-trained model for dichotomous image segmentation (DIS).",
        "BiRefNet-DIS-epoch_590.onnx",
        223,
    ),
    _single(
        "birefnet-hrsod",
        "BiRefNet HRSOD",
        "A pre-trained model for high-resolution salient object detection (HRSOD).",
        "BiRefNet-HRSOD_DHU-epoch_115.onnx",
        223,
    ),
    _single(
        "birefnet-cod",
        "BiRefNet COD",
        "A pre-trained model for concealed object detection (COD).",
        "BiRefNet-COD-epoch_125.onnx",
        223,
    ),
    _single(
        "birefnet-massive",
        "BiRefNet Massive",
        "A pre-trained model with massive dataset.",
        "BiRefNet-massive-epoch_240.onnx",
        223,
    ),
)


def validate_catalog(models: Iterable[ModelDescriptor]) -> None:
    """
    Check the catalog invariants.

    Raises:
        ConfigError: when there is not exactly one default model, an id is
            repeated, or a model repeats a file name.
    """
    models = list(models)
    defaults = [m.id for m in models if m.is_default]
    if len(defaults) != 1:
        raise ConfigError(f"Model catalog must have exactly one default model, found {len(defaults)}: {defaults}")

    seen_ids = set()
    for model in models:
        if model.id in seen_ids:
            raise ConfigError(f"Duplicate model id in catalog: {model.id}")
        seen_ids.add(model.id)
        names = [f.name for f in model.files]
        if len(names) != len(set(names)):
            raise ConfigError(f"Model {model.id} lists the same file name twice")


validate_catalog(MODELS)


def list_models() -> List[ModelDescriptor]:
    return list(MODELS)


def get_default_model() -> ModelDescriptor:
    return next(m for m in MODELS if m.is_default)


def get_model_by_id(model_id: str) -> Optional[ModelDescriptor]:
    for model in MODELS:
        if model.id == model_id:
            return model
    return None
