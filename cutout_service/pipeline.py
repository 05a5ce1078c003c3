"""
High-level background-removal pipeline.

`BackgroundRemover` wraps one loaded session and is reused for every image in
a batch. Orchestration stays simple:
image -> preprocessing -> forward pass -> mask post-processing -> RGBA image.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image

from .errors import InferError, ShapeError
from .postprocessing import compose_rgba, mask_from_output
from .preprocessing import DEFAULT_INPUT_SIZE, PreprocessResult, load_image, preprocess

logger = logging.getLogger(__name__)


def _check_input_signature(session, input_size: int) -> str:
    """Validate the session's first input against (N, 3, size, size) and return its name."""
    inputs = session.get_inputs()
    if not inputs:
        raise ShapeError("Model declares no inputs")
    first = inputs[0]
    shape = list(first.shape or [])
    if len(shape) != 4:
        raise ShapeError(f"Model input {first.name!r} has rank {len(shape)}, expected 4")
    expected = [None, 3, input_size, input_size]
    for axis, (declared, wanted) in enumerate(zip(shape, expected)):
        # Symbolic dims ("batch_size", None) accept anything.
        if wanted is None or not isinstance(declared, int):
            continue
        if declared != wanted:
            raise ShapeError(
                f"Model input {first.name!r} expects {shape}, pipeline feeds [1, 3, {input_size}, {input_size}] (axis {axis})"
            )
    return first.name


class BackgroundRemover:
    def __init__(self, session, input_size: int = DEFAULT_INPUT_SIZE):
        self.session = session
        self.input_size = input_size
        self._input_name: Optional[str] = None

    def _run_inference(self, preprocessed: PreprocessResult) -> np.ndarray:
        """Single forward pass; returns the first output tensor."""
        if self._input_name is None:
            self._input_name = _check_input_signature(self.session, self.input_size)
        try:
            outputs = self.session.run(None, {self._input_name: preprocessed.tensor})
        except Exception as exc:  # noqa: BLE001
            raise InferError(f"Inference failed: {exc}") from exc
        if not outputs:
            raise ShapeError("Model produced no outputs")
        output = np.asarray(outputs[0])
        logger.debug("inference: input %s -> output %s", preprocessed.tensor.shape, output.shape)
        return output

    def remove_background(self, image: Image.Image) -> Image.Image:
        """Return an RGBA copy of `image` whose alpha is the rescaled network output."""
        preprocessed = preprocess(image, self.input_size)
        output = self._run_inference(preprocessed)
        mask = mask_from_output(output, preprocessed.orig_size)
        return compose_rgba(preprocessed.original_image, mask)

    def process_file(self, input_path: Path, output_path: Path) -> Path:
        """Decode `input_path`, remove its background and write a PNG to `output_path`."""
        image = load_image(Path(input_path))
        result = self.remove_background(image)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        result.save(output_path, format="PNG")
        return output_path
