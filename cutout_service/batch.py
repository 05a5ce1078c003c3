"""
Batch processing over local image files.

One session is resolved per model and reused for the whole batch. Per-image
failures are recorded in that image's `ProcessResult` and never stop the
remaining items; only precondition failures (unknown model, model not
downloaded) abort the batch before it starts.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Union

from . import config
from .catalog import get_model_by_id
from .errors import NotFoundError
from .model_loader import SessionCache
from .model_store import ModelStore
from .pipeline import BackgroundRemover

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ProcessingProgress:
    current: int  # 1-based
    total: int
    file_name: str


@dataclass
class ProcessResult:
    input_path: str
    output_path: Optional[str]
    success: bool
    error: Optional[str] = None


BatchEvent = Union[ProcessingProgress, ProcessResult]


def derive_output_path(input_path: PathLike, output_dir: Optional[PathLike] = None, suffix: str = "_no_bg") -> Path:
    """
    ``/a/b/cat.jpg`` -> ``/a/b/cat_no_bg.png``, or ``<output_dir>/cat_no_bg.png``.

    Raises:
        ValueError: when the input has no file stem.
    """
    input_path = Path(input_path)
    stem = input_path.stem
    if not stem:
        raise ValueError(f"Invalid input file name: {str(input_path)!r}")
    parent = Path(output_dir) if output_dir is not None else input_path.parent
    return parent / f"{stem}{suffix}.png"


class BatchProcessor:
    def __init__(
        self,
        store: Optional[ModelStore] = None,
        sessions: Optional[SessionCache] = None,
        settings: Optional[config.Settings] = None,
    ):
        self.settings = settings or config.get_settings()
        self.store = store or ModelStore(self.settings)
        self.sessions = sessions if sessions is not None else SessionCache(self.settings)

    def resolve_model_path(self, model_id: str) -> Path:
        """
        Return the primary model file path, or raise `NotFoundError`.

        Only the first file is used for inference; extra files (e.g. a SAM
        decoder) are download bookkeeping only.
        """
        model = get_model_by_id(model_id)
        if model is None:
            raise NotFoundError(f"Model not found: {model_id}")
        if model.primary_file is None:
            raise NotFoundError(f"Model has no files: {model_id}")
        model_path = self.store.file_path(model.primary_file)
        if not model_path.exists():
            raise NotFoundError("Model file not found. Please download the model first.")
        return model_path

    def iter_batch(
        self,
        model_id: str,
        input_paths: Sequence[PathLike],
        output_dir: Optional[PathLike] = None,
    ) -> Iterator[BatchEvent]:
        """
        Check preconditions now, then return a generator of batch events.

        For every input, in order, the generator yields a `ProcessingProgress`
        before the image is processed and its `ProcessResult` afterwards.
        """
        model_path = self.resolve_model_path(model_id)
        return self._run(model_id, model_path, list(input_paths), output_dir)

    def _run(
        self,
        model_id: str,
        model_path: Path,
        input_paths: List[PathLike],
        output_dir: Optional[PathLike],
    ) -> Iterator[BatchEvent]:
        total = len(input_paths)
        succeeded = 0
        logger.info("Batch start model=%s items=%d output_dir=%s", model_id, total, output_dir)

        for index, raw_path in enumerate(input_paths):
            yield ProcessingProgress(current=index + 1, total=total, file_name=Path(raw_path).name)
            result = self._process_one(model_path, raw_path, output_dir)
            if result.success:
                succeeded += 1
            yield result

        logger.info("Batch done model=%s ok=%d failed=%d", model_id, succeeded, total - succeeded)

    def _process_one(self, model_path: Path, raw_path: PathLike, output_dir: Optional[PathLike]) -> ProcessResult:
        # Results echo the caller's path string so they can be matched back to inputs.
        input_path = Path(raw_path)
        try:
            output_path = derive_output_path(input_path, output_dir, self.settings.output_suffix)
            remover = BackgroundRemover(self.sessions.get(model_path), self.settings.input_size)
            remover.process_file(input_path, output_path)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to process %s: %s", input_path, exc)
            return ProcessResult(input_path=str(raw_path), output_path=None, success=False, error=str(exc) or type(exc).__name__)
        return ProcessResult(input_path=str(raw_path), output_path=str(output_path), success=True)

    def process_batch(
        self,
        model_id: str,
        input_paths: Sequence[PathLike],
        output_dir: Optional[PathLike] = None,
        on_progress: Optional[Callable[[ProcessingProgress], None]] = None,
    ) -> List[ProcessResult]:
        """Run the whole batch; results match `input_paths` one-to-one and in order."""
        results: List[ProcessResult] = []
        for event in self.iter_batch(model_id, input_paths, output_dir):
            if isinstance(event, ProcessingProgress):
                if on_progress is not None:
                    on_progress(event)
            else:
                results.append(event)
        return results
