"""
Operations exposed to a front end (HTTP layer, CLI, desktop shell).

`CutoutService` owns its HTTP session, model store and session cache, so
nothing here relies on module-level state beyond the cached settings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

import requests

from . import catalog, config
from .batch import BatchEvent, BatchProcessor, PathLike, ProcessingProgress, ProcessResult
from .catalog import ModelDescriptor
from .downloader import Downloader, ModelDownloadProgress
from .errors import NotFoundError
from .model_loader import SessionCache
from .model_store import ModelReadiness, ModelStore

logger = logging.getLogger(__name__)


class CutoutService:
    def __init__(
        self,
        settings: Optional[config.Settings] = None,
        http_session: Optional[requests.Session] = None,
        sessions: Optional[SessionCache] = None,
    ):
        self.settings = settings or config.get_settings()
        self.store = ModelStore(self.settings)
        self.downloader = Downloader(session=http_session, settings=self.settings)
        self.batch = BatchProcessor(
            store=self.store,
            sessions=sessions if sessions is not None else SessionCache(self.settings),
            settings=self.settings,
        )

    # Catalog / store

    def list_models(self) -> List[ModelDescriptor]:
        return catalog.list_models()

    def get_default_model(self) -> ModelDescriptor:
        return catalog.get_default_model()

    def _require_model(self, model_id: str) -> ModelDescriptor:
        model = catalog.get_model_by_id(model_id)
        if model is None:
            raise NotFoundError(f"Model not found: {model_id}")
        return model

    def get_model_status(self, model_id: str) -> ModelReadiness:
        return self.store.status(self._require_model(model_id))

    def is_model_downloaded(self, model_id: str) -> bool:
        return self.store.is_model_ready(self._require_model(model_id))

    def get_store_directory(self) -> Path:
        return self.store.resolve_store_directory()

    def is_first_time_setup(self) -> bool:
        return not self.store.is_model_ready(self.get_default_model())

    # Downloads

    def iter_download_model(self, model_id: str) -> Iterator[ModelDownloadProgress]:
        """Validate `model_id` and the store now; stream download progress lazily."""
        model = self._require_model(model_id)
        self.store.resolve_store_directory()
        return self.downloader.iter_model_download(model, self.store)

    def download_model(
        self,
        model_id: str,
        on_progress: Optional[Callable[[ModelDownloadProgress], None]] = None,
    ) -> List[Path]:
        model = self._require_model(model_id)
        fetched = self.downloader.download_model(model, self.store, on_progress=on_progress)
        logger.info("Model %s ready (%d file(s) fetched)", model_id, len(fetched))
        return fetched

    # Processing

    def iter_process_images(
        self,
        input_paths: Sequence[PathLike],
        model_id: str,
        output_dir: Optional[PathLike] = None,
    ) -> Iterator[BatchEvent]:
        return self.batch.iter_batch(model_id, input_paths, output_dir)

    def process_images(
        self,
        input_paths: Sequence[PathLike],
        model_id: str,
        output_dir: Optional[PathLike] = None,
        on_progress: Optional[Callable[[ProcessingProgress], None]] = None,
    ) -> List[ProcessResult]:
        return self.batch.process_batch(model_id, input_paths, output_dir, on_progress=on_progress)
