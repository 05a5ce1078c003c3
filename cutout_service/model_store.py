"""
Per-user model store.

Presence of a file named after each `ModelFile` is the entire on-disk state:
no manifest, no checksums. Readiness is recomputed on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import List, Optional

from . import config
from .catalog import ModelDescriptor, ModelFile
from .errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class ModelReadiness:
    model: ModelDescriptor
    downloaded: bool
    file_paths: List[Path]


class ModelStore:
    def __init__(self, settings: Optional[config.Settings] = None):
        self.settings = settings or config.get_settings()

    def resolve_store_directory(self) -> Path:
        """
        Return the store directory, creating it when absent.

        Raises:
            StorageError: when the home directory is unknown or the directory
                cannot be created.
        """
        if self.settings.store_dir is not None:
            store_dir = Path(self.settings.store_dir).expanduser()
        else:
            try:
                home = Path.home()
            except (RuntimeError, KeyError) as exc:
                raise StorageError("Could not determine home directory") from exc
            store_dir = home / self.settings.store_dir_name

        if not store_dir.is_dir():
            try:
                store_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Could not create model directory {store_dir}: {exc}") from exc
            logger.info("Created model store directory %s", store_dir)
        return store_dir.resolve()

    def file_path(self, model_file: ModelFile) -> Path:
        return self.resolve_store_directory() / model_file.name

    def is_model_ready(self, descriptor: ModelDescriptor) -> bool:
        # Existence only. Corrupt files surface later as LoadError.
        store_dir = self.resolve_store_directory()
        return all((store_dir / f.name).exists() for f in descriptor.files)

    def status(self, descriptor: ModelDescriptor) -> ModelReadiness:
        store_dir = self.resolve_store_directory()
        paths = [store_dir / f.name for f in descriptor.files]
        return ModelReadiness(
            model=descriptor,
            downloaded=all(p.exists() for p in paths),
            file_paths=paths,
        )
