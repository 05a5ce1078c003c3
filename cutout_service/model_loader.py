"""
Model loading utilities for ONNX segmentation models.

The loader:
 - builds an onnxruntime session with full graph optimization,
 - wraps every load failure (missing, unreadable, truncated) in `LoadError`,
 - keeps loaded sessions in an owned `SessionCache` so a batch pays the
   graph-optimization cost once per model file instead of once per image.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

import onnxruntime as ort

from . import config
from .errors import LoadError

logger = logging.getLogger(__name__)


def _session_options(settings: config.Settings) -> ort.SessionOptions:
    so = ort.SessionOptions()
    so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    if settings.intra_op_num_threads > 0:
        so.intra_op_num_threads = settings.intra_op_num_threads
    return so


def _available_providers(requested) -> list:
    available = set(ort.get_available_providers())
    providers = [p for p in requested if p in available]
    if not providers:
        logger.warning("None of the requested providers %s are available, using CPU", list(requested))
        providers = ["CPUExecutionProvider"]
    return providers


def load_session(model_path: Path, settings: Optional[config.Settings] = None) -> ort.InferenceSession:
    """
    Parse and optimize the ONNX graph at `model_path`.

    Raises:
        LoadError: when the file is missing or is not a loadable graph
            (including partially downloaded files).
    """
    settings = settings or config.get_settings()
    model_path = Path(model_path)
    if not model_path.is_file():
        raise LoadError(f"Model file not found at {model_path}")

    providers = _available_providers(settings.onnx_providers)
    try:
        session = ort.InferenceSession(
            str(model_path),
            sess_options=_session_options(settings),
            providers=providers,
        )
    except Exception as exc:  # noqa: BLE001
        raise LoadError(f"Failed to load ONNX model {model_path.name}: {exc}") from exc

    logger.info("Loaded %s with providers %s", model_path.name, session.get_providers())
    return session


class SessionCache:
    """
    Owned mapping of model file path -> inference session.

    Sessions are created lazily on first access and reused afterwards. A failed
    load is not cached, so a re-downloaded model is picked up on the next call.
    """

    def __init__(self, settings: Optional[config.Settings] = None, loader=load_session):
        self.settings = settings or config.get_settings()
        self._loader = loader
        self._sessions: Dict[Path, object] = {}
        self._lock = Lock()

    def get(self, model_path: Path):
        key = Path(model_path).resolve()
        session = self._sessions.get(key)
        if session is not None:
            return session

        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._loader(key, self.settings)
                self._sessions[key] = session
        return session

    def __contains__(self, model_path) -> bool:
        return Path(model_path).resolve() in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
