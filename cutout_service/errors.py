"""Exception hierarchy shared by the store, downloader, engine and batch layers."""

from __future__ import annotations


class CutoutError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(CutoutError):
    """The static model catalog violates one of its invariants."""


class StorageError(CutoutError):
    """The model store directory could not be resolved or created."""


class NotFoundError(CutoutError):
    """Unknown model id, or a model file missing before processing."""


class DownloadError(CutoutError):
    """A model file could not be fetched."""


class DownloadHTTPStatusError(DownloadError):
    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Failed to download file: HTTP {status_code}")


class DownloadTransportError(DownloadError):
    """Network or disk failure while streaming a response body."""


class LoadError(CutoutError):
    """A model file is missing, unreadable or not a valid ONNX graph."""


class InferError(CutoutError):
    """Background removal failed for a single image."""


class ImageError(InferError):
    """The input image could not be decoded."""


class ShapeError(InferError):
    """A tensor did not have the shape the pipeline expects."""
