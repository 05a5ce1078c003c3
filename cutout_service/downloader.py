"""
Streaming model downloads.

Responses are consumed with ``requests`` in ``stream=True`` mode so that even
200+ MB model files are never held in memory: each chunk is written to disk
before the next one is read, and a progress event is produced after every
write.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import requests

from . import config
from .catalog import ModelDescriptor
from .errors import DownloadHTTPStatusError, DownloadTransportError
from .model_store import ModelStore

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


@dataclass(frozen=True)
class DownloadProgress:
    downloaded_bytes: int
    total_bytes: int  # 0 when the server sent no usable Content-Length


@dataclass(frozen=True)
class ModelDownloadProgress:
    model_id: str
    file_name: str
    downloaded_bytes: int
    total_bytes: int

    @property
    def percentage(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return self.downloaded_bytes / self.total_bytes * 100.0


def _content_length(response: requests.Response) -> int:
    raw = response.headers.get("content-length")
    if not raw:
        return 0
    try:
        return max(int(raw), 0)
    except ValueError:
        logger.debug("Ignoring malformed Content-Length %r", raw)
        return 0


class Downloader:
    """Fetches model files over HTTP with an explicitly owned session."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        settings: Optional[config.Settings] = None,
    ):
        self.session = session or requests.Session()
        self.settings = settings or config.get_settings()

    def iter_download(self, url: str, destination: Path) -> Iterator[DownloadProgress]:
        """
        Stream `url` into `destination`, yielding cumulative progress per chunk.

        With ``atomic_downloads`` enabled the body is written to
        ``<destination>.part`` and renamed into place once fully drained, so an
        interrupted download never leaves a truncated file under the final
        name.

        Raises:
            DownloadHTTPStatusError: non-2xx response.
            DownloadTransportError: network or disk failure mid-stream.
        """
        destination = Path(destination)
        atomic = self.settings.atomic_downloads
        target = destination.with_name(destination.name + PART_SUFFIX) if atomic else destination

        try:
            response = self.session.get(url, stream=True, timeout=config.request_timeout(self.settings))
        except requests.RequestException as exc:
            raise DownloadTransportError(f"Request to {url} failed: {exc}") from exc

        with response:
            if not 200 <= response.status_code < 300:
                raise DownloadHTTPStatusError(response.status_code, url)

            total = _content_length(response)
            logger.info("Downloading %s -> %s (%s bytes)", url, destination, total or "unknown")

            downloaded = 0
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(target, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=self.settings.download_chunk_size):
                        if not chunk:
                            continue
                        fh.write(chunk)
                        downloaded += len(chunk)
                        yield DownloadProgress(downloaded_bytes=downloaded, total_bytes=total)
                    fh.flush()
                if atomic:
                    os.replace(target, destination)
            except requests.RequestException as exc:
                raise DownloadTransportError(f"Download of {url} interrupted after {downloaded} bytes: {exc}") from exc
            except OSError as exc:
                raise DownloadTransportError(f"Could not write {target}: {exc}") from exc

        logger.info("Finished %s (%d bytes)", destination.name, downloaded)

    def download_file(
        self,
        url: str,
        destination: Path,
        on_progress: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> Path:
        """Blocking form of `iter_download`; `on_progress` is called synchronously per chunk."""
        for progress in self.iter_download(url, destination):
            if on_progress is not None:
                on_progress(progress)
        return Path(destination)

    def iter_model_download(self, descriptor: ModelDescriptor, store: ModelStore) -> Iterator[ModelDownloadProgress]:
        """
        Download every missing file of `descriptor`, in catalog order.

        Files already present are skipped without a request. Files are fetched
        one at a time and each event is tagged with its own file name.
        """
        store_dir = store.resolve_store_directory()
        for model_file in descriptor.files:
            dest_path = store_dir / model_file.name
            if dest_path.exists():
                logger.info("Skipping %s for model %s: already present", model_file.name, descriptor.id)
                continue
            for progress in self.iter_download(model_file.url, dest_path):
                yield ModelDownloadProgress(
                    model_id=descriptor.id,
                    file_name=model_file.name,
                    downloaded_bytes=progress.downloaded_bytes,
                    total_bytes=progress.total_bytes,
                )

    def download_model(
        self,
        descriptor: ModelDescriptor,
        store: ModelStore,
        on_progress: Optional[Callable[[ModelDownloadProgress], None]] = None,
    ) -> List[Path]:
        """Download missing files for `descriptor` and return the paths that were fetched."""
        store_dir = store.resolve_store_directory()
        fetched = [store_dir / f.name for f in descriptor.files if not (store_dir / f.name).exists()]
        for event in self.iter_model_download(descriptor, store):
            if on_progress is not None:
                on_progress(event)
        return fetched
