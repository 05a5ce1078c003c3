"""
Shared pytest fixtures: an isolated model store, dummy HTTP sessions and
fake onnxruntime-like sessions.
"""
from pathlib import Path

import numpy as np
import pytest
import requests
from PIL import Image

from cutout_service.config import Settings
from cutout_service.model_loader import SessionCache


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "models"


@pytest.fixture
def settings(store_dir):
    return Settings(_env_file=None, store_dir=store_dir, download_chunk_size=4)


class DummyResponse:
    def __init__(self, status_code=200, chunks=(), headers=None, fail_after=None):
        self.status_code = status_code
        self._chunks = list(chunks)
        self.headers = headers if headers is not None else {}
        self._fail_after = fail_after
        self.closed = False

    def iter_content(self, chunk_size=1):
        for index, chunk in enumerate(self._chunks):
            if self._fail_after is not None and index >= self._fail_after:
                raise requests.ConnectionError("connection reset by peer")
            yield chunk

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class DummyHTTPSession:
    def __init__(self, responses):
        self._responses = responses
        self.calls = []

    def get(self, url, stream=False, timeout=None):
        self.calls.append(url)
        return self._responses[url]


@pytest.fixture
def dummy_response():
    return DummyResponse


@pytest.fixture
def dummy_http_session():
    return DummyHTTPSession


class FakeInput:
    def __init__(self, name="input.1", shape=("batch_size", 3, 320, 320)):
        self.name = name
        self.shape = list(shape)


class FakeSession:
    """Mimics the slice of `onnxruntime.InferenceSession` the pipeline touches."""

    def __init__(self, output_fn, input_shape=("batch_size", 3, 320, 320)):
        self._output_fn = output_fn
        self._inputs = [FakeInput(shape=input_shape)]
        self.feeds = []

    def get_inputs(self):
        return self._inputs

    def run(self, output_names, feeds):
        self.feeds.append(feeds)
        tensor = feeds[self._inputs[0].name]
        return [self._output_fn(tensor)]


def red_channel_output(tensor):
    """Echo the red channel as a (1, 1, H, W) matte."""
    return tensor[:, :1, :, :].copy()


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def red_session():
    return FakeSession(red_channel_output)


@pytest.fixture
def fake_sessions(settings, red_session):
    """SessionCache whose loader hands out `red_session` and counts loads."""
    loads = []

    def loader(path, _settings):
        loads.append(Path(path))
        return red_session

    cache = SessionCache(settings, loader=loader)
    cache.loads = loads
    return cache


@pytest.fixture
def make_image(tmp_path):
    def _make(name="photo.png", size=(64, 48), color=None, directory=None):
        directory = Path(directory) if directory else tmp_path / "inputs"
        directory.mkdir(parents=True, exist_ok=True)
        width, height = size
        if color is None:
            # Horizontal red ramp so the fake matte is not constant.
            ramp = np.tile(np.linspace(0, 255, width, dtype=np.uint8), (height, 1))
            arr = np.dstack([ramp, np.full_like(ramp, 80), np.full_like(ramp, 160)])
            img = Image.fromarray(arr)
        else:
            img = Image.new("RGB", size, color)
        path = directory / name
        img.save(path)
        return path

    return _make
