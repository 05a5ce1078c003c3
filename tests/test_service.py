import pytest

from cutout_service import catalog
from cutout_service.errors import NotFoundError
from cutout_service.service import CutoutService


@pytest.fixture
def service(settings, fake_sessions):
    return CutoutService(settings, sessions=fake_sessions)


def test_injected_session_cache_reaches_batch(service, fake_sessions):
    assert service.batch.sessions is fake_sessions


def test_first_time_setup_tracks_default_model(service, store_dir):
    assert service.is_first_time_setup() is True
    default = catalog.get_default_model()
    for f in default.files:
        (store_dir / f.name).write_bytes(b"onnx")
    assert service.is_first_time_setup() is False


def test_list_and_default(service):
    assert [m.id for m in service.list_models()] == [m.id for m in catalog.MODELS]
    assert service.get_default_model().is_default


def test_status_and_downloaded(service, store_dir):
    status = service.get_model_status("u2netp")
    assert status.downloaded is False
    assert status.file_paths == [store_dir.resolve() / "u2netp.onnx"]
    (store_dir / "u2netp.onnx").write_bytes(b"onnx")
    assert service.is_model_downloaded("u2netp") is True


@pytest.mark.parametrize("call", ["get_model_status", "is_model_downloaded", "iter_download_model", "download_model"])
def test_unknown_model_id(service, call):
    with pytest.raises(NotFoundError, match="Model not found: ghost"):
        getattr(service, call)("ghost")


def test_store_directory(service, store_dir):
    assert service.get_store_directory() == store_dir.resolve()


def test_download_model_through_service(settings, dummy_response, dummy_http_session, store_dir):
    model = catalog.get_model_by_id("u2netp")
    http = dummy_http_session({model.files[0].url: dummy_response(chunks=[b"abc"], headers={"content-length": "3"})})
    service = CutoutService(settings, http_session=http)
    events = []

    service.download_model("u2netp", on_progress=events.append)

    assert (store_dir / "u2netp.onnx").read_bytes() == b"abc"
    assert [(e.model_id, e.file_name, e.percentage) for e in events] == [("u2netp", "u2netp.onnx", 100.0)]
    assert service.is_model_downloaded("u2netp")

    # Second call finds the file and makes no request.
    service.download_model("u2netp")
    assert http.calls == [model.files[0].url]


def test_process_images(service, store_dir, make_image, tmp_path):
    store_dir.mkdir(parents=True)
    (store_dir / "u2net.onnx").write_bytes(b"onnx")
    results = service.process_images([make_image("cat.jpg")], "u2net", tmp_path / "out")
    assert results[0].success
    assert results[0].output_path == str(tmp_path / "out" / "cat_no_bg.png")
