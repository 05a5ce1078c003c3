from pathlib import Path

import pytest

from cutout_service import catalog
from cutout_service.batch import BatchProcessor, ProcessingProgress, ProcessResult, derive_output_path
from cutout_service.errors import LoadError, NotFoundError
from cutout_service.model_loader import SessionCache
from cutout_service.model_store import ModelStore


@pytest.fixture
def processor(settings, fake_sessions):
    store = ModelStore(settings)
    default = catalog.get_default_model()
    (store.resolve_store_directory() / default.primary_file.name).write_bytes(b"onnx")
    return BatchProcessor(store=store, sessions=fake_sessions, settings=settings)


def test_derive_output_path_next_to_input():
    assert derive_output_path("/a/b/cat.jpg") == Path("/a/b/cat_no_bg.png")


def test_derive_output_path_into_output_dir():
    assert derive_output_path("/a/b/cat.jpg", "/x") == Path("/x/cat_no_bg.png")


def test_derive_output_path_requires_stem():
    with pytest.raises(ValueError):
        derive_output_path("")


def test_partial_failure_keeps_going(processor, make_image, tmp_path):
    first = make_image("one.png")
    broken = tmp_path / "inputs" / "two.jpg"
    broken.write_bytes(b"corrupt bytes")
    third = make_image("three.png", size=(33, 77))

    results = processor.process_batch("u2net", [first, broken, third])

    assert len(results) == 3
    assert [r.success for r in results] == [True, False, True]
    assert results[1].error
    assert results[1].output_path is None
    assert [r.input_path for r in results] == [str(first), str(broken), str(third)]
    assert Path(results[0].output_path).is_file()
    assert Path(results[2].output_path).is_file()
    assert not (tmp_path / "inputs" / "two_no_bg.png").exists()


def test_progress_before_each_item(processor, make_image):
    inputs = [make_image("a.png"), make_image("b.png")]
    events = list(processor.iter_batch("u2net", inputs))

    assert [type(e) for e in events] == [ProcessingProgress, ProcessResult, ProcessingProgress, ProcessResult]
    assert events[0] == ProcessingProgress(current=1, total=2, file_name="a.png")
    assert events[2] == ProcessingProgress(current=2, total=2, file_name="b.png")


def test_on_progress_callback(processor, make_image):
    seen = []
    processor.process_batch("u2net", [make_image("a.png"), make_image("b.png")], on_progress=seen.append)
    assert [(p.current, p.total) for p in seen] == [(1, 2), (2, 2)]


def test_output_dir_used(processor, make_image, tmp_path):
    out_dir = tmp_path / "cutouts"
    (result,) = processor.process_batch("u2net", [make_image("dog.jpg")], output_dir=out_dir)
    assert result.success
    assert Path(result.output_path) == out_dir / "dog_no_bg.png"
    assert (out_dir / "dog_no_bg.png").is_file()


def test_injected_empty_cache_is_kept(processor, fake_sessions):
    assert len(fake_sessions) == 0
    assert processor.sessions is fake_sessions


def test_session_loaded_once_per_batch(processor, fake_sessions, make_image):
    processor.process_batch("u2net", [make_image(f"{i}.png") for i in range(3)])
    assert len(fake_sessions.loads) == 1
    assert fake_sessions.loads[0].name == "u2net.onnx"


def test_unknown_model_fails_whole_batch(processor, make_image):
    with pytest.raises(NotFoundError, match="Model not found"):
        processor.iter_batch("nope", [make_image()])


def test_model_not_downloaded_fails_whole_batch(processor, make_image):
    with pytest.raises(NotFoundError, match="download the model first"):
        processor.process_batch("u2netp", [make_image()])


def test_only_primary_file_needed_for_multi_file_model(settings, fake_sessions, make_image):
    store = ModelStore(settings)
    encoder = catalog.get_model_by_id("sam").files[0]
    (store.resolve_store_directory() / encoder.name).write_bytes(b"onnx")
    processor = BatchProcessor(store=store, sessions=fake_sessions, settings=settings)

    (result,) = processor.process_batch("sam", [make_image()])
    assert result.success
    assert [p.name for p in fake_sessions.loads] == [encoder.name]


def test_corrupt_model_fails_each_image(settings, make_image):
    store = ModelStore(settings)
    (store.resolve_store_directory() / "u2net.onnx").write_bytes(b"truncated")

    calls = []

    def loader(path, _settings):
        calls.append(path)
        raise LoadError(f"Failed to load ONNX model {path.name}")

    processor = BatchProcessor(store=store, sessions=SessionCache(settings, loader=loader), settings=settings)
    results = processor.process_batch("u2net", [make_image("a.png"), make_image("b.png")])
    assert [r.success for r in results] == [False, False]
    assert all("Failed to load ONNX model" in r.error for r in results)
    # failed loads are not cached, so each image retries
    assert len(calls) == 2


def test_empty_batch(processor):
    assert processor.process_batch("u2net", []) == []


def test_result_keeps_caller_path_string(processor, make_image, tmp_path):
    make_image("a.png")
    raw = str(tmp_path / "inputs") + "/./a.png"

    (result,) = processor.process_batch("u2net", [raw])

    assert result.success
    assert result.input_path == raw
    assert Path(result.output_path) == tmp_path / "inputs" / "a_no_bg.png"
