"""
FastAPI layer exposing model management and batch background removal.

Endpoints:
 - GET  /health
 - GET  /models, /models/default, /models/{id}/status, /models/{id}/downloaded
 - GET  /store-directory, /setup/first-time
 - POST /models/{id}/download   (NDJSON progress stream)
 - POST /process                (NDJSON progress + result stream)
"""

from __future__ import annotations

from functools import lru_cache
import json
import logging
from typing import Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from . import config
from .batch import ProcessingProgress, ProcessResult
from .catalog import ModelDescriptor
from .errors import DownloadError, NotFoundError, StorageError
from .service import CutoutService

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Cutout Background Removal Service", version="0.1.0")

NDJSON = "application/x-ndjson"


class ModelFileOut(BaseModel):
    name: str
    url: str
    sizeMb: int


class ModelOut(BaseModel):
    id: str
    name: str
    description: str
    files: List[ModelFileOut]
    isDefault: bool

    @classmethod
    def from_descriptor(cls, model: ModelDescriptor) -> "ModelOut":
        return cls(
            id=model.id,
            name=model.name,
            description=model.description,
            files=[ModelFileOut(name=f.name, url=f.url, sizeMb=f.size_mb) for f in model.files],
            isDefault=model.is_default,
        )


class ModelStatusOut(BaseModel):
    model: ModelOut
    downloaded: bool
    filePaths: List[str]


class ProcessImagesRequest(BaseModel):
    imagePaths: List[str]
    modelId: str
    outputDir: Optional[str] = None


@lru_cache()
def get_service() -> CutoutService:
    return CutoutService(settings)


def _ndjson(payload: dict) -> str:
    return json.dumps(payload) + "\n"


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/models", response_model=List[ModelOut])
def get_all_models(service: CutoutService = Depends(get_service)):
    return [ModelOut.from_descriptor(m) for m in service.list_models()]


@app.get("/models/default", response_model=ModelOut)
def get_default_model(service: CutoutService = Depends(get_service)):
    return ModelOut.from_descriptor(service.get_default_model())


@app.get("/models/{model_id}/status", response_model=ModelStatusOut)
def get_model_status(model_id: str, service: CutoutService = Depends(get_service)):
    try:
        status = service.get_model_status(model_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return ModelStatusOut(
        model=ModelOut.from_descriptor(status.model),
        downloaded=status.downloaded,
        filePaths=[str(p) for p in status.file_paths],
    )


@app.get("/models/{model_id}/downloaded")
def is_model_downloaded(model_id: str, service: CutoutService = Depends(get_service)):
    try:
        return {"downloaded": service.is_model_downloaded(model_id)}
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/store-directory")
def get_store_directory(service: CutoutService = Depends(get_service)):
    try:
        return {"path": str(service.get_store_directory())}
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/setup/first-time")
def check_first_time_setup(service: CutoutService = Depends(get_service)):
    try:
        return {"firstTimeSetup": service.is_first_time_setup()}
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/models/{model_id}/download")
def download_model(model_id: str, service: CutoutService = Depends(get_service)):
    try:
        events = service.iter_download_model(model_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    def stream() -> Iterator[str]:
        try:
            for progress in events:
                yield _ndjson(
                    {
                        "event": "download-progress",
                        "modelId": progress.model_id,
                        "fileName": progress.file_name,
                        "downloaded": progress.downloaded_bytes,
                        "total": progress.total_bytes,
                        "percentage": progress.percentage,
                    }
                )
        except DownloadError as exc:
            logger.exception("Download of %s failed: %s", model_id, exc)
            yield _ndjson({"event": "error", "detail": str(exc)})
            return
        yield _ndjson({"event": "done"})

    return StreamingResponse(stream(), media_type=NDJSON)


@app.post("/process")
def process_images(body: ProcessImagesRequest, service: CutoutService = Depends(get_service)):
    try:
        events = service.iter_process_images(body.imagePaths, body.modelId, body.outputDir)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Model store unavailable: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    def stream() -> Iterator[str]:
        for event in events:
            if isinstance(event, ProcessingProgress):
                yield _ndjson(
                    {
                        "event": "processing-progress",
                        "current": event.current,
                        "total": event.total,
                        "fileName": event.file_name,
                    }
                )
            elif isinstance(event, ProcessResult):
                yield _ndjson(
                    {
                        "event": "result",
                        "inputPath": event.input_path,
                        "outputPath": event.output_path,
                        "success": event.success,
                        "error": event.error,
                    }
                )
        yield _ndjson({"event": "done"})

    return StreamingResponse(stream(), media_type=NDJSON)
