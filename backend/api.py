"""FastAPI application: GIF generation, retrieval and service status routes."""

import os
import math
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from config import Config, create_artifact_store, create_pipeline, get_config
from domain.errors import AcquisitionError, AllRendersFailedError, InputError
from mappers import acquisition_error_to_dto, result_to_response, video_info_to_dto
from models import ErrorResponse, MetadataResponse, StatusResponse
from ports.artifact_store import ArtifactStorePort
from use_cases.generate import GenerateGifsUseCase, GenerateRequest

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm", ".mkv"}
UPLOAD_CHUNK = 1024 * 1024
GIF_CACHE_CONTROL = "public, max-age=31536000"


def error_response(status_code: int, error: str, details: Optional[str] = None,
                   suggestions: Optional[list[str]] = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, suggestions=suggestions)
    return JSONResponse(status_code=status_code, content=body.to_json())


def parse_seconds(value: Optional[str], field: str) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise InputError(f"{field} must be a number of seconds")
    if not math.isfinite(seconds):
        raise InputError(f"{field} must be a number of seconds")
    return seconds


def save_upload(video: UploadFile, upload_dir: str, max_size: int) -> str:
    """Stream an uploaded video to disk, enforcing the extension allow-list and size limit."""
    ext = os.path.splitext(video.filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise InputError(f"Unsupported file type {ext or '(none)'}. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, f"upload_{uuid.uuid4().hex}{ext}")
    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = video.file.read(UPLOAD_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_size:
                    raise InputError(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB")
                out.write(chunk)
    except InputError:
        os.unlink(path)
        raise
    if written == 0:
        os.unlink(path)
        raise InputError("Uploaded file is empty")

    logger.info(f"Saved upload {video.filename} ({written / (1024 * 1024):.1f} MB)")
    return path


def create_app(
    pipeline: Optional[GenerateGifsUseCase] = None,
    store: Optional[ArtifactStorePort] = None,
    cfg: Optional[Config] = None,
) -> FastAPI:
    cfg = cfg or get_config()
    store = store or create_artifact_store(cfg)
    pipeline = pipeline or create_pipeline(cfg, store=store)

    app = FastAPI(title="AI GIF Generator API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def status(message: str) -> dict:
        return StatusResponse(
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            openrouter_configured=pipeline.has_reasoning,
            acquisition_strategies=pipeline.strategy_names,
        ).to_json()

    @app.get("/health")
    def health():
        return status("AI GIF Generator API is running")

    @app.get("/api/test")
    def api_test():
        return status("API is working")

    @app.post("/api/generate")
    def generate(
        video: Optional[UploadFile] = File(None),
        youtubeUrl: Optional[str] = Form(None),
        prompt: Optional[str] = Form(None),
        isSegmented: Optional[str] = Form(None),
        segmentStart: Optional[str] = Form(None),
        segmentEnd: Optional[str] = Form(None),
    ):
        has_file = video is not None and bool(video.filename)
        req = GenerateRequest(
            prompt=prompt or "",
            upload_path=video.filename if has_file else None,
            youtube_url=(youtubeUrl or "").strip() or None,
            delete_upload=True,
        )
        try:
            if (isSegmented or "").lower() == "true":
                req.segment_start = parse_seconds(segmentStart, "segmentStart")
                req.segment_end = parse_seconds(segmentEnd, "segmentEnd")
            req.validate()
            if has_file:
                req.upload_path = save_upload(video, cfg.temp_dir, cfg.max_file_size)

            result = pipeline.execute(req)
        except InputError as e:
            logger.warning(f"Rejected request: {e}")
            return error_response(400, str(e))
        except AcquisitionError as e:
            logger.error(f"Acquisition failed: {e.reason.value}")
            dto = acquisition_error_to_dto(e)
            return JSONResponse(status_code=502, content=dto.to_json())
        except AllRendersFailedError as e:
            return error_response(500, "Failed to create any GIFs", details="; ".join(e.errors))
        except Exception as e:  # noqa: BLE001
            logger.exception("GIF generation failed")
            return error_response(500, "Failed to generate GIFs", details=str(e))

        logger.info(f"Generated {len(result.artifacts)} GIFs in {result.processing_seconds:.2f}s")
        return result_to_response(result).to_json()

    @app.get("/api/gifs/{gif_id}")
    def get_gif(gif_id: str):
        path = store.locate(gif_id)
        if not path:
            return error_response(404, "GIF not found")
        return FileResponse(path, media_type="image/gif", headers={"Cache-Control": GIF_CACHE_CONTROL})

    @app.get("/api/youtube-metadata")
    def youtube_metadata(url: Optional[str] = Query(None)):
        if not url:
            return error_response(400, "Missing url")
        info = pipeline.probe_metadata(url)
        return MetadataResponse(video_info=video_info_to_dto(info)).to_json()

    @app.get("/api/validation/stats")
    def validation_stats():
        if pipeline.validator is None:
            return {"success": True, "enabled": False}
        return {"success": True, "enabled": True, **pipeline.validator.stats()}

    return app
