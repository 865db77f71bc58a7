"""Domain <-> DTO mappers.

Converts Artifact, VideoInfo and GenerationResult (domain) into the
camelCase Pydantic DTOs the API returns.
"""

from domain.errors import AcquisitionError
from domain.models import Artifact, VideoInfo
from models import ErrorResponse, GenerateResponse, GifInfo, VideoInfoResponse
from use_cases.generate import GenerationResult

GIF_URL_PREFIX = "/api/gifs"


def artifact_to_dto(artifact: Artifact) -> GifInfo:
    """Convert a domain Artifact to a GifInfo DTO."""
    return GifInfo(
        id=artifact.id,
        caption=artifact.caption,
        start_time=artifact.start_time,
        end_time=artifact.end_time,
        size=artifact.size_label,
        has_caption=artifact.has_caption,
        url=f"{GIF_URL_PREFIX}/{artifact.id}",
    )


def video_info_to_dto(info: VideoInfo) -> VideoInfoResponse:
    return VideoInfoResponse(
        duration=info.duration_seconds,
        width=info.width,
        height=info.height,
        title=info.title,
        description=info.description or None,
        video_id=info.video_id,
        size=info.size_bytes or None,
        is_segmented=info.is_segmented,
        segment_start=info.segment_start,
        segment_end=info.segment_end,
        original_duration=info.original_duration,
    )


def result_to_response(result: GenerationResult) -> GenerateResponse:
    """Build the success response, listing per-GIF errors only when there are any."""
    return GenerateResponse(
        message=f"Successfully generated {len(result.artifacts)} GIFs",
        gifs=[artifact_to_dto(a) for a in result.artifacts],
        processing_time=f"{result.processing_seconds:.2f}s",
        video_info=video_info_to_dto(result.video_info),
        caption_source=result.caption_source,
        is_segmented=result.video_info.is_segmented,
        errors=result.errors or None,
    )


def acquisition_error_to_dto(error: AcquisitionError) -> ErrorResponse:
    return ErrorResponse(
        error=error.message,
        details=error.reason.value,
        suggestions=error.suggestions,
    )
