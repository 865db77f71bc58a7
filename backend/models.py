from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises field names as camelCase, accepts either form on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class GifInfo(CamelModel):
    """One generated GIF as returned to the client"""
    id: str
    caption: str
    start_time: float
    end_time: float
    size: str
    has_caption: bool
    url: str


class VideoInfoResponse(CamelModel):
    duration: float
    width: int
    height: int
    title: str
    description: Optional[str] = None
    video_id: Optional[str] = None
    size: Optional[int] = None
    is_segmented: bool = False
    segment_start: Optional[float] = None
    segment_end: Optional[float] = None
    original_duration: Optional[float] = None


class GenerateResponse(CamelModel):
    """Response format for a successful generation"""
    success: bool = True
    message: str
    gifs: List[GifInfo]
    processing_time: str
    video_info: VideoInfoResponse
    caption_source: str
    is_segmented: bool = False
    errors: Optional[List[str]] = None


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    details: Optional[str] = None
    suggestions: Optional[List[str]] = None


class MetadataResponse(CamelModel):
    success: bool = True
    video_info: VideoInfoResponse


class StatusResponse(CamelModel):
    success: bool = True
    status: str = "ok"
    message: str
    timestamp: str
    openrouter_configured: bool
    acquisition_strategies: List[str] = []
