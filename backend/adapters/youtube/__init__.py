"""YouTube-facing adapters: download strategies, caption sources, metadata probes."""

from .captions import TimedTextCaptionSource, YtDlpCaptionSource
from .download import (
    GalleryDlStrategy,
    StreamlinkStrategy,
    YoutubeDlStrategy,
    YtDlpLibraryStrategy,
    YtDlpStrategy,
)
from .metadata import WebPageMetadataProbe, YtDlpMetadataProbe

__all__ = [
    "GalleryDlStrategy",
    "StreamlinkStrategy",
    "TimedTextCaptionSource",
    "WebPageMetadataProbe",
    "YoutubeDlStrategy",
    "YtDlpCaptionSource",
    "YtDlpLibraryStrategy",
    "YtDlpMetadataProbe",
    "YtDlpStrategy",
]
