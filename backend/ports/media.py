"""MediaToolsPort — abstract interface for probing and slicing local media."""

from abc import ABC, abstractmethod

from domain.models import VideoInfo


class MediaToolsPort(ABC):
    @abstractmethod
    def probe(self, path: str) -> VideoInfo:
        """Read duration, dimensions, size and bitrate. Raises on unreadable files."""

    @abstractmethod
    def extract_frame(self, path: str, timestamp: float, output_path: str) -> str:
        """Write a single still frame at timestamp. Returns output_path."""

    @abstractmethod
    def detect_scene_changes(self, path: str, duration: float) -> list[float]:
        """Return timestamps (seconds) where the picture changes abruptly."""

    @abstractmethod
    def trim(self, path: str, start: float, duration: float, output_path: str) -> str:
        """Cut [start, start+duration) into output_path. Returns output_path."""
