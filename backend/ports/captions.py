"""CaptionSourcePort — abstract interface for platform-native captions."""

from abc import ABC, abstractmethod

from domain.models import TranscriptSegment


class CaptionSourcePort(ABC):
    name: str = "captions"

    @abstractmethod
    def fetch(self, url: str, work_dir: str) -> list[TranscriptSegment]:
        """Return timed caption segments for url. Raises CaptionError when none exist."""
