"""Acquisition ports — interchangeable strategies for fetching remote media."""

from abc import ABC, abstractmethod

from domain.models import VideoInfo


class AcquisitionStrategyPort(ABC):
    name: str = "strategy"

    @abstractmethod
    def attempt(self, url: str, work_dir: str) -> str:
        """Download url into work_dir. Returns the local file path.

        Raises StrategyError on any failure, including timeouts.
        """


class MetadataProbePort(ABC):
    name: str = "probe"

    @abstractmethod
    def fetch(self, url: str) -> VideoInfo:
        """Look up title/duration without downloading. Raises on failure."""
