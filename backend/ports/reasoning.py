"""Reasoning ports — text completion and image description services."""

from abc import ABC, abstractmethod


class ReasoningPort(ABC):
    @abstractmethod
    def complete(self, system: str, user: str) -> str:
        """Return the raw completion text. Raises ReasoningError on failure."""


class VisionPort(ABC):
    @abstractmethod
    def describe_image(self, image_path: str, instruction: str) -> str:
        """Return a short free-text description. Raises ReasoningError on failure."""
