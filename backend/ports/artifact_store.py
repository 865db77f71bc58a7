"""ArtifactStorePort — abstract interface for durable GIF storage keyed by id."""

from abc import ABC, abstractmethod
from typing import Optional


class ArtifactStorePort(ABC):
    @abstractmethod
    def new_id(self) -> str:
        """Generate a fresh unique artifact id."""

    @abstractmethod
    def path_for(self, artifact_id: str) -> str:
        """Return the storage path an artifact with this id is written to."""

    @abstractmethod
    def locate(self, artifact_id: str) -> Optional[str]:
        """Return the path of an existing artifact, or None if absent or id is invalid."""
