"""FileArtifactStore — GIFs on local disk, one file per artifact id."""

import os
import re
import uuid
from typing import Optional

from ports.artifact_store import ArtifactStorePort

ARTIFACT_ID = re.compile(r"^[0-9a-f]{32}$")


class FileArtifactStore(ArtifactStorePort):
    def __init__(self, output_dir: str, extension: str = ".gif"):
        self._output_dir = output_dir
        self._extension = extension
        os.makedirs(output_dir, exist_ok=True)

    @property
    def output_dir(self) -> str:
        return self._output_dir

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def path_for(self, artifact_id: str) -> str:
        if not ARTIFACT_ID.match(artifact_id):
            raise ValueError(f"Invalid artifact id: {artifact_id!r}")
        return os.path.join(self._output_dir, f"{artifact_id}{self._extension}")

    def locate(self, artifact_id: str) -> Optional[str]:
        if not ARTIFACT_ID.match(artifact_id or ""):
            return None
        path = self.path_for(artifact_id)
        return path if os.path.isfile(path) else None
