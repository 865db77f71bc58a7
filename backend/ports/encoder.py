"""EncoderPort — abstract interface for turning a clip into a GIF."""

from abc import ABC, abstractmethod
from typing import Optional


class EncoderPort(ABC):
    @abstractmethod
    def encode(
        self,
        input_path: str,
        start: float,
        duration: float,
        output_path: str,
        caption: Optional[str] = None,
        font_path: Optional[str] = None,
    ) -> None:
        """Encode [start, start+duration) of input_path to output_path.

        The caption is burned in only when both caption and font_path are given.
        Raises RenderError if the encoder fails.
        """
