"""OpenRouter adapters — chat completions and frame descriptions via the OpenAI client.

OpenRouter exposes an OpenAI-compatible API, so the official client is used
with a different base URL. The client is created lazily so the service can
start (and fall back to heuristics) without the package configured.
"""

import base64
import logging
import mimetypes
from typing import Optional

from domain.errors import ReasoningError
from ports.reasoning import ReasoningPort, VisionPort

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "AI GIF Generator"


class _OpenRouterClient:
    def __init__(self, api_key: str, model: str, base_url: str = OPENROUTER_BASE_URL,
                 timeout: float = 60.0, referer: str = "http://localhost:3000"):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._timeout = timeout
        self._referer = referer
        self._client = None

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
                max_retries=1,
                default_headers={"HTTP-Referer": self._referer, "X-Title": APP_TITLE},
            )
        return self._client

    def _chat(self, messages: list, max_tokens: int, temperature: float) -> str:
        from openai import OpenAIError

        try:
            completion = self._get_client().chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            raise ReasoningError(f"{self._model} request failed: {e}")

        if not completion.choices or not completion.choices[0].message.content:
            raise ReasoningError(f"{self._model} returned an empty response")
        return completion.choices[0].message.content.strip()


class OpenRouterReasoningAdapter(_OpenRouterClient, ReasoningPort):
    def complete(self, system: str, user: str) -> str:
        text = self._chat(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            max_tokens=1000,
            temperature=0.2,
        )
        logger.debug(f"Reasoning response ({self.model}): {text[:300]}")
        return text


def encode_image(image_path: str) -> str:
    """Return the image as a data: URL."""
    mime = mimetypes.guess_type(image_path)[0] or "image/jpeg"
    with open(image_path, "rb") as f:
        encoded = base64.b64encode(f.read()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class OpenRouterVisionAdapter(_OpenRouterClient, VisionPort):
    def describe_image(self, image_path: str, instruction: str) -> str:
        try:
            data_url = encode_image(image_path)
        except OSError as e:
            raise ReasoningError(f"Cannot read frame {image_path}: {e}")

        return self._chat(
            [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
            max_tokens=120,
            temperature=0.3,
        )


def create_openrouter_adapters(
    api_key: Optional[str],
    reasoning_model: str,
    vision_model: str,
    base_url: str = OPENROUTER_BASE_URL,
    timeout: float = 60.0,
) -> tuple[Optional[ReasoningPort], Optional[VisionPort]]:
    """Return (reasoning, vision) adapters, or (None, None) without an API key."""
    if not api_key:
        logger.warning("OPENROUTER_API_KEY not set; moment selection will use the heuristic fallback")
        return None, None
    reasoning = OpenRouterReasoningAdapter(api_key, reasoning_model, base_url=base_url, timeout=timeout)
    vision = OpenRouterVisionAdapter(api_key, vision_model, base_url=base_url, timeout=timeout)
    return reasoning, vision
