"""OpenRouter adapters for moment selection and frame description."""

from .reasoning import OpenRouterReasoningAdapter, OpenRouterVisionAdapter, create_openrouter_adapters

__all__ = ["OpenRouterReasoningAdapter", "OpenRouterVisionAdapter", "create_openrouter_adapters"]
