"""Model provider clients."""

from .providers_base import ModelProvider
from .providers_gemini import GeminiClient

__all__ = ["GeminiClient", "ModelProvider"]
