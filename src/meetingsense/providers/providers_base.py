"""Abstract model provider definition."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from ..analysis.analysis_models import RemoteFile, RequestPart


class ModelProvider(ABC):
    """Base interface for multi-modal model providers.

    Implementations raise ``ProviderError`` (or any exception carrying the
    remote status) on failure; classification happens upstream.
    """

    @abstractmethod
    async def generate_content(self, model: str, parts: Sequence[RequestPart]) -> str:
        """Send one multi-part request and return the model's text output."""

    @abstractmethod
    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> RemoteFile:
        """Upload ``path`` to the provider file store."""

    @abstractmethod
    async def get_file(self, name: str) -> RemoteFile:
        """Fetch the current state of a previously uploaded file."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the model ids visible to the configured credential."""
