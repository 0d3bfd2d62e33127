"""Gemini REST client used by the analysis pipeline."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from ..analysis.analysis_errors import ProviderError
from ..analysis.analysis_models import (
    FileState,
    InlineBinaryPart,
    RemoteFile,
    RequestPart,
    StagedFilePart,
    TextPart,
)
from .providers_base import ModelProvider

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Gemini returned an empty response. Please try again."


@dataclass(slots=True)
class GeminiClient(ModelProvider):
    """Call the Gemini ``generateContent`` and Files endpoints over httpx."""

    api_key: str
    api_base_url: str = "https://generativelanguage.googleapis.com"
    timeout_seconds: float = 600.0
    log: logging.Logger = field(default_factory=lambda: logger)

    async def generate_content(self, model: str, parts: Sequence[RequestPart]) -> str:
        url = f"{self.api_base_url}/v1beta/models/{model}:generateContent"
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [_encode_part(part) for part in parts]}],
        }
        self.log.info(
            "gemini.request.payload_meta "
            f"model={model} parts={len(parts)} "
            f"inline_bytes={sum(len(p.data) for p in parts if isinstance(p, InlineBinaryPart))} "
            f"staged={sum(1 for p in parts if isinstance(p, StagedFilePart))}"
        )

        response = await self._send("POST", url, headers=self._headers(), json=body)
        if response.status_code != 200:
            raise self._error(response, "gemini.response.error")

        data = response.json()
        self.log.info("gemini.response.received %s", _response_summary(data))
        text = _extract_text(data)
        if not text.strip():
            body_preview = json.dumps(_mask_inline_data(data), ensure_ascii=False)[:2000]
            self.log.warning("gemini.response.empty %s", body_preview)
            raise ProviderError(EMPTY_RESPONSE_MESSAGE)
        return text

    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> RemoteFile:
        payload = await asyncio.to_thread(path.read_bytes)
        start_headers = {
            **self._headers(),
            "X-Goog-Upload-Protocol": "resumable",
            "X-Goog-Upload-Command": "start",
            "X-Goog-Upload-Header-Content-Length": str(len(payload)),
            "X-Goog-Upload-Header-Content-Type": mime_type,
        }
        start = await self._send(
            "POST",
            f"{self.api_base_url}/upload/v1beta/files",
            headers=start_headers,
            json={"file": {"display_name": display_name}},
        )
        if start.status_code != 200:
            raise self._error(start, "gemini.upload.start_failed")
        upload_url = start.headers.get("x-goog-upload-url")
        if not upload_url:
            raise ProviderError("Gemini upload session did not return an upload URL")

        self.log.info(
            "gemini.upload.session_started",
            extra={"display_name": display_name, "size_bytes": len(payload)},
        )
        finish = await self._send(
            "POST",
            upload_url,
            headers={
                "Content-Length": str(len(payload)),
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=payload,
        )
        if finish.status_code != 200:
            raise self._error(finish, "gemini.upload.finalize_failed")
        remote = _parse_file(finish.json(), fallback_mime=mime_type)
        self.log.info(
            "gemini.upload.completed",
            extra={"file_name": remote.name, "state": remote.state.value},
        )
        return remote

    async def get_file(self, name: str) -> RemoteFile:
        response = await self._send(
            "GET", f"{self.api_base_url}/v1beta/{name}", headers=self._headers()
        )
        if response.status_code != 200:
            raise self._error(response, "gemini.file.status_failed")
        return _parse_file(response.json(), fallback_mime="application/octet-stream")

    async def list_models(self) -> list[str]:
        response = await self._send(
            "GET", f"{self.api_base_url}/v1beta/models", headers=self._headers()
        )
        if response.status_code != 200:
            raise self._error(response, "gemini.models.list_failed")
        models = response.json().get("models") or []
        return [
            str(item.get("name", "")).removeprefix("models/")
            for item in models
            if isinstance(item, dict) and item.get("name")
        ]

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Gemini request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Gemini HTTP error: {exc}") from exc

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    def _error(self, response: httpx.Response, event: str) -> ProviderError:
        status, message = _extract_error(response)
        self.log.error(
            "%s status=%s detail=%s",
            event,
            response.status_code,
            message,
            extra={"status_code": response.status_code, "error_status": status},
        )
        label = f"{response.status_code} {status}".strip()
        return ProviderError(f"[{label}] {message}", status_code=response.status_code)


def _encode_part(part: RequestPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"text": part.text}
    if isinstance(part, InlineBinaryPart):
        return {
            "inline_data": {
                "mime_type": part.mime_type,
                "data": base64.b64encode(part.data).decode("ascii"),
            }
        }
    return {"file_data": {"mime_type": part.mime_type, "file_uri": part.provider_file_ref}}


def _parse_file(data: dict[str, Any], *, fallback_mime: str) -> RemoteFile:
    info = data.get("file") if isinstance(data.get("file"), dict) else data
    name = info.get("name")
    if not name:
        raise ProviderError("Gemini file response does not contain a file name")
    return RemoteFile(
        name=name,
        uri=info.get("uri") or "",
        mime_type=info.get("mimeType") or info.get("mime_type") or fallback_mime,
        state=FileState.from_wire(info.get("state")),
    )


def _extract_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def _extract_error(response: httpx.Response) -> tuple[str, str]:
    try:
        data = response.json()
    except ValueError:  # pragma: no cover - fallback
        return "", response.text[:500]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return (error.get("status") or "").strip(), (error.get("message") or "").strip()
    return "", str(data)[:500]


def _mask_inline_data(obj: Any) -> Any:
    """Remove inline_data payloads to avoid logging base64 blobs."""
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if key in {"inline_data", "inlineData"} and isinstance(value, dict):
                result[key] = {k: v for k, v in value.items() if k != "data"}
            else:
                result[key] = _mask_inline_data(value)
        return result
    if isinstance(obj, list):
        return [_mask_inline_data(item) for item in obj]
    return obj


def _response_summary(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    first = candidates[0] if candidates else {}
    usage = data.get("usageMetadata") or {}
    return (
        f"candidates={len(candidates)} "
        f"finish_reason={first.get('finishReason')} "
        f"text_len={len(_extract_text(data))} "
        f"prompt_tokens={usage.get('promptTokenCount')} "
        f"output_tokens={usage.get('candidatesTokenCount')}"
    )
