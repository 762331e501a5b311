"""Async client for the Gemini generative language REST API.

Audio is sent through the resumable Files API, polled until the provider
marks it ``ACTIVE`` and then referenced from a ``generateContent`` call.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Optional

import httpx
from fastapi.concurrency import run_in_threadpool

from salesmind.config.settings import GeminiConfig, settings
from salesmind.services.analysis_contract import AnalysisResult, parse_analysis
from salesmind.services.prompts import TRANSCRIPTION_PROMPT, build_analysis_prompt

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "mp3": "audio/mp3",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "mp4": "audio/mp4",
}
DEFAULT_MIME_TYPE = "audio/mpeg"
BLOCKING_FINISH_REASONS = frozenset({"SAFETY", "PROHIBITED_CONTENT"})

_INTRO_PATTERN = re.compile(r"^.*?transcrição.*?áudio[:\s]*", re.IGNORECASE)
_START_MARKER_PATTERN = re.compile(r"^.*início da transcrição.*$", re.IGNORECASE | re.MULTILINE)
_END_MARKER_PATTERN = re.compile(r"fim da transcrição.*$", re.IGNORECASE | re.DOTALL)
_BLANK_LINE_PATTERN = re.compile(r"^\s*\n", re.MULTILINE)


class GeminiError(RuntimeError):
    """Base class for every failure talking to Gemini."""


class GeminiNotConfiguredError(GeminiError):
    """Raised when a call is attempted without ``GEMINI_API_KEY``."""


class GeminiApiError(GeminiError):
    """Raised on non-success HTTP responses or transport failures."""

    def __init__(self, status_code: Optional[int], body: str) -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"Gemini request failed: {body}")
        else:
            super().__init__(f"Gemini API returned {status_code}: {body}")


class GeminiTimeoutError(GeminiError):
    """Raised when a request or the file-activation wait times out."""


class ContentBlockedError(GeminiError):
    """Raised when the provider refuses to answer for safety reasons."""


class RemoteProcessingFailedError(GeminiError):
    """Raised when the uploaded file ends in the ``FAILED`` state."""


def resolve_mime_type(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def clean_transcription(text: str) -> str:
    """Drop boilerplate the model sometimes wraps around a transcript."""

    cleaned = _INTRO_PATTERN.sub("", text, count=1)
    cleaned = _START_MARKER_PATTERN.sub("", cleaned, count=1)
    cleaned = _END_MARKER_PATTERN.sub("", cleaned, count=1)
    cleaned = _BLANK_LINE_PATTERN.sub("", cleaned)
    return cleaned.strip()


def extract_text(payload: dict[str, Any]) -> str:
    """Return the first candidate's text, raising when the answer was blocked."""

    block_reason = (payload.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        raise ContentBlockedError(f"Prompt blocked by provider: {block_reason}")

    candidates = payload.get("candidates") or []
    if not candidates:
        raise GeminiError("Gemini response has no candidates")

    candidate = candidates[0] or {}
    finish_reason = candidate.get("finishReason")
    if finish_reason in BLOCKING_FINISH_REASONS:
        raise ContentBlockedError(f"Response blocked by provider: {finish_reason}")

    parts = (candidate.get("content") or {}).get("parts") or []
    text = parts[0].get("text") if parts and isinstance(parts[0], dict) else None
    if not isinstance(text, str):
        raise GeminiError("Gemini response has no text content")
    return text


class GeminiClient:
    """Transcribe and analyze sales calls with Gemini."""

    def __init__(
        self,
        config: GeminiConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or settings.gemini
        self._transport = transport
        self._base_url = self._config.base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    def _require_api_key(self) -> str:
        if not self._config.is_configured:
            raise GeminiNotConfiguredError("GEMINI_API_KEY is not configured")
        return self._config.api_key.get_secret_value().strip()

    def _http(self, api_key: str) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            self._config.request_timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self._transport,
            headers={"x-goog-api-key": api_key},
        )

    async def _send(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise GeminiTimeoutError(f"Gemini request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise GeminiApiError(None, str(exc)) from exc

    @staticmethod
    def _ensure_ok(response: httpx.Response) -> None:
        if response.status_code != 200:
            raise GeminiApiError(response.status_code, response.text)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise GeminiApiError(response.status_code, f"Invalid JSON body: {exc}") from exc
        if not isinstance(data, dict):
            raise GeminiApiError(response.status_code, "Unexpected JSON body")
        return data

    async def _start_upload(
        self,
        client: httpx.AsyncClient,
        display_name: str,
        size: int,
        mime_type: str,
    ) -> str:
        response = await self._send(
            client,
            "POST",
            f"{self._base_url}/upload/v1beta/files",
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(size),
                "X-Goog-Upload-Header-Content-Type": mime_type,
            },
            json={"file": {"display_name": display_name}},
        )
        self._ensure_ok(response)
        upload_url = response.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise GeminiApiError(response.status_code, "No upload URL in response")
        return upload_url

    async def _upload_bytes(self, client: httpx.AsyncClient, upload_url: str, content: bytes) -> str:
        response = await self._send(
            client,
            "POST",
            upload_url,
            headers={
                "X-Goog-Upload-Offset": "0",
                "X-Goog-Upload-Command": "upload, finalize",
            },
            content=content,
        )
        self._ensure_ok(response)
        file_uri = (self._json(response).get("file") or {}).get("uri")
        if not file_uri:
            raise GeminiApiError(response.status_code, "No file URI in upload response")
        return file_uri

    async def _wait_until_active(self, client: httpx.AsyncClient, file_uri: str) -> None:
        file_name = file_uri.rstrip("/").rsplit("/", 1)[-1]
        status_url = f"{self._base_url}/v1beta/files/{file_name}"
        attempts = self._config.poll_max_attempts

        for attempt in range(1, attempts + 1):
            response = await self._send(client, "GET", status_url)
            if response.status_code == 200:
                info = self._json(response)
                state = info.get("state")
                if state == "ACTIVE":
                    return
                if state == "FAILED":
                    error = info.get("error") or "unknown error"
                    raise RemoteProcessingFailedError(f"Remote file processing failed: {error}")
            elif 400 <= response.status_code < 500 and response.status_code != 429:
                raise GeminiApiError(response.status_code, response.text)
            else:
                logger.warning("File status poll %s returned %s", attempt, response.status_code)

            if attempt < attempts:
                await asyncio.sleep(self._config.poll_interval_seconds)

        raise GeminiTimeoutError(
            f"File {file_name} did not become ACTIVE after {attempts} attempts"
        )

    async def _generate(
        self,
        client: httpx.AsyncClient,
        prompt: str,
        *,
        file_uri: str | None = None,
        mime_type: str | None = None,
    ) -> str:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if file_uri:
            file_data = {"file_uri": file_uri}
            if mime_type:
                file_data["mime_type"] = mime_type
            parts.append({"file_data": file_data})

        response = await self._send(
            client,
            "POST",
            f"{self._base_url}/v1beta/models/{self._config.model}:generateContent",
            json={"contents": [{"parts": parts}]},
        )
        self._ensure_ok(response)
        return extract_text(self._json(response))

    async def transcribe(self, file_path: str) -> str:
        """Upload the audio at ``file_path`` and return its cleaned transcript."""

        api_key = self._require_api_key()
        path = Path(file_path)
        try:
            content = await run_in_threadpool(path.read_bytes)
        except OSError as exc:
            raise GeminiError(f"Audio file not readable: {file_path} ({exc})") from exc

        mime_type = resolve_mime_type(path.name)
        async with self._http(api_key) as client:
            upload_url = await self._start_upload(client, path.name, len(content), mime_type)
            file_uri = await self._upload_bytes(client, upload_url, content)
            logger.info("Uploaded %s to Gemini as %s", path.name, file_uri)
            await self._wait_until_active(client, file_uri)
            raw = await self._generate(
                client,
                TRANSCRIPTION_PROMPT,
                file_uri=file_uri,
                mime_type=mime_type,
            )
        return clean_transcription(raw)

    async def analyze(self, transcript: str) -> AnalysisResult:
        """Ask Gemini for the structured sales analysis of ``transcript``."""

        api_key = self._require_api_key()
        async with self._http(api_key) as client:
            raw = await self._generate(client, build_analysis_prompt(transcript))
        return parse_analysis(raw)


__all__ = [
    "ContentBlockedError",
    "GeminiApiError",
    "GeminiClient",
    "GeminiError",
    "GeminiNotConfiguredError",
    "GeminiTimeoutError",
    "RemoteProcessingFailedError",
    "clean_transcription",
    "extract_text",
    "resolve_mime_type",
]
