"""
Completion Gateway for the Muse Generation Layer
================================================

Stateless transport to the Gemini generateContent endpoint (and the
predictLongRunning endpoint for video models, polled until the operation is
done). Sends a structured request, returns the raw JSON payload, and converts
every failure into a ProviderCallError that already carries its retry
classification. Nothing above this module inspects raw provider errors.
"""

import asyncio
import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

import json_utils as json
from config import config
from interfaces import ProviderTransport


logger = logging.getLogger(__name__)


class ErrorClass(str, Enum):
    """Retry classification of a failed provider call"""
    TIMEOUT = "timeout"
    OVERLOADED = "overloaded"
    CONTENT_TOO_LONG = "content_too_long"
    TERMINAL = "terminal"


RETRYABLE_CLASSES = frozenset({ErrorClass.TIMEOUT, ErrorClass.OVERLOADED, ErrorClass.CONTENT_TOO_LONG})

OVERLOAD_STATUSES = frozenset({429, 503})
TIMEOUT_STATUSES = frozenset({408, 504})

OVERLOAD_MARKERS = (
    "429",
    "503",
    "unavailable",
    "overloaded",
    "resource_exhausted",
    "resource exhausted",
    "rate limit",
    "quota",
)
TIMEOUT_MARKERS = (
    "timeout",
    "timed out",
    "deadline_exceeded",
    "deadline exceeded",
)
CONTENT_TOO_LONG_MARKERS = (
    "too long",
    "too large",
    "exceeds the maximum",
    "token count exceeds",
    "token limit",
    "request payload size exceeds",
)


class ProviderError(RuntimeError):
    """Error reported by the provider (or the transport talking to it)."""

    def __init__(self, message: str, status: Optional[int] = None, provider_status: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.provider_status = provider_status


class MalformedResponseError(ProviderError):
    """A 2xx payload that could not be decoded into the expected completion kind."""


class ProviderCallError(RuntimeError):
    """A provider failure that has been classified for the fallback chain."""

    def __init__(self, model_id: str, error_class: ErrorClass, cause: BaseException):
        super().__init__(f"{model_id} failed ({error_class.value}): {cause}")
        self.model_id = model_id
        self.error_class = error_class
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return self.error_class in RETRYABLE_CLASSES


def classify_error(exc: BaseException) -> ErrorClass:
    """Map an exception to its retry class using status codes and message markers."""
    if isinstance(exc, ProviderCallError):
        return exc.error_class
    if isinstance(exc, MalformedResponseError):
        return ErrorClass.TERMINAL
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorClass.TIMEOUT

    message = str(exc).lower()

    # Size problems often arrive as 400s, check them before status codes
    if any(marker in message for marker in CONTENT_TOO_LONG_MARKERS):
        return ErrorClass.CONTENT_TOO_LONG

    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status in OVERLOAD_STATUSES:
        return ErrorClass.OVERLOADED
    if status in TIMEOUT_STATUSES:
        return ErrorClass.TIMEOUT
    if status == 413:
        return ErrorClass.CONTENT_TOO_LONG

    if any(marker in message for marker in OVERLOAD_MARKERS):
        return ErrorClass.OVERLOADED
    if any(marker in message for marker in TIMEOUT_MARKERS):
        return ErrorClass.TIMEOUT
    return ErrorClass.TERMINAL


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) in RETRYABLE_CLASSES


# Fields the REST API expects at the top level rather than inside generationConfig
TOP_LEVEL_CONFIG_KEYS = ("systemInstruction", "tools", "toolConfig", "safetySettings")


def build_payload(contents: List[Dict[str, Any]], provider_config: Dict[str, Any]) -> Dict[str, Any]:
    """Split a flat call config into the generateContent request body."""
    generation_config = dict(provider_config or {})
    payload: Dict[str, Any] = {"contents": contents}
    for key in TOP_LEVEL_CONFIG_KEYS:
        if key in generation_config:
            payload[key] = generation_config.pop(key)
    if generation_config:
        payload["generationConfig"] = generation_config
    return payload


# Models served by predictLongRunning instead of generateContent
LONG_RUNNING_MODEL_PREFIXES = ("veo-",)


def build_prediction_payload(contents: List[Dict[str, Any]], provider_config: Dict[str, Any]) -> Dict[str, Any]:
    """Fold the last user turn into a predictLongRunning instance: its text is the prompt, its first inline image the seed."""
    parts = contents[-1].get("parts", []) if contents else []
    instance: Dict[str, Any] = {
        "prompt": "".join(part["text"] for part in parts if isinstance(part.get("text"), str)),
    }
    for part in parts:
        inline = part.get("inlineData")
        if isinstance(inline, dict) and inline.get("data"):
            instance["image"] = {
                "bytesBase64Encoded": inline["data"],
                "mimeType": inline.get("mimeType") or "image/png",
            }
            break
    return {"instances": [instance], "parameters": dict(provider_config or {})}


class GeminiRestTransport:
    """aiohttp transport for the generateContent and predictLongRunning REST endpoints"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else config.GOOGLE_API_KEY
        self.base_url = (base_url or config.GEMINI_API_BASE).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.HTTP_TIMEOUT_SECONDS
        self.poll_interval_seconds = poll_interval_seconds or config.VIDEO_POLL_INTERVAL_SECONDS
        self.http_session: Optional[aiohttp.ClientSession] = None

        if not self.api_key:
            logger.warning("Google API key not found; provider calls will be rejected")

    def _endpoint(self, model_id: str) -> str:
        return f"{self.base_url}/models/{model_id}:generateContent"

    @staticmethod
    def is_long_running(model_id: str) -> bool:
        return model_id.startswith(LONG_RUNNING_MODEL_PREFIXES)

    def _session(self) -> aiohttp.ClientSession:
        if self.http_session is None or self.http_session.closed:
            connector = aiohttp.TCPConnector(
                limit=50,
                keepalive_timeout=60,
                enable_cleanup_closed=True,
                ttl_dns_cache=3600,
            )
            self.http_session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
        return self.http_session

    async def call(self, model_id: str, contents: List[Dict[str, Any]], provider_config: Dict[str, Any]) -> Dict[str, Any]:
        if self.is_long_running(model_id):
            return await self._run_operation(model_id, contents, provider_config)
        return await self._request_json("POST", self._endpoint(model_id), build_payload(contents, provider_config))

    async def _request_json(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        data = json.dumps_bytes(payload) if payload is not None else None
        async with self._session().request(method, url, data=data, headers=headers) as response:
            body = await response.read()
            if response.status >= 400:
                raise self._error_from_body(response.status, body)
            try:
                return json.loads(body)
            except json.JSONDecodeError as exc:
                raise MalformedResponseError(f"Provider returned non-JSON body: {exc}") from exc

    async def _run_operation(
        self,
        model_id: str,
        contents: List[Dict[str, Any]],
        provider_config: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Start a predictLongRunning job and poll it until it is done."""
        operation = await self._request_json(
            "POST",
            f"{self.base_url}/models/{model_id}:predictLongRunning",
            build_prediction_payload(contents, provider_config),
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        while isinstance(operation, dict) and not operation.get("done"):
            name = operation.get("name")
            if not name:
                raise MalformedResponseError("Long-running operation has no name")
            if loop.time() >= deadline:
                raise ProviderError(f"Operation {name} timed out after {self.timeout_seconds:.0f}s")
            await asyncio.sleep(self.poll_interval_seconds)
            operation = await self._request_json("GET", f"{self.base_url}/{name}")

        if isinstance(operation, dict) and isinstance(operation.get("error"), dict):
            error = operation["error"]
            label = error.get("status") or error.get("code") or "OPERATION_FAILED"
            raise ProviderError(
                f"{label}: {error.get('message') or 'Operation failed'}",
                provider_status=error.get("status"),
            )
        return operation

    @staticmethod
    def _error_from_body(status: int, body: bytes) -> ProviderError:
        provider_status = None
        message = body.decode("utf-8", errors="replace")[:500]
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
            error = parsed["error"]
            provider_status = error.get("status")
            message = error.get("message") or message
        label = f"{status} {provider_status}" if provider_status else str(status)
        return ProviderError(f"{label}: {message}", status=status, provider_status=provider_status)

    async def close(self):
        """Close the HTTP session if one was opened"""
        if self.http_session and not self.http_session.closed:
            await self.http_session.close()
            logger.info("HTTP session closed successfully")
        self.http_session = None


class CompletionGateway:
    """Sends one request to one model and classifies any failure."""

    def __init__(self, transport: Optional[ProviderTransport] = None):
        self.transport = transport or GeminiRestTransport()

    async def send(
        self,
        model_id: str,
        contents: List[Dict[str, Any]],
        provider_config: Dict[str, Any],
        *,
        action: str = "generation",
    ) -> Dict[str, Any]:
        try:
            raw = await self.transport.call(model_id, contents, provider_config)
        except ProviderCallError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error_class = classify_error(exc)
            logger.debug("Provider %s via %s classified as %s: %s", action, model_id, error_class.value, exc)
            raise ProviderCallError(model_id, error_class, exc) from exc

        if not isinstance(raw, dict):
            cause = MalformedResponseError(f"Expected a JSON object from {model_id}, got {type(raw).__name__}")
            raise ProviderCallError(model_id, ErrorClass.TERMINAL, cause)
        return raw

    async def close(self):
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()


_shared_gateway: Optional[CompletionGateway] = None
_gateway_init_lock = threading.Lock()


def get_gateway() -> CompletionGateway:
    """Return the shared CompletionGateway, creating it on first use."""
    global _shared_gateway
    if _shared_gateway is None:
        with _gateway_init_lock:
            if _shared_gateway is None:
                _shared_gateway = CompletionGateway()
    return _shared_gateway
