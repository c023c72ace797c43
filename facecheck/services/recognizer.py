"""
Client for the external face-recognition service.

The service is a black box exposing three endpoints:

* ``GET  /health``    — liveness check
* ``POST /recognize`` — image in, ``{"name": ..., "confidence": ...}`` out
* ``POST /enroll``    — ``name`` + image in, ``{"success": ..., "name": ...}`` out

Every call is a single attempt with a bounded timeout; failures raise
:class:`RecognizerError` and are never retried here.
"""

from __future__ import annotations

import base64
import logging
import math
from dataclasses import dataclass
from typing import Any

import httpx

from facecheck.core.config import settings

logger = logging.getLogger(__name__)


class RecognizerError(Exception):
    """The recognizer could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class Recognition:
    name: str | None
    confidence: float
    raw: dict[str, Any]


@dataclass
class Enrollment:
    success: bool
    name: str | None
    message: str | None
    raw: dict[str, Any]


def _upstream_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("detail")
        return str(msg) if msg else None
    return None


class RecognizerClient:
    def __init__(
        self,
        base_url: str,
        *,
        recognize_timeout: float = 30.0,
        enroll_timeout: float = 10.0,
        health_timeout: float = 5.0,
        payload_mode: str = "multipart",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.recognize_timeout = recognize_timeout
        self.enroll_timeout = enroll_timeout
        self.health_timeout = health_timeout
        self.payload_mode = payload_mode
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=self._transport,
        )

    async def _post(self, path: str, timeout: float, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client(timeout) as client:
                response = await client.post(path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Recognizer %s timed out after %ss", path, timeout)
            raise RecognizerError(f"Recognizer timed out on {path}") from exc
        except httpx.HTTPError as exc:
            logger.error("Recognizer %s unreachable: %s", path, exc)
            raise RecognizerError(f"Recognizer unreachable: {exc}") from exc

        if response.is_error:
            upstream = _upstream_message(response)
            logger.error(
                "Recognizer %s returned %d: %s", path, response.status_code, response.text[:500]
            )
            raise RecognizerError(
                upstream or f"Recognizer returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RecognizerError(f"Recognizer sent a non-JSON reply on {path}") from exc
        if not isinstance(body, dict):
            raise RecognizerError(f"Recognizer sent an unexpected reply on {path}")
        return body

    async def health(self) -> bool:
        """``True`` on a 2xx from ``/health``; transport errors propagate."""
        try:
            async with self._client(self.health_timeout) as client:
                response = await client.get("/health")
        except httpx.HTTPError as exc:
            raise RecognizerError(f"Recognizer unreachable: {exc}") from exc
        return response.is_success

    async def recognize(self, image: bytes) -> Recognition:
        if self.payload_mode == "json":
            kwargs: dict[str, Any] = {
                "json": {"image": base64.b64encode(image).decode("ascii")}
            }
        else:
            kwargs = {"files": {"file": ("capture.jpg", image, "image/jpeg")}}

        body = await self._post("/recognize", self.recognize_timeout, **kwargs)
        logger.info("Recognizer response: %s", body)

        name = body.get("name")
        try:
            confidence = float(body.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        if not math.isfinite(confidence):
            logger.warning("Recognizer sent a non-finite confidence %r", body.get("confidence"))
            confidence = 0.0
        return Recognition(name=str(name) if name else None, confidence=confidence, raw=body)

    async def enroll(self, name: str, image: bytes) -> Enrollment:
        logger.info("Enrolling %s at %s/enroll", name, self.base_url)
        body = await self._post(
            "/enroll",
            self.enroll_timeout,
            data={"name": name},
            files={"file": ("enrollment.jpg", image, "image/jpeg")},
        )
        enrolled = body.get("name")
        return Enrollment(
            success=bool(body.get("success")),
            name=str(enrolled) if enrolled else None,
            message=body.get("message"),
            raw=body,
        )


def get_recognizer() -> RecognizerClient:
    """FastAPI dependency — a client configured from application settings."""
    return RecognizerClient(
        settings.RECOGNIZER_URL,
        recognize_timeout=settings.RECOGNIZER_TIMEOUT_SECONDS,
        enroll_timeout=settings.RECOGNIZER_ENROLL_TIMEOUT_SECONDS,
        health_timeout=settings.RECOGNIZER_HEALTH_TIMEOUT_SECONDS,
        payload_mode=settings.RECOGNIZER_PAYLOAD_MODE,
    )
