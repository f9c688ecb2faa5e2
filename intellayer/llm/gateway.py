"""LLM collaborator.

The serving path hands a version's config and the validated input to an
IntelligenceGateway and gets a JSON object back. Retries, prompt assembly
and output parsing belong to the gateway service, not to this layer.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The LLM collaborator failed or returned something unusable."""

    code = "LLM_ERROR"
    status_code = 503

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class GenerationResult:
    data: dict[str, Any]
    duration_ms: int
    model: str | None = None


class IntelligenceGateway(ABC):
    @abstractmethod
    async def generate(
        self, input: dict[str, Any], config: dict[str, Any],
    ) -> GenerationResult:
        ...


class HttpGateway(IntelligenceGateway):
    """Posts ``{"input", "config"}`` to an HTTP gateway and expects ``{"data": {...}}``."""

    def __init__(self, url: str, *, timeout: float = 30.0, api_key: str = "") -> None:
        self._url = url
        self._timeout = timeout
        self._api_key = api_key

    async def generate(
        self, input: dict[str, Any], config: dict[str, Any],
    ) -> GenerationResult:
        body = {"input": input, "config": config}
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=body, headers=headers)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("LLM gateway timed out after %.1fs", self._timeout)
            raise GatewayError("LLM gateway timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning("LLM gateway returned HTTP %d", exc.response.status_code)
            raise GatewayError(
                f"LLM gateway returned HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("LLM gateway call failed: %s", exc)
            raise GatewayError("LLM gateway unavailable") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise GatewayError("LLM gateway response has no data object")

        return GenerationResult(
            data=data,
            duration_ms=int((time.perf_counter() - started) * 1000),
            model=payload.get("model"),
        )
