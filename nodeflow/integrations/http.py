"""HTTP transport used by HTTP Request and chat-completion strategy nodes."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import aiohttp

from ..core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class HttpResponse:
    status: int
    reason: str
    body: Any

    @property
    def ok(self) -> bool:
        return self.status < 400


class HttpTransport(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> HttpResponse:
        ...


class AiohttpTransport:
    """Sends one request per call through a short-lived aiohttp session."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> HttpResponse:
        kwargs: Dict[str, Any] = {"headers": headers or {}}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = str(body)

        logger.debug(f"{method} {url}")
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text()
                return HttpResponse(
                    status=response.status,
                    reason=response.reason or "",
                    body=_decode_body(text, response.headers.get("Content-Type", "")),
                )


def _decode_body(text: str, content_type: str) -> Any:
    if "json" not in content_type.lower():
        return text
    try:
        return json.loads(text) if text else None
    except json.JSONDecodeError:
        return text
