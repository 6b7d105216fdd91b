"""
Automation session interface.

The capturer only needs four read operations from whatever drives the
browser. ``PlaywrightSession`` adapts a Playwright async ``Page``, recording
console messages as the browser log and network traffic as the driver log.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol, runtime_checkable


@runtime_checkable
class AutomationSession(Protocol):
    """Diagnostics surface of an active browser/automation session."""

    async def screenshot(self) -> bytes:
        ...

    async def page_source(self) -> str:
        ...

    async def browser_logs(self) -> List[Any]:
        ...

    async def driver_logs(self) -> List[Any]:
        ...


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class PlaywrightSession:
    """Adapter exposing a Playwright page as an AutomationSession."""

    def __init__(self, page, full_page: bool = True):
        self.page = page
        self.full_page = full_page
        self._console: List[Dict[str, Any]] = []
        self._network: List[Dict[str, Any]] = []

        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)
        page.on("request", self._on_request)
        page.on("response", self._on_response)
        page.on("requestfailed", self._on_request_failed)

    def _on_console(self, message) -> None:
        self._console.append({
            "level": message.type,
            "message": message.text,
            "timestamp": _timestamp(),
        })

    def _on_page_error(self, error) -> None:
        self._console.append({
            "level": "pageerror",
            "message": str(error),
            "timestamp": _timestamp(),
        })

    def _on_request(self, request) -> None:
        self._network.append({
            "event": "request",
            "method": request.method,
            "url": request.url,
            "timestamp": _timestamp(),
        })

    def _on_response(self, response) -> None:
        self._network.append({
            "event": "response",
            "status": response.status,
            "url": response.url,
            "timestamp": _timestamp(),
        })

    def _on_request_failed(self, request) -> None:
        self._network.append({
            "event": "requestfailed",
            "method": request.method,
            "url": request.url,
            "failure": request.failure,
            "timestamp": _timestamp(),
        })

    async def screenshot(self) -> bytes:
        return await self.page.screenshot(full_page=self.full_page)

    async def page_source(self) -> str:
        return await self.page.content()

    async def browser_logs(self) -> List[Any]:
        return list(self._console)

    async def driver_logs(self) -> List[Any]:
        return list(self._network)
