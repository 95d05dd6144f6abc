"""A small DevTools protocol client for a browser that is already running."""

from __future__ import annotations

import base64
import binascii
import itertools
import json
import threading
import time
import urllib.request
from typing import Any, Callable, Dict, Optional

import websocket

DEFAULT_TIMEOUT = 30.0
_POLL_INTERVAL = 0.1

Connector = Callable[[str, float], Any]


class CdpError(RuntimeError):
    """A DevTools call failed or the connection to the browser broke."""


def _connect(url: str, timeout: float) -> Any:
    return websocket.create_connection(url, timeout=timeout, suppress_origin=True)


def _resolve_ws_url(endpoint: str, timeout: float) -> str:
    if endpoint.startswith(("ws://", "wss://")):
        return endpoint
    version_url = endpoint.rstrip("/") + "/json/version"
    try:
        with urllib.request.urlopen(version_url, timeout=timeout) as response:
            info = json.load(response)
    except (OSError, ValueError) as exc:
        raise CdpError(f"Cannot reach DevTools endpoint {endpoint}: {exc}") from exc
    try:
        return str(info["webSocketDebuggerUrl"])
    except (KeyError, TypeError):
        raise CdpError(f"DevTools endpoint {endpoint} reported no debugger URL") from None


def _decode(result: Dict[str, Any], method: str) -> bytes:
    try:
        return base64.b64decode(result["data"], validate=True)
    except (KeyError, TypeError, binascii.Error) as exc:
        raise CdpError(f"{method}: malformed data in reply") from exc


class CdpBrowser:
    """One connection to a browser's DevTools endpoint.

    ``endpoint`` is either the browser's ``ws://`` debugger URL or the
    ``http://host:port`` address it serves DevTools on.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connector: Connector = _connect,
    ) -> None:
        self.timeout = timeout
        ws_url = _resolve_ws_url(endpoint, timeout)
        try:
            self._socket = connector(ws_url, timeout)
        except (OSError, websocket.WebSocketException) as exc:
            raise CdpError(f"Cannot connect to browser at {ws_url}: {exc}") from exc
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._closed = False

    def __enter__(self) -> "CdpBrowser":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _call(
        self, method: str, params: Optional[Dict[str, Any]] = None, session_id: Optional[str] = None
    ) -> Dict[str, Any]:
        message: Dict[str, Any] = {"id": next(self._ids), "method": method, "params": params or {}}
        if session_id is not None:
            message["sessionId"] = session_id
        with self._lock:
            if self._closed:
                raise CdpError(f"{method}: connection is closed")
            try:
                self._socket.send(json.dumps(message))
                while True:
                    reply = json.loads(self._socket.recv())
                    if reply.get("id") == message["id"]:
                        break
            except (OSError, ValueError, websocket.WebSocketException) as exc:
                raise CdpError(f"{method}: connection failed: {exc}") from exc
        error = reply.get("error")
        if error is not None:
            text = error.get("message", error) if isinstance(error, dict) else error
            raise CdpError(f"{method}: {text}")
        return reply.get("result") or {}

    def get_version(self) -> Dict[str, Any]:
        """Return the browser's version information."""
        return self._call("Browser.getVersion")

    def new_tab(self) -> "CdpTab":
        """Open a blank page and attach a session to it."""
        created = self._call("Target.createTarget", {"url": "about:blank"})
        try:
            target_id = created["targetId"]
        except KeyError:
            raise CdpError("Target.createTarget: no target id in reply") from None
        attached = self._call("Target.attachToTarget", {"targetId": target_id, "flatten": True})
        try:
            session_id = attached["sessionId"]
        except KeyError:
            raise CdpError("Target.attachToTarget: no session id in reply") from None
        return CdpTab(self, target_id, session_id)

    def close(self) -> None:
        """Close the connection; later calls raise CdpError."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._socket.close()
            except (OSError, websocket.WebSocketException):
                pass


class CdpTab:
    """A page of the browser, driven through its own session."""

    def __init__(self, browser: CdpBrowser, target_id: str, session_id: str) -> None:
        self.browser = browser
        self.target_id = target_id
        self.session_id = session_id

    def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.browser._call(method, params, self.session_id)

    def set_viewport(self, width: int, height: int, scale_factor: float = 1.0) -> None:
        """Size the page's viewport and set its device pixel ratio."""
        params: Dict[str, Any] = {
            "width": width,
            "height": height,
            "deviceScaleFactor": scale_factor,
            "mobile": False,
            "screenWidth": width,
            "screenHeight": height,
            "positionX": 0,
            "positionY": 0,
        }
        if scale_factor != 1.0:
            params["scale"] = scale_factor
        self._call("Emulation.setDeviceMetricsOverride", params)

    def navigate_to(self, url: str) -> None:
        """Start loading ``url``; raise CdpError if the browser refuses it."""
        result = self._call("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            raise CdpError(f"Navigation failed: {error_text}")

    def wait_for_element(self, selector: str, timeout: float) -> None:
        """Poll until an element matches ``selector``, for up to ``timeout`` seconds."""
        expression = f"document.querySelector({json.dumps(selector)}) !== null"
        deadline = time.monotonic() + timeout
        while True:
            if self.evaluate(expression) is True:
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CdpError(f"Timed out waiting for element {selector!r}")
            time.sleep(min(_POLL_INTERVAL, remaining))

    def evaluate(self, expression: str) -> Any:
        """Evaluate ``expression`` in the page and return its value."""
        result = self._call("Runtime.evaluate", {"expression": expression, "returnByValue": True})
        details = result.get("exceptionDetails")
        if details is not None:
            exception = details.get("exception") or {}
            text = exception.get("description") or details.get("text") or "unknown error"
            raise CdpError(f"Evaluation failed: {text}")
        return (result.get("result") or {}).get("value")

    def capture_screenshot(self, image_format: str = "png", quality: Optional[int] = None) -> bytes:
        """Return a screenshot of the page in ``image_format`` (png or jpeg)."""
        params: Dict[str, Any] = {"format": image_format, "fromSurface": True}
        if quality is not None:
            params["quality"] = quality
        return _decode(self._call("Page.captureScreenshot", params), "Page.captureScreenshot")

    def print_to_pdf(self) -> bytes:
        """Return the page printed as a PDF document."""
        return _decode(self._call("Page.printToPDF", {}), "Page.printToPDF")

    def close(self) -> None:
        """Close the page."""
        self.browser._call("Target.closeTarget", {"targetId": self.target_id})