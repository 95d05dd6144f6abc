"""Render charts to images with a pool of browser connections."""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Deque, Iterator, Optional

from .cdp import CdpBrowser, CdpError
from .registry import get_library
from .schemas import Base64Response, RenderOptions, RenderRequest
from .template import TemplateError, generate_html

logger = logging.getLogger(__name__)

MIN_POOL_SIZE = 1
MAX_POOL_SIZE = 10
MAX_CONCURRENT_RENDERS = 20
SCALE_UP_THRESHOLD = 0.8  # scale up when 80% of the pool is in use
MAX_READY_ATTEMPTS = 50
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_QUALITY = 90
ELEMENT_TIMEOUT = 10.0

DEVTOOLS_ENV_VAR = "CHROME_DEVTOOLS_URL"
DEFAULT_DEVTOOLS_ENDPOINT = "http://127.0.0.1:9222"

BrowserFactory = Callable[[], Any]


class RenderError(RuntimeError):
    """A render could not be completed."""


@dataclass(frozen=True)
class HealthStatus:
    """Snapshot of the pool and of the render slots."""

    pool_size: int
    total_capacity: int
    available_permits: int
    max_concurrent: int


def mime_type_for(image_format: str) -> str:
    """Return the MIME type of an output format."""
    if image_format == "png":
        return "image/png"
    if image_format in ("jpeg", "jpg"):
        return "image/jpeg"
    if image_format == "pdf":
        return "application/pdf"
    return "application/octet-stream"


class BrowserInstance:
    """A browser connection together with the time it last answered."""

    def __init__(self, browser: Any) -> None:
        self.browser = browser
        self.last_health_check = time.monotonic()

    def is_healthy(self) -> bool:
        try:
            self.browser.get_version()
        except (CdpError, OSError):
            return False
        self.last_health_check = time.monotonic()
        return True

    def new_tab(self) -> Any:
        try:
            return self.browser.new_tab()
        except CdpError as exc:
            raise RenderError(f"Failed to create tab: {exc}") from exc

    def close(self) -> None:
        try:
            self.browser.close()
        except (CdpError, OSError) as exc:
            logger.warning("Failed to close browser connection: %s", exc)


class BrowserPool:
    """Idle browser instances, grown on demand up to ``max_size``."""

    def __init__(self, min_size: int, max_size: int, factory: BrowserFactory) -> None:
        self.max_size = max_size
        self._factory = factory
        self._idle: Deque[BrowserInstance] = deque()
        self._lock = threading.Lock()

        for index in range(min_size):
            try:
                instance = self._spawn()
            except RenderError as exc:
                logger.error("Failed to create browser instance %d: %s", index, exc)
                continue
            if len(self._idle) >= max_size:
                logger.error("Failed to push browser %d to pool", index)
                instance.close()
                continue
            self._idle.append(instance)

        if not self._idle:
            raise RenderError("Failed to initialize browser pool")
        self._current_size = len(self._idle)
        logger.info(
            "Browser pool initialized with %d/%d instances (max: %d)",
            self._current_size,
            min_size,
            max_size,
        )

    @property
    def current_size(self) -> int:
        with self._lock:
            return self._current_size

    def _spawn(self) -> BrowserInstance:
        try:
            return BrowserInstance(self._factory())
        except (CdpError, OSError) as exc:
            raise RenderError(f"Failed to launch browser: {exc}") from exc

    def acquire(self) -> BrowserInstance:
        """Take an idle healthy instance, or create one."""
        with self._lock:
            instance = self._idle.popleft() if self._idle else None
        if instance is not None:
            if instance.is_healthy():
                return instance
            logger.warning("Unhealthy browser detected, creating new instance")
            instance.close()

        with self._lock:
            current = self._current_size
            available = len(self._idle)
        usage_ratio = 1.0 - available / current

        if usage_ratio >= SCALE_UP_THRESHOLD and current < self.max_size:
            new_size = min(current + 1, self.max_size)
            logger.info(
                "Scaling up browser pool: %d -> %d (usage: %.1f%%)",
                current,
                new_size,
                usage_ratio * 100.0,
            )
            try:
                instance = self._spawn()
            except RenderError as exc:
                logger.error("Failed to scale up pool: %s", exc)
            else:
                with self._lock:
                    self._current_size = new_size
                return instance

        logger.debug("Creating temporary browser instance (pool exhausted)")
        return self._spawn()

    def release(self, instance: BrowserInstance) -> None:
        """Return ``instance`` to the pool, or drop it if unhealthy or surplus."""
        if not instance.is_healthy():
            logger.warning("Not returning unhealthy instance to pool")
            instance.close()
            return
        with self._lock:
            if len(self._idle) < self.max_size:
                self._idle.append(instance)
                return
        logger.debug("Pool full, dropping browser instance")
        instance.close()

    @contextmanager
    def lease(self) -> Iterator[BrowserInstance]:
        """Acquire an instance for the duration of a ``with`` block."""
        instance = self.acquire()
        try:
            yield instance
        finally:
            self.release(instance)


class RenderingEngine:
    """Renders requests in browser pages, limiting how many run at once.

    Without ``browser_factory`` each browser instance is a new connection to
    the DevTools endpoint named by ``CHROME_DEVTOOLS_URL``.
    """

    def __init__(
        self,
        min_pool_size: int = MIN_POOL_SIZE,
        max_pool_size: int = MAX_POOL_SIZE,
        max_concurrent: int = MAX_CONCURRENT_RENDERS,
        *,
        browser_factory: Optional[BrowserFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if browser_factory is None:
            endpoint = os.environ.get(DEVTOOLS_ENV_VAR, DEFAULT_DEVTOOLS_ENDPOINT)
            browser_factory = partial(CdpBrowser, endpoint)
        self._pool = BrowserPool(min_pool_size, max_pool_size, browser_factory)
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._active = 0
        self._active_lock = threading.Lock()
        self._sleep = sleep

    @property
    def available_permits(self) -> int:
        with self._active_lock:
            return self._max_concurrent - self._active

    async def render(self, request: RenderRequest) -> bytes:
        """Render ``request`` and return the image or PDF bytes."""
        async with self._semaphore:
            with self._active_lock:
                self._active += 1
            try:
                logger.debug(
                    "Render started - Available permits: %d/%d",
                    self.available_permits,
                    MAX_CONCURRENT_RENDERS,
                )
                start = time.monotonic()
                result = await asyncio.to_thread(self._render_sync, request)
                logger.info(
                    "Render completed in %.3fs - Library: %s, Format: %s",
                    time.monotonic() - start,
                    request.library.name,
                    request.options.format,
                )
                return result
            finally:
                with self._active_lock:
                    self._active -= 1

    async def render_base64(self, request: RenderRequest) -> Base64Response:
        """Render ``request`` and return it base64 encoded with its MIME type."""
        result = await self.render(request)
        return Base64Response(
            data=base64.b64encode(result).decode("ascii"),
            mime_type=mime_type_for(request.options.format),
        )

    def health_check(self) -> HealthStatus:
        return HealthStatus(
            pool_size=self._pool.current_size,
            total_capacity=self._pool.max_size,
            available_permits=self.available_permits,
            max_concurrent=MAX_CONCURRENT_RENDERS,
        )

    def _render_sync(self, request: RenderRequest) -> bytes:
        try:
            html = generate_html(request)
        except TemplateError as exc:
            raise RenderError(str(exc)) from exc

        try:
            with self._pool.lease() as instance:
                tab = instance.new_tab()
                try:
                    return self._draw(tab, request, html)
                finally:
                    try:
                        tab.close()
                    except CdpError as exc:
                        logger.warning("Failed to close tab during cleanup: %s", exc)
                    else:
                        logger.debug("Tab closed successfully")
        except CdpError as exc:
            raise RenderError(str(exc)) from exc

    def _draw(self, tab: Any, request: RenderRequest, html: str) -> bytes:
        options = request.options
        scale = options.device_scale_factor if options.device_scale_factor is not None else 1.0
        tab.set_viewport(options.width, options.height, scale)

        encoded = base64.b64encode(html.encode("utf-8")).decode("ascii")
        tab.navigate_to(f"data:text/html;base64,{encoded}")

        try:
            template = get_library(request.library.name)
        except LookupError as exc:
            raise RenderError(str(exc)) from None

        tab.wait_for_element(template.wait_selector, ELEMENT_TIMEOUT)
        self._wait_for_render_ready(tab, options)
        return self._capture(tab, options)

    def _wait_for_render_ready(self, tab: Any, options: RenderOptions) -> None:
        interval_ms = (
            options.poll_interval_ms if options.poll_interval_ms is not None else DEFAULT_POLL_INTERVAL_MS
        )
        interval = interval_ms / 1000
        for attempt in range(MAX_READY_ATTEMPTS):
            if tab.evaluate("window.renderReady === true") is True:
                logger.debug("Render ready after %d attempts", attempt)
                break
            error = tab.evaluate("window.renderError")
            if isinstance(error, str):
                raise RenderError(f"Render initialization failed: {error}")
            self._sleep(interval)
        else:
            raise RenderError(
                f"Timeout waiting for render to complete after {MAX_READY_ATTEMPTS} attempts"
            )
        self._sleep(interval)

    @staticmethod
    def _capture(tab: Any, options: RenderOptions) -> bytes:
        quality = options.quality if options.quality is not None else DEFAULT_QUALITY
        if options.format == "png":
            return tab.capture_screenshot("png", quality)
        if options.format in ("jpeg", "jpg"):
            return tab.capture_screenshot("jpeg", quality)
        if options.format == "pdf":
            return tab.print_to_pdf()
        raise RenderError(f"Unsupported format: {options.format}")