"""
Shared headless browser for browser-backed capabilities (Tock).

Playwright objects belong to the event loop that created them, so the session owns one
asyncio loop on a dedicated thread and every browser coroutine runs there. Worker threads
check the session out one at a time; an error during a checkout discards the browser so the
next checkout starts from a fresh one.
"""
import asyncio
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator

from dropsniper.core.errors import ConfigurationError, NetworkTimeout, PlatformRejected, TransientUnavailable

logger = logging.getLogger(__name__)

# Launcher: async (headless) -> object with `browser` and `async close()`
Launcher = Callable[[bool], Awaitable[Any]]


class _LaunchedChromium:
    __slots__ = ("playwright", "browser")

    def __init__(self, playwright, browser):
        self.playwright = playwright
        self.browser = browser

    async def close(self) -> None:
        try:
            await self.browser.close()
        finally:
            await self.playwright.stop()


async def launch_chromium(headless: bool) -> _LaunchedChromium:
    try:
        from playwright.async_api import async_playwright
    except ImportError as e:
        raise ConfigurationError(
            "Playwright not installed. Run: pip install playwright && playwright install chromium"
        ) from e
    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(headless=headless)
    except Exception:
        await pw.stop()
        raise
    return _LaunchedChromium(pw, browser)


class BrowserHandle:
    """What a checkout yields. `run` executes a coroutine function against the live browser."""

    def __init__(self, session: "BrowserSession"):
        self._session = session

    def run(self, fn: Callable[[Any], Awaitable[Any]], timeout: float | None = None) -> Any:
        return self._session._run_on_loop(lambda: self._session._with_browser(fn), timeout)


class BrowserSession:
    def __init__(
        self,
        *,
        headless: bool = True,
        timeout_seconds: float = 30.0,
        launcher: Launcher | None = None,
    ):
        self.headless = headless
        self.timeout_seconds = timeout_seconds
        self._launcher = launcher or launch_chromium
        self._checkout_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._launched: Any = None
        self.launch_count = 0

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._state_lock:
            if self._loop is not None and self._thread is not None and self._thread.is_alive():
                return self._loop
            loop = asyncio.new_event_loop()
            thread = threading.Thread(target=loop.run_forever, name="browser-session", daemon=True)
            thread.start()
            self._loop, self._thread = loop, thread
            return loop

    def _run_on_loop(self, make_coro: Callable[[], Awaitable[Any]], timeout: float | None) -> Any:
        loop = self._ensure_loop()
        limit = self.timeout_seconds if timeout is None else timeout
        future = asyncio.run_coroutine_threadsafe(make_coro(), loop)
        try:
            return future.result(timeout=limit)
        except FutureTimeoutError as e:
            future.cancel()
            raise NetworkTimeout(f"Browser operation timed out after {limit:.0f}s") from e

    async def _with_browser(self, fn: Callable[[Any], Awaitable[Any]]) -> Any:
        if self._launched is None:
            self._launched = await self._launcher(self.headless)
            self.launch_count += 1
            logger.info("Browser launched (headless=%s)", self.headless)
        return await fn(self._launched.browser)

    async def _discard(self) -> None:
        launched, self._launched = self._launched, None
        if launched is not None:
            try:
                await launched.close()
            except Exception as e:
                logger.warning("Error closing browser: %s", e)

    @property
    def is_running(self) -> bool:
        return self._launched is not None

    @contextmanager
    def checkout(self) -> Iterator[BrowserHandle]:
        """Exclusive use of the browser for one operation. Resets the browser if the block raises,
        except for platform answers (rejected or unavailable), which leave the browser healthy.
        """
        with self._checkout_lock:
            try:
                yield BrowserHandle(self)
            except (PlatformRejected, TransientUnavailable):
                raise
            except Exception:
                logger.info("Resetting browser after error")
                try:
                    self._run_on_loop(self._discard, self.timeout_seconds)
                except Exception as discard_error:
                    logger.warning("Browser reset failed: %s", discard_error)
                raise

    def call(self, fn: Callable[[Any], Awaitable[Any]], timeout: float | None = None) -> Any:
        """Run one coroutine function under an exclusive checkout."""
        with self.checkout() as handle:
            return handle.run(fn, timeout)

    def close(self) -> None:
        """Close the browser and stop the loop thread. Safe to call more than once."""
        with self._checkout_lock:
            loop, thread = self._loop, self._thread
            if loop is None:
                return
            if self._launched is not None:
                try:
                    asyncio.run_coroutine_threadsafe(self._discard(), loop).result(timeout=self.timeout_seconds)
                except FutureTimeoutError:
                    logger.warning("Timed out closing browser")
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None:
                thread.join(timeout=5)
            loop.close()
            with self._state_lock:
                self._loop, self._thread = None, None
            logger.info("Browser session closed")
