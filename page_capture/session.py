"""Browser session lifecycle for one capture call.

CaptureSession acquires the Playwright driver, the browser (launched, or the
one supplied through the `browser` option), one browser context and one page,
and releases all of them on every exit path.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

import psutil
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from config import env
from page_capture.adblock import AdBlocker
from page_capture.exceptions import SessionError, UnsupportedDeviceError
from page_capture.types import CaptureOptions

logger = logging.getLogger(__name__)


def _child_pids() -> Set[int]:
    try:
        return {child.pid for child in psutil.Process().children(recursive=True)}
    except psutil.Error:
        return set()


def _terminate_process_tree(root_pid: int, timeout: float = 3.0) -> None:
    """Terminate a child process and its descendants, killing the stubborn ones.

    Processes that are not descendants of this process are left alone.
    """
    if root_pid not in _child_pids():
        logger.warning("Process %d is not a child of this process, not terminating it", root_pid)
        return

    try:
        root = psutil.Process(root_pid)
        procs: List[psutil.Process] = root.children(recursive=True) + [root]
    except psutil.Error:
        return

    for proc in procs:
        try:
            proc.terminate()
        except psutil.Error:
            pass

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
        except psutil.Error:
            pass
    logger.warning("Force-terminated %d browser processes", len(procs))


async def _browser_pid(browser: Browser) -> Optional[int]:
    """Ask Chromium for the process id of its browser process."""
    try:
        cdp = await browser.new_browser_cdp_session()
        info = await cdp.send("SystemInfo.getProcessInfo")
        await cdp.detach()
    except PlaywrightError as e:
        logger.debug("Could not determine the browser process id: %s", e)
        return None
    for process in info.get("processInfo", []):
        if process.get("type") == "browser":
            return process.get("id")
    return None


class CaptureSession:
    """Owns the browser resources of one capture call.

    Usage:
        async with CaptureSession(options) as session:
            page = await session.open_page(context_options)
            ...
    """

    def __init__(self, options: CaptureOptions):
        self.options = options
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.ad_blocker: Optional[AdBlocker] = None
        self._owns_browser = False
        self._browser_pid: Optional[int] = None
        self._crash_error: Optional[SessionError] = None

    def launch_options(self) -> Dict[str, Any]:
        """Merge configured defaults, caller launch options and the debug override."""
        launch_options = env.get_launch_defaults()
        launch_options.update(self.options.launch_options)
        if self.options.debug:
            launch_options["headless"] = False
            launch_options["slow_mo"] = env.get_setting("debug_slow_mo", 100)
        return launch_options

    async def __aenter__(self):
        self.playwright = await async_playwright().start()

        try:
            if self.options.browser is not None:
                self.browser = self.options.browser
            else:
                self.browser = await self._launch()
        except BaseException:
            await self.playwright.stop()
            self.playwright = None
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        close_errors = await self.close()

        if self._crash_error is not None:
            if exc_type is None:
                raise self._crash_error
            if issubclass(exc_type, Exception):
                raise self._crash_error from exc_val

        if close_errors:
            if exc_type is None:
                raise SessionError(
                    f"Failed to close capture session: {close_errors[0]}",
                    details={"errors": [str(e) for e in close_errors]},
                )
            for error in close_errors:
                logger.warning("Error during session cleanup: %s", error)
        return False

    async def _launch(self) -> Browser:
        launch_options = self.launch_options()
        try:
            browser = await self.playwright.chromium.launch(**launch_options)
        except PlaywrightError as e:
            raise SessionError(f"Failed to launch browser: {e}") from e
        self._owns_browser = True
        self._browser_pid = await _browser_pid(browser)
        logger.debug("Launched browser with options %s", launch_options)
        return browser

    def device(self, name: str) -> Dict[str, Any]:
        """Return the emulation descriptor of a known device.

        Raises:
            UnsupportedDeviceError: If the device is not in Playwright's device table
        """
        descriptor = self.playwright.devices.get(name)
        if descriptor is None:
            raise UnsupportedDeviceError(name)
        return {key: value for key, value in descriptor.items() if key != "default_browser_type"}

    def _on_crash(self, page) -> None:
        logger.error("Page crashed during capture")
        self._crash_error = SessionError("The page crashed during capture")

    async def open_page(self, context_options: Dict[str, Any]) -> Page:
        """Create the session's browser context and page.

        Args:
            context_options: Keyword arguments for `Browser.new_context`

        Returns:
            The page the capture runs on
        """
        if self.browser is None:
            raise SessionError(
                "Session not started. Use 'async with CaptureSession()' block."
            )
        if self.page is not None:
            raise SessionError("A capture session owns exactly one page")

        try:
            self.context = await self.browser.new_context(**context_options)
            self.page = await self.context.new_page()
        except PlaywrightError as e:
            raise SessionError(f"Failed to open page: {e}") from e

        self.page.on("crash", self._on_crash)

        if self.options.block_ads:
            self.ad_blocker = AdBlocker()
            await self.ad_blocker.install(self.page)

        return self.page

    async def close(self) -> List[Exception]:
        """Release the page, the context and, unless kept alive, the browser.

        Returns:
            The errors raised while closing, in order
        """
        errors: List[Exception] = []

        for resource in (self.page, self.context):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                errors.append(e)
        self.page = None
        self.context = None

        if self.browser is not None and not self.options.keep_alive:
            timeout = env.get_setting("browser_close_timeout", 10.0)
            closed = False
            try:
                await asyncio.wait_for(self.browser.close(), timeout)
                closed = True
            except PlaywrightError as e:
                errors.append(e)
            except asyncio.TimeoutError:
                errors.append(SessionError(f"Browser did not close within {timeout}s"))
            if not closed and self._owns_browser and self._browser_pid is not None:
                _terminate_process_tree(self._browser_pid)
        self.browser = None

        # A launched browser that is kept alive needs its driver to stay up
        keep_driver = self.options.keep_alive and self._owns_browser
        if self.playwright is not None and not keep_driver:
            try:
                await self.playwright.stop()
            except PlaywrightError as e:
                errors.append(e)
            self.playwright = None

        return errors
