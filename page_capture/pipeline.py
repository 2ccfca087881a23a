"""The capture pipeline.

CapturePipeline drives one page through the ordered capture stages: context
emulation, preload injection, console forwarding, cookies and headers, color
scheme, navigation, mutation, asset injection, element waits, scrolling,
geometry resolution and finally output extraction.
"""

import asyncio
import inspect
import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Set, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config import env
from page_capture.cookies import anchor_cookie, parse_cookie
from page_capture.exceptions import (
    CaptureError,
    GeometryError,
    NavigationError,
    SelectorTimeoutError,
)
from page_capture.network import NetworkIdleMonitor, NetworkIdleTimeout
from page_capture.options import is_url
from page_capture.output import OutputExtractor
from page_capture.page_scripts import (
    BODY_HEIGHT,
    DISABLE_ANIMATIONS_CSS,
    ELEMENT_RECT,
    HIDE_ELEMENTS_CSS,
    REMOVE_ELEMENTS_CSS,
    SCROLL_BY,
    SCROLL_OFFSET,
    SCROLL_TO,
    SCROLL_TO_ELEMENT,
    VIEWPORT_HEIGHT,
    VIEWPORT_RECT,
    preload_script,
)
from page_capture.types import CaptureRequest, ClipRegion, InsetOptions

logger = logging.getLogger(__name__)
page_logger = logging.getLogger("page_capture.page")


async def call_hook(hook, *args) -> Any:
    """Call a caller-supplied hook, awaiting it when it is a coroutine."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def inject_key(value: str, extension: str) -> str:
    """Classify an injected asset as a URL, a local file path or inline content."""
    if is_url(value):
        return "url"
    if value.endswith(f".{extension}"):
        return "path"
    return "content"


def resolve_inset(inset) -> InsetOptions:
    if isinstance(inset, InsetOptions):
        return inset
    return InsetOptions(top=inset, right=inset, bottom=inset, left=inset)


def apply_inset(clip: ClipRegion, inset: InsetOptions) -> ClipRegion:
    """Shrink (positive values) or grow (negative values) a clip edge by edge.

    Raises:
        GeometryError: If the resulting width or height is not positive
    """
    resolved = ClipRegion(
        x=clip.x + inset.left,
        y=clip.y + inset.top,
        width=clip.width - inset.left - inset.right,
        height=clip.height - inset.top - inset.bottom,
    )
    if resolved.width <= 0 or resolved.height <= 0:
        raise GeometryError(
            f"When using the `inset` option, the width and height of the capture must be "
            f"greater than 0, got {resolved.width:g}x{resolved.height:g}",
            clip=resolved.model_dump(),
        )
    return resolved


@contextmanager
def selector_timeout(selector: str, option: str, timeout: float):
    """Turn Playwright selector timeouts into SelectorTimeoutError."""
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise SelectorTimeoutError(selector, option, timeout) from e


@contextmanager
def capture_stage(description: str):
    """Turn remaining Playwright failures of a stage into CaptureError."""
    try:
        yield
    except PlaywrightError as e:
        raise CaptureError(f"Capture failed while {description}: {e}") from e


class CapturePipeline:
    """Runs the capture stages for one request inside an open session."""

    def __init__(
        self,
        session,
        request: CaptureRequest,
        *,
        network_idle_time: Optional[float] = None,
        settle_delay: Optional[float] = None,
        max_scroll_steps: Optional[int] = None,
    ):
        """
        Args:
            session: Started CaptureSession
            request: Normalized and validated capture request
            network_idle_time: Quiet period of a network idle wait, in seconds
            settle_delay: Pause after every scroll step, in seconds
            max_scroll_steps: Cap on scroll loop iterations, 0 for unlimited
        """
        self.session = session
        self.request = request
        self.options = request.options
        self.network_idle_time = (
            network_idle_time
            if network_idle_time is not None
            else env.get_setting("network_idle_time", 0.5)
        )
        self.settle_delay = (
            settle_delay if settle_delay is not None else env.get_setting("scroll_settle_delay", 0.1)
        )
        self.max_scroll_steps = (
            max_scroll_steps
            if max_scroll_steps is not None
            else env.get_setting("lazy_scroll_max_steps", 0)
        )
        self.max_inflight = env.get_setting("network_idle_max_inflight", 2)

        self.clip: Optional[ClipRegion] = self.options.clip
        self.full_page = self.options.full_page
        self.monitor: Optional[NetworkIdleMonitor] = None
        self._console_tasks: Set[asyncio.Future] = set()

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for `Browser.new_context`: viewport, identity and device."""
        options = self.options
        context_options: Dict[str, Any] = {
            "viewport": {"width": options.width, "height": options.height},
            "device_scale_factor": options.scale_factor,
            "java_script_enabled": options.is_javascript_enabled,
            "bypass_csp": True,
        }
        if options.user_agent:
            context_options["user_agent"] = options.user_agent
        if options.authentication is not None:
            context_options["http_credentials"] = {
                "username": options.authentication.username,
                "password": options.authentication.password,
            }
        if options.emulate_device:
            context_options.update(self.session.device(options.emulate_device))
        return context_options

    async def run(self) -> bytes:
        """Execute every stage and return the captured bytes.

        Hooks run outside the stage wrappers so their exceptions reach the
        caller unchanged.
        """
        options = self.options
        page = await self.session.open_page(self.context_options())
        self.monitor = NetworkIdleMonitor(page, idle_time=self.network_idle_time)

        with capture_stage("preparing the page"):
            await self.inject_preload(page)
            self.attach_listeners(page)
            await self.apply_credentials(page)
            await page.emulate_media(color_scheme="dark" if options.dark_mode else "light")

        if options.before_navigation is not None:
            await call_hook(options.before_navigation, page, self.session.browser)

        await self.navigate(page)

        with capture_stage("modifying the page"):
            await self.mutate(page)
            await self.inject_assets(page)
            await self.wait_for_element(page)

        if options.before_screenshot is not None:
            await call_hook(options.before_screenshot, page, self.session.browser)

        with capture_stage("preparing the capture"):
            await self.clip_to_element(page)
            await self.scroll_to_element(page)
            if self.full_page or options.preload_lazy_content:
                await self.preload_content(page)
            await self.resolve_geometry(page)

            logger.debug(
                "Extracting %s output (clip=%s, full_page=%s)", options.type, self.clip, self.full_page
            )
            return await OutputExtractor(options).extract(page, self.clip, self.full_page)

    async def inject_preload(self, page) -> None:
        if not self.options.preload_function:
            return
        script = preload_script(
            self.options.preload_function, json.dumps(self.options.preload_arguments)
        )
        await page.add_init_script(script=script)

    def attach_listeners(self, page) -> None:
        if self.options.debug or self.options.on_console is not None:
            page.on("console", self._on_console)
        if self.options.debug:
            page.on("pageerror", self._on_page_error)

    def _on_console(self, message) -> None:
        if self.options.debug:
            location = message.location or {}
            where = ""
            if location.get("url"):
                where = location["url"]
                for key in ("lineNumber", "columnNumber"):
                    if location.get(key):
                        where += f":{location[key]}"
                where = f" ({where})"
            page_logger.info("Page log%s: %s", where, message.text)

        if self.options.on_console is None:
            return
        try:
            result = self.options.on_console(message)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._console_tasks.add(task)
                task.add_done_callback(self._on_console_done)
        except Exception as e:
            logger.debug("on_console callback failed: %s", e)

    def _on_console_done(self, future) -> None:
        self._console_tasks.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.debug("on_console callback failed: %s", future.exception())

    def _on_page_error(self, error) -> None:
        page_logger.error("Page error: %s", error)

    async def apply_credentials(self, page) -> None:
        options = self.options
        if options.cookies:
            url = self.request.cookie_url
            cookies = [anchor_cookie(parse_cookie(cookie, url), url) for cookie in options.cookies]
            await page.context.add_cookies(cookies)

        headers = dict(options.headers)
        if options.referrer:
            headers = {name: value for name, value in headers.items() if name.lower() != "referer"}
        if headers:
            await page.set_extra_http_headers(headers)

    @staticmethod
    def _remaining(timeout: float, elapsed: float) -> Optional[float]:
        """Seconds left of a timeout budget, None when the timeout is disabled."""
        if not timeout:
            return None
        # 0 would mean "no limit" to the idle wait
        return max(timeout - elapsed, 0.001)

    def _describe_input(self) -> str:
        return "HTML content" if self.request.is_html else self.request.input

    async def navigate(self, page) -> None:
        """Load the input and wait for the page to settle.

        Raises:
            NavigationError: On timeouts, network failures or, with
                `throw_on_http_error`, a non-2xx HTTP response
        """
        options = self.options
        url = None if self.request.is_html else self.request.input
        wait_until = "networkidle" if options.wait_for_network_idle else "load"
        response = None
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            if self.request.is_html:
                await page.set_content(
                    self.request.input, timeout=options.timeout_ms, wait_until=wait_until
                )
            else:
                response = await page.goto(
                    self.request.input,
                    timeout=options.timeout_ms,
                    wait_until=wait_until,
                    referer=options.referrer,
                )
            if not options.wait_for_network_idle:
                remaining = self._remaining(options.timeout, loop.time() - started)
                await self.monitor.wait_for_idle(self.max_inflight, timeout=remaining)
        except (PlaywrightTimeoutError, NetworkIdleTimeout) as e:
            raise NavigationError(
                f"Timed out loading {self._describe_input()} after {options.timeout:g}s", url=url
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {self._describe_input()}: {e}", url=url) from e

        if (
            options.throw_on_http_error
            and response is not None
            and url.startswith(("http://", "https://"))
            and not response.ok
        ):
            raise NavigationError(
                f"Got HTTP status {response.status} for {url}", url=url, status=response.status
            )

    async def mutate(self, page) -> None:
        options = self.options
        if options.disable_animations:
            await page.add_style_tag(content=DISABLE_ANIMATIONS_CSS)
        if options.hide_elements:
            await page.add_style_tag(
                content=HIDE_ELEMENTS_CSS.format(selectors=", ".join(options.hide_elements))
            )
        if options.remove_elements:
            await page.add_style_tag(
                content=REMOVE_ELEMENTS_CSS.format(selectors=", ".join(options.remove_elements))
            )
        if options.click_element:
            with selector_timeout(options.click_element, "click_element", options.timeout):
                await page.click(options.click_element, timeout=options.timeout_ms)

    def _asset_injections(self, page) -> List:
        injections = []
        for module in self.options.modules:
            injections.append(page.add_script_tag(**{inject_key(module, "js"): module}, type="module"))
        for script in self.options.scripts:
            injections.append(page.add_script_tag(**{inject_key(script, "js"): script}))
        for style in self.options.styles:
            injections.append(page.add_style_tag(**{inject_key(style, "css"): style}))
        return injections

    async def inject_assets(self, page) -> None:
        """Inject modules, scripts and styles concurrently.

        With JavaScript disabled, script execution is switched back on for the
        duration of the injection so modules and scripts still run.
        """
        options = self.options
        if not (options.modules or options.scripts or options.styles):
            return

        cdp = None
        if not options.is_javascript_enabled and (options.modules or options.scripts):
            cdp = await self._script_execution_session(page)

        try:
            await asyncio.gather(*self._asset_injections(page))
        finally:
            if cdp is not None:
                await cdp.send("Emulation.setScriptExecutionDisabled", {"value": True})
                await cdp.detach()

    async def _script_execution_session(self, page):
        try:
            cdp = await page.context.new_cdp_session(page)
            await cdp.send("Emulation.setScriptExecutionDisabled", {"value": False})
        except PlaywrightError as e:
            logger.warning("Could not re-enable JavaScript for injected scripts: %s", e)
            return None
        return cdp

    async def wait_for_element(self, page) -> None:
        options = self.options
        if options.wait_for_element and options.wait_for_element != options.element:
            with selector_timeout(options.wait_for_element, "wait_for_element", options.timeout):
                await page.wait_for_selector(
                    options.wait_for_element, state="visible", timeout=options.timeout_ms
                )

    async def clip_to_element(self, page) -> None:
        """Wait for `element`, apply the delay and clip the capture to the element."""
        options = self.options
        handle = None
        if options.element:
            with selector_timeout(options.element, "element", options.timeout):
                handle = await page.wait_for_selector(
                    options.element, state="visible", timeout=options.timeout_ms
                )

        if options.delay:
            await page.wait_for_timeout(options.delay * 1000)

        if handle is not None:
            rect = await handle.evaluate(ELEMENT_RECT)
            self.clip = ClipRegion(**rect)
            self.full_page = False

    def _scroll_target(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        target = self.options.scroll_to_element
        if isinstance(target, str):
            return target, None
        return target.element, {"offsetFrom": target.offset_from, "offset": target.offset}

    async def scroll_to_element(self, page) -> None:
        if not self.options.scroll_to_element:
            return
        selector, offset = self._scroll_target()
        with selector_timeout(selector, "scroll_to_element", self.options.timeout):
            await page.wait_for_selector(selector, state="attached", timeout=self.options.timeout_ms)
        await page.eval_on_selector(selector, SCROLL_TO_ELEMENT, offset)

    async def preload_content(self, page) -> None:
        """Scroll through the page one viewport at a time so lazy content loads.

        The body height is re-measured after every step, so content appended
        while scrolling extends the loop. Network idle timeouts are tolerated.
        """
        body_height = await page.evaluate(BODY_HEIGHT)
        viewport_height = await page.evaluate(VIEWPORT_HEIGHT)
        start_offset = await page.evaluate(SCROLL_OFFSET)
        if viewport_height <= 0:
            return

        scrolled = 0
        steps = 0
        while scrolled + viewport_height < body_height:
            if self.max_scroll_steps and steps >= self.max_scroll_steps:
                logger.info(
                    "Stopped lazy content preloading after %d scroll steps (%d of %d px)",
                    steps,
                    scrolled + viewport_height,
                    body_height,
                )
                break

            await page.evaluate(SCROLL_BY, viewport_height)
            try:
                await self.monitor.wait_for_idle(0, timeout=self.options.timeout)
            except NetworkIdleTimeout as e:
                logger.debug("Continuing to scroll: %s", e)
            await asyncio.sleep(self.settle_delay)

            scrolled += viewport_height
            steps += 1
            body_height = max(body_height, await page.evaluate(BODY_HEIGHT))

        logger.debug("Preloaded lazy content in %d scroll steps, body height %s", steps, body_height)
        await page.evaluate(SCROLL_TO, {"x": 0, "y": 0} if self.full_page else start_offset)

    async def resolve_geometry(self, page) -> None:
        """Apply `inset` to the clip, or to the viewport when there is none."""
        inset = self.options.inset
        if self.full_page or inset == 0:
            return
        inset = resolve_inset(inset)
        if inset == InsetOptions():
            return
        base = self.clip
        if base is None:
            base = ClipRegion(**await page.evaluate(VIEWPORT_RECT))
        self.clip = apply_inset(base, inset)
