"""Public capture entry points.

All of them normalize and validate the options before any browser work
starts, so invalid combinations fail fast and leave nothing behind.
"""

import asyncio
import base64 as b64
import logging
from pathlib import Path
from typing import Any, List, Mapping, Union

from playwright.async_api import async_playwright

from page_capture.options import OptionsLike, normalize_options, validate_options
from page_capture.pipeline import CapturePipeline
from page_capture.session import CaptureSession

logger = logging.getLogger(__name__)


async def capture(input: str, options: OptionsLike = None, **overrides: Any) -> bytes:
    """Capture a URL, local file or HTML string.

    Args:
        input: URL, file URL, data URL, local file path or literal HTML
            (with `input_type="html"`)
        options: CaptureOptions or a mapping of option names to values
        **overrides: Individual options, taking precedence over `options`

    Returns:
        The image or PDF bytes

    Raises:
        CaptureError: Or one of its subclasses for every internal failure;
            exceptions raised by caller hooks propagate unchanged
    """
    request = normalize_options(input, options, **overrides)
    validate_options(request.options)

    source = "HTML content" if request.is_html else request.input
    logger.debug("Capturing %s as %s", source, request.options.type)
    async with CaptureSession(request.options) as session:
        return await CapturePipeline(session, request).run()


async def buffer(input: str, options: OptionsLike = None, **overrides: Any) -> bytes:
    """Capture and return the raw bytes."""
    return await capture(input, options, **overrides)


async def base64(input: str, options: OptionsLike = None, **overrides: Any) -> str:
    """Capture and return the bytes as a base64 string."""
    data = await capture(input, options, **overrides)
    return b64.b64encode(data).decode("ascii")


def _write(path: Path, data: bytes, overwrite: bool) -> None:
    with open(path, "wb" if overwrite else "xb") as f:
        f.write(data)


async def file(
    input: str,
    output_path: Union[str, Path],
    options: OptionsLike = None,
    *,
    overwrite: bool = False,
    **overrides: Any,
) -> None:
    """Capture and write the result to `output_path`.

    Parent directories are created as needed. `overwrite` may also be given
    in the options mapping; it is not a capture option and is removed
    before the options are validated.

    Raises:
        FileExistsError: If the destination exists and `overwrite` is False;
            checked before capturing
    """
    if isinstance(options, Mapping) and "overwrite" in options:
        options = dict(options)
        overwrite = bool(options.pop("overwrite")) or overwrite

    path = Path(output_path).expanduser()
    if not overwrite and path.exists():
        raise FileExistsError(f"File already exists at {path}")

    data = await capture(input, options, **overrides)

    path.parent.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(_write, path, data, overwrite)
    logger.debug("Wrote %d bytes to %s", len(data), path)


async def devices() -> List[str]:
    """Names of the devices `emulate_device` accepts."""
    async with async_playwright() as playwright:
        return list(playwright.devices)
