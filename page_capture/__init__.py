"""Page capture library.

Captures screenshots and PDFs of web pages, local files and HTML strings with
a headless Chromium driven through Playwright.
"""

from page_capture.api import base64, buffer, capture, devices, file
from page_capture.exceptions import (
    CaptureError,
    CookieParseError,
    GeometryError,
    NavigationError,
    SelectorTimeoutError,
    SessionError,
    UnsupportedDeviceError,
    ValidationError,
)
from page_capture.types import (
    Authentication,
    CaptureOptions,
    CaptureRequest,
    ClipRegion,
    InsetOptions,
    PdfOptions,
    ScrollToElementOptions,
)

__all__ = [
    "capture",
    "buffer",
    "base64",
    "file",
    "devices",
    "CaptureOptions",
    "CaptureRequest",
    "ClipRegion",
    "InsetOptions",
    "PdfOptions",
    "ScrollToElementOptions",
    "Authentication",
    "CaptureError",
    "ValidationError",
    "UnsupportedDeviceError",
    "NavigationError",
    "SelectorTimeoutError",
    "GeometryError",
    "SessionError",
    "CookieParseError",
]
