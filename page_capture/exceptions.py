"""Custom exceptions for the page capture library."""

from typing import Optional, Any, Dict, Sequence


class CaptureError(Exception):
    """Base exception for all capture errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(CaptureError):
    """Raised when options are invalid or conflict with each other.

    Raised before any browser resource is acquired.
    """

    def __init__(self, message: str, options: Optional[Sequence[str]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.options = tuple(options or ())


class UnsupportedDeviceError(CaptureError):
    """Raised when `emulate_device` names an unknown device."""

    def __init__(self, device_name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"The device name `{device_name}` is not supported", details)
        self.device_name = device_name


class NavigationError(CaptureError):
    """Raised when the page fails to load."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.url = url
        self.status = status


class SelectorTimeoutError(CaptureError):
    """Raised when a selector target never appears or becomes visible."""

    def __init__(self, selector: str, option: str, timeout: Optional[float] = None, details: Optional[Dict[str, Any]] = None):
        message = f"Timed out waiting for `{option}` selector '{selector}'"
        if timeout:
            message += f" after {timeout:g}s"
        super().__init__(message, details)
        self.selector = selector
        self.option = option
        self.timeout = timeout


class GeometryError(CaptureError):
    """Raised when the resolved clip rectangle is empty."""

    def __init__(self, message: str, clip: Optional[Dict[str, float]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.clip = clip


class SessionError(CaptureError):
    """Raised when the browser or page fails to launch, crashes or fails to close."""


class CookieParseError(CaptureError):
    """Raised when a cookie string cannot be parsed."""

    def __init__(self, cookie: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Invalid cookie {cookie!r}: {reason}", details)
        self.cookie = cookie
        self.reason = reason
