"""Cookie translation.

Converts browser-format cookie strings (as copied from DevTools or a
Set-Cookie header) into the structured records Playwright's
`BrowserContext.add_cookies` accepts.
"""

import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional, Union
from urllib.parse import urlsplit

from page_capture.exceptions import CookieParseError
from page_capture.types import NEUTRAL_COOKIE_URL

CookieRecord = Dict[str, Any]

_SAME_SITE_VALUES = {"strict": "Strict", "lax": "Lax", "none": "None"}


def _cookie_host(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme in ("http", "https") and parts.hostname:
        return parts.hostname
    return urlsplit(NEUTRAL_COOKIE_URL).hostname


def _default_path(url: str) -> str:
    """Default cookie path of a request URL (RFC 6265, section 5.1.4)"""
    path = urlsplit(url).path
    if not path.startswith("/") or path.count("/") == 1:
        return "/"
    return path[: path.rindex("/")]


def _parse_expiry(cookie: str, expires: str, max_age: str) -> Optional[int]:
    if max_age:
        try:
            return int(time.time()) + int(max_age)
        except ValueError:
            raise CookieParseError(cookie, f"invalid Max-Age {max_age!r}")
    if expires:
        try:
            parsed = parsedate_to_datetime(expires)
        except (TypeError, ValueError):
            raise CookieParseError(cookie, f"invalid Expires {expires!r}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp())
    return None


def parse_cookie(cookie: Union[str, CookieRecord], url: str) -> CookieRecord:
    """Translate a cookie into a structured record anchored to `url`.

    Structured records are returned unchanged.

    Args:
        cookie: Cookie string such as "name=value; Path=/; Max-Age=60", or a record
        url: URL of the captured page

    Returns:
        Cookie record with name, value, domain, path and any parsed attributes

    Raises:
        CookieParseError: If the string holds no valid name=value pair or a bad expiry
    """
    if isinstance(cookie, dict):
        return cookie

    jar: SimpleCookie = SimpleCookie()
    try:
        jar.load(cookie)
    except CookieError as e:
        raise CookieParseError(cookie, str(e)) from e

    if not jar:
        raise CookieParseError(cookie, "expected a name=value pair")

    # The first pair is the cookie, the rest are its attributes
    name, morsel = next(iter(jar.items()))

    domain = morsel["domain"]
    record: CookieRecord = {
        "name": name,
        "value": morsel.value,
        "domain": "." + domain.lstrip(".") if domain else _cookie_host(url),
        "path": morsel["path"] or _default_path(url),
        "secure": bool(morsel["secure"]),
        "httpOnly": bool(morsel["httponly"]),
    }

    expires = _parse_expiry(cookie, morsel["expires"], morsel["max-age"])
    if expires is not None:
        record["expires"] = expires

    same_site = morsel["samesite"]
    if same_site:
        if same_site.lower() not in _SAME_SITE_VALUES:
            raise CookieParseError(cookie, f"invalid SameSite {same_site!r}")
        record["sameSite"] = _SAME_SITE_VALUES[same_site.lower()]

    return record


def anchor_cookie(record: CookieRecord, url: str) -> CookieRecord:
    """Complete a cookie record so Playwright can place it.

    Playwright needs either a `url` or a `domain` and `path` pair.
    """
    anchored = dict(record)
    if "url" not in anchored and "domain" not in anchored:
        scheme = urlsplit(url).scheme
        anchored["url"] = url if scheme in ("http", "https") else NEUTRAL_COOKIE_URL
    elif "domain" in anchored and "path" not in anchored:
        anchored["path"] = "/"
    return anchored
