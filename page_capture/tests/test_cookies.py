import time

import pytest

from page_capture.cookies import anchor_cookie, parse_cookie
from page_capture.exceptions import CookieParseError


def test_simple_cookie_uses_page_host():
    record = parse_cookie("id=unicorn", "https://example.com/docs/page.html")

    assert record == {
        "name": "id",
        "value": "unicorn",
        "domain": "example.com",
        "path": "/docs",
        "secure": False,
        "httpOnly": False,
    }


def test_cookie_attributes():
    record = parse_cookie(
        "id=unicorn; Domain=example.com; Path=/app; Secure; HttpOnly; SameSite=lax",
        "https://www.example.com/",
    )

    assert record["domain"] == ".example.com"
    assert record["path"] == "/app"
    assert record["secure"] is True
    assert record["httpOnly"] is True
    assert record["sameSite"] == "Lax"


def test_expires_is_converted_to_epoch_seconds():
    record = parse_cookie(
        "id=unicorn; Expires=Wed, 21 Oct 2037 07:28:00 GMT", "https://example.com/"
    )

    assert record["expires"] == 2139722880


def test_max_age_wins_over_expires():
    before = int(time.time())
    record = parse_cookie(
        "id=unicorn; Max-Age=60; Expires=Wed, 21 Oct 2037 07:28:00 GMT", "https://example.com/"
    )

    assert before + 60 <= record["expires"] <= int(time.time()) + 60


def test_only_first_pair_is_used():
    record = parse_cookie("first=1; second=2", "https://example.com/")

    assert record["name"] == "first"
    assert record["value"] == "1"


def test_quoted_value():
    assert parse_cookie('id="a b"', "https://example.com/")["value"] == "a b"


def test_html_input_cookies_use_neutral_host():
    record = parse_cookie("id=unicorn", "http://localhost/")

    assert record["domain"] == "localhost"
    assert record["path"] == "/"


def test_file_url_cookies_use_neutral_host():
    assert parse_cookie("id=unicorn", "file:///tmp/page.html")["domain"] == "localhost"


@pytest.mark.parametrize(
    "cookie",
    ["", "no-equals-sign", "id=unicorn; Max-Age=soon", "id=unicorn; SameSite=sometimes"],
)
def test_invalid_cookies(cookie):
    with pytest.raises(CookieParseError) as exc_info:
        parse_cookie(cookie, "https://example.com/")
    assert exc_info.value.cookie == cookie


def test_structured_cookie_passes_through():
    cookie = {"name": "id", "value": "unicorn", "url": "https://example.com"}

    assert parse_cookie(cookie, "https://other.com/") is cookie


def test_anchor_adds_page_url():
    anchored = anchor_cookie({"name": "id", "value": "unicorn"}, "https://example.com/a")

    assert anchored["url"] == "https://example.com/a"


def test_anchor_uses_neutral_url_for_non_http_pages():
    anchored = anchor_cookie({"name": "id", "value": "unicorn"}, "data:text/html,<p>")

    assert anchored["url"] == "http://localhost/"


def test_anchor_adds_path_to_domain_cookie():
    anchored = anchor_cookie({"name": "id", "value": "unicorn", "domain": "example.com"}, "https://example.com/")

    assert anchored["path"] == "/"
    assert "url" not in anchored


def test_anchor_keeps_complete_record():
    record = {"name": "id", "value": "unicorn", "domain": "example.com", "path": "/docs"}

    assert anchor_cookie(record, "https://example.com/") == record
