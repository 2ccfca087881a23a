from pathlib import Path

import pytest

from page_capture.exceptions import ValidationError
from page_capture.options import is_url, normalize_options, resolve_input, validate_options
from page_capture.types import CaptureOptions, ClipRegion, InsetOptions, ScrollToElementOptions


def test_defaults():
    request = normalize_options("https://example.com")
    options = request.options

    assert request.input == "https://example.com"
    assert request.input_type == "url"
    assert options.width == 1280
    assert options.height == 800
    assert options.scale_factor == 2
    assert options.timeout == 60
    assert options.full_page is False
    assert options.default_background is True
    assert options.dark_mode is False
    assert options.is_javascript_enabled is True
    assert options.block_ads is True
    assert options.inset == 0
    assert options.type == "png"


@pytest.mark.parametrize(
    "value",
    ["http://example.com", "https://example.com/a?b=c", "file:///tmp/page.html", "data:text/html,<p>"],
)
def test_is_url(value):
    assert is_url(value)


@pytest.mark.parametrize("value", ["example.com", "/tmp/page.html", "page.html", "ftp://example.com"])
def test_is_not_url(value):
    assert not is_url(value)


def test_local_path_becomes_file_url(tmp_path):
    page = tmp_path / "page.html"
    page.write_text("<p>hi</p>")

    request = normalize_options(str(page))

    assert request.input == page.resolve().as_uri()
    assert request.input.startswith("file://")


def test_relative_path_is_resolved_against_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert resolve_input("page.html") == (Path(tmp_path) / "page.html").resolve().as_uri()


def test_html_input_is_kept_verbatim():
    request = normalize_options("<h1>Hello</h1>", input_type="html")

    assert request.input == "<h1>Hello</h1>"
    assert request.is_html
    assert request.cookie_url == "http://localhost/"


def test_cookie_url_for_url_input():
    assert normalize_options("https://example.com/a").cookie_url == "https://example.com/a"


def test_overrides_win_over_options():
    request = normalize_options("https://example.com", {"width": 800, "height": 600}, width=1024)

    assert request.options.width == 1024
    assert request.options.height == 600


def test_options_instance_is_merged():
    base = CaptureOptions(width=640, dark_mode=True)
    request = normalize_options("https://example.com", base, height=480)

    assert request.options.width == 640
    assert request.options.height == 480
    assert request.options.dark_mode is True


def test_nested_options_from_mappings():
    request = normalize_options(
        "https://example.com",
        {
            "clip": {"x": 10, "y": 20, "width": 30, "height": 40},
            "inset": {"top": 5},
            "scroll_to_element": {"element": "#a", "offset_from": "top", "offset": 10},
            "pdf": {"landscape": True},
        },
    )
    options = request.options

    assert options.clip == ClipRegion(x=10, y=20, width=30, height=40)
    assert options.inset == InsetOptions(top=5)
    assert options.scroll_to_element == ScrollToElementOptions(element="#a", offset_from="top", offset=10)
    assert options.pdf.landscape is True
    assert options.pdf.format == "A4"


@pytest.mark.parametrize("value", ["", None, 42])
def test_invalid_input(value):
    with pytest.raises(ValidationError) as exc_info:
        normalize_options(value)
    assert exc_info.value.options == ("input",)


def test_unknown_option_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        normalize_options("https://example.com", {"fullpage": True})
    assert "fullpage" in exc_info.value.options


@pytest.mark.parametrize(
    "options, field",
    [
        ({"width": 0}, "width"),
        ({"height": -1}, "height"),
        ({"scale_factor": 0}, "scale_factor"),
        ({"timeout": -1}, "timeout"),
        ({"delay": -0.5}, "delay"),
        ({"type": "gif"}, "type"),
        ({"input_type": "markdown"}, "input_type"),
    ],
)
def test_invalid_values(options, field):
    with pytest.raises(ValidationError) as exc_info:
        normalize_options("https://example.com", options)
    assert exc_info.value.options == (field,)


def test_scroll_to_element_requires_offset_from():
    with pytest.raises(ValidationError):
        normalize_options("https://example.com", scroll_to_element={"element": "#a", "offset": 10})


def test_options_are_frozen():
    options = CaptureOptions()
    with pytest.raises(Exception):
        options.width = 10


def test_clip_and_element_are_exclusive():
    options = CaptureOptions(clip=ClipRegion(width=10, height=10), element="#a")

    with pytest.raises(ValidationError) as exc_info:
        validate_options(options)
    assert exc_info.value.options == ("clip", "element")


def test_clip_and_full_page_are_exclusive():
    options = CaptureOptions(clip=ClipRegion(width=10, height=10), full_page=True)

    with pytest.raises(ValidationError) as exc_info:
        validate_options(options)
    assert exc_info.value.options == ("clip", "full_page")


@pytest.mark.parametrize(
    "extra, name",
    [
        ({"clip": ClipRegion(width=10, height=10)}, "clip"),
        ({"element": "#a"}, "element"),
        ({"quality": 0.5}, "quality"),
    ],
)
def test_pdf_incompatible_options(extra, name):
    options = CaptureOptions(type="pdf", **extra)

    with pytest.raises(ValidationError) as exc_info:
        validate_options(options)
    assert exc_info.value.options == ("type", name)


def test_empty_clip_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_options(CaptureOptions(clip=ClipRegion(width=0, height=10)))
    assert exc_info.value.options == ("clip",)


@pytest.mark.parametrize(
    "options",
    [
        CaptureOptions(),
        CaptureOptions(element="#a", full_page=True),
        CaptureOptions(clip=ClipRegion(width=10, height=10), inset=5),
        CaptureOptions(type="pdf", full_page=True),
        CaptureOptions(type="jpeg", quality=0.8),
    ],
)
def test_valid_combinations(options):
    validate_options(options)


def test_timeout_ms():
    assert CaptureOptions(timeout=1.5).timeout_ms == 1500
    assert CaptureOptions(timeout=0).timeout_ms == 0
