"""Option normalization and validation.

`normalize_options` merges caller options over the defaults and resolves the
input source; `validate_options` rejects incompatible combinations. Both are
pure and run before any browser work starts.
"""

import re
from pathlib import Path
from typing import Any, Mapping, Union

import pydantic

from page_capture.exceptions import ValidationError
from page_capture.types import CaptureOptions, CaptureRequest


URL_PATTERN = re.compile(r"^(https?|file)://|^data:")

# (option, conflicting option, reason); the single source of truth for option interactions
MUTUALLY_EXCLUSIVE = (
    ("clip", "element", "both define the captured region"),
    ("clip", "full_page", "both define the captured region"),
)

PDF_INCOMPATIBLE = ("clip", "element", "quality")

OptionsLike = Union[CaptureOptions, Mapping[str, Any], None]


def is_url(value: str) -> bool:
    """Return True for http(s)/file URLs and data URLs."""
    return bool(URL_PATTERN.match(value))


def resolve_input(value: str, input_type: str = "url") -> str:
    """Resolve the capture input to something the browser can load.

    Literal HTML and URLs are returned unchanged, anything else is treated as
    a local path and converted to a file URL.
    """
    if input_type == "html" or is_url(value):
        return value
    return Path(value).expanduser().resolve().as_uri()


def _explicit_fields(options: OptionsLike) -> dict:
    if options is None:
        return {}
    if isinstance(options, CaptureOptions):
        return {name: getattr(options, name) for name in options.model_fields_set}
    return dict(options)


def normalize_options(input: str, options: OptionsLike = None, **overrides: Any) -> CaptureRequest:
    """Merge caller options with the defaults and resolve the input.

    Args:
        input: URL, file URL, data URL, local file path or literal HTML
        options: CaptureOptions instance or mapping of option names to values
        **overrides: Option values that take precedence over `options`

    Returns:
        A CaptureRequest holding the resolved input and the merged options

    Raises:
        ValidationError: If an option has an invalid value or type
    """
    if not isinstance(input, str) or not input:
        raise ValidationError("The input must be a non-empty string", options=["input"])

    fields = {**_explicit_fields(options), **overrides}
    try:
        merged = CaptureOptions(**fields)
    except pydantic.ValidationError as e:
        names = sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]})
        raise ValidationError(f"Invalid options: {e}", options=names) from e

    return CaptureRequest(
        input=resolve_input(input, merged.input_type),
        input_type=merged.input_type,
        options=merged,
    )


def _is_set(options: CaptureOptions, name: str) -> bool:
    value = getattr(options, name)
    if isinstance(value, bool):
        return value
    return value is not None


def validate_options(options: CaptureOptions) -> None:
    """Reject mutually exclusive or type-incompatible option combinations.

    Raises:
        ValidationError: Naming the two conflicting options
    """
    for first, second, reason in MUTUALLY_EXCLUSIVE:
        if _is_set(options, first) and _is_set(options, second):
            raise ValidationError(
                f"The `{first}` and `{second}` options are mutually exclusive: {reason}",
                options=[first, second],
            )

    if options.type == "pdf":
        for name in PDF_INCOMPATIBLE:
            if _is_set(options, name):
                raise ValidationError(
                    f"The `{name}` option is not supported with `type` 'pdf'",
                    options=["type", name],
                )

    if options.clip is not None and (options.clip.width <= 0 or options.clip.height <= 0):
        raise ValidationError(
            "The width and height of the `clip` option must be greater than 0",
            options=["clip"],
        )
