from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ImageType = Literal["png", "jpeg", "webp", "pdf"]
InputType = Literal["url", "html"]
Hook = Callable[..., Any]

# Cookies for literal HTML content are anchored to this origin
NEUTRAL_COOKIE_URL = "http://localhost/"


class ClipRegion(BaseModel):
    """A rectangle of the rendered page, in CSS pixels"""
    model_config = ConfigDict(frozen=True)

    x: float = 0
    y: float = 0
    width: float
    height: float


class InsetOptions(BaseModel):
    """Per-edge inset; positive values shrink the capture, negative values grow it"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0


class ScrollToElementOptions(BaseModel):
    """Scroll target with an offset measured from one of its edges"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    element: str
    offset_from: Literal["top", "right", "bottom", "left"]
    offset: float = 0


class PdfOptions(BaseModel):
    """Options forwarded to PDF rendering"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    format: str = "A4"
    landscape: bool = False
    margin: Dict[str, Union[str, float]] = Field(default_factory=dict)
    background: bool = True


class Authentication(BaseModel):
    """Credentials for HTTP authentication"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str
    password: str = ""


class CaptureOptions(BaseModel):
    """Options for one capture call"""
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    # Viewport
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=800, gt=0)
    scale_factor: float = Field(default=2, gt=0)
    emulate_device: Optional[str] = None
    dark_mode: bool = False

    # Output
    type: ImageType = "png"
    quality: Optional[float] = None
    default_background: bool = True
    clip: Optional[ClipRegion] = None
    element: Optional[str] = None
    full_page: bool = False
    inset: Union[float, InsetOptions] = 0
    pdf: PdfOptions = Field(default_factory=PdfOptions)

    # Navigation
    timeout: float = Field(default=60, ge=0)
    referrer: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    user_agent: Optional[str] = None
    cookies: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    authentication: Optional[Authentication] = None
    throw_on_http_error: bool = False
    wait_for_network_idle: bool = False

    # Mutation
    hide_elements: List[str] = Field(default_factory=list)
    remove_elements: List[str] = Field(default_factory=list)
    click_element: Optional[str] = None
    scroll_to_element: Optional[Union[str, ScrollToElementOptions]] = None
    disable_animations: bool = False
    modules: List[str] = Field(default_factory=list)
    scripts: List[str] = Field(default_factory=list)
    styles: List[str] = Field(default_factory=list)
    delay: float = Field(default=0, ge=0)
    wait_for_element: Optional[str] = None
    preload_function: Optional[str] = None
    preload_arguments: List[Any] = Field(default_factory=list)
    is_javascript_enabled: bool = True
    preload_lazy_content: bool = False
    block_ads: bool = True

    # Hooks
    before_navigation: Optional[Hook] = None
    before_screenshot: Optional[Hook] = None
    on_console: Optional[Hook] = None

    # Lifecycle
    launch_options: Dict[str, Any] = Field(default_factory=dict)
    debug: bool = False
    browser: Optional[Any] = None
    keep_alive: bool = False

    input_type: InputType = "url"

    @property
    def timeout_ms(self) -> float:
        """Timeout in milliseconds as Playwright expects it; 0 disables it"""
        return self.timeout * 1000


class CaptureRequest(BaseModel):
    """A normalized capture call: resolved input plus merged options"""
    model_config = ConfigDict(frozen=True)

    input: str
    input_type: InputType = "url"
    options: CaptureOptions

    @property
    def is_html(self) -> bool:
        return self.input_type == "html"

    @property
    def cookie_url(self) -> str:
        return NEUTRAL_COOKIE_URL if self.is_html else self.input
