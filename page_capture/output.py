"""Output extraction: turns the prepared page into image or PDF bytes."""

import io
import logging
from typing import Any, Dict, Optional

from PIL import Image

from page_capture.types import CaptureOptions, ClipRegion

logger = logging.getLogger(__name__)

PDF_SCALE_RANGE = (0.1, 2.0)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class OutputExtractor:
    """Builds the screenshot/PDF call for a set of capture options."""

    def __init__(self, options: CaptureOptions):
        self.options = options

    def quality_percent(self) -> Optional[int]:
        """Quality clamped to [0, 1] and scaled to Playwright's 0-100 range."""
        if self.options.quality is None:
            return None
        return round(clamp(self.options.quality, 0.0, 1.0) * 100)

    def pdf_scale(self) -> float:
        return clamp(self.options.scale_factor, *PDF_SCALE_RANGE)

    def pdf_options(self) -> Dict[str, Any]:
        pdf = self.options.pdf
        pdf_options: Dict[str, Any] = {
            "format": pdf.format,
            "landscape": pdf.landscape,
            "print_background": pdf.background,
            "scale": self.pdf_scale(),
        }
        if pdf.margin:
            pdf_options["margin"] = dict(pdf.margin)
        return pdf_options

    def screenshot_options(self, clip: Optional[ClipRegion], full_page: bool) -> Dict[str, Any]:
        """Keyword arguments for `Page.screenshot`.

        Clips are in document coordinates, so they are captured in full page
        mode where Playwright crops to the document rather than the viewport.
        WebP is captured as PNG and transcoded afterwards.
        """
        image_type = "jpeg" if self.options.type == "jpeg" else "png"
        screenshot_options: Dict[str, Any] = {
            "type": image_type,
            "full_page": full_page or clip is not None,
            "timeout": self.options.timeout_ms,
        }
        if clip is not None:
            screenshot_options["clip"] = clip.model_dump()
        if image_type == "jpeg":
            quality = self.quality_percent()
            if quality is not None:
                screenshot_options["quality"] = quality
        elif not self.options.default_background:
            screenshot_options["omit_background"] = True
        return screenshot_options

    def to_webp(self, png: bytes) -> bytes:
        """Transcode a PNG screenshot to WebP, lossless unless a quality is set."""
        quality = self.quality_percent()
        output = io.BytesIO()
        with Image.open(io.BytesIO(png)) as image:
            if quality is None:
                image.save(output, format="WEBP", lossless=True)
            else:
                image.save(output, format="WEBP", quality=quality)
        return output.getvalue()

    async def extract(self, page, clip: Optional[ClipRegion] = None, full_page: bool = False) -> bytes:
        """Render the page to the requested output type.

        Args:
            page: Playwright page, fully prepared
            clip: Resolved clip rectangle, if any
            full_page: Whether to capture the full scrollable page

        Returns:
            Image or PDF bytes
        """
        if self.options.type == "pdf":
            logger.debug("Rendering PDF with scale %s", self.pdf_scale())
            return await page.pdf(**self.pdf_options())

        screenshot = await page.screenshot(**self.screenshot_options(clip, full_page))
        if self.options.type == "webp":
            return self.to_webp(screenshot)
        return screenshot
