"""
Burns the capture timestamp and coordinates into the photo pixels.
"""
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from kioskinstall.domain.project import GeoLocation

logger = logging.getLogger(__name__)

BAND_HEIGHT = 80
BAND_OPACITY = 0.6
FONT_SIZE = 24
TEXT_X = 20
TIMESTAMP_BASELINE_OFFSET = 45
LOCATION_BASELINE_OFFSET = 15
JPEG_QUALITY = 80
TEXT_COLOR = (255, 255, 255, 255)

FONT_CANDIDATES = (
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "Arial.ttf",
    "/Library/Fonts/Arial.ttf",
)


class WatermarkError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class WatermarkLayout:
    width: int
    height: int
    band_box: Tuple[int, int, int, int]
    timestamp_anchor: Tuple[int, int]
    location_anchor: Tuple[int, int]


_font_cache = {}


def load_font(size: int = FONT_SIZE, font_path: Optional[str] = None):
    key = (size, font_path)
    if key not in _font_cache:
        font = None
        for candidate in ((font_path,) if font_path else ()) + FONT_CANDIDATES:
            try:
                font = ImageFont.truetype(candidate, size)
                break
            except OSError:
                continue
        if font is None:
            logger.warning("No TrueType font found for watermark, using Pillow default font")
            font = ImageFont.load_default(size=size)
        _font_cache[key] = font
    return _font_cache[key]


class FrameWatermarker:
    """Stamp raw camera frames with a timestamp and coordinate band."""

    def __init__(self, font_path: Optional[str] = None, quality: int = JPEG_QUALITY):
        self.font_path = font_path
        self.quality = quality

    @staticmethod
    def layout(width: int, height: int) -> WatermarkLayout:
        return WatermarkLayout(
            width=width,
            height=height,
            band_box=(0, height - BAND_HEIGHT, width, height),
            timestamp_anchor=(TEXT_X, height - TIMESTAMP_BASELINE_OFFSET),
            location_anchor=(TEXT_X, height - LOCATION_BASELINE_OFFSET),
        )

    @staticmethod
    def _draw_line(draw, anchor_xy, text, font):
        if isinstance(font, ImageFont.FreeTypeFont):
            # Left/baseline anchor, like canvas fillText
            draw.text(anchor_xy, text, font=font, fill=TEXT_COLOR, anchor="ls")
        else:
            x, y = anchor_xy
            draw.text((x, y - FONT_SIZE), text, font=font, fill=TEXT_COLOR)

    def stamp(self, raw_frame: bytes, location: GeoLocation, timestamp: str) -> bytes:
        """
        Composite the watermark onto a copy of the frame and encode it as JPEG.

        Raises:
            WatermarkError: the frame is empty or cannot be decoded
        """
        if not raw_frame:
            raise WatermarkError("Captured frame is empty")
        try:
            with Image.open(BytesIO(raw_frame)) as source:
                source.load()
                surface = source.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise WatermarkError(f"Captured frame could not be decoded: {e}") from e

        if surface.width <= 0 or surface.height <= 0:
            raise WatermarkError("Captured frame has no drawable area")

        geometry = self.layout(surface.width, surface.height)
        font = load_font(FONT_SIZE, self.font_path)

        overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        draw.rectangle(geometry.band_box, fill=(0, 0, 0, round(255 * BAND_OPACITY)))
        self._draw_line(draw, geometry.timestamp_anchor, timestamp, font)
        self._draw_line(draw, geometry.location_anchor, location.as_watermark_text(), font)

        stamped = Image.alpha_composite(surface, overlay).convert("RGB")
        output = BytesIO()
        stamped.save(output, format="JPEG", quality=self.quality)
        return output.getvalue()
