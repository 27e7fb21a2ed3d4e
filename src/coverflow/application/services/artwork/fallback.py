"""Deterministic placeholder artwork.

Hey future me - when iTunes has nothing (or the call failed) we still need SOMETHING
in the carousel. This renders a "record" tile from the artwork key alone:

    ┌──────────────────────┐
    │ gradient (hue from   │
    │   the key hash)      │
    │        ◎  circles    │
    │                      │
    │     taylor swift     │  <- artist, max 20 chars
    │       antihero       │  <- track, max 25 chars
    └──────────────────────┘

DETERMINISM IS LOAD-BEARING! Same key -> byte-identical PNG, always. No timestamps,
no randomness, no PNG metadata. Different keys -> different hue (almost always).

Rendering is synchronous Pillow work (~ a few ms for 600x600) and runs inline on the
event loop - it never suspends.
"""

from __future__ import annotations

import base64
import colorsys
import logging
from functools import lru_cache
from io import BytesIO
from typing import NamedTuple

from PIL import Image as PILImage
from PIL import ImageChops, ImageDraw, ImageFont

from coverflow.domain.entities.artwork import ArtworkKey
from coverflow.domain.value_objects.artwork_key import split_key

logger = logging.getLogger(__name__)

# Layout is designed on a 600px canvas and scaled to the configured size
_DESIGN_SIZE = 600

_RGBA = tuple[int, int, int, int]

# (radius, outline width, outline RGBA, fill RGBA)
_CIRCLES: tuple[tuple[int, int, _RGBA, _RGBA | None], ...] = (
    (120, 3, (255, 255, 255, 77), None),
    (80, 2, (255, 255, 255, 51), None),
    (40, 0, (255, 255, 255, 0), (255, 255, 255, 51)),
    (15, 0, (255, 255, 255, 0), (255, 255, 255, 102)),
)

_ARTIST_BASELINE = 480
_ARTIST_FONT_SIZE = 24
_ARTIST_FILL: _RGBA = (255, 255, 255, 204)
_TRACK_BASELINE = 520
_TRACK_FONT_SIZE = 18
_TRACK_FILL: _RGBA = (255, 255, 255, 153)

# 1x1 grey PNG for when rendering itself fails - never leave a request without an image
STATIC_PLACEHOLDER = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAAAAAA6fptVAAAACklEQVR4nGNoAAAAggCBd81ytgAAAABJRU5ErkJggg=="
)


class Palette(NamedTuple):
    """HSL triple derived from a key (hue in degrees, the rest in percent)."""

    hue: int
    saturation: int
    lightness: int


def string_hash(value: str) -> int:
    """32-bit "h = h * 31 + c" string hash, absolute value.

    Works on UTF-16 code units so keys with emoji hash the same way everywhere.

    Examples:
        >>> string_hash("")
        0
        >>> string_hash("a")
        97
        >>> string_hash("ab")
        3105
    """
    h = 0
    encoded = value.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def palette(key: str) -> Palette:
    """Derive the gradient colors of a key.

    hue = h % 360, saturation 30-69 %, lightness 20-49 %.
    """
    h = string_hash(key)
    return Palette(hue=h % 360, saturation=30 + h % 40, lightness=20 + h % 30)


def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length characters, ending in "..." if it was longer.

    Examples:
        >>> truncate("short", 10)
        'short'
        >>> truncate("a very long artist name", 10)
        'a very ...'
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def _hsl_to_rgb(hue: float, saturation: float, lightness: float) -> tuple[int, int, int]:
    r, g, b = colorsys.hls_to_rgb(hue / 360, lightness / 100, saturation / 100)
    return round(r * 255), round(g * 255), round(b * 255)


@lru_cache(maxsize=1)
def _diagonal_mask() -> PILImage.Image:
    # 256x256, 0 at the top-left corner, 255 at the bottom-right
    vertical = PILImage.linear_gradient("L")
    horizontal = vertical.rotate(90)
    return ImageChops.add(horizontal, vertical, scale=2.0)


@lru_cache(maxsize=8)
def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


class FallbackSynthesizer:
    """Render placeholder tiles for keys without real artwork."""

    def __init__(
        self,
        size: int = _DESIGN_SIZE,
        artist_max_length: int = 20,
        track_max_length: int = 25,
    ) -> None:
        """
        Initialize synthesizer.

        Args:
            size: Edge length of the square PNG in pixels
            artist_max_length: Artist text is truncated beyond this
            track_max_length: Track text is truncated beyond this
        """
        self.size = size
        self.artist_max_length = artist_max_length
        self.track_max_length = track_max_length

    def synthesize(self, key: ArtworkKey) -> str:
        """Build the placeholder image reference for a key.

        Returns:
            "data:image/png;base64,..." URI, usable wherever a URL is
        """
        encoded = base64.b64encode(self.render(key)).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def render(self, key: ArtworkKey) -> bytes:
        """Render the placeholder as PNG bytes."""
        colors = palette(key)
        start = _hsl_to_rgb(colors.hue, colors.saturation, colors.lightness + 10)
        end = _hsl_to_rgb((colors.hue + 60) % 360, colors.saturation, colors.lightness)

        canvas_size = (self.size, self.size)
        mask = _diagonal_mask().resize(canvas_size, PILImage.Resampling.BILINEAR)
        # composite() takes image1 where mask is 255 -> end color at the bottom-right
        image = PILImage.composite(
            PILImage.new("RGB", canvas_size, end),
            PILImage.new("RGB", canvas_size, start),
            mask,
        ).convert("RGBA")

        overlay = PILImage.new("RGBA", canvas_size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        self._draw_circles(draw)

        artist, track = split_key(key)
        self._draw_centered_text(
            draw,
            truncate(artist, self.artist_max_length),
            _ARTIST_BASELINE,
            _ARTIST_FONT_SIZE,
            _ARTIST_FILL,
        )
        self._draw_centered_text(
            draw,
            truncate(track, self.track_max_length),
            _TRACK_BASELINE,
            _TRACK_FONT_SIZE,
            _TRACK_FILL,
        )

        image = PILImage.alpha_composite(image, overlay).convert("RGB")

        buffer = BytesIO()
        image.save(buffer, format="PNG", optimize=False)
        return buffer.getvalue()

    def _scale(self, value: float) -> int:
        return max(1, round(value * self.size / _DESIGN_SIZE))

    def _draw_circles(self, draw: ImageDraw.ImageDraw) -> None:
        center = self.size / 2
        for radius, width, outline, fill in _CIRCLES:
            r = self._scale(radius)
            box = (center - r, center - r, center + r, center + r)
            if fill is not None:
                draw.ellipse(box, fill=fill)
            else:
                draw.ellipse(box, outline=outline, width=self._scale(width))

    def _draw_centered_text(
        self,
        draw: ImageDraw.ImageDraw,
        text: str,
        baseline: int,
        font_size: int,
        fill: _RGBA,
    ) -> None:
        if not text:
            return
        scaled_size = self._scale(font_size)
        font = _font(scaled_size)
        # Bitmap fonts (Pillow without FreeType) only know Latin-1 and no anchor=
        if not isinstance(font, ImageFont.FreeTypeFont):
            text = text.encode("latin-1", "replace").decode("latin-1")
        width = draw.textlength(text, font=font)
        x = (self.size - width) / 2
        y = self._scale(baseline) - scaled_size
        draw.text((x, y), text, font=font, fill=fill)


__all__ = [
    "FallbackSynthesizer",
    "Palette",
    "STATIC_PLACEHOLDER",
    "palette",
    "string_hash",
    "truncate",
]
