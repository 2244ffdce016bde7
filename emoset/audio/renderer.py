"""Waveform rendering onto device-pixel-ratio aware raster surfaces.

Drawing happens in logical (layout) coordinates. A surface owns a physical
RGBA image of ``logical size * device_pixel_ratio`` pixels and a single scale
transform maps logical points onto it, so callers never deal with physical
pixels directly.

Note: This module requires PIL.
"""

from __future__ import annotations

import io
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from PIL import Image, ImageColor, ImageDraw

DEFAULT_PLAYED_COLOR: str = "#667eea"
DEFAULT_UNPLAYED_COLOR: str = "#cccccc"

Point = tuple[float, float]
RGBA = tuple[int, int, int, int]


class RenderMode(str, Enum):
    """Overlay draws a faint shape on a transparent surface; progress draws the player bar."""

    OVERLAY = "overlay"
    PROGRESS = "progress"


@dataclass(frozen=True)
class _LayerStyle:
    fill_alpha: float
    stroke_alpha: float
    stroke_width: float


_OVERLAY_STYLE = _LayerStyle(fill_alpha=0.15, stroke_alpha=0.4, stroke_width=1.5)
_UNPLAYED_STYLE = _LayerStyle(fill_alpha=0.25, stroke_alpha=0.7, stroke_width=2.5)
_PLAYED_STYLE = _LayerStyle(fill_alpha=0.6, stroke_alpha=1.0, stroke_width=2.5)

OVERLAY_AMPLITUDE_SCALE: float = 0.6
PROGRESS_AMPLITUDE_SCALE: float = 0.7

SEEK_LINE_WIDTH: float = 3.0
SEEK_SHADOW_COLOR: RGBA = (0, 0, 0, 102)  # rgba(0, 0, 0, 0.4)
SEEK_CAP_RADIUS: float = 4.0
SEEK_CAP_INSET: float = 5.0


@dataclass
class RasterSurface:
    """A drawable surface with separate logical and physical resolution."""

    width: float
    height: float
    device_pixel_ratio: float = 1.0
    image: Image.Image = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Surface size must be positive, got {self.width}x{self.height}")
        if self.device_pixel_ratio <= 0:
            self.device_pixel_ratio = 1.0
        self.image = Image.new("RGBA", self.physical_size, (0, 0, 0, 0))

    @property
    def physical_size(self) -> tuple[int, int]:
        return (
            max(1, round(self.width * self.device_pixel_ratio)),
            max(1, round(self.height * self.device_pixel_ratio)),
        )

    def clear(self, color: RGBA = (0, 0, 0, 0)) -> None:
        """Reset every physical pixel to ``color``."""
        self.image = Image.new("RGBA", self.physical_size, color)

    def to_png_bytes(self) -> bytes:
        out = io.BytesIO()
        self.image.save(out, "PNG", optimize=True)
        return out.getvalue()


class _Canvas:
    """Logical-coordinate drawing on a surface (one scale transform per render)."""

    def __init__(self, surface: RasterSurface):
        self.scale = surface.device_pixel_ratio
        self.draw = ImageDraw.Draw(surface.image, "RGBA")

    def _pt(self, point: Point) -> Point:
        return (point[0] * self.scale, point[1] * self.scale)

    def _width(self, width: float) -> int:
        return max(1, round(width * self.scale))

    def polygon(self, points: Sequence[Point], fill: RGBA) -> None:
        if len(points) >= 3:
            self.draw.polygon([self._pt(p) for p in points], fill=fill)

    def closed_path(self, points: Sequence[Point], color: RGBA, width: float) -> None:
        if len(points) >= 2:
            physical = [self._pt(p) for p in points]
            self.draw.line(physical + [physical[0]], fill=color, width=self._width(width), joint="curve")

    def line(self, start: Point, end: Point, color: RGBA, width: float) -> None:
        self.draw.line([self._pt(start), self._pt(end)], fill=color, width=self._width(width))

    def circle(self, center: Point, radius: float, fill: RGBA) -> None:
        cx, cy = self._pt(center)
        r = radius * self.scale
        self.draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=fill)


def parse_color(color: str, alpha: float = 1.0) -> RGBA:
    """Parse a CSS-style color and apply an opacity in [0, 1]."""
    rgb = ImageColor.getrgb(color)
    base_alpha = rgb[3] if len(rgb) == 4 else 255
    return (rgb[0], rgb[1], rgb[2], round(base_alpha * max(0.0, min(1.0, alpha))))


def clamp_progress(progress: float) -> float:
    if math.isnan(progress):
        return 0.0
    return max(0.0, min(1.0, progress))


def playback_progress(current_time: float, duration: float) -> float:
    """Fraction of the clip played so far, in [0, 1]."""
    if duration <= 0 or math.isnan(duration):
        return 0.0
    return clamp_progress(current_time / duration)


def progress_to_x(progress: float, width: float) -> float:
    """Horizontal seek-indicator position for a playback fraction."""
    return width * clamp_progress(progress)


def x_to_progress(x: float, width: float) -> float:
    """Inverse of progress_to_x for a pointer offset within the surface."""
    if width <= 0:
        return 0.0
    return clamp_progress(x / width)


def seek_time(x: float, width: float, duration: float) -> float:
    """Playback time in seconds for a click at horizontal offset ``x``."""
    return x_to_progress(x, width) * max(0.0, duration)


def progress_index(progress: float, sample_count: int) -> int:
    """Number of envelope buckets drawn as played."""
    return math.floor(clamp_progress(progress) * sample_count)


def envelope_outline(
    values: Sequence[float], width: float, height: float, amplitude_scale: float
) -> list[Point]:
    """Closed mirrored outline: upper edge left to right, lower edge back."""
    if not values:
        return []
    center_y = height / 2
    step = width / len(values)
    upper = [(i * step, center_y - v * center_y * amplitude_scale) for i, v in enumerate(values)]
    lower = [(x, 2 * center_y - y) for x, y in reversed(upper)]
    return upper + lower


def _draw_layer(
    canvas: _Canvas, outline: Sequence[Point], color: str, style: _LayerStyle
) -> None:
    canvas.polygon(outline, parse_color(color, style.fill_alpha))
    canvas.closed_path(outline, parse_color(color, style.stroke_alpha), style.stroke_width)


def _draw_seek_indicator(canvas: _Canvas, x: float, height: float) -> None:
    white = (255, 255, 255, 255)
    canvas.line((x, 0), (x, height), white, SEEK_LINE_WIDTH)
    canvas.line((x - 1, 0), (x - 1, height), SEEK_SHADOW_COLOR, 1)
    canvas.circle((x, SEEK_CAP_INSET), SEEK_CAP_RADIUS, white)
    canvas.circle((x, height - SEEK_CAP_INSET), SEEK_CAP_RADIUS, white)


def render_waveform(
    surface: RasterSurface,
    envelope: Sequence[float],
    progress: float = 0.0,
    mode: RenderMode = RenderMode.PROGRESS,
    played_color: str = DEFAULT_PLAYED_COLOR,
    unplayed_color: str = DEFAULT_UNPLAYED_COLOR,
) -> RasterSurface:
    """Draw an envelope onto a surface.

    In overlay mode the surface stays transparent and the envelope is drawn once
    in ``played_color`` at low opacity. In progress mode the surface is filled
    white, the whole envelope is drawn in ``unplayed_color``, buckets before
    ``floor(progress * N)`` are drawn again in ``played_color``, and a seek
    indicator is drawn at ``x = width * progress``.

    Args:
        surface: Target surface (cleared before drawing)
        envelope: Envelope values, typically in [0, 1]
        progress: Playback fraction
        mode: Render mode
        played_color: Color of the played portion (and the overlay shape)
        unplayed_color: Color of the base layer in progress mode

    Returns:
        The same surface, for chaining
    """
    values = list(envelope)
    width, height = surface.width, surface.height
    progress = clamp_progress(progress)

    if mode is RenderMode.OVERLAY:
        surface.clear()
        canvas = _Canvas(surface)
        outline = envelope_outline(values, width, height, OVERLAY_AMPLITUDE_SCALE)
        _draw_layer(canvas, outline, played_color, _OVERLAY_STYLE)
        return surface

    surface.clear((255, 255, 255, 255))
    canvas = _Canvas(surface)

    outline = envelope_outline(values, width, height, PROGRESS_AMPLITUDE_SCALE)
    _draw_layer(canvas, outline, unplayed_color, _UNPLAYED_STYLE)

    played_count = progress_index(progress, len(values))
    if progress > 0 and played_count > 0:
        # Keep the full-envelope x spacing so played buckets line up with the base layer
        step = width / len(values)
        played = values[:played_count]
        played_outline = envelope_outline(
            played, step * played_count, height, PROGRESS_AMPLITUDE_SCALE
        )
        _draw_layer(canvas, played_outline, played_color, _PLAYED_STYLE)

    _draw_seek_indicator(canvas, progress_to_x(progress, width), height)
    return surface


def render_placeholder(surface: RasterSurface, color: str = DEFAULT_UNPLAYED_COLOR) -> RasterSurface:
    """Flat center line shown when no envelope is available."""
    surface.clear((255, 255, 255, 255))
    canvas = _Canvas(surface)
    canvas.line((0, surface.height / 2), (surface.width, surface.height / 2), parse_color(color), 1)
    return surface
