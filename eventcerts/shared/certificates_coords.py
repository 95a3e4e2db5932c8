"""Percent-of-canvas design coordinates to renderer device coordinates.

Design space has its origin top-left with Y growing downward. Offsets are in
design units (PDF points or PNG pixels, which coincide) and also grow
downward. Only the PDF backend flips Y.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Canvas:
    width: float
    height: float


@dataclass(frozen=True)
class DevicePoint:
    x: float
    y: float


def to_device(
    x_pct: float,
    y_pct: float,
    canvas: Canvas,
    *,
    flip_y: bool,
    dx: float = 0.0,
    dy: float = 0.0,
) -> DevicePoint:
    x = canvas.width * x_pct / 100.0 + dx
    y = canvas.height * y_pct / 100.0 + dy
    if flip_y:
        y = canvas.height - y
    return DevicePoint(x, y)


def to_pdf(x_pct: float, y_pct: float, canvas: Canvas, dx: float = 0.0, dy: float = 0.0) -> DevicePoint:
    return to_device(x_pct, y_pct, canvas, flip_y=True, dx=dx, dy=dy)


def to_raster(x_pct: float, y_pct: float, canvas: Canvas, dx: float = 0.0, dy: float = 0.0) -> DevicePoint:
    return to_device(x_pct, y_pct, canvas, flip_y=False, dx=dx, dy=dy)


def box_origin(
    left: float, top: float, height: float, canvas: Canvas, *, flip_y: bool
) -> DevicePoint:
    """Drawing origin for a box whose design top-left corner is ``(left, top)``.

    The PDF backend places images by their bottom-left corner.
    """
    if flip_y:
        return DevicePoint(left, canvas.height - top - height)
    return DevicePoint(left, top)


def centered_x(anchor_x: float, text_width: float) -> float:
    return anchor_x - text_width / 2.0


def middle_baseline(anchor_y: float, ascent: float, descent: float, *, flip_y: bool) -> float:
    """Baseline that puts the glyph box's vertical middle on ``anchor_y``.

    ``ascent`` and ``descent`` are both positive distances from the baseline,
    measured by the backend that draws.
    """
    half = (ascent - descent) / 2.0
    if flip_y:
        return anchor_y - half
    return anchor_y + half
