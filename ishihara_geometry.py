"""
ishihara_geometry.py

2D geometry for Ishihara plate generation: points, circles, subpixel
anti-aliased circle rendering and rejection-sampled sub-circle placement.

All rasters are (H, W, 4) uint8 RGBA numpy arrays indexed ``[y, x]``.
"""

from __future__ import annotations
import math
from typing import Callable, Iterable, NamedTuple, Optional, Sequence, Tuple

import numpy as np

# =========================
# Configurable constants
# =========================
# Slack added to the bounding box so the anti-aliased edge is fully covered
BOUNDS_MARGIN = 1.5

# Pixels farther than radius + PIXEL_SLACK from the center are never touched
PIXEL_SLACK = 1.0

# Subpixel grid used for coverage density (SUBPIXEL_GRID x SUBPIXEL_GRID per pixel)
SUBPIXEL_GRID = 10

_SUBPIXEL_OFFSETS = np.arange(SUBPIXEL_GRID, dtype=np.float64) / SUBPIXEL_GRID


class Vector2(NamedTuple):
    """Immutable 2D point/vector. Also used for polar coordinates as (radius, angle)."""
    x: float
    y: float


def distance(a: Vector2, b: Vector2) -> float:
    """Euclidean distance between two points."""
    dx = b.x - a.x
    dy = b.y - a.y
    return math.sqrt(dx * dx + dy * dy)

def random_polar(max_radius: float, rng: np.random.Generator) -> Vector2:
    """
    Random polar coordinate (radius, angle).

    The angle is uniform in [0, 2*pi) and the radius is uniform in
    [0, max_radius). Radius is not area-weighted, so points cluster slightly
    toward the origin. Negative ``max_radius`` is clamped to zero.
    """
    max_radius = max(0.0, float(max_radius))
    angle = rng.random() * 2.0 * math.pi
    radius = rng.random() * max_radius
    return Vector2(radius, angle)

def polar_to_cartesian(origin: "Circle", polar: Vector2) -> Vector2:
    """Convert (radius, angle) to absolute coordinates around ``origin.center``."""
    x = polar.x * math.cos(polar.y)
    y = polar.x * math.sin(polar.y)
    return Vector2(x + origin.center.x, y + origin.center.y)


# =========================
# Circle
# =========================
class Circle:
    """
    A circle that can be drawn on an RGBA raster.

    ``bounds`` is ``(min_x, min_y, max_x, max_y)`` with exclusive max, each edge
    being ``center -/+ (radius + 1.5)`` truncated toward zero. It is derived
    once from center/radius; circles are never mutated after construction.
    """

    __slots__ = ("_center", "_radius", "_bounds")

    def __init__(self, center: Tuple[float, float], radius: float):
        if not radius > 0:
            raise ValueError(f"Circle radius must be > 0, got {radius}")
        c = Vector2(float(center[0]), float(center[1]))
        r = float(radius)
        object.__setattr__(self, "_center", c)
        object.__setattr__(self, "_radius", r)
        object.__setattr__(self, "_bounds", (
            int(c.x - r - BOUNDS_MARGIN),
            int(c.y - r - BOUNDS_MARGIN),
            int(c.x + r + BOUNDS_MARGIN),
            int(c.y + r + BOUNDS_MARGIN),
        ))

    def __setattr__(self, name, value):
        raise AttributeError("Circle is immutable")

    @property
    def center(self) -> Vector2:
        return self._center

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def bounds(self) -> Tuple[int, int, int, int]:
        return self._bounds

    def __repr__(self) -> str:
        return f"Circle(center=({self._center.x:.2f}, {self._center.y:.2f}), radius={self._radius:g})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Circle):
            return NotImplemented
        return self._center == other._center and self._radius == other._radius

    def __hash__(self) -> int:
        return hash((self._center, self._radius))

    # -------------------------
    # Pixel enumeration
    # -------------------------
    def pixel_coords(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Integer pixel coordinates (xs, ys) inside ``bounds`` whose distance to
        the center is <= radius + 1. Row-major order (y outer, x inner).

        This is the single enumeration shared by :meth:`render` and
        :meth:`overlap`.
        """
        min_x, min_y, max_x, max_y = self._bounds
        ys, xs = np.mgrid[min_y:max_y, min_x:max_x]
        xs = xs.ravel()
        ys = ys.ravel()
        dist = np.hypot(xs - self._center.x, ys - self._center.y)
        keep = (dist - PIXEL_SLACK) <= self._radius
        return xs[keep], ys[keep]

    def for_each_pixel(self, fn: Callable[[int, int], None]) -> None:
        """Call ``fn(x, y)`` for every pixel from :meth:`pixel_coords`."""
        xs, ys = self.pixel_coords()
        for x, y in zip(xs.tolist(), ys.tolist()):
            fn(x, y)

    def coverage(self, xs, ys) -> np.ndarray:
        """
        Subpixel coverage density for each pixel (xs[i], ys[i]).

        Samples a SUBPIXEL_GRID x SUBPIXEL_GRID grid at offsets 0.0, 0.1, ...
        from the pixel's top-left corner and returns the fraction of samples
        with distance to the center <= radius.
        """
        xs = np.atleast_1d(np.asarray(xs, dtype=np.float64))
        ys = np.atleast_1d(np.asarray(ys, dtype=np.float64))
        sx = xs[:, None, None] + _SUBPIXEL_OFFSETS[None, None, :]
        sy = ys[:, None, None] + _SUBPIXEL_OFFSETS[None, :, None]
        inside = np.hypot(sx - self._center.x, sy - self._center.y) <= self._radius
        return inside.sum(axis=(1, 2)) / float(SUBPIXEL_GRID * SUBPIXEL_GRID)

    # -------------------------
    # Raster operations
    # -------------------------
    def render(self, color: Sequence[int], dest: np.ndarray) -> None:
        """
        Draw the circle onto ``dest`` in place with subpixel anti-aliasing.

        Each covered pixel is linearly interpolated from its current colour
        toward ``color`` by its coverage density; alpha becomes 255. Pixels
        with zero density, and pixels outside ``dest``, are left untouched.
        """
        h, w = dest.shape[:2]
        xs, ys = self.pixel_coords()
        on_canvas = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
        xs, ys = xs[on_canvas], ys[on_canvas]
        if xs.size == 0:
            return

        density = self.coverage(xs, ys)
        hit = density > 0
        xs, ys, density = xs[hit], ys[hit], density[hit]
        if xs.size == 0:
            return

        bg = dest[ys, xs, :3].astype(np.float64)
        fg = np.asarray(color[:3], dtype=np.float64)[None, :]
        blended = bg + density[:, None] * (fg - bg)
        dest[ys, xs, :3] = blended.astype(np.uint8)
        dest[ys, xs, 3] = 255

    def overlap(self, mask: np.ndarray) -> float:
        """
        Fraction of this circle's pixels whose mask pixel is black (R, G and B
        all zero). Pixels outside the mask count as not covered.
        """
        xs, ys = self.pixel_coords()
        total = xs.size
        if total == 0:
            return 0.0
        h, w = mask.shape[:2]
        on_mask = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
        rgb = mask[ys[on_mask], xs[on_mask], :3]
        covered = int(np.count_nonzero(~rgb.any(axis=1)))
        return covered / float(total)

    # -------------------------
    # Placement
    # -------------------------
    def collides_with_any(self, circles: Iterable["Circle"], padding: float) -> bool:
        """True if any circle is closer than ``r1 + r2 + padding`` (padding applied once)."""
        centers, radii = circle_arrays(circles)
        if radii.size == 0:
            return False
        dist = np.hypot(centers[:, 0] - self._center.x, centers[:, 1] - self._center.y)
        return bool(np.any(dist < self._radius + radii + padding))

    def generate_sub_circle(
        self,
        radius: float,
        max_attempts: int,
        accept: Callable[["Circle"], bool],
        rng: np.random.Generator,
    ) -> Tuple[Optional["Circle"], bool]:
        """
        Rejection-sample a circle of ``radius`` inside this circle.

        Candidate centers are drawn within ``self.radius - radius`` of this
        circle's center. Returns ``(circle, True)`` for the first candidate
        ``accept`` approves, or ``(None, False)`` after ``max_attempts``
        rejections.
        """
        for _ in range(max_attempts):
            candidate = Circle(
                polar_to_cartesian(self, random_polar(self._radius - radius, rng)),
                radius,
            )
            if accept(candidate):
                return candidate, True
        return None, False


def circles_collide(c0: Circle, c1: Circle, padding: float) -> bool:
    """True if c0 and c1 overlap; the padding is applied only once."""
    return distance(c0.center, c1.center) < c0.radius + c1.radius + padding


# =========================
# Generation context
# =========================
class CircleList(Sequence[Circle]):
    """
    Ordered, append-only collection of placed circles.

    Keeps centers and radii in growable numpy buffers so collision checks
    against thousands of circles stay vectorised.
    """

    def __init__(self, circles: Iterable[Circle] = ()):
        self._circles = []
        self._centers = np.empty((64, 2), dtype=np.float64)
        self._radii = np.empty(64, dtype=np.float64)
        for c in circles:
            self.append(c)

    def append(self, circle: Circle) -> None:
        n = len(self._circles)
        if n == self._radii.size:
            self._centers = np.concatenate([self._centers, np.empty_like(self._centers)])
            self._radii = np.concatenate([self._radii, np.empty_like(self._radii)])
        self._centers[n] = circle.center
        self._radii[n] = circle.radius
        self._circles.append(circle)

    @property
    def centers(self) -> np.ndarray:
        return self._centers[:len(self._circles)]

    @property
    def radii(self) -> np.ndarray:
        return self._radii[:len(self._circles)]

    def __len__(self) -> int:
        return len(self._circles)

    def __getitem__(self, idx):
        return self._circles[idx]

    def __iter__(self):
        return iter(self._circles)

    def __repr__(self) -> str:
        return f"CircleList(n={len(self._circles)})"


def circle_arrays(circles: Iterable[Circle]) -> Tuple[np.ndarray, np.ndarray]:
    """Return (centers (N, 2), radii (N,)) for any iterable of circles."""
    if isinstance(circles, CircleList):
        return circles.centers, circles.radii
    circles = list(circles)
    if not circles:
        return np.empty((0, 2)), np.empty(0)
    centers = np.array([c.center for c in circles], dtype=np.float64)
    radii = np.array([c.radius for c in circles], dtype=np.float64)
    return centers, radii
