"""
ishihara_plate.py

Ishihara colour-vision plate generation.

A bounding circle is packed with non-overlapping dots in descending size
tiers. The first pass only accepts dots that sit on the black part of a
mask image; the second pass fills the rest of the bounding circle. Dots
that align with the mask are painted from the secondary palette, all
others from the primary palette.

Typical usage:
    >>> rng = np.random.default_rng(7)
    >>> plate = IshiharaPlate.generate(mask_rgba, rng=rng)
    >>> img = plate.render([(58, 106, 47)], [(163, 34, 34)], rng=rng)
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ishihara_geometry import Circle, CircleList, Vector2
from ishihara_utils import announce, ensure_bool, to_rgba

# =========================
# Configurable constants
# =========================
CANVAS_SIZE = (1024, 1024)            # (width, height) of mask and output
BOUNDING_CENTER = (512.0, 512.0)
BOUNDING_RADIUS = 450.0
TIER_RADII = (18.0, 6.0, 3.0)         # descending dot radii, used by both passes
MAX_ATTEMPTS = 10_000                 # rejection-sampling budget per placement
PADDING = 2.0                         # minimum gap between dots
MASK_THRESHOLD = 0.85                 # overlap needed to count as mask-aligned

BACKGROUND_RGBA = (255, 255, 255, 255)

PASS_MASK = "mask"
PASS_FILL = "fill"

RGB = Tuple[int, int, int]

_HEX_PAIR = re.compile(r"[0-9a-fA-F]{2}")


@dataclass(frozen=True)
class PlateConfig:
    """Tunables for one plate. Defaults are the reference behaviour."""
    canvas_size: Tuple[int, int] = CANVAS_SIZE
    bounding_center: Tuple[float, float] = BOUNDING_CENTER
    bounding_radius: float = BOUNDING_RADIUS
    tiers: Tuple[float, ...] = TIER_RADII
    max_attempts: int = MAX_ATTEMPTS
    padding: float = PADDING
    mask_threshold: float = MASK_THRESHOLD

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> "PlateConfig":
        """Build from a (YAML) mapping; unknown keys are ignored."""
        cfg = cfg or {}
        base = cls()
        return cls(
            canvas_size=tuple(int(v) for v in cfg.get("canvas_size", base.canvas_size)),
            bounding_center=tuple(float(v) for v in cfg.get("bounding_center", base.bounding_center)),
            bounding_radius=float(cfg.get("bounding_radius", base.bounding_radius)),
            tiers=tuple(float(v) for v in cfg.get("tiers", base.tiers)),
            max_attempts=int(cfg.get("max_attempts", base.max_attempts)),
            padding=float(cfg.get("padding", base.padding)),
            mask_threshold=float(cfg.get("mask_threshold", base.mask_threshold)),
        )

    def validate(self) -> None:
        if len(self.canvas_size) != 2 or min(self.canvas_size) <= 0:
            raise ValueError(f"canvas_size must be two positive integers, got {self.canvas_size}")
        if len(self.bounding_center) != 2:
            raise ValueError("bounding_center must be (x, y)")
        if not self.bounding_radius > 0:
            raise ValueError(f"bounding_radius must be > 0, got {self.bounding_radius}")
        if not self.tiers:
            raise ValueError("At least one tier radius is required.")
        if any(not r > 0 for r in self.tiers):
            raise ValueError(f"Tier radii must be > 0, got {list(self.tiers)}")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not 0.0 <= self.mask_threshold <= 1.0:
            raise ValueError("mask_threshold must be within [0, 1]")


# =========================
# Mask rescaling
# =========================
def scale_image(dest_size: Tuple[int, int], src: np.ndarray) -> np.ndarray:
    """
    Nearest-sample rescale of ``src`` to ``dest_size`` = (width, height).

    Destination pixel (x, y) copies source pixel
    ``(int(x * src_w / dst_w), int(y * src_h / dst_h))``. No interpolation.
    Returns a new premultiplied RGBA array.
    """
    dst_w, dst_h = int(dest_size[0]), int(dest_size[1])
    if dst_w <= 0 or dst_h <= 0:
        raise ValueError(f"Destination size must be positive, got {dest_size}")
    rgba = to_rgba(src, premultiply=True)
    src_h, src_w = rgba.shape[:2]
    if src_w == 0 or src_h == 0:
        raise ValueError("Source image is empty.")

    factor_x = float(src_w) / float(dst_w)
    factor_y = float(src_h) / float(dst_h)
    xs = (np.arange(dst_w, dtype=np.float64) * factor_x).astype(np.intp)
    ys = (np.arange(dst_h, dtype=np.float64) * factor_y).astype(np.intp)
    return rgba[ys[:, None], xs[None, :]].copy()


# =========================
# Palettes
# =========================
def parse_hex(hex_str: str) -> RGB:
    """Parse ``rrggbb`` (optionally ``#rrggbb``) into an (R, G, B) tuple."""
    s = hex_str.strip()
    if s.startswith("#"):
        s = s[1:]
    if len(s) != 6:
        raise ValueError(f"hex color '{hex_str}' must be in the format #[0-9a-fA-F]{{6}}")
    channels = []
    for name, raw in (("R", s[0:2]), ("G", s[2:4]), ("B", s[4:6])):
        if not _HEX_PAIR.fullmatch(raw):
            raise ValueError(f"invalid {name} channel '{raw}' must be a valid hex number")
        channels.append(int(raw, 16))
    return (channels[0], channels[1], channels[2])

def parse_palette(text: str) -> List[RGB]:
    """Parse a comma separated list of hex colours."""
    colors = []
    for entry in text.split(","):
        try:
            colors.append(parse_hex(entry))
        except ValueError as e:
            raise ValueError(f"failed to parse hex color '{entry}': {e}") from e
    return colors

def _validate_palette(name: str, colors: Sequence[Sequence[int]]) -> List[RGB]:
    if colors is None or len(colors) == 0:
        raise ValueError(f"{name} palette needs at least one color.")
    out = []
    for c in colors:
        if not isinstance(c, (list, tuple, np.ndarray)) or len(c) != 3:
            raise ValueError(f"Each {name} color must be a 3-tuple (R,G,B), got {c!r}")
        rgb = tuple(int(v) for v in c)
        if any(v < 0 or v > 255 for v in rgb):
            raise ValueError(f"{name} color channels must be in 0..255, got {rgb}")
        out.append(rgb)
    return out


# =========================
# Plate
# =========================
@dataclass(frozen=True, eq=False)
class IshiharaPlate:
    """
    The packed dots for one plate plus the scaled mask used to colour them.

    ``circles`` is in generation order; later dots are painted on top.
    ``passes`` records which pass (``"mask"`` or ``"fill"``) placed each dot.
    """
    circles: Tuple[Circle, ...]
    passes: Tuple[str, ...]
    mask: np.ndarray = field(repr=False)
    config: PlateConfig = PlateConfig()

    @classmethod
    def generate(
        cls,
        mask: np.ndarray,
        rng: Optional[np.random.Generator] = None,
        config: Optional[PlateConfig] = None,
    ) -> "IshiharaPlate":
        """
        Scale ``mask`` to the canvas and pack the bounding circle.

        Runs every tier once with the mask constraint, then every tier again
        without it. A tier ends the first time its placement budget runs out.
        """
        config = config or PlateConfig()
        config.validate()
        rng = rng if rng is not None else np.random.default_rng()
        mask_arr = np.asarray(mask)
        if mask_arr.ndim < 2 or mask_arr.shape[0] == 0 or mask_arr.shape[1] == 0:
            raise ValueError("Mask image must have a non-zero size.")

        bounds = Circle(Vector2(*config.bounding_center), config.bounding_radius)
        announce("SCALE_MASK", {"src": f"{mask_arr.shape[1]}x{mask_arr.shape[0]}",
                                "dst": f"{config.canvas_size[0]}x{config.canvas_size[1]}"})
        scaled = scale_image(config.canvas_size, mask_arr)

        placed = CircleList()
        passes: List[str] = []

        def aligned(c: Circle) -> bool:
            return (not c.collides_with_any(placed, config.padding)
                    and c.overlap(scaled) > config.mask_threshold)

        def free(c: Circle) -> bool:
            return not c.collides_with_any(placed, config.padding)

        for pass_name, accept in ((PASS_MASK, aligned), (PASS_FILL, free)):
            announce("PACK_PASS", {"pass": pass_name, "tiers": list(config.tiers),
                                   "max_attempts": config.max_attempts})
            for size in config.tiers:
                count = _fill_tier(bounds, size, config.max_attempts, accept, placed, rng)
                passes.extend([pass_name] * count)
                print(f"[PACK] pass={pass_name} radius={size:g} placed={count}")

        ensure_bool(len(passes) == len(placed), "Pass bookkeeping out of sync with placed circles.")
        print(f"[OK] Packed {len(placed)} circles.")
        return cls(circles=tuple(placed), passes=tuple(passes), mask=scaled, config=config)

    def is_aligned(self, circle: Circle) -> bool:
        """Same predicate the mask pass used to accept the circle."""
        return circle.overlap(self.mask) > self.config.mask_threshold

    def render(
        self,
        primary: Sequence[Sequence[int]],
        secondary: Sequence[Sequence[int]],
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """
        Paint the dots onto a fresh white canvas and return it as RGBA.

        Mask-aligned dots get a random secondary colour, the rest a random
        primary colour.
        """
        primary = _validate_palette("primary", primary)
        secondary = _validate_palette("secondary", secondary)
        rng = rng if rng is not None else np.random.default_rng()

        w, h = self.config.canvas_size
        img = np.empty((h, w, 4), dtype=np.uint8)
        img[:, :] = BACKGROUND_RGBA

        announce("RENDER", {"circles": len(self.circles), "primary": len(primary),
                            "secondary": len(secondary)})
        for circle in self.circles:
            palette = secondary if self.is_aligned(circle) else primary
            color = palette[int(rng.integers(len(palette)))]
            circle.render(color, img)
        print("[OK] Plate rendered.")
        return img

    def circle_summary(self) -> Dict[str, List[Tuple[float, int]]]:
        """Per pass, sorted (radius, count) pairs, largest radius first."""
        summary: Dict[str, Dict[float, int]] = {PASS_MASK: {}, PASS_FILL: {}}
        for c, p in zip(self.circles, self.passes):
            summary[p][c.radius] = summary[p].get(c.radius, 0) + 1
        return {p: sorted(counts.items(), key=lambda t: -t[0]) for p, counts in summary.items()}


def _fill_tier(bounds: Circle, size: float, max_attempts: int, accept,
               placed: CircleList, rng: np.random.Generator) -> int:
    """Place circles of one size until the budget runs out; returns how many were placed."""
    count = 0
    while True:
        circle, found = bounds.generate_sub_circle(size, max_attempts, accept, rng)
        if not found:
            return count
        placed.append(circle)
        count += 1
