"""Tests for mask rescaling, palettes and plate packing/rendering.

Tests for ishihara_plate:
    - Nearest-sample rescale (identity, 2x up, 2x down, gray/alpha inputs)
    - Hex colour and palette parsing
    - PlateConfig validation and YAML mapping
    - Two-pass packing invariants on a small canvas
    - Palette selection when rendering (all-white and all-black masks)

Full-size packing (1024 canvas, 10 000 attempts) is marked slow.

Run:
    pytest tests/test_plate.py -v
"""
import numpy as np
import pytest

from ishihara_geometry import Vector2, distance
from ishihara_plate import (
    PASS_FILL,
    PASS_MASK,
    IshiharaPlate,
    PlateConfig,
    parse_hex,
    parse_palette,
    scale_image,
)
from ishihara_utils import to_rgba

BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)
RED = (255, 0, 0)
BLUE = (0, 0, 255)

SMALL = PlateConfig(
    canvas_size=(128, 128),
    bounding_center=(64.0, 64.0),
    bounding_radius=50.0,
    tiers=(6.0, 3.0),
    max_attempts=300,
)


def solid_mask(color, w=128, h=128):
    m = np.empty((h, w, 4), dtype=np.uint8)
    m[:, :] = color
    return m


def checkerboard_2x2():
    return np.array([[BLACK, WHITE], [WHITE, BLACK]], dtype=np.uint8)


class TestScaleImage:
    """Nearest-sample mask rescaling."""

    def test_same_size_is_identity(self):
        rng = np.random.default_rng(0)
        src = rng.integers(0, 256, size=(5, 7, 3), dtype=np.uint8)
        out = scale_image((7, 5), src)
        assert out.shape == (5, 7, 4)
        assert np.array_equal(out, to_rgba(src))

    def test_checkerboard_upscale_duplicates_blocks(self):
        out = scale_image((4, 4), checkerboard_2x2())
        want = np.array([
            [BLACK, BLACK, WHITE, WHITE],
            [BLACK, BLACK, WHITE, WHITE],
            [WHITE, WHITE, BLACK, BLACK],
            [WHITE, WHITE, BLACK, BLACK],
        ], dtype=np.uint8)
        assert np.array_equal(out, want)

    def test_checkerboard_downscale(self):
        big = scale_image((4, 4), checkerboard_2x2())
        assert np.array_equal(scale_image((2, 2), big), checkerboard_2x2())

    def test_non_uniform_scale(self):
        src = np.arange(6, dtype=np.uint8).reshape(2, 3)
        out = scale_image((6, 4), src)
        assert out.shape == (4, 6, 4)
        assert out[:, :, 0].tolist() == [
            [0, 0, 1, 1, 2, 2],
            [0, 0, 1, 1, 2, 2],
            [3, 3, 4, 4, 5, 5],
            [3, 3, 4, 4, 5, 5],
        ]

    def test_transparent_pixels_read_black(self):
        src = np.array([[[200, 100, 50, 0], [200, 100, 50, 255]]], dtype=np.uint8)
        out = scale_image((2, 1), src)
        assert tuple(out[0, 0, :3]) == (0, 0, 0)
        assert tuple(out[0, 1, :3]) == (200, 100, 50)

    def test_output_does_not_alias_source(self):
        src = solid_mask(WHITE, 4, 4)
        out = scale_image((4, 4), src)
        out[0, 0] = BLACK
        assert tuple(src[0, 0]) == WHITE

    @pytest.mark.parametrize("size", [(0, 4), (4, 0), (-1, 2)])
    def test_bad_destination_size(self, size):
        with pytest.raises(ValueError):
            scale_image(size, checkerboard_2x2())

    def test_empty_source(self):
        with pytest.raises(ValueError):
            scale_image((4, 4), np.zeros((0, 3, 4), dtype=np.uint8))


class TestParseHex:
    """Hex colour parsing."""

    @pytest.mark.parametrize("text,want", [
        ("#001122", (0x00, 0x11, 0x22)),
        ("#0A1B2C", (0x0A, 0x1B, 0x2C)),
        ("0a1b2c", (0x0A, 0x1B, 0x2C)),
        ("3a6a2f", (0x3A, 0x6A, 0x2F)),
    ])
    def test_valid(self, text, want):
        assert parse_hex(text) == want

    @pytest.mark.parametrize("text", ["#EEE", "#BADHEX", "", "1234567", "+1+2+3", "1_2_3_"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_hex(text)

    def test_palette(self):
        assert parse_palette("3a6a2f,76cd63") == [(0x3A, 0x6A, 0x2F), (0x76, 0xCD, 0x63)]

    def test_palette_reports_bad_entry(self):
        with pytest.raises(ValueError, match="zzzzzz"):
            parse_palette("3a6a2f,zzzzzz")


class TestPlateConfig:
    """Tunables and their validation."""

    def test_defaults_match_reference(self):
        cfg = PlateConfig()
        assert cfg.canvas_size == (1024, 1024)
        assert cfg.bounding_center == (512.0, 512.0)
        assert cfg.bounding_radius == 450.0
        assert cfg.tiers == (18.0, 6.0, 3.0)
        assert cfg.max_attempts == 10_000
        assert cfg.padding == 2.0
        assert cfg.mask_threshold == 0.85

    def test_from_dict_overrides(self):
        cfg = PlateConfig.from_dict({"canvas_size": [256, 200], "tiers": [9, 4], "max_attempts": 50,
                                     "seed": 3, "primary_colors": ["ff0000"]})
        assert cfg.canvas_size == (256, 200)
        assert cfg.tiers == (9.0, 4.0)
        assert cfg.max_attempts == 50
        assert cfg.bounding_radius == 450.0

    def test_from_empty_dict(self):
        assert PlateConfig.from_dict(None) == PlateConfig()

    @pytest.mark.parametrize("overrides", [
        {"bounding_radius": 0.0},
        {"bounding_radius": -5.0},
        {"tiers": ()},
        {"tiers": (6.0, 0.0)},
        {"max_attempts": 0},
        {"canvas_size": (0, 10)},
        {"mask_threshold": 1.5},
    ])
    def test_invalid_configs_fail_fast(self, overrides):
        cfg = PlateConfig(**overrides)
        with pytest.raises(ValueError):
            IshiharaPlate.generate(solid_mask(WHITE), config=cfg)


class TestPacking:
    """Two-pass packing on a small canvas."""

    @pytest.fixture
    def half_mask(self):
        m = solid_mask(WHITE)
        m[:, :64, :3] = 0
        return m

    @pytest.fixture
    def plate(self, half_mask):
        return IshiharaPlate.generate(half_mask, rng=np.random.default_rng(42), config=SMALL)

    def test_non_empty(self, plate):
        assert len(plate.circles) > 0
        assert len(plate.passes) == len(plate.circles)

    def test_no_pairwise_collisions(self, plate):
        cs = plate.circles
        for i in range(len(cs)):
            for j in range(i + 1, len(cs)):
                assert distance(cs[i].center, cs[j].center) >= cs[i].radius + cs[j].radius + SMALL.padding

    def test_circles_inside_bounding_circle(self, plate):
        for c in plate.circles:
            assert distance(c.center, Vector2(*SMALL.bounding_center)) + c.radius <= SMALL.bounding_radius + 1e-9

    def test_radii_come_from_tiers(self, plate):
        assert {c.radius for c in plate.circles} <= set(SMALL.tiers)

    def test_mask_pass_precedes_fill_pass(self, plate):
        passes = list(plate.passes)
        assert PASS_MASK in passes and PASS_FILL in passes
        first_fill = passes.index(PASS_FILL)
        assert all(p == PASS_FILL for p in passes[first_fill:])

    def test_tiers_descend_within_each_pass(self, plate):
        for name in (PASS_MASK, PASS_FILL):
            radii = [c.radius for c, p in zip(plate.circles, plate.passes) if p == name]
            assert radii == sorted(radii, reverse=True)

    def test_mask_pass_circles_are_aligned(self, plate):
        for c, p in zip(plate.circles, plate.passes):
            if p == PASS_MASK:
                assert plate.is_aligned(c)

    def test_mask_is_scaled_to_canvas(self, plate):
        assert plate.mask.shape == (128, 128, 4)

    def test_mask_of_other_size_is_rescaled(self):
        m = solid_mask(WHITE, 32, 16)
        m[:, :16, :3] = 0
        plate = IshiharaPlate.generate(m, rng=np.random.default_rng(1), config=SMALL)
        assert plate.mask.shape == (128, 128, 4)
        assert tuple(plate.mask[0, 0]) == BLACK
        assert tuple(plate.mask[127, 127]) == WHITE

    def test_summary_counts_every_circle(self, plate):
        summary = plate.circle_summary()
        assert set(summary) == {PASS_MASK, PASS_FILL}
        assert sum(n for counts in summary.values() for _, n in counts) == len(plate.circles)

    def test_seed_reproduces_plate(self, half_mask):
        a = IshiharaPlate.generate(half_mask, rng=np.random.default_rng(8), config=SMALL)
        b = IshiharaPlate.generate(half_mask, rng=np.random.default_rng(8), config=SMALL)
        assert a.circles == b.circles

    def test_zero_size_mask_rejected(self):
        with pytest.raises(ValueError):
            IshiharaPlate.generate(np.zeros((0, 0, 4), dtype=np.uint8), config=SMALL)


class TestRender:
    """Colouring dots from the two palettes."""

    def test_all_white_mask_uses_primary_only(self):
        rng = np.random.default_rng(5)
        plate = IshiharaPlate.generate(solid_mask(WHITE), rng=rng, config=SMALL)
        assert PASS_MASK not in plate.passes
        assert len(plate.circles) > 0
        img = plate.render([RED], [BLUE], rng=rng)
        # Red blended over white never lowers the red channel.
        assert np.all(img[:, :, 0] == 255)
        assert np.any(img[:, :, 1] < 255)

    def test_all_black_mask_uses_secondary_only(self):
        rng = np.random.default_rng(6)
        plate = IshiharaPlate.generate(solid_mask(BLACK), rng=rng, config=SMALL)
        assert plate.passes.count(PASS_MASK) > 0
        img = plate.render([RED], [BLUE], rng=rng)
        assert np.all(img[:, :, 2] == 255)
        assert np.any(img[:, :, 0] < 255)

    def test_output_shape_and_alpha(self):
        rng = np.random.default_rng(7)
        plate = IshiharaPlate.generate(solid_mask(WHITE), rng=rng, config=SMALL)
        img = plate.render([RED, (0, 255, 0)], [BLUE], rng=rng)
        assert img.shape == (128, 128, 4)
        assert img.dtype == np.uint8
        assert np.all(img[:, :, 3] == 255)
        # canvas corners lie outside the bounding circle
        assert tuple(img[0, 0]) == WHITE

    def test_render_does_not_change_circles(self):
        rng = np.random.default_rng(9)
        plate = IshiharaPlate.generate(solid_mask(WHITE), rng=rng, config=SMALL)
        before = plate.circles
        plate.render([RED], [BLUE], rng=rng)
        assert plate.circles == before

    @pytest.mark.parametrize("primary,secondary", [([], [BLUE]), ([RED], []), ([(1, 2)], [BLUE]),
                                                   ([RED], [(0, 0, 256)])])
    def test_bad_palettes_rejected(self, primary, secondary):
        plate = IshiharaPlate.generate(solid_mask(WHITE), rng=np.random.default_rng(1), config=SMALL)
        with pytest.raises(ValueError):
            plate.render(primary, secondary)


@pytest.mark.slow
def test_full_size_packing_terminates():
    """Reference configuration on a 1024 canvas with a black disc mask."""
    mask = solid_mask(WHITE, 256, 256)
    yy, xx = np.mgrid[0:256, 0:256]
    mask[(xx - 128) ** 2 + (yy - 128) ** 2 < 60 ** 2, :3] = 0

    rng = np.random.default_rng(2024)
    plate = IshiharaPlate.generate(mask, rng=rng)
    assert len(plate.circles) > 0
    assert PASS_MASK in plate.passes
    img = plate.render([RED], [BLUE], rng=rng)
    assert img.shape == (1024, 1024, 4)
