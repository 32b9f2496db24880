import numpy as np
import pytest
import cv2
from rotmatch import (
    OutOfBounds,
    PixelAccessFailure,
    Raster,
    Selection,
    SENTINEL_SCORE,
    extract_patch,
    precompute_patch_stats,
    rotate_patch,
    score,
)
from rotmatch.patch import NEUTRAL_FILL, Patch, rotated_size
from rotmatch.statistics import PatchStats
from unittest.mock import patch
from test_helpers import noise_image, solid_image


# Raster
def test_raster_from_gray_array_is_opaque_rgba():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    raster = Raster.from_array(gray)
    assert (raster.width, raster.height) == (4, 3)
    assert raster.data.shape == (3, 4, 4)
    assert np.all(raster.data[:, :, 3] == 255)
    assert np.array_equal(raster.data[:, :, 0], gray)
    assert np.array_equal(raster.data[:, :, 2], gray)


def test_raster_from_float_array_converts_to_uint8():
    raster = Raster.from_array(np.ones((2, 2, 3), dtype=np.float64))
    assert raster.data.dtype == np.uint8
    assert np.all(raster.data[:, :, :3] == 255)


def test_raster_rejects_bad_shape():
    with pytest.raises(ValueError):
        Raster(np.zeros((4, 4, 3), dtype=np.uint8))
    with pytest.raises(ValueError):
        Raster.from_array(np.zeros((4, 4, 2), dtype=np.uint8))


def test_raster_is_read_only_copy():
    image = noise_image((10, 10))
    original = image[0, 0].copy()
    raster = Raster(image)
    image[0, 0] = original + 1
    assert np.array_equal(raster.data[0, 0], original)
    with pytest.raises(ValueError):
        raster.data[0, 0, 0] = 1


def test_raster_pixels_out_of_bounds():
    raster = Raster(noise_image((10, 10)))
    assert raster.pixels(2, 3, 4, 5).shape == (5, 4, 4)
    with pytest.raises(OutOfBounds):
        raster.pixels(8, 0, 4, 4)
    with pytest.raises(OutOfBounds):
        raster.pixels(-1, 0, 2, 2)


def test_raster_from_file_keeps_rgb_order(tmp_path):
    rgb = np.zeros((5, 6, 3), dtype=np.uint8)
    rgb[:, :, 0] = 200  # red
    path = tmp_path / "red.png"
    cv2.imwrite(str(path), cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))

    raster = Raster.from_file(path)
    assert (raster.width, raster.height) == (6, 5)
    assert np.all(raster.data[:, :, 0] == 200)
    assert np.all(raster.data[:, :, 1:3] == 0)
    assert np.all(raster.data[:, :, 3] == 255)


def test_raster_from_missing_file(tmp_path):
    with pytest.raises(ValueError):
        Raster.from_file(tmp_path / "missing.png")


def test_raster_fit_scales_down_large_images():
    raster = Raster(noise_image((1200, 1600)))
    fitted, scale = raster.fit()
    assert scale == pytest.approx(0.5)
    assert (fitted.width, fitted.height) == (800, 600)

    small = Raster(noise_image((100, 100)))
    same, scale = small.fit()
    assert same is small
    assert scale == 1.0


# Selection
def test_selection_from_corners_any_order():
    assert Selection.from_corners(30, 40, 10, 5) == Selection(10, 5, 20, 35)


def test_selection_clamp_and_usable():
    raster = Raster(noise_image((50, 60)))
    clamped = Selection(-5, 40, 20, 20).clamp(raster)
    assert clamped == Selection(0, 40, 15, 10)
    assert clamped.is_usable()
    assert not Selection(0, 0, 5, 40).is_usable()
    assert Selection(100, 100, 10, 10).clamp(raster).is_empty


# Extraction and rotation
def test_extract_patch_copies_region():
    image = noise_image((20, 20))
    raster = Raster(image)
    p = extract_patch(raster, 3, 4, 5, 6)
    assert (p.width, p.height) == (5, 6)
    assert np.array_equal(p.data, image[4:10, 3:8])
    assert not np.shares_memory(p.data, raster.data)


def test_extract_patch_out_of_bounds():
    raster = Raster(noise_image((20, 20)))
    with pytest.raises(OutOfBounds):
        extract_patch(raster, 15, 0, 10, 10)
    with pytest.raises(OutOfBounds):
        extract_patch(raster, 0, 0, 0, 10)


def test_rotate_zero_is_identity():
    p = Patch(noise_image((8, 12)))
    assert rotate_patch(p, 0) is p
    assert rotate_patch(p, 360) is p


@pytest.mark.parametrize("w,h,angle,expected", [
    (20, 10, 90, (10, 20)),
    (20, 10, 180, (20, 10)),
    (10, 10, 45, (15, 15)),
    (30, 10, 270, (10, 30)),
])
def test_rotated_size(w, h, angle, expected):
    assert rotated_size(w, h, angle) == expected


def test_rotate_90_is_clockwise_pixel_permutation():
    data = noise_image((10, 16))
    rotated = rotate_patch(Patch(data), 90)
    assert (rotated.width, rotated.height) == (10, 16)
    assert np.array_equal(rotated.data, np.rot90(data, k=-1))


def test_rotate_45_fills_corners_with_neutral_gray():
    rotated = rotate_patch(Patch(noise_image((20, 20))), 45)
    assert (rotated.width, rotated.height) == (29, 29)
    for corner in (rotated.data[0, 0], rotated.data[0, -1], rotated.data[-1, 0], rotated.data[-1, -1]):
        assert tuple(corner) == NEUTRAL_FILL


# Statistics
def test_grayscale_is_unweighted_channel_average():
    data = np.array([[[255, 0, 0, 0], [0, 0, 255, 255]]], dtype=np.uint8)
    stats = precompute_patch_stats(Patch(data))
    assert stats.grayscale.tolist() == pytest.approx([85.0, 85.0])
    assert stats.mean == pytest.approx(85.0)
    assert stats.sum_sq_dev == 0.0


def test_sum_sq_dev_is_not_normalized():
    data = np.zeros((1, 2, 4), dtype=np.uint8)
    data[0, 1, :3] = 30  # gray values 0 and 30
    stats = precompute_patch_stats(Patch(data), angle=15)
    assert stats.mean == pytest.approx(15.0)
    assert stats.sum_sq_dev == pytest.approx(450.0)
    assert stats.norm == pytest.approx(np.sqrt(450.0))
    assert stats.grayscale.size == stats.width * stats.height
    assert stats.angle == 15


# Correlation
def test_self_match_scores_one():
    raster = Raster(noise_image((30, 30)))
    stats = precompute_patch_stats(extract_patch(raster, 5, 7, 12, 10))
    assert score(stats, raster, 5, 7) == pytest.approx(1.0, abs=1e-9)


def test_score_is_invariant_to_gain_and_bias():
    patch_data = noise_image((10, 10), seed=3)
    patch_data[:, :, :3] = patch_data[:, :, :3] // 4
    stats = precompute_patch_stats(Patch(patch_data))
    target = patch_data.copy()
    target[:, :, :3] = target[:, :, :3] * 2 + 10
    assert score(stats, Raster(target), 0, 0) == pytest.approx(1.0, abs=1e-9)


def test_inverted_patch_scores_minus_one():
    patch_data = noise_image((10, 10), seed=4)
    stats = precompute_patch_stats(Patch(patch_data))
    inverted = patch_data.copy()
    inverted[:, :, :3] = 255 - inverted[:, :, :3]
    assert score(stats, Raster(inverted), 0, 0) == pytest.approx(-1.0, abs=1e-9)


def test_flat_target_or_patch_scores_zero():
    stats = precompute_patch_stats(Patch(noise_image((5, 5))))
    assert score(stats, Raster(solid_image((10, 10), (85, 85, 86))), 2, 2) == 0.0

    flat_stats = precompute_patch_stats(Patch(solid_image((5, 5))))
    assert score(flat_stats, Raster(noise_image((10, 10))), 0, 0) == 0.0


def test_out_of_bounds_window_scores_sentinel():
    raster = Raster(noise_image((10, 10)))
    stats = precompute_patch_stats(Patch(noise_image((4, 4))))
    assert score(stats, raster, 7, 0) == SENTINEL_SCORE
    assert score(stats, raster, -1, 0) == SENTINEL_SCORE
    assert score(stats, raster, 6, 6) != SENTINEL_SCORE


def test_pixel_access_failure_scores_sentinel():
    raster = Raster(noise_image((10, 10)))
    stats = precompute_patch_stats(Patch(noise_image((4, 4))))
    with patch.object(raster, 'gray_window', side_effect=PixelAccessFailure("tile unavailable")):
        assert score(stats, raster, 0, 0) == SENTINEL_SCORE


@pytest.mark.parametrize("error", [OSError("source gone"), IndexError("bad tile"), TypeError("not an array")])
def test_any_read_error_scores_sentinel(error):
    raster = Raster(noise_image((10, 10)))
    stats = precompute_patch_stats(Patch(noise_image((4, 4))))
    with patch.object(raster, 'gray_window', side_effect=error):
        assert score(stats, raster, 0, 0) == SENTINEL_SCORE


def test_unconvertible_window_scores_sentinel():
    raster = Raster(noise_image((10, 10)))
    stats = precompute_patch_stats(Patch(noise_image((4, 4))))
    with patch.object(raster, 'gray_window', return_value=[["a", "b"]]):
        assert score(stats, raster, 0, 0) == SENTINEL_SCORE


def test_manually_built_stats_score_like_precomputed():
    raster = Raster(noise_image((12, 12)))
    pre = precompute_patch_stats(extract_patch(raster, 0, 0, 6, 6))
    manual = PatchStats(grayscale=pre.grayscale, mean=pre.mean, sum_sq_dev=pre.sum_sq_dev, width=6, height=6)
    assert score(manual, raster, 3, 4) == pytest.approx(score(pre, raster, 3, 4))


def test_selection_scaled_follows_raster_fit():
    raster = Raster(noise_image((1200, 1600)))
    fitted, scale = raster.fit()
    sel = Selection(100, 200, 300, 400).scaled(scale)
    assert sel == Selection(50, 100, 150, 200)
    assert sel.clamp(fitted) == sel
