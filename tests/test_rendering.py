"""Tests for display rendering helpers."""

import numpy as np
import pytest
import jax.numpy as jnp
from PIL import Image
from chipvm.rendering import display_to_rgb, create_color_scheme, save_screenshot


@pytest.fixture
def display():
    return jnp.zeros((64, 32), dtype=jnp.bool_).at[3, 1].set(True)


def test_display_to_rgb_shape_and_colors(display):
    rgb = display_to_rgb(display, scale=1, on_color=(1, 2, 3), off_color=(9, 9, 9))
    assert rgb.shape == (32, 64, 3)
    assert rgb.dtype == np.uint8
    assert tuple(rgb[1, 3]) == (1, 2, 3)
    assert tuple(rgb[0, 0]) == (9, 9, 9)


def test_display_to_rgb_scaling(display):
    rgb = display_to_rgb(display, scale=4)
    assert rgb.shape == (128, 256, 3)
    assert tuple(rgb[4, 12]) == (0, 255, 0)
    assert tuple(rgb[7, 15]) == (0, 255, 0)
    assert tuple(rgb[8, 12]) == (0, 0, 0)


def test_display_to_rgb_rejects_wrong_shape():
    with pytest.raises(ValueError):
        display_to_rgb(jnp.zeros((32, 64), dtype=jnp.bool_))


def test_unknown_color_scheme():
    with pytest.raises(ValueError):
        create_color_scheme("octarine")


def test_save_screenshot(display, tmp_path):
    path = tmp_path / "frame.png"
    save_screenshot(display, str(path), scale=2, color_scheme="amber")
    with Image.open(path) as image:
        assert image.size == (128, 64)
        assert image.getpixel((6, 2)) == (255, 176, 0)
