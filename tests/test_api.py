import math

import numpy as np
import pytest

from complex_fractal.api import FractalRenderer, RenderConfig
from complex_fractal.core.fractal_types import JuliaSet, MandelbrotSet
from complex_fractal.core.transform import view_transform
from complex_fractal.engine.buffer import CancellationToken
from complex_fractal.rendering.coloring import PALETTE_PRESETS, Color
from complex_fractal.rendering.image_output import ImageExporter
from complex_fractal.rendering.rasterizer import render_to_image


@pytest.fixture
def config():
    return RenderConfig(width=40, height=30, max_iterations=50, num_workers=1)


@pytest.fixture
def renderer(config):
    return FractalRenderer(config)


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        FractalRenderer(RenderConfig(width=0))


def test_create_fractal_uses_config_limits(renderer):
    fractal = renderer.create_fractal('julia', c2='0.3+0.5i')
    assert fractal == JuliaSet(c2=complex(0.3, 0.5), max_iterations=50)
    assert renderer.create_fractal('mandelbrot', max_iterations=7).max_iterations == 7


def test_create_palette(renderer):
    assert renderer.create_palette() is PALETTE_PRESETS['default']
    renderer.update_config(palette='ice', palette_params={'fractal_color': '#ffffff'})
    assert renderer.create_palette().fractal_color == Color(1.0, 1.0, 1.0)


def test_create_transform_uses_degrees():
    renderer = FractalRenderer(RenderConfig(center=(0.5, -0.5), zoom=2.0, rotation=90.0))
    transform = renderer.create_transform()
    x, y = transform.apply((1.0, 0.0))
    assert x == pytest.approx(0.5)
    assert y == pytest.approx(0.0)


def test_render_to_file(renderer, tmp_path):
    fractal = renderer.create_fractal('mandelbrot')
    path = tmp_path / "m.png"
    pixels = renderer.render(fractal, path)

    assert pixels.shape == (30, 40, 4)
    expected = render_to_image(40, 30, fractal, renderer.create_palette(), view_transform())
    np.testing.assert_array_equal(pixels, expected)

    loaded, metadata = ImageExporter().load_png(path)
    np.testing.assert_array_equal(loaded, pixels)
    assert metadata.fractal_type == 'mandelbrot'
    assert metadata.resolution == (40, 30)
    assert metadata.render_time_seconds >= 0.0


def test_render_without_metadata(renderer, tmp_path):
    renderer.update_config(save_metadata=False)
    path = tmp_path / "plain.png"
    renderer.render(MandelbrotSet(max_iterations=20), path)
    assert ImageExporter().extract_metadata_from_image(path) is None


def test_render_creates_directories_when_configured(renderer, tmp_path):
    path = tmp_path / "out" / "m.png"
    with pytest.raises(OSError):
        renderer.render(MandelbrotSet(max_iterations=20), path)
    renderer.update_config(make_dirs=True)
    renderer.render(MandelbrotSet(max_iterations=20), path)
    assert path.exists()


def test_render_with_workers_matches_single_thread(config):
    fractal = JuliaSet(max_iterations=40)
    single = FractalRenderer(config).render(fractal)
    config.num_workers = 3
    threaded = FractalRenderer(config).render(fractal)
    np.testing.assert_array_equal(single, threaded)


def test_render_progress_and_cancel(renderer, tmp_path):
    token = CancellationToken()
    calls = []

    def progress(done, total):
        calls.append(done)
        if done == 10:
            token.cancel()

    path = tmp_path / "cancelled.png"
    assert renderer.render(MandelbrotSet(max_iterations=20), path, progress, token) is None
    assert calls == list(range(1, 11))
    assert not path.exists()


def test_update_config(renderer):
    renderer.update_config(width=64)
    assert renderer.config.width == 64
    with pytest.raises(ValueError):
        renderer.update_config(colour='red')
    with pytest.raises(ValueError):
        renderer.update_config(height=0)


def test_create_drawer(renderer):
    renderer.update_config(center=(-0.5, 0.0), zoom=2.0, preview_edge=8)
    drawer = renderer.create_drawer(MandelbrotSet(max_iterations=30))
    try:
        assert drawer.size == (40, 30)
        assert drawer.get_transform() == renderer.create_transform()
        center = drawer.center_coordinate()
        assert math.isclose(center.x, -0.5, abs_tol=1e-9)
        assert math.isclose(center.y, 0.0, abs_tol=1e-9)
        assert drawer.wait_until_idle(30.0)
    finally:
        drawer.close()
