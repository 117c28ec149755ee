from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from complex_fractal.acceleration.parallel import (
    ColumnPool, create_column_chunks, get_optimal_worker_count, map_chunks,
)
from complex_fractal.core.fractal_types import MandelbrotSet
from complex_fractal.core.transform import IDENTITY, fit_to_canvas, view_transform
from complex_fractal.engine.buffer import CancellationToken
from complex_fractal.rendering.coloring import SinusoidalPalette
from complex_fractal.rendering.rasterizer import (
    render_image, render_line, render_rows, render_to_image,
)


def test_render_line_shape(any_fractal, palette):
    line = render_line(3, 40, fit_to_canvas(40, 20), any_fractal, palette)
    assert line.shape == (40, 4)
    assert line.dtype == np.uint8
    assert (line[:, 3] == 255).all()


def test_render_line_matches_scalar_path(julia, palette):
    transform = fit_to_canvas(30, 20).add_after(view_transform(zoom=1.5))
    row = 7
    line = render_line(row, 30, transform, julia, palette)
    for x in range(30):
        n = julia.evaluate(transform.apply((x, row)))
        expected = np.array(palette.num_iter_to_color(n).to_rgba8())
        assert np.abs(line[x].astype(int) - expected).max() <= 1


def test_empty_range():
    rows = render_rows(5, 5, 10, IDENTITY, MandelbrotSet(), SinusoidalPalette())
    assert rows.shape == (0, 10, 4)


def test_pool_does_not_change_result(julia, palette):
    transform = fit_to_canvas(300, 8)
    plain = render_rows(0, 8, 300, transform, julia, palette)
    with ThreadPoolExecutor(max_workers=4) as pool:
        pooled = render_rows(0, 8, 300, transform, julia, palette, pool)
    np.testing.assert_array_equal(plain, pooled)


def test_center_pixel_is_in_set():
    image = render_to_image(100, 100, MandelbrotSet(max_iterations=1024, escape_radius=2.0),
                            SinusoidalPalette(), IDENTITY)
    assert image.shape == (100, 100, 4)
    assert tuple(image[50, 50]) == (0, 0, 0, 255)


def test_corner_pixel_escapes():
    image = render_to_image(100, 100, MandelbrotSet(), SinusoidalPalette(), IDENTITY)
    # (-1, 1) leaves the radius after a few iterations
    assert tuple(image[0, 0]) != (0, 0, 0, 255)


def test_render_image_matches_render_to_image(mandelbrot, palette):
    view = view_transform((-0.5, 0.1), zoom=2.0, rotation=0.3)
    expected = render_to_image(37, 21, mandelbrot, palette, view)

    image = np.zeros((21, 37, 4), dtype=np.uint8)
    assert render_image(image, fit_to_canvas(37, 21).add_after(view), mandelbrot, palette)
    np.testing.assert_array_equal(image, expected)


def test_resolution_independent_view(mandelbrot, palette):
    view = view_transform((0.5, 0.5), zoom=3.0)
    small = render_to_image(10, 10, mandelbrot, palette, view)
    large = render_to_image(20, 20, mandelbrot, palette, view)
    expected = palette.num_iter_to_color(mandelbrot.evaluate(0.5 + 0.5j)).to_rgba8()
    assert np.abs(small[5, 5].astype(int) - expected).max() <= 1
    np.testing.assert_array_equal(small[5, 5], large[10, 10])


def test_cancelled_render_returns_none(mandelbrot, palette):
    token = CancellationToken()
    token.cancel()
    assert render_to_image(20, 20, mandelbrot, palette, IDENTITY, cancel_token=token) is None

    image = np.zeros((40, 10, 4), dtype=np.uint8)
    assert not render_image(image, IDENTITY, mandelbrot, palette, cancel_token=token)


def test_cancel_from_progress_callback(mandelbrot, palette):
    token = CancellationToken()
    seen = []

    def progress(done, total):
        seen.append((done, total))
        if done == 3:
            token.cancel()

    assert render_to_image(10, 10, mandelbrot, palette, IDENTITY,
                           cancel_token=token, progress_callback=progress) is None
    assert seen == [(1, 10), (2, 10), (3, 10)]


def test_progress_reports_every_row(mandelbrot, palette):
    seen = []
    render_to_image(8, 6, mandelbrot, palette, IDENTITY,
                    progress_callback=lambda done, total: seen.append((done, total)))
    assert seen == [(row, 6) for row in range(1, 7)]


class TestColumnChunks:
    def test_cover_row_in_order(self):
        chunks = create_column_chunks(1000, 3)
        assert [c.chunk_id for c in chunks] == [0, 1, 2]
        assert chunks[0].start == 0
        assert chunks[-1].stop == 1000
        for left, right in zip(chunks, chunks[1:]):
            assert left.stop == right.start
        assert sum(c.width for c in chunks) == 1000

    def test_narrow_rows_are_not_split(self):
        assert len(create_column_chunks(100, 8)) == 1
        assert len(create_column_chunks(10, 8)) == 1
        assert create_column_chunks(0, 4) == []

    def test_map_chunks_propagates_errors(self):
        def fail(chunk):
            raise RuntimeError("boom")

        with ThreadPoolExecutor(max_workers=2) as pool:
            with pytest.raises(RuntimeError):
                map_chunks(fail, create_column_chunks(256, 2), pool)

    def test_worker_count(self):
        assert get_optimal_worker_count(3) == 3
        assert get_optimal_worker_count() >= 1
        with pytest.raises(ValueError):
            get_optimal_worker_count(0)

    def test_single_worker_pool_has_no_executor(self):
        with ColumnPool(1) as pool:
            assert pool.executor is None
        pool = ColumnPool(2)
        assert pool.executor is not None
        pool.shutdown()
        assert pool.executor is None
