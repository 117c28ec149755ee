import pytest

from complex_fractal.core.fractal_types import JuliaSet, MandelbrotSet, PowerSumFractal
from complex_fractal.engine.drawer import IncrementalFractalDrawer
from complex_fractal.rendering.coloring import SinusoidalPalette, WrappedSinePalette


@pytest.fixture
def mandelbrot():
    return MandelbrotSet(max_iterations=64)


@pytest.fixture
def julia():
    return JuliaSet(c1=complex(0.05, -0.02), c2=complex(-0.8, 0.2), max_iterations=64)


@pytest.fixture
def power_sum():
    return PowerSumFractal(n1=3, n2=2, max_iterations=48)


@pytest.fixture(params=['mandelbrot', 'julia', 'power_sum'])
def any_fractal(request):
    return request.getfixturevalue(request.param)


@pytest.fixture
def palette():
    return SinusoidalPalette()


@pytest.fixture
def wrapped_palette():
    return WrappedSinePalette()


@pytest.fixture
def drawer(mandelbrot, palette):
    d = IncrementalFractalDrawer(48, 32, mandelbrot, palette, preview_edge=8)
    yield d
    d.close()
