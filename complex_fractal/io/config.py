"""
Configuration files, presets and environment overrides.

Configuration is plain JSON with five sections:

    {
        "render":  {"width": 800, "height": 600, "num_workers": null, ...},
        "fractal": {"max_iterations": 1024, "escape_radius": 2.0,
                    "julia": {"c1": "0", "c2": "-0.8+0.2i"},
                    "power_sum": {"n1": 6, "n2": 1}},
        "palette": {"name": "default", "params": {}},
        "view":    {"center": [0.0, 0.0], "zoom": 1.0, "rotation": 0.0},
        "presets": {"<name>": {<any of the sections above>}}
    }

A file only needs the keys it changes; everything else comes from the
defaults. A preset is merged over the configuration the same way, and
FRACTAL_* environment variables are applied last.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..api import RenderConfig
from ..core.fractal_types import FractalRegistry
from ..rendering.coloring import PALETTE_PRESETS, create_palette, palette_types

logger = logging.getLogger(__name__)

SECTIONS = ('render', 'fractal', 'palette', 'view', 'presets')

DEFAULT_CONFIG: Dict[str, Any] = {
    'render': {
        'width': 800,
        'height': 600,
        'num_workers': None,
        'preview_edge': 40,
        'save_metadata': True,
        'make_dirs': False,
    },
    'fractal': {
        'max_iterations': 1024,
        'escape_radius': 2.0,
        'mandelbrot': {},
        'julia': {'c1': '0', 'c2': '-0.8+0.2i'},
        'power_sum': {'n1': 6, 'n2': 1},
    },
    'palette': {
        'name': 'default',
        'params': {},
    },
    'view': {
        'center': [0.0, 0.0],
        'zoom': 1.0,
        'rotation': 0.0,
    },
    'presets': {
        'preview': {
            '_description': 'Small, fast render for checking a view',
            'render': {'width': 320, 'height': 240},
            'fractal': {'max_iterations': 256},
        },
        'high_quality': {
            '_description': 'Full HD render with a high iteration limit',
            'render': {'width': 1920, 'height': 1080},
            'fractal': {'max_iterations': 4096},
        },
        'seahorse_valley': {
            '_description': 'Mandelbrot detail between the main cardioid and the period-2 bulb',
            'view': {'center': [-0.745, 0.113], 'zoom': 40.0},
            'fractal': {'max_iterations': 2048},
        },
        'rabbit': {
            '_description': "Douady's rabbit Julia set",
            'fractal': {'julia': {'c1': '0', 'c2': '-0.123+0.745i'}},
        },
    },
}

RENDER_KEYS = ('width', 'height', 'num_workers', 'preview_edge', 'save_metadata', 'make_dirs')
VIEW_KEYS = ('center', 'zoom', 'rotation')


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``base`` with ``override`` merged in recursively."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class ConfigManager:
    """Loads, merges and validates JSON configuration."""

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self.defaults = copy.deepcopy(defaults if defaults is not None else DEFAULT_CONFIG)

    def load_config(self, config_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """
        Load a configuration file merged over the defaults.

        Args:
            config_file: JSON file; None returns the defaults

        Returns:
            Complete configuration dictionary

        Raises:
            ValueError: If the file is not valid JSON or not an object
        """
        if config_file is None:
            return copy.deepcopy(self.defaults)

        path = Path(config_file)
        with open(path, 'r', encoding='utf-8') as f:
            content = f.read().strip()

        if not content:
            logger.warning(f"{path} is empty, using default configuration")
            return copy.deepcopy(self.defaults)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}")
        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {path} must be a JSON object")

        logger.info(f"Loaded configuration from {path}")
        return deep_merge(self.defaults, data)

    def save_config(self, config_dict: Dict[str, Any], config_file: Union[str, Path]) -> None:
        path = Path(config_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config_dict, f, indent=4)
        logger.info(f"Saved configuration to {path}")

    def list_presets(self, config_dict: Dict[str, Any]) -> List[str]:
        return sorted(config_dict.get('presets', {}).keys())

    def apply_preset(self, config_dict: Dict[str, Any], preset: str) -> Dict[str, Any]:
        """Merge the named preset over the configuration."""
        presets = config_dict.get('presets', {})
        if preset not in presets:
            available = ', '.join(sorted(presets)) or 'none'
            raise ValueError(f"Unknown preset '{preset}'. Available: {available}")
        overrides = {k: v for k, v in presets[preset].items() if not k.startswith('_')}
        logger.info(f"Applying preset: {preset}")
        return deep_merge(config_dict, overrides)

    def validate_config(self, config_dict: Dict[str, Any]) -> List[str]:
        """
        Check a configuration dictionary.

        Returns:
            List of error messages, empty if the configuration is valid
        """
        errors = []

        unknown = set(config_dict) - set(SECTIONS)
        for section in sorted(unknown):
            errors.append(f"Unknown section '{section}'")

        try:
            self.create_render_config(config_dict).validate()
        except (ValueError, TypeError) as e:
            errors.append(f"render/view: {e}")

        fractal_section = config_dict.get('fractal', {})
        for name, params in self.fractal_params(config_dict).items():
            try:
                FractalRegistry.create_fractal(
                    name,
                    max_iterations=fractal_section.get('max_iterations', 1024),
                    escape_radius=fractal_section.get('escape_radius', 2.0),
                    **params,
                )
            except (ValueError, TypeError) as e:
                errors.append(f"fractal.{name}: {e}")

        palette_section = config_dict.get('palette', {})
        try:
            create_palette(palette_section.get('name', 'default'), **palette_section.get('params', {}))
        except (ValueError, TypeError) as e:
            errors.append(f"palette: {e}")

        for name, preset in config_dict.get('presets', {}).items():
            if not isinstance(preset, dict):
                errors.append(f"preset '{name}' must be an object")
                continue
            for section in preset:
                if not section.startswith('_') and section not in SECTIONS[:-1]:
                    errors.append(f"preset '{name}': unknown section '{section}'")

        return errors

    def fractal_params(self, config_dict: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Per-fractal parameters of the ``fractal`` section, keyed by fractal name."""
        section = config_dict.get('fractal', {})
        return {name: dict(params) for name, params in section.items()
                if isinstance(params, dict)}

    def create_render_config(self, config_dict: Dict[str, Any]) -> RenderConfig:
        """Build a RenderConfig from the render, fractal, palette and view sections."""
        render = config_dict.get('render', {})
        fractal = config_dict.get('fractal', {})
        palette = config_dict.get('palette', {})
        view = config_dict.get('view', {})

        unknown = (set(render) - set(RENDER_KEYS)) | (set(view) - set(VIEW_KEYS))
        if unknown:
            raise ValueError(f"Unknown configuration parameter(s): {', '.join(sorted(unknown))}")

        values = {key: render[key] for key in RENDER_KEYS if key in render}
        values.update({key: view[key] for key in VIEW_KEYS if key in view})
        if 'max_iterations' in fractal:
            values['max_iterations'] = fractal['max_iterations']
        if 'escape_radius' in fractal:
            values['escape_radius'] = fractal['escape_radius']
        if 'name' in palette:
            values['palette'] = palette['name']
        if 'params' in palette:
            values['palette_params'] = dict(palette['params'])
        return RenderConfig.from_dict(values)


class EnvironmentConfig:
    """Overrides read from FRACTAL_* environment variables."""

    VARIABLES = {
        'FRACTAL_WIDTH': ('width', int),
        'FRACTAL_HEIGHT': ('height', int),
        'FRACTAL_MAX_ITERATIONS': ('max_iterations', int),
        'FRACTAL_ESCAPE_RADIUS': ('escape_radius', float),
        'FRACTAL_WORKERS': ('num_workers', int),
    }

    @classmethod
    def get_overrides(cls, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Parse the FRACTAL_* variables that are set.

        Raises:
            ValueError: If a variable does not parse as its type
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for variable, (attr, convert) in cls.VARIABLES.items():
            raw = environ.get(variable)
            if raw is None or raw.strip() == '':
                continue
            try:
                overrides[attr] = convert(raw)
            except ValueError:
                raise ValueError(f"{variable} must be {convert.__name__}, got '{raw}'")
        return overrides

    @classmethod
    def apply(cls, render_config: RenderConfig,
              environ: Optional[Dict[str, str]] = None) -> RenderConfig:
        for attr, value in cls.get_overrides(environ).items():
            logger.debug(f"Environment override: {attr}={value}")
            setattr(render_config, attr, value)
        render_config.validate()
        return render_config


def load_config_from_args(config_file: Optional[Union[str, Path]] = None,
                          preset: Optional[str] = None,
                          environ: Optional[Dict[str, str]] = None
                          ) -> Tuple[RenderConfig, Dict[str, Dict[str, Any]]]:
    """
    Resolve defaults, file, preset and environment into a render configuration.

    Returns:
        (render configuration, per-fractal parameters)
    """
    manager = ConfigManager()
    config_dict = manager.load_config(config_file)
    if preset:
        config_dict = manager.apply_preset(config_dict, preset)

    render_config = manager.create_render_config(config_dict)
    EnvironmentConfig.apply(render_config, environ)
    return render_config, manager.fractal_params(config_dict)


def available_palettes() -> List[str]:
    return palette_types() + sorted(PALETTE_PRESETS)
