import json

import pytest

from complex_fractal.api import RenderConfig
from complex_fractal.io.config import (
    DEFAULT_CONFIG, ConfigManager, EnvironmentConfig, available_palettes, deep_merge,
    load_config_from_args,
)


@pytest.fixture
def manager():
    return ConfigManager()


@pytest.fixture
def write_config(tmp_path):
    def write(content):
        path = tmp_path / "config.json"
        path.write_text(content if isinstance(content, str) else json.dumps(content),
                        encoding='utf-8')
        return path
    return write


def test_deep_merge_keeps_untouched_keys():
    base = {'a': {'x': 1, 'y': 2}, 'b': 3}
    merged = deep_merge(base, {'a': {'y': 5}, 'c': 4})
    assert merged == {'a': {'x': 1, 'y': 5}, 'b': 3, 'c': 4}
    assert base == {'a': {'x': 1, 'y': 2}, 'b': 3}


class TestLoadConfig:
    def test_defaults(self, manager):
        config = manager.load_config()
        assert config == DEFAULT_CONFIG
        config['render']['width'] = 1
        assert DEFAULT_CONFIG['render']['width'] == 800

    def test_file_merged_over_defaults(self, manager, write_config):
        path = write_config({'render': {'width': 100}, 'fractal': {'julia': {'c2': '0.3i'}}})
        config = manager.load_config(path)
        assert config['render']['width'] == 100
        assert config['render']['height'] == 600
        assert config['fractal']['julia'] == {'c1': '0', 'c2': '0.3i'}
        assert config['fractal']['max_iterations'] == 1024

    def test_empty_file(self, manager, write_config):
        assert manager.load_config(write_config("   ")) == DEFAULT_CONFIG

    def test_invalid_json(self, manager, write_config):
        with pytest.raises(ValueError, match="Invalid JSON"):
            manager.load_config(write_config("{width: 3"))

    def test_not_an_object(self, manager, write_config):
        with pytest.raises(ValueError):
            manager.load_config(write_config([1, 2]))

    def test_missing_file(self, manager, tmp_path):
        with pytest.raises(OSError):
            manager.load_config(tmp_path / "nope.json")

    def test_save_and_reload(self, manager, tmp_path):
        config = deep_merge(DEFAULT_CONFIG, {'view': {'zoom': 8.0}})
        path = tmp_path / "sub" / "saved.json"
        manager.save_config(config, path)
        assert manager.load_config(path) == config


class TestPresets:
    def test_list(self, manager):
        assert manager.list_presets(DEFAULT_CONFIG) == sorted(DEFAULT_CONFIG['presets'])

    def test_apply(self, manager):
        config = manager.apply_preset(manager.load_config(), 'preview')
        assert config['render']['width'] == 320
        assert config['render']['height'] == 240
        assert config['fractal']['max_iterations'] == 256
        assert '_description' not in config

    def test_apply_nested_fractal_parameters(self, manager):
        config = manager.apply_preset(manager.load_config(), 'rabbit')
        assert manager.fractal_params(config)['julia']['c2'] == '-0.123+0.745i'

    def test_unknown(self, manager):
        with pytest.raises(ValueError, match="Unknown preset"):
            manager.apply_preset(manager.load_config(), 'ultra')


class TestValidation:
    def test_defaults_are_valid(self, manager):
        assert manager.validate_config(manager.load_config()) == []

    def test_all_presets_are_valid(self, manager):
        config = manager.load_config()
        for preset in manager.list_presets(config):
            assert manager.validate_config(manager.apply_preset(config, preset)) == []

    def test_errors_reported(self, manager):
        config = deep_merge(DEFAULT_CONFIG, {
            'extra': {},
            'render': {'width': -1},
            'fractal': {'julia': {'c2': 'nonsense'}},
            'palette': {'name': 'rainbow'},
            'presets': {'mine': {'colors': {}}},
        })
        errors = manager.validate_config(config)
        assert any("Unknown section 'extra'" in e for e in errors)
        assert any(e.startswith("render/view") for e in errors)
        assert any(e.startswith("fractal.julia") for e in errors)
        assert any(e.startswith("palette") for e in errors)
        assert any("unknown section 'colors'" in e for e in errors)

    def test_unknown_fractal_parameter(self, manager):
        config = deep_merge(DEFAULT_CONFIG, {'fractal': {'power_sum': {'n3': 2}}})
        assert any(e.startswith("fractal.power_sum") for e in manager.validate_config(config))


class TestRenderConfig:
    def test_from_sections(self, manager):
        config = deep_merge(DEFAULT_CONFIG, {
            'render': {'width': 64, 'num_workers': 2},
            'fractal': {'max_iterations': 99},
            'palette': {'name': 'ice', 'params': {'fractal_color': '#ffffff'}},
            'view': {'center': [-0.5, 0.25], 'zoom': 3.0, 'rotation': 45.0},
        })
        render_config = manager.create_render_config(config)
        assert render_config.width == 64
        assert render_config.num_workers == 2
        assert render_config.max_iterations == 99
        assert render_config.palette == 'ice'
        assert render_config.palette_params == {'fractal_color': '#ffffff'}
        assert render_config.center == (-0.5, 0.25)
        assert render_config.zoom == 3.0
        assert render_config.rotation == 45.0

    def test_unknown_render_key(self, manager):
        with pytest.raises(ValueError):
            manager.create_render_config({'render': {'depth': 3}})

    def test_render_config_dict_round_trip(self):
        original = RenderConfig(width=10, center=(1.0, 2.0))
        assert RenderConfig.from_dict(original.to_dict()) == original

    @pytest.mark.parametrize("changes", [
        {'width': 0}, {'height': -2}, {'max_iterations': 0}, {'escape_radius': 0.0},
        {'zoom': 0.0}, {'num_workers': 0}, {'preview_edge': 0}, {'center': (1.0,)},
    ])
    def test_invalid_render_config(self, changes):
        with pytest.raises(ValueError):
            RenderConfig(**changes).validate()


class TestEnvironment:
    def test_overrides(self):
        overrides = EnvironmentConfig.get_overrides({
            'FRACTAL_WIDTH': '123',
            'FRACTAL_ESCAPE_RADIUS': '4.5',
            'FRACTAL_HEIGHT': '',
            'UNRELATED': 'x',
        })
        assert overrides == {'width': 123, 'escape_radius': 4.5}

    def test_bad_value(self):
        with pytest.raises(ValueError, match="FRACTAL_WORKERS"):
            EnvironmentConfig.get_overrides({'FRACTAL_WORKERS': 'many'})

    def test_apply_validates(self):
        with pytest.raises(ValueError):
            EnvironmentConfig.apply(RenderConfig(), {'FRACTAL_MAX_ITERATIONS': '0'})


class TestLoadConfigFromArgs:
    def test_defaults(self):
        render_config, fractal_params = load_config_from_args(environ={})
        assert render_config == RenderConfig()
        assert fractal_params['power_sum'] == {'n1': 6, 'n2': 1}

    def test_precedence(self, write_config):
        path = write_config({'render': {'width': 100, 'height': 80},
                             'fractal': {'escape_radius': 3.0}})
        render_config, _ = load_config_from_args(path, 'preview', environ={'FRACTAL_HEIGHT': '50'})
        assert render_config.width == 320
        assert render_config.height == 50
        assert render_config.escape_radius == 3.0
        assert render_config.max_iterations == 256

    def test_preset_from_file(self, write_config):
        path = write_config({'presets': {'tiny': {'render': {'width': 8, 'height': 8}}}})
        render_config, _ = load_config_from_args(path, 'tiny', environ={})
        assert (render_config.width, render_config.height) == (8, 8)


def test_available_palettes():
    names = available_palettes()
    assert 'sinusoidal' in names
    assert 'wrapped_sine' in names
    assert 'ice' in names
