import pytest

from surfmesh.config import (
    DEFAULT_SETTINGS,
    EvaluationSettings,
    Settings,
    TessellationSettings,
    load_settings,
    save_settings,
    settings_from_dict,
    settings_to_dict,
)
from surfmesh.errors import ConfigError
from surfmesh.nurbs import NurbsSurface


class TestSettings:
    """defaults and validation"""

    def test_defaults(self):
        ev = DEFAULT_SETTINGS.evaluation
        tess = DEFAULT_SETTINGS.tessellation
        assert ev.cache_precision == 6
        assert ev.fd_step == 1e-3
        assert tess.max_error == 0.01
        assert tess.max_segments == 100
        assert tess.min_quad_size == 1e-3

    @pytest.mark.parametrize('kwargs', [
        {'fd_step': 0.0},
        {'cache_precision': -1},
        {'cache_precision': 2},
        {'cache_precision': 13},
        {'bbox_samples': 0},
    ])
    def test_invalid_evaluation(self, kwargs):
        with pytest.raises(ConfigError):
            EvaluationSettings(**kwargs)

    @pytest.mark.parametrize('kwargs', [
        {'max_error': 0.0},
        {'max_segments': 0},
        {'min_quad_size': 0.0},
        {'u_segments': 0},
    ])
    def test_invalid_tessellation(self, kwargs):
        with pytest.raises(ConfigError):
            TessellationSettings(**kwargs)

    def test_with_tessellation(self):
        s = Settings().with_tessellation(max_error=0.1)
        assert s.tessellation.max_error == 0.1
        assert s.evaluation == DEFAULT_SETTINGS.evaluation
        with pytest.raises(ConfigError):
            Settings().with_tessellation(no_such_field=1)

    def test_dict_round_trip(self):
        s = Settings(evaluation=EvaluationSettings(fd_step=0.01))
        assert settings_from_dict(settings_to_dict(s)) == s

    def test_unknown_keys(self):
        with pytest.raises(ConfigError):
            settings_from_dict({'evaluation': {'fd_stp': 0.01}})
        with pytest.raises(ConfigError):
            settings_from_dict({'render': {}})
        with pytest.raises(ConfigError):
            settings_from_dict({'tessellation': {'max_segments': 'many'}})
        with pytest.raises(ConfigError):
            settings_from_dict(['evaluation'])

    def test_module_defaults_are_valid(self):
        assert DEFAULT_SETTINGS == Settings()
        assert EvaluationSettings(cache_precision=4).cache_precision == 4

    @pytest.mark.parametrize('section, key, value', [
        ('tessellation', 'max_segments', 1.5),
        ('evaluation', 'cache_precision', 6.7),
        ('tessellation', 'u_segments', True),
        ('tessellation', 'max_error', False),
    ])
    def test_rejects_non_integral_and_boolean_values(self, section, key, value):
        with pytest.raises(ConfigError):
            settings_from_dict({section: {key: value}})

    def test_accepts_integral_floats(self):
        s = settings_from_dict({'tessellation': {'max_segments': 12.0}})
        assert s.tessellation.max_segments == 12
        assert isinstance(s.tessellation.max_segments, int)


class TestYaml:
    """loading settings files"""

    def test_load(self, tmp_path):
        path = tmp_path / 'surfmesh.yaml'
        path.write_text(
            'evaluation:\n'
            '  fd_step: 0.002\n'
            'tessellation:\n'
            '  max_error: 0.05\n'
            '  u_segments: 8\n'
        )
        s = load_settings(path)
        assert s.evaluation.fd_step == 0.002
        assert s.evaluation.cache_precision == 6
        assert s.tessellation.max_error == 0.05
        assert s.tessellation.u_segments == 8

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_settings(path) == Settings()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / 'out.yaml'
        s = Settings().with_tessellation(max_segments=12)
        save_settings(s, path)
        assert load_settings(path) == s

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / 'nope.yaml')

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('evaluation: [1, 2\n')
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_out_of_range(self, tmp_path):
        path = tmp_path / 'range.yaml'
        path.write_text('tessellation:\n  max_error: -1\n')
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_surface_uses_loaded_settings(self, tmp_path):
        path = tmp_path / 'grid.yaml'
        path.write_text('tessellation:\n  u_segments: 3\n  v_segments: 2\n')
        surface = NurbsSurface.plane(settings=load_settings(path))
        assert surface.tessellate().triangle_count == 12
