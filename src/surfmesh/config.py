"""Evaluation and tessellation settings.

Settings are plain frozen dataclasses.  They can be built in code or loaded
from a YAML document of the form::

    evaluation:
      cache_precision: 6
      fd_step: 0.001
    tessellation:
      max_error: 0.01
      max_segments: 100

Unknown keys are rejected so that typos do not silently fall back to the
defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from surfmesh.errors import ConfigError

logger = logging.getLogger(__name__)

MIN_CACHE_PRECISION = 4
MAX_CACHE_PRECISION = 12


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


@dataclass(frozen=True)
class EvaluationSettings:
    """Knobs shared by every surface evaluator."""

    cache_precision: int = 6  # decimals kept in cache and vertex keys
    fd_step: float = 1e-3  # finite-difference half step, fraction of extent
    bbox_samples: int = 20
    degenerate_tolerance: float = 1e-10

    def __post_init__(self) -> None:
        _require(MIN_CACHE_PRECISION <= self.cache_precision <= MAX_CACHE_PRECISION,
                 f'cache_precision must be in [{MIN_CACHE_PRECISION}, {MAX_CACHE_PRECISION}]')
        _require(0.0 < self.fd_step < 0.1, 'fd_step must be in (0, 0.1)')
        _require(self.bbox_samples >= 1, 'bbox_samples must be >= 1')
        _require(self.degenerate_tolerance > 0.0, 'degenerate_tolerance must be positive')


@dataclass(frozen=True)
class TessellationSettings:
    """Defaults for uniform and adaptive tessellation."""

    u_segments: int = 20
    v_segments: int = 20
    max_error: float = 0.01
    max_segments: int = 100
    min_quad_size: float = 1e-3

    def __post_init__(self) -> None:
        _require(self.u_segments >= 1 and self.v_segments >= 1,
                 'segment counts must be >= 1')
        _require(self.max_error > 0.0, 'max_error must be positive')
        _require(self.max_segments >= 1, 'max_segments must be >= 1')
        _require(0.0 < self.min_quad_size <= 0.5, 'min_quad_size must be in (0, 0.5]')


@dataclass(frozen=True)
class Settings:
    evaluation: EvaluationSettings = field(default_factory=EvaluationSettings)
    tessellation: TessellationSettings = field(default_factory=TessellationSettings)

    def with_tessellation(self, **changes: Any) -> 'Settings':
        """Return a copy with some tessellation fields replaced."""

        try:
            tess = replace(self.tessellation, **changes)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc
        return replace(self, tessellation=tess)


DEFAULT_SETTINGS = Settings()


def _section(cls, data: Any, name: str):
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigError(f'section {name!r} must be a mapping, got {type(data).__name__}')
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f'unknown keys in {name!r}: {unknown}')
    kwargs = {}
    for key, value in data.items():
        kwargs[key] = _coerce(f'{name}.{key}', value, known[key].type in (int, 'int'))
    return cls(**kwargs)


def _coerce(key: str, value: Any, integral: bool):
    if isinstance(value, bool):
        raise ConfigError(f'{key}: expected a number, got {value!r}')
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'{key}: cannot use {value!r}') from exc
    if not integral:
        return number
    if not number.is_integer():
        raise ConfigError(f'{key}: expected an integer, got {value!r}')
    return int(number)


def settings_from_dict(data: Mapping[str, Any] | None) -> Settings:
    """Build :class:`Settings` from a plain mapping."""

    if data is None:
        return Settings()
    if not isinstance(data, Mapping):
        raise ConfigError('settings document must be a mapping')
    unknown = sorted(set(data) - {'evaluation', 'tessellation'})
    if unknown:
        raise ConfigError(f'unknown settings sections: {unknown}')
    return Settings(
        evaluation=_section(EvaluationSettings, data.get('evaluation'), 'evaluation'),
        tessellation=_section(TessellationSettings, data.get('tessellation'), 'tessellation'),
    )


def settings_to_dict(settings: Settings) -> Dict[str, Dict[str, Any]]:
    return {
        'evaluation': {f.name: getattr(settings.evaluation, f.name)
                       for f in fields(EvaluationSettings)},
        'tessellation': {f.name: getattr(settings.tessellation, f.name)
                         for f in fields(TessellationSettings)},
    }


def load_settings(path: Path | str) -> Settings:
    """Load settings from a YAML file."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f'settings file not found: {path}')
    with path.open('r', encoding='utf-8') as fp:
        try:
            data = yaml.safe_load(fp)
        except yaml.YAMLError as exc:
            raise ConfigError(f'cannot parse {path}: {exc}') from exc
    settings = settings_from_dict(data)
    logger.debug('loaded settings from %s: %s', path, settings)
    return settings


def save_settings(settings: Settings, path: Path | str) -> None:
    path = Path(path)
    with path.open('w', encoding='utf-8') as fp:
        yaml.safe_dump(settings_to_dict(settings), fp, sort_keys=False)


__all__ = [
    'EvaluationSettings',
    'TessellationSettings',
    'Settings',
    'DEFAULT_SETTINGS',
    'settings_from_dict',
    'settings_to_dict',
    'load_settings',
    'save_settings',
]
