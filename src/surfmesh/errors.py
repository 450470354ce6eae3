"""Exception types raised by surfmesh.

Construction and domain problems abort the calling operation.  Numerical
degeneracies never raise; they are recovered where they happen.
"""


class SurfaceError(Exception):
    """Base class for all surfmesh errors."""


class SurfaceConstructionError(SurfaceError, ValueError):
    """Control grid, knot vector or weights are inconsistent."""


class ParameterDomainError(SurfaceError, ValueError):
    """A parameter value lies outside the surface domain."""


class SerializationError(SurfaceError, TypeError):
    """A surface cannot be converted to or from plain data."""


class ConfigError(SurfaceError, ValueError):
    """Settings are malformed or out of range."""


__all__ = [
    'SurfaceError',
    'SurfaceConstructionError',
    'ParameterDomainError',
    'SerializationError',
    'ConfigError',
]
