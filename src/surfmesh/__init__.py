# -*- coding: utf-8 -*-
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("surfmesh")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"

from surfmesh.config import DEFAULT_SETTINGS, Settings, load_settings
from surfmesh.differential import Curvatures, TangentSpace
from surfmesh.errors import (
    ConfigError,
    ParameterDomainError,
    SerializationError,
    SurfaceConstructionError,
    SurfaceError,
)
from surfmesh.function_surface import FunctionSurface
from surfmesh.knots import KnotVector
from surfmesh.mesh import SurfaceMesh, mesh_view
from surfmesh.nurbs import NurbsSurface
from surfmesh.surface import BoundingBox, Surface
from surfmesh.tessellate import tessellate_adaptive, tessellate_uniform
from surfmesh.trimmed import TrimmedSurface

__all__ = [
    'BoundingBox',
    'ConfigError',
    'Curvatures',
    'DEFAULT_SETTINGS',
    'FunctionSurface',
    'KnotVector',
    'NurbsSurface',
    'ParameterDomainError',
    'SerializationError',
    'Settings',
    'Surface',
    'SurfaceConstructionError',
    'SurfaceError',
    'SurfaceMesh',
    'TangentSpace',
    'TrimmedSurface',
    'load_settings',
    'mesh_view',
    'tessellate_adaptive',
    'tessellate_uniform',
]
