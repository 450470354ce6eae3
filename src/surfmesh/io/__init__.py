"""I/O utilities for surfmesh."""

from .stl import write_stl
from .surface_json import read_surfaces, write_surfaces

__all__ = ['write_stl', 'read_surfaces', 'write_surfaces']
