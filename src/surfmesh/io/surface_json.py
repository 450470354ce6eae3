"""Surface JSON serialization/deserialization helpers.

A document is a mapping ``{"schema": SCHEMA_ID, "surfaces": [...]}`` where
every entry is the plain-data form returned by a surface's ``to_dict``.
Function-backed surfaces have no plain-data form and raise
:class:`~surfmesh.errors.SerializationError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from surfmesh.config import Settings
from surfmesh.errors import SerializationError
from surfmesh.nurbs import SURFACE_TYPE as NURBS_TYPE, NurbsSurface
from surfmesh.surface import Surface
from surfmesh.trimmed import SURFACE_TYPE as TRIMMED_TYPE, TrimmedSurface

SCHEMA_ID = "surfmesh-surface-json-v0.1"


def surface_to_dict(surface: Surface) -> Dict[str, Any]:
    to_dict = getattr(surface, 'to_dict', None)
    if to_dict is None:
        raise SerializationError(f'{type(surface).__name__} cannot be serialized')
    return to_dict()


def surface_from_dict(entry: Dict[str, Any], *, settings: Optional[Settings] = None) -> Surface:
    """Rebuild a surface from the output of :func:`surface_to_dict`."""

    if not isinstance(entry, dict):
        raise SerializationError(f'surface entry must be a mapping, got {type(entry).__name__}')
    kind = entry.get('type')
    if kind == NURBS_TYPE:
        return NurbsSurface.from_dict(entry, settings=settings)
    if kind == TRIMMED_TYPE:
        try:
            base = surface_from_dict(entry['base'], settings=settings)
            return TrimmedSurface(base, entry.get('u_range'), entry.get('v_range'))
        except KeyError as exc:
            raise SerializationError(f'trimmed surface entry is missing {exc}') from exc
    raise SerializationError(f'unsupported surface type: {kind!r}')


def surfaces_to_json(surfaces: Iterable[Surface], *,
                     generator: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Serialize surfaces into a schema-tagged JSON document (as a dict)."""

    doc: Dict[str, Any] = {
        "schema": SCHEMA_ID,
        "surfaces": [surface_to_dict(s) for s in surfaces],
    }
    if generator:
        doc["generator"] = generator
    return doc


def surfaces_from_json(doc: Dict[str, Any], *, settings: Optional[Settings] = None) -> List[Surface]:
    if not isinstance(doc, dict) or doc.get("schema") != SCHEMA_ID:
        schema = doc.get("schema") if isinstance(doc, dict) else None
        raise SerializationError(f"unsupported surface schema: {schema}")
    return [surface_from_dict(entry, settings=settings) for entry in doc.get("surfaces", [])]


def write_surfaces(surfaces: Iterable[Surface], path: Union[str, Path], *, indent: int = 2) -> None:
    doc = surfaces_to_json(surfaces)
    Path(path).write_text(json.dumps(doc, indent=indent), encoding='utf-8')


def read_surfaces(path: Union[str, Path], *, settings: Optional[Settings] = None) -> List[Surface]:
    try:
        doc = json.loads(Path(path).read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise SerializationError(f'{path}: invalid JSON: {exc}') from exc
    return surfaces_from_json(doc, settings=settings)


__all__ = [
    "SCHEMA_ID",
    "surface_to_dict",
    "surface_from_dict",
    "surfaces_to_json",
    "surfaces_from_json",
    "write_surfaces",
    "read_surfaces",
]
