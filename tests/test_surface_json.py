import json

import numpy as np
import pytest

from surfmesh.errors import SerializationError
from surfmesh.function_surface import FunctionSurface
from surfmesh.io.surface_json import (
    SCHEMA_ID,
    read_surfaces,
    surface_from_dict,
    surfaces_from_json,
    surfaces_to_json,
    write_surfaces,
)
from surfmesh.nurbs import NurbsSurface
from surfmesh.trimmed import TrimmedSurface


SAMPLES = [(0.1, 0.2), (0.5, 0.5), (0.9, 0.35), (0.0, 1.0)]


def _assert_same_shape(a, b):
    for u, v in SAMPLES:
        np.testing.assert_allclose(a.evaluate(u, v), b.evaluate(u, v), atol=1e-12)


def test_document_round_trip(tmp_path):
    sphere = NurbsSurface.sphere(2.0, 4, 2)
    trimmed = NurbsSurface.plane(3.0, 1.0).trim((0.25, 0.75))
    path = tmp_path / 'surfaces.json'
    write_surfaces([sphere, trimmed], path)

    doc = json.loads(path.read_text())
    assert doc['schema'] == SCHEMA_ID
    assert [e['type'] for e in doc['surfaces']] == ['nurbs_surface', 'trimmed_surface']

    loaded = read_surfaces(path)
    assert isinstance(loaded[0], NurbsSurface)
    assert isinstance(loaded[1], TrimmedSurface)
    _assert_same_shape(loaded[0], sphere)
    _assert_same_shape(loaded[1], trimmed)


def test_generator_field():
    doc = surfaces_to_json([NurbsSurface.plane()], generator={'name': 'tests'})
    assert doc['generator'] == {'name': 'tests'}


def test_function_surface_is_rejected():
    with pytest.raises(SerializationError):
        surfaces_to_json([FunctionSurface.sphere()])


def test_wrong_schema():
    with pytest.raises(SerializationError):
        surfaces_from_json({'schema': 'something-else', 'surfaces': []})
    with pytest.raises(SerializationError):
        surfaces_from_json([])


def test_unknown_type():
    with pytest.raises(SerializationError):
        surface_from_dict({'type': 'subdivision_surface'})
    with pytest.raises(SerializationError):
        surface_from_dict({'type': 'trimmed_surface', 'u_range': [0, 1]})


def test_invalid_json(tmp_path):
    path = tmp_path / 'broken.json'
    path.write_text('{"schema": ')
    with pytest.raises(SerializationError):
        read_surfaces(path)
