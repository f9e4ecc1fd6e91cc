"""Shared fixtures: API definitions and FlatBuffers schemas written to tmp_path"""

from pathlib import Path

import pytest

from xplatgen.common import GenerationContext
from xplatgen.fbs_parser import parse_fbs_files
from xplatgen.loader import load_api_definition

COMMON_FBS = """\
namespace Common;

enum ErrorCode : int32 {
    Ok = 0,
    InvalidArgument = 1,
    OutOfMemory = 2,
    NotFound = 3,
    InternalError = 4
}
"""

MINIMAL_API = """\
api:
  name: test_api
  version: 1.0.0
  impl_lang: cpp

flatbuffers:
  - schemas/common.fbs

handles:
  - name: Engine
    description: Rendering engine

interfaces:
  - name: lifecycle
    constructors:
      - name: create_engine
        returns:
          type: handle:Engine
        error: Common.ErrorCode
"""


STORE_API = MINIMAL_API + """\
  - name: store
    methods:
      - name: put
        parameters:
          - name: engine
            type: handle:Engine
          - name: key
            type: string
          - name: payload
            type: buffer<uint8>
            transfer: ref_mut
        error: Common.ErrorCode
      - name: rename
        parameters:
          - name: engine
            type: handle:Engine
          - name: label
            type: string
"""


GEO_FBS = """\
namespace Geo;

// Plain value type
struct Point {
    x: float;
    y: float;
}

table Info {
    message: string;
    apiImpl: string;
}

enum Color : ubyte { Red, Green = 3, Blue }

table Shape {
    name: string;
    color: Color;
    points: [Point];
}
"""

GEO_API = """\
api:
  name: geo_api
  version: 0.2.0
  impl_lang: {impl_lang}
  targets: [{targets}]

flatbuffers:
  - schemas/common.fbs
  - schemas/geo.fbs

handles:
  - name: Engine

interfaces:
  - name: lifecycle
    constructors:
      - name: create_engine
        returns:
          type: handle:Engine
        error: Common.ErrorCode

  - name: renderer
    methods:
      - name: set_name
        parameters:
          - name: engine
            type: handle:Engine
          - name: name
            type: string
      - name: upload
        parameters:
          - name: engine
            type: handle:Engine
          - name: data
            type: buffer<uint8>
            transfer: ref
        error: Common.ErrorCode
      - name: get_info
        parameters:
          - name: engine
            type: handle:Engine
        returns:
          type: Geo.Info
      - name: measure
        parameters:
          - name: engine
            type: handle:Engine
          - name: point
            type: Geo.Point
            transfer: ref
        returns:
          type: float32
        error: Common.ErrorCode
      - name: add_shape
        parameters:
          - name: engine
            type: handle:Engine
          - name: shape
            type: Geo.Shape
            transfer: ref
        returns:
          type: uint32

  - name: util
    methods:
      - name: library_version
        returns:
          type: uint32
"""


def write_project(root: Path, api_yaml: str, schemas: dict) -> Path:
    """Write an API definition and its schemas under root; returns the definition path"""
    schema_dir = root / "schemas"
    schema_dir.mkdir(parents=True, exist_ok=True)
    for name, content in schemas.items():
        (schema_dir / name).write_text(content, encoding="utf-8")
    api_path = root / "api.yaml"
    api_path.write_text(api_yaml, encoding="utf-8")
    return api_path


def load_context(api_path: Path) -> GenerationContext:
    api = load_api_definition(api_path)
    resolved = parse_fbs_files([api_path.parent], api.flatbuffers)
    return GenerationContext(api=api, resolved=resolved,
                             output_dir=str(api_path.parent / "generated"),
                             api_def_path=str(api_path))


@pytest.fixture
def minimal_api_path(tmp_path) -> Path:
    return write_project(tmp_path, MINIMAL_API, {"common.fbs": COMMON_FBS})


@pytest.fixture
def minimal_ctx(minimal_api_path) -> GenerationContext:
    """test_api with one Engine constructor"""
    return load_context(minimal_api_path)


@pytest.fixture
def make_geo_ctx(tmp_path):
    """Factory for the richer geo_api definition with a chosen impl language and targets"""
    def make(impl_lang: str = "cpp", targets: str = "android, ios, web, linux") -> GenerationContext:
        api_yaml = GEO_API.format(impl_lang=impl_lang, targets=targets)
        api_path = write_project(tmp_path, api_yaml, {"common.fbs": COMMON_FBS, "geo.fbs": GEO_FBS})
        return load_context(api_path)
    return make


@pytest.fixture
def geo_ctx(make_geo_ctx) -> GenerationContext:
    return make_geo_ctx()


@pytest.fixture
def store_ctx(tmp_path) -> GenerationContext:
    """test_api plus a store interface taking strings and a mutable buffer"""
    return load_context(write_project(tmp_path, STORE_API, {"common.fbs": COMMON_FBS}))
