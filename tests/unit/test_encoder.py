from __future__ import annotations

import json
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from mdlconv.config import resolve_config
from mdlconv.core import encoder as encoder_module
from mdlconv.core.encoder import ContainerEncoder
from mdlconv.core.errors import IndexOverflow, MalformedScene
from mdlconv.core.lighting import LightExtractor
from mdlconv.core.producers import GeometrySegment
from mdlconv.core.scene import ColladaScene


@dataclass
class FakeGeometry:
    segments: List[GeometrySegment]
    prepare_calls: int = 0
    declared: Optional[int] = None

    def prepare_for_export(self) -> None:
        self.prepare_calls += 1

    def get_summary(self) -> Optional[List[Dict[str, Any]]]:
        return [{"id": f"g{i}", "indexCount": len(s.indices)} for i, s in enumerate(self.segments)] or None

    @property
    def byte_size(self) -> int:
        if self.declared is not None:
            return self.declared
        return sum(s.byte_size for s in self.segments)


@dataclass
class FakeAnimation:
    data: Dict[str, List[float]]
    animation_order: List[str]
    queried: bool = False

    @property
    def has_animation(self) -> bool:
        return bool(self.animation_order)

    def get_summary(self, id_to_name) -> Optional[List[Dict[str, Any]]]:
        self.queried = True
        return [{"name": n, "target": id_to_name.get(n, n)} for n in self.animation_order]

    def get_animation_data(self, name: str) -> np.ndarray:
        return np.asarray(self.data[name], dtype=np.float32)

    @property
    def byte_size(self) -> int:
        return sum(len(v) * 4 for v in self.data.values())


@dataclass
class FakeHierarchy:
    hierarchy: Optional[List[Dict[str, Any]]] = field(default_factory=lambda: [{"name": "root", "children": []}])
    id_to_name: Dict[str, str] = field(default_factory=dict)


@dataclass
class FakeLights:
    summary: Optional[List[Dict[str, Any]]] = None

    def get_summary(self) -> Optional[List[Dict[str, Any]]]:
        return self.summary


def _split(data: bytes) -> tuple[int, dict, bytes]:
    (length,) = struct.unpack(">I", data[:4])
    return length, json.loads(data[4:4 + length].decode("utf-8")), data[4 + length:]


def _geometry() -> FakeGeometry:
    return FakeGeometry(
        segments=[
            GeometrySegment(indices=np.array([0, 1, 2]), vertices=np.array([0.0, 1.0, 2.0, 3.0])),
            GeometrySegment(indices=np.array([2, 1]), vertices=np.array([-1.5])),
        ]
    )


def test_header_length_prefix_matches_header() -> None:
    encoder = ContainerEncoder(
        resolve_config(),
        geometry=_geometry(),
        hierarchy=FakeHierarchy(hierarchy=[{"name": "noeud-é", "children": []}]),
        lights=FakeLights([{"id": "L", "type": "point", "color": [1, 2, 3]}]),
    )
    data = encoder.encode()
    length, header, payload = _split(data)
    assert list(header) == ["geometry", "lights", "hierarchy"]
    assert header["hierarchy"][0]["name"] == "noeud-é"
    assert len(data) == 4 + length + len(payload)


def test_geometry_segments_are_indices_then_vertices() -> None:
    geometry = _geometry()
    data = ContainerEncoder(resolve_config(), geometry=geometry).encode()
    _, _, payload = _split(data)
    assert len(payload) == (3 * 2 + 4 * 4) + (2 * 2 + 1 * 4)
    assert struct.unpack(">3H", payload[:6]) == (0, 1, 2)
    assert struct.unpack(">4f", payload[6:22]) == (0.0, 1.0, 2.0, 3.0)
    assert struct.unpack(">2H", payload[22:26]) == (2, 1)
    assert struct.unpack(">f", payload[26:30]) == (-1.5,)
    assert geometry.prepare_calls == 1


def test_animation_payload_follows_animation_order() -> None:
    animation = FakeAnimation(data={"a": [1.0], "b": [2.0, 3.0]}, animation_order=["b", "a"])
    data = ContainerEncoder(resolve_config(), geometry=_geometry(), animation=animation).encode()
    _, header, payload = _split(data)
    assert [entry["name"] for entry in header["animation"]] == ["b", "a"]
    geometry_bytes = 22 + 8
    assert struct.unpack(">3f", payload[geometry_bytes:]) == (2.0, 3.0, 1.0)


def test_skip_binary_never_queries_geometry_or_animation() -> None:
    geometry = _geometry()
    animation = FakeAnimation(data={"a": [1.0]}, animation_order=["a"])
    encoder = ContainerEncoder(
        resolve_config({"skip-binary": True}),
        geometry=geometry,
        animation=animation,
        hierarchy=FakeHierarchy(),
    )
    data = encoder.encode()
    length, header, payload = _split(data)
    assert payload == b""
    assert len(data) == 4 + length
    assert "geometry" not in header
    assert "animation" not in header
    assert "hierarchy" in header
    assert geometry.prepare_calls == 0
    assert not animation.queried


def test_sub_animation_header_only_has_animation_and_lights() -> None:
    animation = FakeAnimation(data={"a": [1.0, 2.0]}, animation_order=["a"])
    encoder = ContainerEncoder(
        resolve_config({"sub-anim": True, "includeGeometry": True, "includeHierarchy": True}),
        geometry=_geometry(),
        animation=animation,
        hierarchy=FakeHierarchy(id_to_name={"a": "Arm"}),
        lights=FakeLights([{"id": "L", "type": "point", "color": [0, 0, 0]}]),
    )
    _, header, payload = _split(encoder.encode())
    assert set(header) == {"animation", "lights"}
    assert header["animation"][0]["target"] == "Arm"
    assert struct.unpack(">2f", payload) == (1.0, 2.0)


def test_lights_key_absent_when_no_lights() -> None:
    _, header, _ = _split(ContainerEncoder(resolve_config(), lights=FakeLights(None)).encode())
    assert "lights" not in header
    _, header, _ = _split(ContainerEncoder(resolve_config(), lights=FakeLights([])).encode())
    assert "lights" not in header


def test_empty_producers_give_empty_header() -> None:
    data = ContainerEncoder(
        resolve_config(),
        geometry=FakeGeometry(segments=[]),
        animation=FakeAnimation(data={}, animation_order=[]),
        hierarchy=FakeHierarchy(hierarchy=None),
    ).encode()
    assert data == b"\x00\x00\x00\x02{}"


def test_index_boundary() -> None:
    ok = FakeGeometry(segments=[GeometrySegment(indices=np.array([65535]), vertices=np.zeros(0))])
    _, _, payload = _split(ContainerEncoder(resolve_config(), geometry=ok).encode())
    assert payload == b"\xff\xff"


def test_index_overflow_aborts_before_flush(tmp_path: Path) -> None:
    bad = FakeGeometry(segments=[GeometrySegment(indices=np.array([0, 65536]), vertices=np.zeros(3))])
    out = tmp_path / "model.mdl"
    with pytest.raises(IndexOverflow):
        ContainerEncoder(resolve_config(), geometry=bad).write(out)
    assert not out.exists()


def test_declared_size_mismatch_is_malformed() -> None:
    geometry = _geometry()
    geometry.declared = geometry.byte_size + 2
    with pytest.raises(MalformedScene):
        ContainerEncoder(resolve_config(), geometry=geometry).encode()


def test_write_reports_stats_and_is_deterministic(tmp_path: Path) -> None:
    def run(path: Path) -> bytes:
        encoder = ContainerEncoder(
            resolve_config(),
            geometry=_geometry(),
            animation=FakeAnimation(data={"a": [0.25]}, animation_order=["a"]),
            hierarchy=FakeHierarchy(),
        )
        stats = encoder.write(path)
        assert stats.total_size == path.stat().st_size
        assert stats.payload_size == 30 + 4
        assert stats.header_length + stats.payload_size + 4 == stats.total_size
        return path.read_bytes()

    assert run(tmp_path / "first.mdl") == run(tmp_path / "second.mdl")


def _reject_constant(token: str) -> None:
    raise ValueError(f"non-JSON constant {token}")


def test_non_finite_floats_become_null_in_header() -> None:
    scene = ColladaScene(
        text="<COLLADA><library_lights><light id='S'><technique_common><spot>"
        "<color>1 2 3</color><falloff_angle>1e999</falloff_angle>"
        "</spot></technique_common></light></library_lights></COLLADA>"
    )
    hierarchy = FakeHierarchy(hierarchy=[{"name": "n", "matrix": [float("nan"), 1.0], "children": []}])
    data = ContainerEncoder(resolve_config(), hierarchy=hierarchy, lights=LightExtractor(scene)).encode()

    length = struct.unpack(">I", data[:4])[0]
    header = json.loads(data[4:4 + length].decode("utf-8"), parse_constant=_reject_constant)
    assert header["lights"] == [{"id": "S", "type": "spot", "color": [1, 2, 3], "coneAngle": None}]
    assert header["hierarchy"][0]["matrix"] == [None, 1.0]


def test_buffer_view_released_when_a_write_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    views = []

    def failing_write(view, offset, values):
        views.append(view)
        raise RuntimeError("write failed")

    monkeypatch.setattr(encoder_module, "write_uint16_array", failing_write)
    with pytest.raises(RuntimeError):
        ContainerEncoder(resolve_config(), geometry=_geometry()).encode()
    with pytest.raises(ValueError):
        views[0].nbytes
