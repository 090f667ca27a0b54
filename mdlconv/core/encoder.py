from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import json
import math
import pathlib

import numpy as np

from ..config.schema import Configuration
from .binary import (
    HEADER_LENGTH_SIZE,
    check_indices,
    write_float32_array,
    write_uint16_array,
    write_uint32,
)
from .errors import MalformedScene
from .producers import AnimationProducer, GeometryProducer, HierarchyProducer, LightProducer
from .utils import get_logger

_log = get_logger()


def _json_safe(value: Any) -> Any:
    """Replace non-finite floats with ``None`` throughout a header structure."""
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (float, np.floating)) and not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True)
class ContainerStats:
    path: pathlib.Path
    header_length: int
    payload_size: int
    total_size: int


class ContainerEncoder:
    """Writes the ``.mdl`` container for one conversion run.

    Layout::

        uint32 BE   header length
        bytes       UTF-8 JSON header (geometry, lights, hierarchy, animation)
        payload     per geometry segment: uint16 BE indices, float32 BE vertices;
                    then one float32 BE array per animation, in animation_order

    Geometry and animation producers are only consulted when binary output is
    enabled. The buffer is sized exactly once and filled front to back; any
    failure happens before a byte reaches disk.
    """
    def __init__(
        self,
        config: Configuration,
        geometry: Optional[GeometryProducer] = None,
        animation: Optional[AnimationProducer] = None,
        hierarchy: Optional[HierarchyProducer] = None,
        lights: Optional[LightProducer] = None,
    ) -> None:
        self.config = config
        self.geometry = geometry
        self.animation = animation
        self.hierarchy = hierarchy
        self.lights = lights
        self._header: Optional[Dict[str, Any]] = None
        self._animation_data: List[np.ndarray] = []

    @property
    def _writes_geometry(self) -> bool:
        return self.config.include_binary and self.config.include_geometry and self.geometry is not None

    @property
    def _writes_animation(self) -> bool:
        return (
            self.config.include_binary
            and self.config.include_animation
            and self.animation is not None
            and self.animation.has_animation
        )

    # -- stages --
    def collect_summaries(self) -> Dict[str, Any]:
        if self._header is not None:
            return self._header

        header: Dict[str, Any] = {}
        if self._writes_geometry:
            self.geometry.prepare_for_export()
            summary = self.geometry.get_summary()
            if summary:
                header["geometry"] = summary

        if self.lights is not None:
            lights = self.lights.get_summary()
            if lights:
                header["lights"] = lights

        if self.config.include_hierarchy and self.hierarchy is not None and self.hierarchy.hierarchy:
            header["hierarchy"] = self.hierarchy.hierarchy

        self._animation_data = []
        if self._writes_animation:
            id_to_name = self.hierarchy.id_to_name if self.hierarchy is not None else {}
            summary = self.animation.get_summary(id_to_name)
            if summary:
                header["animation"] = summary
            for name in self.animation.animation_order:
                self._animation_data.append(np.asarray(self.animation.get_animation_data(name)).reshape(-1))

        _log.debug("Header sections: %s", ", ".join(header) or "(none)")
        header = _json_safe(header)
        self._header = header
        return header

    def payload_size(self) -> int:
        if not self.config.include_binary:
            return 0
        size = 0
        if self._writes_geometry:
            declared = self.geometry.byte_size
            actual = sum(len(seg.indices) * 2 + len(seg.vertices) * 4 for seg in self.geometry.segments)
            if declared != actual:
                raise MalformedScene(f"Geometry declares {declared} bytes but its segments hold {actual}")
            size += declared
        if self._writes_animation:
            declared = self.animation.byte_size
            actual = sum(len(arr) * 4 for arr in self._animation_data)
            if declared != actual:
                raise MalformedScene(f"Animation declares {declared} bytes but its tracks hold {actual}")
            size += declared
        return size

    def encode(self) -> bytes:
        header = self.collect_summaries()
        header_bytes = json.dumps(header, separators=(",", ":"), ensure_ascii=False, allow_nan=False).encode("utf-8")
        header_length = len(header_bytes)
        payload = self.payload_size()

        # Index ceiling is a precondition of the write, not a per-element check.
        if self._writes_geometry:
            for seg in self.geometry.segments:
                check_indices(seg.indices)

        total = HEADER_LENGTH_SIZE + header_length + payload
        buffer = bytearray(total)
        cursor = 0
        with memoryview(buffer) as view:
            cursor += write_uint32(view, cursor, header_length)
            view[cursor:cursor + header_length] = header_bytes
            cursor += header_length

            if self.config.include_binary:
                if self._writes_geometry:
                    for seg in self.geometry.segments:
                        cursor += write_uint16_array(view, cursor, seg.indices)
                        cursor += write_float32_array(view, cursor, seg.vertices)
                for arr in self._animation_data:
                    cursor += write_float32_array(view, cursor, arr)

        if cursor != total:
            raise MalformedScene(f"Container cursor ended at {cursor}, expected {total}")
        _log.debug("Encoded container: header %d bytes, payload %d bytes", header_length, payload)
        return bytes(buffer)

    def write(self, path: str | pathlib.Path) -> ContainerStats:
        data = self.encode()
        path = pathlib.Path(path)
        with open(path, "wb") as f:
            f.write(data)
        header_length = int.from_bytes(data[:HEADER_LENGTH_SIZE], "big")
        stats = ContainerStats(
            path=path,
            header_length=header_length,
            payload_size=len(data) - HEADER_LENGTH_SIZE - header_length,
            total_size=len(data),
        )
        _log.info("Wrote %s (%d bytes, header %d)", path.name, stats.total_size, header_length)
        return stats
