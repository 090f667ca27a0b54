from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence
import numpy as np


@dataclass
class GeometrySegment:
    """One mesh primitive group: index list plus interleaved float vertices."""
    indices: np.ndarray                   # (M,) integer, written as uint16
    vertices: np.ndarray                  # (N*stride,) written as float32

    @property
    def byte_size(self) -> int:
        return len(self.indices) * 2 + len(self.vertices) * 4


class GeometryProducer(Protocol):
    segments: Sequence[GeometrySegment]
    def prepare_for_export(self) -> None: ...
    def get_summary(self) -> Optional[List[Dict[str, Any]]]: ...
    @property
    def byte_size(self) -> int: ...


class AnimationProducer(Protocol):
    animation_order: Sequence[str]
    @property
    def has_animation(self) -> bool: ...
    def get_summary(self, id_to_name: Mapping[str, str]) -> Optional[List[Dict[str, Any]]]: ...
    def get_animation_data(self, name: str) -> np.ndarray: ...
    @property
    def byte_size(self) -> int: ...


class HierarchyProducer(Protocol):
    hierarchy: Optional[List[Dict[str, Any]]]
    id_to_name: Dict[str, str]


class LightProducer(Protocol):
    def get_summary(self) -> Optional[List[Dict[str, Any]]]: ...
