from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import xml.etree.ElementTree as ET
import numpy as np

from ..config.schema import ATTRIBUTES, ATTRIBUTE_SIZES, Configuration
from .errors import MalformedScene
from .producers import GeometrySegment
from .scene import ColladaScene
from .skinning import SkinningTable
from .utils import get_logger, strip_ref

_log = get_logger()

_PRIMITIVES = ("triangles", "polylist", "polygons")


@dataclass
class _Primitive:
    geometry_id: str
    name: str
    material: Optional[str]
    attributes: List[str]
    corners: np.ndarray                   # (K, stride) float64, one row per triangle corner
    segment: Optional[GeometrySegment] = None
    meta: Dict[str, Any] = field(default_factory=dict)


class GeometryEncoder:
    """Turns ``library_geometries`` into indexed, interleaved vertex segments.

    Each triangles/polylist/polygons group becomes one segment. Vertices are
    laid out as the enabled attributes in ``ATTRIBUTES`` order. Nothing is
    deduplicated until :meth:`prepare_for_export`, so ``byte_size`` is only
    meaningful afterwards.
    """
    def __init__(self, scene: ColladaScene, config: Configuration, skinning: Optional[SkinningTable] = None) -> None:
        self.scene = scene
        self.config = config
        self.skinning = skinning
        self.segments: List[GeometrySegment] = []
        self._primitives: List[_Primitive] = []
        self._by_geometry: Dict[str, List[int]] = {}
        self._prepared = False

        lib = scene.library("geometries")
        if lib is not None:
            for geometry in lib.findall("geometry"):
                self._add_geometry(geometry)

    # -- parsing --
    def _add_geometry(self, geometry: ET.Element) -> None:
        geometry_id = geometry.get("id", "")
        mesh = geometry.find("mesh")
        if mesh is None:
            _log.warning("Geometry '%s' has no mesh; skipping.", geometry_id)
            return
        name = geometry.get("name", geometry_id)
        slots = self._by_geometry.setdefault(geometry_id, [])
        for prim in mesh:
            if prim.tag not in _PRIMITIVES:
                continue
            slots.append(len(self._primitives))
            self._primitives.append(self._read_primitive(geometry_id, name, prim))

    def _read_primitive(self, geometry_id: str, name: str, prim: ET.Element) -> _Primitive:
        inputs = prim.findall("input")
        if not inputs:
            raise MalformedScene(f"Primitive in geometry '{geometry_id}' has no inputs")
        n_inputs = max(int(inp.get("offset", "0")) for inp in inputs) + 1

        polygons = self._read_polygons(prim, n_inputs)
        triangles = self._fan_triangulate(polygons)  # (K, n_inputs)

        # semantic -> (data, stride, offset)
        streams: Dict[str, Tuple[np.ndarray, int, int]] = {}
        position_rows: Optional[np.ndarray] = None
        for inp in inputs:
            semantic = inp.get("semantic", "")
            offset = int(inp.get("offset", "0"))
            source = inp.get("source", "")
            if semantic == "VERTEX":
                vertices = self.scene.lookup(source)
                for vinp in vertices.findall("input"):
                    vsem = vinp.get("semantic", "")
                    key = "TEXCOORD0" if vsem == "TEXCOORD" else vsem
                    streams[key] = (*self.scene.source_array(vinp.get("source", "")), offset)
                position_rows = triangles[:, offset] if len(triangles) else np.zeros((0,), dtype=np.int64)
            elif semantic == "NORMAL":
                streams["NORMAL"] = (*self.scene.source_array(source), offset)
            elif semantic == "TEXCOORD":
                key = f"TEXCOORD{inp.get('set', '0')}"
                if key in ATTRIBUTE_SIZES and key not in streams:
                    streams[key] = (*self.scene.source_array(source), offset)

        if "POSITION" not in streams or position_rows is None:
            raise MalformedScene(f"Geometry '{geometry_id}' has no POSITION input")

        weights = self.skinning.weights_for(geometry_id) if self.skinning is not None else None

        columns: List[np.ndarray] = []
        attributes: List[str] = []
        for attr in ATTRIBUTES:
            if not self.config.attribute_enabled(attr):
                continue
            width = ATTRIBUTE_SIZES[attr]
            if attr == "WEIGHT":
                if weights is None:
                    continue
                rows = weights[position_rows]
            else:
                if attr not in streams:
                    continue
                data, stride, offset = streams[attr]
                table = data.reshape(-1, stride)
                rows = table[triangles[:, offset], :width] if len(triangles) else np.zeros((0, width))
            columns.append(np.asarray(rows, dtype=np.float64).reshape(len(triangles), width))
            attributes.append(attr)

        corners = np.hstack(columns) if columns else np.zeros((len(triangles), 0))
        return _Primitive(
            geometry_id=geometry_id,
            name=name,
            material=prim.get("material"),
            attributes=attributes,
            corners=corners,
        )

    @staticmethod
    def _read_polygons(prim: ET.Element, n_inputs: int) -> List[np.ndarray]:
        if prim.tag == "polygons":
            return [np.array((p.text or "").split(), dtype=np.int64).reshape(-1, n_inputs) for p in prim.findall("p")]
        p = np.array((prim.findtext("p") or "").split(), dtype=np.int64).reshape(-1, n_inputs)
        if prim.tag == "triangles":
            return [p[i:i + 3] for i in range(0, len(p), 3)]
        vcount = np.array((prim.findtext("vcount") or "").split(), dtype=np.int64)
        polys: List[np.ndarray] = []
        cursor = 0
        for count in vcount:
            polys.append(p[cursor:cursor + count])
            cursor += count
        return polys

    @staticmethod
    def _fan_triangulate(polygons: List[np.ndarray]) -> np.ndarray:
        tris: List[np.ndarray] = []
        for poly in polygons:
            for k in range(1, len(poly) - 1):
                tris.append(poly[[0, k, k + 1]])
        if not tris:
            return np.zeros((0, 1), dtype=np.int64)
        return np.vstack(tris)

    # -- export --
    def prepare_for_export(self) -> None:
        """Deduplicate corners into unique vertices and build index lists (runs once)."""
        if self._prepared:
            return
        self.segments = []
        for prim in self._primitives:
            if len(prim.corners):
                unique, inverse = np.unique(prim.corners, axis=0, return_inverse=True)
                indices = inverse.reshape(-1).astype(np.int64)
            else:
                unique = prim.corners
                indices = np.zeros((0,), dtype=np.int64)
            prim.segment = GeometrySegment(indices=indices, vertices=unique.reshape(-1))
            prim.meta = {"vertexCount": int(len(unique)), "indexCount": int(len(indices))}
            self.segments.append(prim.segment)
        self._prepared = True
        _log.debug("Prepared %d geometry segments (%d bytes)", len(self.segments), self.byte_size)

    @property
    def byte_size(self) -> int:
        return sum(seg.byte_size for seg in self.segments)

    def segment_indices(self, geometry_id: str) -> List[int]:
        key = strip_ref(geometry_id)
        if key not in self._by_geometry:
            raise MalformedScene(f"Reference to missing geometry '{geometry_id}'")
        return list(self._by_geometry[key])

    def get_summary(self) -> Optional[List[Dict[str, Any]]]:
        if not self._primitives:
            return None
        summary: List[Dict[str, Any]] = []
        for prim in self._primitives:
            entry: Dict[str, Any] = {
                "id": prim.geometry_id,
                "name": prim.name,
                "attributes": list(prim.attributes),
                "stride": sum(ATTRIBUTE_SIZES[a] for a in prim.attributes),
            }
            if prim.material is not None:
                entry["material"] = prim.material
            entry.update(prim.meta)
            summary.append(entry)
        return summary
