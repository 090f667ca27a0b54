from __future__ import annotations
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET
import numpy as np

from ..config.schema import Configuration
from .errors import MalformedScene
from .geometry import GeometryEncoder
from .lighting import LightExtractor
from .material import MaterialEncoder
from .scene import ColladaScene
from .skinning import SkinningTable
from .utils import get_logger, strip_ref

_log = get_logger()


def _rotation(axis: np.ndarray, angle_deg: float) -> np.ndarray:
    n = float(np.linalg.norm(axis))
    m = np.eye(4)
    if n == 0.0:
        return m
    x, y, z = axis / n
    a = np.radians(angle_deg)
    c, s, t = np.cos(a), np.sin(a), 1.0 - np.cos(a)
    m[:3, :3] = [
        [t * x * x + c, t * x * y - s * z, t * x * z + s * y],
        [t * x * y + s * z, t * y * y + c, t * y * z - s * x],
        [t * x * z - s * y, t * y * z + s * x, t * z * z + c],
    ]
    return m


_TRANSFORM_SIZES = {"matrix": 16, "translate": 3, "rotate": 4, "scale": 3}


def _transform_values(node: ET.Element, child: ET.Element) -> np.ndarray:
    expected = _TRANSFORM_SIZES[child.tag]
    try:
        values = np.array((child.text or "").split(), dtype=np.float64)
    except ValueError as exc:
        raise MalformedScene(f"Node '{node.get('id', '')}' has non-numeric <{child.tag}>") from exc
    if len(values) < expected:
        raise MalformedScene(
            f"Node '{node.get('id', '')}' <{child.tag}> needs {expected} values, found {len(values)}"
        )
    return values


def node_matrix(node: ET.Element) -> np.ndarray:
    """Local 4x4 transform composed from the node's transform children in document order.

    Children other than ``matrix``, ``translate``, ``rotate`` and ``scale`` are ignored.
    """
    m = np.eye(4)
    for child in node:
        if child.tag not in _TRANSFORM_SIZES:
            continue
        values = _transform_values(node, child)
        if child.tag == "matrix":
            m = m @ values.reshape(4, 4)
        elif child.tag == "translate":
            t = np.eye(4)
            t[:3, 3] = values[:3]
            m = m @ t
        elif child.tag == "rotate":
            m = m @ _rotation(values[:3], float(values[3]))
        elif child.tag == "scale":
            m = m @ np.diag([values[0], values[1], values[2], 1.0])
    return m


class HierarchyBuilder:
    """Builds the node tree of the active visual scene.

    Nodes reference geometry by segment index, lights by id and, when
    materials are enabled, carry their bound material records inline.
    """
    def __init__(
        self,
        scene: ColladaScene,
        config: Configuration,
        geometry: GeometryEncoder,
        materials: Optional[MaterialEncoder] = None,
        lighting: Optional[LightExtractor] = None,
        skinning: Optional[SkinningTable] = None,
    ) -> None:
        self.scene = scene
        self.config = config
        self.geometry = geometry
        self.materials = materials
        self.lighting = lighting
        self.skinning = skinning
        self.id_to_name: Dict[str, str] = {}
        self.hierarchy: Optional[List[Dict[str, Any]]] = None

        visual_scene = scene.visual_scene()
        if visual_scene is not None:
            nodes = [self._build_node(n) for n in visual_scene.findall("node")]
            self.hierarchy = nodes or None

    def _build_node(self, node: ET.Element) -> Dict[str, Any]:
        node_id = node.get("id", "")
        name = node.get("name") or node_id
        if node_id:
            self.id_to_name[node_id] = name
        if node.get("sid"):
            self.id_to_name[node.get("sid", "")] = name

        data: Dict[str, Any] = {
            "name": name,
            "id": node_id,
            "matrix": [float(v) for v in node_matrix(node).T.reshape(-1)],
        }
        if node.get("type") == "JOINT":
            data["joint"] = True

        segments: List[int] = []
        bound: List[ET.Element] = []
        for inst in node.findall("instance_geometry"):
            segments.extend(self.geometry.segment_indices(inst.get("url", "")))
            bound.append(inst)
        for inst in node.findall("instance_controller"):
            url = inst.get("url", "")
            self.scene.lookup(url)
            geometry_id = self.skinning.geometry_for(url) if self.skinning is not None else None
            if geometry_id is None:
                raise MalformedScene(f"Controller '{url}' does not skin a known geometry")
            segments.extend(self.geometry.segment_indices(geometry_id))
            data["joints"] = self.skinning.joints_for(url)
            bound.append(inst)
        if segments:
            data["geometry"] = segments

        if self.config.include_material and self.materials is not None:
            materials = self._bound_materials(bound)
            if materials:
                data["materials"] = materials

        for inst in node.findall("instance_light"):
            light_id = strip_ref(inst.get("url", ""))
            if self.lighting is not None and self.lighting.get(light_id) is not None:
                data["light"] = light_id

        data["children"] = [self._build_node(child) for child in node.findall("node")]
        return data

    def _bound_materials(self, instances: List[ET.Element]) -> Dict[str, Dict[str, Any]]:
        result: Dict[str, Dict[str, Any]] = {}
        for inst in instances:
            for im in inst.findall("bind_material/technique_common/instance_material"):
                symbol = im.get("symbol", "")
                material = self.materials.get(im.get("target", ""))
                if material is None:
                    _log.warning("Material symbol '%s' targets unknown material '%s'.", symbol, im.get("target"))
                    continue
                result[symbol] = material
        return result
