from __future__ import annotations
from typing import Dict, List, Optional
import numpy as np

from .errors import MalformedScene
from .scene import ColladaScene
from .utils import get_logger, strip_ref

_log = get_logger()

INFLUENCES = 3


class SkinningTable:
    """Per-position joint influences for skinned geometries.

    Each position gets a 6-float record: three joint indices followed by
    their weights. Only the three heaviest influences are kept and their
    weights are renormalised to sum to one.
    """
    def __init__(self, scene: ColladaScene) -> None:
        self.scene = scene
        self._weights: Dict[str, np.ndarray] = {}
        self._joints: Dict[str, List[str]] = {}
        self._geometry: Dict[str, str] = {}

        lib = scene.library("controllers")
        if lib is None:
            return
        for controller in lib.findall("controller"):
            skin = controller.find("skin")
            if skin is None:
                continue
            self._add_skin(controller.get("id", ""), skin)

    def _add_skin(self, controller_id: str, skin) -> None:
        geometry_id = strip_ref(skin.get("source", ""))
        joints_ref = weights_ref = None
        for inp in skin.findall("joints/input"):
            if inp.get("semantic") == "JOINT":
                joints_ref = inp.get("source")
        vw = skin.find("vertex_weights")
        if vw is None or joints_ref is None:
            raise MalformedScene(f"Controller '{controller_id}' has incomplete skin data")

        joint_offset = weight_offset = 0
        n_inputs = 0
        for inp in vw.findall("input"):
            off = int(inp.get("offset", "0"))
            n_inputs = max(n_inputs, off + 1)
            if inp.get("semantic") == "JOINT":
                joint_offset = off
            elif inp.get("semantic") == "WEIGHT":
                weight_offset = off
                weights_ref = inp.get("source")
        if weights_ref is None:
            raise MalformedScene(f"Controller '{controller_id}' has no WEIGHT input")

        weight_values, _ = self.scene.source_array(weights_ref)
        vcount = np.array((vw.findtext("vcount") or "").split(), dtype=np.int64)
        v = np.array((vw.findtext("v") or "").split(), dtype=np.int64)

        table = np.zeros((len(vcount), 2 * INFLUENCES), dtype=np.float32)
        cursor = 0
        for i, count in enumerate(vcount):
            pairs = v[cursor:cursor + count * n_inputs].reshape(-1, n_inputs)
            cursor += count * n_inputs
            joints = pairs[:, joint_offset]
            weights = weight_values[pairs[:, weight_offset]]
            order = np.argsort(-weights, kind="stable")[:INFLUENCES]
            w = weights[order]
            total = float(w.sum())
            if total > 0:
                w = w / total
            table[i, :len(order)] = joints[order]
            table[i, INFLUENCES:INFLUENCES + len(order)] = w

        self._weights[geometry_id] = table
        self._joints[controller_id] = self.scene.name_array(joints_ref)
        self._geometry[controller_id] = geometry_id
        _log.debug("Skin '%s' binds %d positions of '%s'", controller_id, len(table), geometry_id)

    # -- API --
    def weights_for(self, geometry_id: str) -> Optional[np.ndarray]:
        return self._weights.get(geometry_id)

    def joints_for(self, controller_id: str) -> List[str]:
        return list(self._joints.get(strip_ref(controller_id), []))

    def geometry_for(self, controller_id: str) -> Optional[str]:
        return self._geometry.get(strip_ref(controller_id))
