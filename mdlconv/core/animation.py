from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
import xml.etree.ElementTree as ET
import numpy as np

from .errors import MalformedScene
from .scene import ColladaScene
from .utils import get_logger, strip_ref

_log = get_logger()


@dataclass
class AnimationTrack:
    name: str
    target: str                           # node id
    property: str
    times: np.ndarray
    values: np.ndarray
    stride: int

    @property
    def data(self) -> np.ndarray:
        return np.concatenate([self.times, self.values])


class AnimationEncoder:
    """Keyframe tracks from ``library_animations``, one per channel.

    Track data is the key times followed by the sampled output values.
    ``animation_order`` follows document order and fixes the payload order.
    """
    def __init__(self, scene: ColladaScene) -> None:
        self.scene = scene
        self.tracks: Dict[str, AnimationTrack] = {}
        self.animation_order: List[str] = []

        lib = scene.library("animations")
        if lib is not None:
            for animation in lib.iter("animation"):
                self._add_animation(animation)

    def _add_animation(self, animation: ET.Element) -> None:
        channels = animation.findall("channel")
        base = animation.get("id") or animation.get("name") or f"animation{len(self.animation_order)}"
        for i, channel in enumerate(channels):
            name = base if len(channels) == 1 else f"{base}.{i}"
            self._add_track(name, channel)

    def _add_track(self, name: str, channel: ET.Element) -> None:
        sampler = self.scene.lookup(channel.get("source", ""))
        refs = {inp.get("semantic"): inp.get("source", "") for inp in sampler.findall("input")}
        if "INPUT" not in refs or "OUTPUT" not in refs:
            raise MalformedScene(f"Animation sampler for '{name}' needs INPUT and OUTPUT")
        times, _ = self.scene.source_array(refs["INPUT"])
        values, stride = self.scene.source_array(refs["OUTPUT"])

        target = channel.get("target", "")
        node_id, _, prop = target.partition("/")
        if name in self.tracks:
            raise MalformedScene(f"Duplicate animation track '{name}'")
        self.tracks[name] = AnimationTrack(
            name=name,
            target=node_id,
            property=prop,
            times=times,
            values=values,
            stride=stride,
        )
        self.animation_order.append(name)

    @property
    def has_animation(self) -> bool:
        return bool(self.animation_order)

    @property
    def byte_size(self) -> int:
        return sum(len(self.tracks[n].data) * 4 for n in self.animation_order)

    def get_animation_data(self, name: str) -> np.ndarray:
        return self.tracks[name].data

    def get_summary(self, id_to_name: Optional[Mapping[str, str]] = None) -> Optional[List[Dict[str, Any]]]:
        if not self.has_animation:
            return None
        id_to_name = id_to_name or {}
        summary: List[Dict[str, Any]] = []
        for name in self.animation_order:
            track = self.tracks[name]
            summary.append({
                "name": name,
                "target": id_to_name.get(strip_ref(track.target), track.target),
                "property": track.property,
                "frameCount": int(len(track.times)),
                "stride": track.stride,
                "duration": float(track.times[-1] - track.times[0]) if len(track.times) else 0.0,
            })
        return summary
