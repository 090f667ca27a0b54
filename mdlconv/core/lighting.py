from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
import xml.etree.ElementTree as ET

from .errors import MalformedScene
from .scene import ColladaScene
from .utils import get_logger, parse_leading_float, parse_leading_int, split_tokens

_log = get_logger()


@dataclass(frozen=True)
class Light:
    id: str
    type: str                        # "point" | "spot"
    color: List[Optional[int]]
    cone_angle: Optional[float] = None

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "type": self.type, "color": list(self.color)}
        if self.type == "spot":
            data["coneAngle"] = self.cone_angle
        return data


class LightExtractor:
    """Collects point and spot lights from ``library_lights``.

    Other light kinds (ambient, directional) are not part of the output
    schema and are skipped. Color channels go through unvalidated, so values
    outside 0..255 survive as written in the source file.
    """
    def __init__(self, source: Union[ColladaScene, ET.Element, None] = None) -> None:
        self.lights: Dict[str, Light] = {}
        if isinstance(source, ColladaScene):
            source = source.library("lights")
        if source is not None:
            self.lights = self.extract(source)

    def extract(self, library: ET.Element) -> Dict[str, Light]:
        lights: Dict[str, Light] = {}
        for entry in library.findall("light"):
            light = self._parse_light(entry)
            if light is not None:
                lights[light.id] = light
        return lights

    def _parse_light(self, entry: ET.Element) -> Optional[Light]:
        light_id = entry.get("id")
        if light_id is None:
            raise MalformedScene("Light without id")
        technique = entry.find("technique_common")
        if technique is None:
            raise MalformedScene(f"Light '{light_id}' has no technique_common")

        point = technique.find("point")
        spot = technique.find("spot")
        definition = point if point is not None else spot
        if definition is None:
            _log.debug("Skipping light '%s': unsupported light type", light_id)
            return None

        color_text = definition.findtext("color")
        if color_text is None:
            raise MalformedScene(f"Light '{light_id}' has no color")
        color = [parse_leading_int(tok) for tok in split_tokens(color_text)]

        if spot is not None:
            falloff = spot.findtext("falloff_angle")
            if falloff is None:
                raise MalformedScene(f"Spot light '{light_id}' has no falloff_angle")
            return Light(id=light_id, type="spot", color=color, cone_angle=parse_leading_float(falloff))
        return Light(id=light_id, type="point", color=color)

    def get(self, light_id: str) -> Optional[Light]:
        return self.lights.get(light_id)

    def get_summary(self) -> Optional[List[Dict[str, Any]]]:
        if not self.lights:
            return None
        return [light.to_json() for light in self.lights.values()]
