from __future__ import annotations
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

from .scene import ColladaScene
from .utils import get_logger, strip_ref

_log = get_logger()

_SHADERS = ("phong", "blinn", "lambert", "constant")


class MaterialEncoder:
    """Flattens COLLADA materials into ``{id, name, diffuse | texture}`` records."""
    def __init__(self, scene: ColladaScene) -> None:
        self.scene = scene
        self.materials: Dict[str, Dict[str, Any]] = {}

        lib = scene.library("materials")
        if lib is None:
            return
        for material in lib.findall("material"):
            material_id = material.get("id", "")
            self.materials[material_id] = self._read_material(material_id, material)

    def _read_material(self, material_id: str, material: ET.Element) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": material_id, "name": material.get("name", material_id)}
        inst = material.find("instance_effect")
        effect = self.scene.get(inst.get("url", "")) if inst is not None else None
        if effect is None:
            _log.warning("Material '%s' has no resolvable effect.", material_id)
            return data

        profile = effect.find("profile_COMMON")
        technique = profile.find("technique") if profile is not None else None
        shader = None
        if technique is not None:
            for tag in _SHADERS:
                shader = technique.find(tag)
                if shader is not None:
                    break
        if shader is None:
            return data

        diffuse = shader.find("diffuse")
        if diffuse is not None:
            texture = diffuse.find("texture")
            color = diffuse.findtext("color")
            if texture is not None:
                image = self._resolve_texture(profile, texture.get("texture", ""))
                if image is not None:
                    data["texture"] = image
            elif color is not None:
                data["diffuse"] = [float(v) for v in color.split()]

        shininess = shader.findtext("shininess/float")
        if shininess is not None:
            data["shininess"] = float(shininess)
        transparency = shader.findtext("transparency/float")
        if transparency is not None:
            data["transparency"] = float(transparency)
        return data

    def _resolve_texture(self, profile: ET.Element, sampler_sid: str) -> Optional[str]:
        # sampler2D -> surface -> image, or a direct image id
        params = {p.get("sid"): p for p in profile.findall("newparam")}
        target = sampler_sid
        sampler = params.get(sampler_sid)
        if sampler is not None:
            source = sampler.findtext("sampler2D/source")
            surface = params.get(source) if source else None
            if surface is not None:
                target = surface.findtext("surface/init_from") or target
            else:
                inst = sampler.find("sampler2D/instance_image")
                if inst is not None:
                    target = inst.get("url", target)
        image = self.scene.get(target)
        if image is None:
            _log.warning("Texture '%s' does not resolve to an image.", sampler_sid)
            return None
        return (image.findtext("init_from") or "").strip() or None

    def get(self, material_id: str) -> Optional[Dict[str, Any]]:
        return self.materials.get(strip_ref(material_id))

    def get_summary(self) -> Optional[List[Dict[str, Any]]]:
        return list(self.materials.values()) or None
