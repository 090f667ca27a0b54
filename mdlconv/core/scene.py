from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Tuple
import xml.etree.ElementTree as ET

import numpy as np

from .errors import MalformedScene
from .utils import get_logger, strip_ref

_log = get_logger()


class ColladaScene:
    """Parsed COLLADA document with id lookup and source-array helpers.

    Tags are stored without the COLLADA namespace, so producers can use plain
    ``find("technique_common")`` style queries.
    """
    def __init__(self, path: str | Path | None = None, text: Optional[str] = None) -> None:
        self.path = Path(path) if path is not None else None
        if text is not None:
            root = self._parse(lambda: ET.fromstring(text))
        elif self.path is not None:
            root = self._parse(lambda: ET.parse(self.path).getroot())
        else:
            raise ValueError("Provide either path or text.")

        for el in root.iter():
            if isinstance(el.tag, str) and "}" in el.tag:
                el.tag = el.tag.split("}", 1)[1]
        if root.tag != "COLLADA":
            raise MalformedScene(f"Expected COLLADA root element, found <{root.tag}>")

        self.root = root
        self._by_id: Dict[str, ET.Element] = {}
        for el in root.iter():
            el_id = el.get("id")
            if el_id is not None and el_id not in self._by_id:
                self._by_id[el_id] = el
        _log.debug("Loaded scene with %d identified elements", len(self._by_id))

    @staticmethod
    def _parse(load) -> ET.Element:
        try:
            return load()
        except ET.ParseError as exc:
            raise MalformedScene(f"Invalid scene XML: {exc}") from exc

    # -- API --
    def library(self, name: str) -> Optional[ET.Element]:
        return self.root.find(f"library_{name}")

    def lookup(self, ref: str) -> ET.Element:
        el = self._by_id.get(strip_ref(ref))
        if el is None:
            raise MalformedScene(f"Reference to missing element '{ref}'")
        return el

    def get(self, ref: str) -> Optional[ET.Element]:
        return self._by_id.get(strip_ref(ref))

    def source_array(self, ref: str) -> Tuple[np.ndarray, int]:
        """Return the float data of a ``<source>`` and its accessor stride."""
        source = self.lookup(ref)
        float_array = source.find("float_array")
        if float_array is None:
            raise MalformedScene(f"Source '{ref}' has no float_array")
        data = np.array((float_array.text or "").split(), dtype=np.float64)
        accessor = source.find("technique_common/accessor")
        stride = int(accessor.get("stride", "1")) if accessor is not None else 1
        return data, stride

    def name_array(self, ref: str) -> list[str]:
        source = self.lookup(ref)
        arr = source.find("Name_array")
        if arr is None:
            arr = source.find("IDREF_array")
        if arr is None:
            raise MalformedScene(f"Source '{ref}' has no Name_array")
        return (arr.text or "").split()

    def visual_scene(self) -> Optional[ET.Element]:
        inst = self.root.find("scene/instance_visual_scene")
        if inst is not None and inst.get("url"):
            return self.lookup(inst.get("url", ""))
        lib = self.library("visual_scenes")
        return lib.find("visual_scene") if lib is not None else None
