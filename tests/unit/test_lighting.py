from __future__ import annotations

import pytest

from mdlconv.core.errors import MalformedScene
from mdlconv.core.lighting import Light, LightExtractor
from mdlconv.core.scene import ColladaScene

from scene_helper import SCENE_DAE


def _scene_with_lights(body: str) -> ColladaScene:
    return ColladaScene(text=f"<COLLADA><library_lights>{body}</library_lights></COLLADA>")


def test_spot_light_scenario() -> None:
    scene = _scene_with_lights(
        '<light id="Spot"><technique_common><spot><color>255 0 0</color>'
        "<falloff_angle>45.0</falloff_angle></spot></technique_common></light>"
    )
    summary = LightExtractor(scene).get_summary()
    assert summary == [{"id": "Spot", "type": "spot", "color": [255, 0, 0], "coneAngle": 45.0}]


def test_unsupported_lights_are_skipped() -> None:
    extractor = LightExtractor(ColladaScene(text=SCENE_DAE))
    assert set(extractor.lights) == {"Spot-light", "Point-light"}
    summary = extractor.get_summary()
    assert summary is not None
    by_id = {entry["id"]: entry for entry in summary}
    assert by_id["Point-light"] == {"id": "Point-light", "type": "point", "color": [10, 20, 30]}
    assert "coneAngle" not in by_id["Point-light"]
    assert by_id["Spot-light"]["coneAngle"] == 45.0


def test_summary_is_none_without_lights() -> None:
    assert LightExtractor(ColladaScene(text="<COLLADA/>")).get_summary() is None
    only_ambient = _scene_with_lights(
        '<light id="Amb"><technique_common><ambient><color>1 1 1</color></ambient></technique_common></light>'
    )
    assert LightExtractor(only_ambient).get_summary() is None


def test_color_is_not_validated() -> None:
    scene = _scene_with_lights(
        '<light id="P"><technique_common><point><color>0.8 300 -5</color></point></technique_common></light>'
    )
    light = LightExtractor(scene).get("P")
    assert light == Light(id="P", type="point", color=[0, 300, -5])


def test_duplicate_ids_keep_last_definition() -> None:
    scene = _scene_with_lights(
        '<light id="L"><technique_common><point><color>1 1 1</color></point></technique_common></light>'
        '<light id="L"><technique_common><point><color>2 2 2</color></point></technique_common></light>'
    )
    extractor = LightExtractor(scene)
    assert len(extractor.lights) == 1
    assert extractor.get("L").color == [2, 2, 2]


def test_spot_without_falloff_is_malformed() -> None:
    scene = _scene_with_lights(
        '<light id="S"><technique_common><spot><color>1 1 1</color></spot></technique_common></light>'
    )
    with pytest.raises(MalformedScene):
        LightExtractor(scene)


def test_light_without_technique_is_malformed() -> None:
    with pytest.raises(MalformedScene):
        LightExtractor(_scene_with_lights('<light id="X"/>'))


def test_point_and_spot_together() -> None:
    scene = _scene_with_lights(
        '<light id="Both"><technique_common>'
        "<point><color>1 2 3</color></point>"
        "<spot><color>9 9 9</color><falloff_angle>30</falloff_angle></spot>"
        "</technique_common></light>"
    )
    light = LightExtractor(scene).get("Both")
    assert light == Light(id="Both", type="spot", color=[1, 2, 3], cone_angle=30.0)
