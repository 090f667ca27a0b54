from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.errors import UnknownOption

ATTRIBUTES = ("POSITION", "NORMAL", "TEXCOORD0", "TEXCOORD1", "WEIGHT")
ATTRIBUTE_SIZES: Dict[str, int] = {"POSITION": 3, "NORMAL": 3, "TEXCOORD0": 2, "TEXCOORD1": 2, "WEIGHT": 6}

MODEL_EXTENSION = ".mdl"

SKIP_BINARY = "skip-binary"
SUB_ANIM = "sub-anim"
FLAGS = (SKIP_BINARY, SUB_ANIM)


class ConvertOptions(BaseModel):
    """Raw caller options, before any policy is applied."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    skip_binary: bool = Field(False, alias=SKIP_BINARY)
    sub_anim: bool = Field(False, alias=SUB_ANIM)
    include_geometry: Optional[bool] = Field(None, alias="includeGeometry")
    include_animation: Optional[bool] = Field(None, alias="includeAnimation")
    include_hierarchy: Optional[bool] = Field(None, alias="includeHierarchy")
    include_material: Optional[bool] = Field(None, alias="includeMaterial")
    include_normals: Optional[bool] = Field(None, alias="includeNormals")
    include_uv: Optional[bool] = Field(None, alias="includeUV")

    @classmethod
    def recognized(cls) -> tuple[str, ...]:
        return tuple(f.alias for f in cls.model_fields.values() if f.alias)

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]] = None) -> "ConvertOptions":
        raw = dict(raw or {})
        allowed = cls.recognized()
        for key in raw:
            if key not in allowed:
                raise UnknownOption(str(key), allowed)
        return cls.model_validate(raw)


class Configuration(BaseModel):
    """Resolved, immutable run configuration shared by every producer."""

    model_config = ConfigDict(frozen=True)

    include_binary: bool = True
    include_geometry: bool = True
    include_animation: bool = True
    include_hierarchy: bool = True
    include_material: bool = True
    is_sub_animation: bool = False
    attributes: FrozenSet[str] = frozenset(ATTRIBUTES)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Configuration":
        if not self.include_binary and (self.include_geometry or self.include_animation):
            raise ValueError("geometry and animation output require binary output")
        if self.is_sub_animation and (self.include_geometry or self.include_hierarchy or self.include_material):
            raise ValueError("sub-animation output cannot include geometry, hierarchy or material")
        unknown = set(self.attributes) - set(ATTRIBUTES)
        if unknown:
            raise ValueError(f"Unknown vertex attributes: {sorted(unknown)}")
        return self

    @property
    def include_attribs(self) -> Dict[str, bool]:
        return {name: name in self.attributes for name in ATTRIBUTES}

    def attribute_enabled(self, name: str) -> bool:
        return name in self.attributes


def parse_flags(tokens: Iterable[str]) -> Dict[str, bool]:
    """Map CLI flag tokens to an option mapping, rejecting anything outside ``FLAGS``."""
    options: Dict[str, bool] = {}
    for token in tokens:
        if token not in FLAGS:
            raise UnknownOption(token, FLAGS)
        options[token] = True
    return options


def resolve_config(options: ConvertOptions | Mapping[str, Any] | None = None) -> Configuration:
    if not isinstance(options, ConvertOptions):
        options = ConvertOptions.from_mapping(options)

    include_binary = not options.skip_binary
    is_sub_animation = bool(options.sub_anim)

    flags = {
        "include_geometry": include_binary and not is_sub_animation,
        "include_animation": include_binary,
        "include_hierarchy": not is_sub_animation,
        "include_material": not is_sub_animation,
    }
    # Overrides can only switch features off.
    for name in flags:
        if getattr(options, name) is False:
            flags[name] = False

    attributes = set(ATTRIBUTES)
    if options.include_normals is False:
        attributes.discard("NORMAL")
    if options.include_uv is False:
        attributes.discard("TEXCOORD0")
        attributes.discard("TEXCOORD1")

    return Configuration(
        include_binary=include_binary,
        is_sub_animation=is_sub_animation,
        attributes=frozenset(attributes),
        **flags,
    )


def load_options(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Options file root must be a mapping.")
    ConvertOptions.from_mapping(data)
    return data
