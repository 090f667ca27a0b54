from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from ..config import MODEL_EXTENSION, Configuration, load_options, parse_flags, resolve_config
from ..core.animation import AnimationEncoder
from ..core.encoder import ContainerEncoder, ContainerStats
from ..core.geometry import GeometryEncoder
from ..core.hierarchy import HierarchyBuilder
from ..core.lighting import LightExtractor
from ..core.material import MaterialEncoder
from ..core.scene import ColladaScene
from ..core.skinning import SkinningTable
from ..core.utils import get_logger

_log = get_logger()


def target_path(input_path: Union[str, Path], output_dir: Optional[Path] = None) -> Path:
    """``<dir>/<stem>.mdl`` next to the input, or inside ``output_dir`` when given."""
    input_path = Path(input_path)
    directory = Path(output_dir) if output_dir is not None else input_path.parent
    return directory / (input_path.stem + MODEL_EXTENSION)


@dataclass(frozen=True)
class ConvertResult:
    """Summary of one conversion run."""

    output_path: Path
    stats: ContainerStats
    config: Configuration


def build_encoder(scene: ColladaScene, config: Configuration) -> ContainerEncoder:
    skinning = SkinningTable(scene)
    lighting = LightExtractor(scene)
    materials = MaterialEncoder(scene)
    animation = AnimationEncoder(scene)
    geometry = GeometryEncoder(scene, config, skinning=skinning)
    hierarchy = HierarchyBuilder(
        scene,
        config,
        geometry,
        materials=materials,
        lighting=lighting,
        skinning=skinning,
    )
    return ContainerEncoder(config, geometry=geometry, animation=animation, hierarchy=hierarchy, lights=lighting)


def convert_file(
    input_path: Union[str, Path],
    flags: Iterable[str] = (),
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    options_file: Optional[Path] = None,
    output: Optional[Path] = None,
) -> ConvertResult:
    """Convert one COLLADA file into an ``.mdl`` container.

    Parameters
    ----------
    input_path:
        Source ``.dae`` file.
    flags:
        Flag tokens (``skip-binary``, ``sub-anim``). Anything else raises
        :class:`~mdlconv.core.errors.UnknownOption` before the scene is read.
    overrides:
        Explicit option overrides such as ``{"includeNormals": False}``.
    options_file:
        Optional YAML file with further overrides; ``overrides`` take
        precedence over it.
    output:
        Optional explicit target path. Defaults to :func:`target_path`.

    Returns
    -------
    ConvertResult
        The written path, container statistics and the resolved configuration.
    """

    options: dict[str, Any] = {}
    if options_file is not None:
        options.update(load_options(options_file))
    options.update(overrides or {})
    options.update(parse_flags(flags))
    config = resolve_config(options)

    input_path = Path(input_path)
    out_path = Path(output) if output is not None else target_path(input_path)
    _log.info("Converting %s → %s", input_path, out_path)

    scene = ColladaScene(input_path)
    encoder = build_encoder(scene, config)
    stats = encoder.write(out_path)
    return ConvertResult(output_path=out_path, stats=stats, config=config)
