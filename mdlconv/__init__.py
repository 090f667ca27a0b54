"""mdlconv – COLLADA → .mdl asset container converter.

Components:
- Option parsing and configuration resolution (config.schema)
- COLLADA document access (core.scene)
- Light extraction (core.lighting)
- Segment producers: geometry, skinning, materials, hierarchy, animation
- Big-endian byte writers (core.binary)
- Container encoder writing the length-prefixed JSON header and payload (core.encoder)
- Programmatic entry point (sdk) and typer CLI (cli.main)
"""

from .config import Configuration, ConvertOptions, resolve_config, parse_flags
from .core.errors import ConvertError, UnknownOption, MalformedScene, IndexOverflow
from .core.scene import ColladaScene
from .core.lighting import Light, LightExtractor
from .core.producers import GeometrySegment
from .core.geometry import GeometryEncoder
from .core.animation import AnimationEncoder
from .core.hierarchy import HierarchyBuilder
from .core.material import MaterialEncoder
from .core.skinning import SkinningTable
from .core.encoder import ContainerEncoder, ContainerStats
from .sdk import convert_file, target_path
