"""Option parsing and configuration resolution for mdlconv."""

from .schema import (
    ATTRIBUTES,
    ATTRIBUTE_SIZES,
    FLAGS,
    MODEL_EXTENSION,
    Configuration,
    ConvertOptions,
    load_options,
    parse_flags,
    resolve_config,
)

__all__ = [
    "ATTRIBUTES",
    "ATTRIBUTE_SIZES",
    "FLAGS",
    "MODEL_EXTENSION",
    "Configuration",
    "ConvertOptions",
    "load_options",
    "parse_flags",
    "resolve_config",
]
