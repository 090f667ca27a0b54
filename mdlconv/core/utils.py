from __future__ import annotations
import logging
import re
from typing import List, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

def get_logger(name: str = "mdlconv") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def parse_leading_int(token: str) -> Optional[int]:
    """Integer prefix of ``token`` ("0.8" -> 0, "12px" -> 12); ``None`` if there is none."""
    m = _LEADING_INT.match(token)
    return int(m.group(1)) if m else None

def parse_leading_float(token: str) -> Optional[float]:
    m = _LEADING_FLOAT.match(token)
    return float(m.group(1)) if m else None

def split_tokens(text: Optional[str]) -> List[str]:
    return (text or "").split()

def strip_ref(ref: str) -> str:
    return ref[1:] if ref.startswith("#") else ref
