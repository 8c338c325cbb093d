"""Fixed lookup tables: sprite codes and edge handle codes.

Both tables are immutable module constants. Lookups return None for values
outside the table; callers report the miss.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional

SPRITE_PATHS: Mapping[int, str] = MappingProxyType(
    {
        1: "/spritesheets/character_1.png",
        2: "/spritesheets/character_2.png",
        3: "/spritesheets/character_3.png",
        4: "/spritesheets/character_4.png",
    }
)
SPRITE_CODES: Mapping[str, int] = MappingProxyType({path: code for code, path in SPRITE_PATHS.items()})

SOURCE = "source"
TARGET = "target"

# code -> handle slot prefix; the full handle name is "<prefix>-<side>".
_HANDLE_PREFIXES: Mapping[int, str] = MappingProxyType({1: "second-one", 2: "second-two"})

HANDLE_NAMES: Mapping[tuple, str] = MappingProxyType(
    {(code, side): f"{prefix}-{side}" for code, prefix in _HANDLE_PREFIXES.items() for side in (SOURCE, TARGET)}
)
HANDLE_CODES: Mapping[str, int] = MappingProxyType({name: code for (code, _side), name in HANDLE_NAMES.items()})


def _as_code(raw: Any) -> Optional[int]:
    # bool is an int subclass; `true` is never a valid code.
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    # isdigit() also accepts superscripts like "²", which int() rejects.
    if isinstance(raw, str) and raw.strip().isdecimal():
        return int(raw.strip())
    return None


def sprite_path_for(code: Any) -> Optional[str]:
    c = _as_code(code)
    if c is None:
        return None
    return SPRITE_PATHS.get(c)


def sprite_code_for(path: Any) -> Optional[int]:
    if not isinstance(path, str):
        return None
    return SPRITE_CODES.get(path)


def handle_name_for(code: Any, side: str) -> Optional[str]:
    if side not in (SOURCE, TARGET):
        raise ValueError(f"Unknown handle side '{side}'")
    c = _as_code(code)
    if c is None:
        return None
    return HANDLE_NAMES.get((c, side))


def handle_code_for(name: Any) -> Optional[int]:
    if not isinstance(name, str):
        return None
    return HANDLE_CODES.get(name)
