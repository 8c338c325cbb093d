"""Flow archive container (zip file, zip bytes, or directory).

An archive is an ordered bag of named byte blobs. Entry order is the order the
container lists them (zip central directory order, or sorted relative paths for
a directory), and the compiler relies on that order being stable.
"""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional


class FlowArchiveError(ValueError):
    """Raised when an archive source cannot be read or an entry path is unsafe."""


def _is_safe_relpath(p: str) -> bool:
    s = str(p or "").strip()
    if not s:
        return False
    # Disallow absolute paths and traversal.
    if s.startswith(("/", "\\")):
        return False
    if ":" in s.split("/", 1)[0]:
        return False
    parts = [x for x in s.replace("\\", "/").split("/") if x]
    if any(x in {".", ".."} for x in parts):
        return False
    return True


class FlowArchive:
    """In-memory archive: entry name -> bytes, in insertion order."""

    def __init__(self, entries: Optional[Dict[str, bytes]] = None) -> None:
        self._entries: Dict[str, bytes] = {}
        for name, data in (entries or {}).items():
            self.write(name, data)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def names(self, prefix: str = "") -> List[str]:
        return [n for n in self._entries if n.startswith(prefix)]

    def read_bytes(self, name: str) -> bytes:
        try:
            return self._entries[name]
        except KeyError as e:
            raise FileNotFoundError(f"Archive entry not found: {name}") from e

    def read_text(self, name: str, *, encoding: str = "utf-8") -> str:
        return self.read_bytes(name).decode(encoding)

    def read_json(self, name: str) -> Any:
        return json.loads(self.read_text(name))

    def write(self, name: str, data: bytes | str) -> None:
        n = str(name or "").replace("\\", "/")
        if not _is_safe_relpath(n):
            raise FlowArchiveError(f"Unsafe archive entry name: '{name}'")
        self._entries[n] = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def write_json(self, name: str, value: Any, *, indent: Optional[int] = 2) -> None:
        self.write(name, json.dumps(value, indent=indent, ensure_ascii=False))

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, data in self._entries.items():
                zf.writestr(name, data)
        return buf.getvalue()

    def save(self, path: str | Path) -> Path:
        out = Path(path).expanduser().resolve()
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.to_bytes())
        return out

    @classmethod
    def from_bytes(cls, data: bytes) -> "FlowArchive":
        try:
            zf = zipfile.ZipFile(io.BytesIO(data), "r")
        except zipfile.BadZipFile as e:
            raise FlowArchiveError(f"Not a zip archive: {e}") from e
        with zf:
            return cls._from_zipfile(zf)

    @classmethod
    def _from_zipfile(cls, zf: zipfile.ZipFile) -> "FlowArchive":
        archive = cls()
        for info in zf.infolist():
            if info.is_dir():
                continue
            if not _is_safe_relpath(info.filename):
                raise FlowArchiveError(f"Unsafe archive entry name: '{info.filename}'")
            archive._entries[info.filename.replace("\\", "/")] = zf.read(info)
        return archive

    @classmethod
    def from_dir(cls, dir_path: str | Path) -> "FlowArchive":
        base = Path(dir_path).expanduser().resolve()
        archive = cls()
        for p in sorted(x for x in base.rglob("*") if x.is_file()):
            archive._entries[p.relative_to(base).as_posix()] = p.read_bytes()
        return archive


def open_flow_archive(source: str | Path) -> FlowArchive:
    """Open a flow archive from a `.zip` file or an unpacked directory."""
    p = Path(source).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Archive source not found: {p}")
    if p.is_dir():
        return FlowArchive.from_dir(p)
    try:
        with zipfile.ZipFile(p, "r") as zf:
            return FlowArchive._from_zipfile(zf)
    except zipfile.BadZipFile as e:
        raise FlowArchiveError(f"Not a zip archive: {p}") from e
