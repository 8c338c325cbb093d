"""Transcoding error taxonomy.

Entry-level problems are collected (not raised) by the compiler/decompiler and
returned alongside the partial result. `MissingTemplateResource` is raised by
the TemplateStore and caught per section.
"""

from __future__ import annotations

from typing import Optional


class TranscodeError(ValueError):
    """Base class for every reported transcoding problem."""

    kind = "error"

    def __init__(self, detail: str, *, entry: Optional[str] = None) -> None:
        self.detail = str(detail)
        self.entry = entry
        super().__init__(f"{entry}: {self.detail}" if entry else self.detail)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "entry": self.entry, "detail": self.detail}


class ParseError(TranscodeError):
    """Malformed JSON, or a JSON value that is not a valid record."""

    kind = "parse_error"


class TemplateNotFound(TranscodeError):
    kind = "template_not_found"


class MissingTemplateResource(TranscodeError):
    """A template resource entry is absent, so a whole section cannot resolve."""

    kind = "missing_template_resource"


class UnmappedSpriteCode(TranscodeError):
    kind = "unmapped_sprite_code"


class UnmappedHandle(TranscodeError):
    kind = "unmapped_handle"


class TemplateMismatch(TranscodeError):
    """A record and its template disagree, so some of the record's data cannot be carried."""

    kind = "template_mismatch"
