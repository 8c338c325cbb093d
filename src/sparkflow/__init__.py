"""
sparkflow

Spark flow transcoder: converts between a flow archive of compact, template
referencing authoring files and a single self-contained `.spk` flow document.

- compile: archive -> FlowDocument (templates cloned, compact fields overlaid)
- decompile: FlowDocument -> archive entries plus the templates to re-expand them

Problems are collected on the result (`result.errors`) rather than raised.
"""

from .archive import FlowArchive, FlowArchiveError, open_flow_archive
from .compiler import CompileResult, compile_archive, compile_archive_bytes, compile_archive_path
from .config import TranscoderConfig
from .decompiler import DecompileResult, UniqueNamer, decompile_document, decompile_json, decompile_path
from .errors import (
    MissingTemplateResource,
    ParseError,
    TemplateMismatch,
    TemplateNotFound,
    TranscodeError,
    UnmappedHandle,
    UnmappedSpriteCode,
)
from .models import (
    CompactAgent,
    CompactEdge,
    CompactNode,
    FlowDocument,
    FullAgent,
    FullEdge,
    FullNode,
    dump_flow_document,
    load_flow_document,
)
from .templates import TemplateStore

__all__ = [
    # Archive container
    "FlowArchive",
    "FlowArchiveError",
    "open_flow_archive",
    # Compile / decompile
    "CompileResult",
    "compile_archive",
    "compile_archive_bytes",
    "compile_archive_path",
    "DecompileResult",
    "UniqueNamer",
    "decompile_document",
    "decompile_json",
    "decompile_path",
    "TemplateStore",
    "TranscoderConfig",
    # Models
    "FlowDocument",
    "FullNode",
    "FullEdge",
    "FullAgent",
    "CompactNode",
    "CompactEdge",
    "CompactAgent",
    "load_flow_document",
    "dump_flow_document",
    # Errors
    "TranscodeError",
    "ParseError",
    "TemplateNotFound",
    "MissingTemplateResource",
    "UnmappedSpriteCode",
    "UnmappedHandle",
    "TemplateMismatch",
]
