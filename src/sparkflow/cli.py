"""`sparkflow` command line: compile, extract and inspect flow archives.

Exit codes:
  0  success
  1  output written, but errors were collected along the way
  2  input unusable (missing file, wrong suffix, not a zip, invalid document)
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .archive import FlowArchiveError, open_flow_archive
from .compiler import compile_archive
from .config import TranscoderConfig
from .decompiler import decompile_json
from .errors import ParseError, TranscodeError
from .logging import configure_logging, get_logger
from .templates import TemplateStore

logger = get_logger(__name__)

ARCHIVE_SUFFIX = ".zip"
DOCUMENT_SUFFIX = ".spk"


def _fail(message: str) -> int:
    sys.stderr.write(f"Error: {message}\n")
    return 2


def _report(errors: List[TranscodeError]) -> int:
    for err in errors:
        sys.stderr.write(f"[{err.kind}] {err}\n")
    return 1 if errors else 0


def _check_input(path: Path, suffix: str) -> Optional[str]:
    if not path.exists():
        return f"input not found: {path}"
    # Unpacked archive directories are accepted for compile/inspect.
    if suffix == ARCHIVE_SUFFIX and path.is_dir():
        return None
    if path.suffix.lower() != suffix:
        return f"invalid file type '{path.name}'; expected a {suffix} file"
    return None


def _cmd_compile(args: argparse.Namespace, config: TranscoderConfig) -> int:
    src = Path(args.archive).expanduser()
    problem = _check_input(src, ARCHIVE_SUFFIX)
    if problem:
        return _fail(problem)
    try:
        archive = open_flow_archive(src)
    except FlowArchiveError as e:
        return _fail(str(e))

    result = compile_archive(archive, config=config)
    out = Path(args.output or config.compiled_name).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(result.to_dict(agents_key=config.agents_key), indent=config.json_indent, ensure_ascii=False), encoding="utf-8")
    sys.stdout.write(
        f"Compiled {len(result.document.nodes)} nodes, {len(result.document.edges)} edges, "
        f"{len(result.document.agents)} agents -> {out}\n"
    )
    return _report(result.errors)


def _cmd_extract(args: argparse.Namespace, config: TranscoderConfig) -> int:
    src = Path(args.document).expanduser()
    problem = _check_input(src, DOCUMENT_SUFFIX)
    if problem:
        return _fail(problem)
    try:
        raw = json.loads(src.read_text(encoding="utf-8"))
        result = decompile_json(raw, config=config)
    except UnicodeDecodeError as e:
        return _fail(f"{src.name} is not UTF-8 text: {e}")
    except json.JSONDecodeError as e:
        return _fail(f"{src.name} is not valid JSON: {e}")
    except ParseError as e:
        return _fail(str(e))

    out = Path(args.output or config.extracted_name).expanduser()
    result.to_archive(indent=config.json_indent).save(out)
    sys.stdout.write(f"Extracted {len(result.entries)} entries -> {out}\n")
    return _report(result.errors)


def _cmd_inspect(args: argparse.Namespace, config: TranscoderConfig) -> int:
    src = Path(args.archive).expanduser()
    problem = _check_input(src, ARCHIVE_SUFFIX)
    if problem:
        return _fail(problem)
    try:
        archive = open_flow_archive(src)
    except FlowArchiveError as e:
        return _fail(str(e))

    store = TemplateStore.from_archive(archive, config)
    sections = {"nodes": 0, "edges": 0, "agents": 0}
    other: list[str] = []
    for name in archive.names():
        section = config.section_for(name)
        if section is not None:
            sections[section] += 1
        elif name not in config.resource_paths():
            other.append(name)

    lines = [f"{k}: {v} entries" for k, v in sections.items()]
    if store.has_node_templates:
        keys = [t.fileName if t.is_template_backed and t.fileName else t.type for t in store.node_templates or []]
        lines.append(f"node templates: {', '.join(keys) if keys else '(none)'}")
    else:
        lines.append("node templates: missing")
    lines.append(f"edge template: {'present' if store.has_edge_template else 'missing'}")
    lines.append(f"agent template: {'present' if store.has_agent_template else 'missing'}")
    if other:
        lines.append(f"ignored entries: {', '.join(other)}")
    sys.stdout.write("\n".join(lines) + "\n")
    return _report(store.errors)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="sparkflow", description="Spark flow archive compiler and extractor.")
    parser.add_argument("--log-level", default=None, help="Log level for stderr output (default: WARNING, or SPARKFLOW_LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command", required=True)

    p_compile = sub.add_parser("compile", help="Compile a flow archive (.zip) into a .spk document.")
    p_compile.add_argument("archive", help="Flow archive (.zip) or unpacked archive directory.")
    p_compile.add_argument("-o", "--output", default=None, help="Output .spk path (default: compiled_flow.spk).")

    p_extract = sub.add_parser("extract", help="Extract a .spk document into a flow archive (.zip).")
    p_extract.add_argument("document", help="Flow document (.spk).")
    p_extract.add_argument("-o", "--output", default=None, help="Output .zip path (default: flow_data.zip).")

    p_inspect = sub.add_parser("inspect", help="Summarize the entries and templates of a flow archive.")
    p_inspect.add_argument("archive", help="Flow archive (.zip) or unpacked archive directory.")

    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        config = TranscoderConfig.from_env()
        configure_logging(args.log_level or config.log_level)
    except ValueError as e:
        return _fail(str(e))

    handlers = {"compile": _cmd_compile, "extract": _cmd_extract, "inspect": _cmd_inspect}
    logger.debug("Running command", command=args.command)
    return handlers[args.command](args, config)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
