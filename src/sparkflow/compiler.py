"""Archive -> FlowDocument compiler.

Every compact record found under the node/edge/agent prefixes is expanded by
cloning its template and overlaying the record's fields. Problems are
collected on the result instead of raised:

- malformed entry or record: ParseError, record skipped
- no matching node template: TemplateNotFound, record skipped
- template resource absent while the section has entries: one
  MissingTemplateResource, section yields nothing
- sprite code outside the table: UnmappedSpriteCode, agent kept with
  `spritesheet=None`
- compact props past the template's props: TemplateMismatch, node kept
  with the extra values dropped
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .archive import FlowArchive, open_flow_archive
from .config import TranscoderConfig
from .errors import (
    MissingTemplateResource,
    ParseError,
    TemplateMismatch,
    TemplateNotFound,
    TranscodeError,
    UnmappedSpriteCode,
)
from .logging import get_logger
from .models import (
    CompactAgent,
    CompactEdge,
    CompactNode,
    FlowDocument,
    FullAgent,
    FullEdge,
    FullNode,
    dump_flow_document,
    parse_compact_entry,
)
from .tables import SOURCE, TARGET, handle_name_for, sprite_path_for
from .templates import TemplateStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompileResult:
    document: FlowDocument
    errors: List[TranscodeError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self, *, agents_key: Optional[str] = None) -> Dict[str, Any]:
        key = agents_key or TranscoderConfig().agents_key
        return dump_flow_document(self.document, agents_key=key)


def resolve_node(compact: CompactNode, template: FullNode) -> FullNode:
    """Overlay a compact node onto a (copied) template.

    Props are aligned by index. Indices the compact record does not carry, or
    carries as null, keep the template default. Indices past the template's
    props are dropped; see `overflow_props`.
    """
    props = list(template.props)
    for i, override in enumerate(compact.props[: len(props)]):
        if override is None:
            continue
        props[i] = replace(props[i], value=override.value)

    return replace(
        template,
        id=compact.id,
        title=compact.title if compact.title is not None else template.title,
        props=props,
        position=compact.position if compact.position is not None else template.position,
    )


def overflow_props(compact: CompactNode, template: FullNode) -> int:
    """Number of non-null compact prop values with no template prop to land on."""
    return sum(1 for p in compact.props[len(template.props) :] if p is not None)


def resolve_edge(compact: CompactEdge, template: FullEdge) -> FullEdge:
    source_handle = handle_name_for(compact.fromHandle, SOURCE)
    target_handle = handle_name_for(compact.toHandle, TARGET)
    return replace(
        template,
        id=compact.id,
        source=compact.source,
        target=compact.target,
        sourceHandle=source_handle if source_handle is not None else template.sourceHandle,
        targetHandle=target_handle if target_handle is not None else template.targetHandle,
    )


def resolve_agent(compact: CompactAgent, template: FullAgent) -> FullAgent:
    def _pick(v: Optional[str], default: str) -> str:
        return v if v is not None else default

    return replace(
        template,
        id=compact.id,
        name=_pick(compact.name, template.name),
        role=_pick(compact.role, template.role),
        color=_pick(compact.color, template.color),
        instructions=_pick(compact.instructions, template.instructions),
        # An absent code keeps the template's sheet; an unknown code resolves to None.
        spritesheet=sprite_path_for(compact.spritesheet) if compact.spritesheet is not None else template.spritesheet,
    )


class _Compilation:
    """State of a single compile call (no state is shared between calls)."""

    def __init__(self, archive: FlowArchive, store: TemplateStore, config: TranscoderConfig) -> None:
        self.archive = archive
        self.store = store
        self.config = config
        self.nodes: list[FullNode] = []
        self.edges: list[FullEdge] = []
        self.agents: list[FullAgent] = []
        self.errors: list[TranscodeError] = list(store.errors)
        self._failed_sections: set[str] = set()

    def report(self, err: TranscodeError) -> None:
        self.errors.append(err)

    def run(self) -> CompileResult:
        handlers: Dict[str, Callable[[Any, str], None]] = {
            "nodes": self._node,
            "edges": self._edge,
            "agents": self._agent,
        }
        for name in self.archive.names():
            section = self.config.section_for(name)
            if section is None:
                continue
            if section in self._failed_sections:
                continue
            records = self._read_records(name)
            if records is None:
                continue
            for i, raw in enumerate(records):
                where = name if len(records) == 1 else f"{name}[{i}]"
                try:
                    handlers[section](raw, where)
                except MissingTemplateResource as e:
                    logger.error("Template resource missing; skipping section", section=section, entry=e.entry)
                    self.report(e)
                    self._failed_sections.add(section)
                    break
                except ParseError as e:
                    logger.warning("Skipping malformed record", entry=where, error=e.detail)
                    self.report(e)

        doc = FlowDocument(nodes=self.nodes, edges=self.edges, agents=self.agents)
        logger.info(
            "Compiled flow archive",
            nodes=len(doc.nodes),
            edges=len(doc.edges),
            agents=len(doc.agents),
            errors=len(self.errors),
        )
        return CompileResult(document=doc, errors=self.errors)

    def _read_records(self, name: str) -> Optional[list]:
        try:
            raw = self.archive.read_json(name)
            return parse_compact_entry(raw, entry=name).records()
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Skipping entry with invalid JSON", entry=name, error=str(e))
            self.report(ParseError(f"invalid JSON: {e}", entry=name))
        except ParseError as e:
            logger.warning("Skipping entry with unexpected shape", entry=name, error=e.detail)
            self.report(e)
        return None

    def _node(self, raw: Any, where: str) -> None:
        compact = CompactNode.from_dict(raw, entry=where)
        template = self.store.find_node_template(compact)
        if template is None:
            key = compact.templateName if compact.templateName else compact.type
            logger.warning("Node template not found", entry=where, node_id=compact.id, template=key)
            self.report(TemplateNotFound(f"no node template for '{key}' (node '{compact.id}')", entry=where))
            return
        dropped = overflow_props(compact, template)
        if dropped:
            logger.warning(
                "Compact node has more props than its template",
                entry=where,
                node_id=compact.id,
                template_props=len(template.props),
                compact_props=len(compact.props),
            )
            self.report(
                TemplateMismatch(
                    f"node '{compact.id}' carries {dropped} prop value(s) beyond its template's {len(template.props)}",
                    entry=where,
                )
            )
        self.nodes.append(resolve_node(compact, template))

    def _edge(self, raw: Any, where: str) -> None:
        compact = CompactEdge.from_dict(raw, entry=where)
        self.edges.append(resolve_edge(compact, self.store.edge_template()))

    def _agent(self, raw: Any, where: str) -> None:
        compact = CompactAgent.from_dict(raw, entry=where)
        agent = resolve_agent(compact, self.store.agent_template())
        if compact.spritesheet is not None and agent.spritesheet is None:
            logger.warning("Unmapped sprite code", entry=where, agent_id=compact.id, code=compact.spritesheet)
            self.report(UnmappedSpriteCode(f"sprite code {compact.spritesheet!r} (agent '{compact.id}') is not in the sprite table", entry=where))
        self.agents.append(agent)


def compile_archive(
    archive: FlowArchive,
    store: Optional[TemplateStore] = None,
    *,
    config: Optional[TranscoderConfig] = None,
) -> CompileResult:
    """Compile an archive of compact records into a FlowDocument.

    When `store` is None it is built from the archive's own template resources.
    """
    cfg = config or (store.config if store is not None else TranscoderConfig())
    templates = store if store is not None else TemplateStore.from_archive(archive, cfg)
    return _Compilation(archive, templates, cfg).run()


def compile_archive_bytes(data: bytes, *, config: Optional[TranscoderConfig] = None) -> CompileResult:
    return compile_archive(FlowArchive.from_bytes(data), config=config)


def compile_archive_path(path: str | Path, *, config: Optional[TranscoderConfig] = None) -> CompileResult:
    return compile_archive(open_flow_archive(path), config=config)
