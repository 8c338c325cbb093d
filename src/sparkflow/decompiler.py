"""FlowDocument -> archive decompiler ("extract").

Full entities are stripped back to compact records, and the template
resources needed to expand them again are written next to them:

  resources/node_data.json    first full definition per template key
  resources/edge_data.json    [one edge shape, identity/handles blanked]
  resources/agent_data.json   [one agent shape, identity/fields blanked]
  assets/nodes/<title>.json
  assets/edges/edge_<n>.json
  assets/agents/<name>.json
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .archive import FlowArchive
from .config import TranscoderConfig
from .errors import ParseError, TemplateMismatch, TemplateNotFound, TranscodeError, UnmappedHandle, UnmappedSpriteCode
from .logging import get_logger
from .models import (
    TEMPLATE_TYPE,
    CompactAgent,
    CompactEdge,
    CompactNode,
    CompactProp,
    FlowDocument,
    FullAgent,
    FullEdge,
    FullNode,
    compact_node_type,
    full_node_type,
    load_flow_document,
)
from .tables import handle_code_for, sprite_code_for

logger = get_logger(__name__)

DEFAULT_EDGE_TEMPLATE = FullEdge(id="", source="", target="")
DEFAULT_AGENT_TEMPLATE = FullAgent(id="")


class UniqueNamer:
    """Deduplicates entry base names within one naming pool.

    The first occurrence of a base name is used as-is; later occurrences get
    `_<n>` where n is the running count for that base name (starting at 2).
    A generated name that was already issued (e.g. a literal "a_2" title)
    advances the count again, so no two claims return the same name.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}
        self._issued: set[str] = set()

    def claim(self, base: str) -> str:
        while True:
            n = self._counts.get(base, 0) + 1
            self._counts[base] = n
            name = base if n == 1 else f"{base}_{n}"
            if name not in self._issued:
                self._issued.add(name)
                return name


def _safe_base_name(raw: str) -> str:
    # Entry names must stay directly under their prefix.
    return raw.replace("/", "_").replace("\\", "_")


def compact_node_from_full(node: FullNode) -> CompactNode:
    ctype = compact_node_type(node.type)
    template_name = None
    if ctype == TEMPLATE_TYPE and node.fileName:
        template_name = compact_node_type(node.fileName)
    return CompactNode(
        id=node.id,
        type=ctype,
        templateName=template_name,
        title=node.title,
        props=[CompactProp(label=p.label, value=p.value) for p in node.props],
        position=node.position,
    )


def _template_reference_problems(node: FullNode, where: str) -> List[TranscodeError]:
    """Ways the compact form of `node` would fail to find its template again."""
    if node.is_template_backed:
        if not node.fileName:
            return [ParseError(f"template node '{node.id}' has no fileName to reference", entry=where)]
        if full_node_type(compact_node_type(node.fileName)) != node.fileName:
            return [
                TemplateNotFound(
                    f"fileName '{node.fileName}' (node '{node.id}') does not end in 'Node'; its compact form cannot name it",
                    entry=where,
                )
            ]
        return []
    if full_node_type(compact_node_type(node.type)) != node.type:
        return [
            TemplateNotFound(
                f"node type '{node.type}' (node '{node.id}') does not end in 'Node'; its compact form cannot name it",
                entry=where,
            )
        ]
    return []


def edge_template_from(edge: FullEdge) -> FullEdge:
    return replace(edge, id="", source="", target="", sourceHandle=None, targetHandle=None)


def agent_template_from(agent: FullAgent) -> FullAgent:
    return replace(agent, id="", name="", role="", color="", spritesheet=None, instructions="")


@dataclass(frozen=True)
class DecompileResult:
    # Entry name -> JSON value, in write order.
    entries: Dict[str, Any] = field(default_factory=dict)
    errors: List[TranscodeError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_archive(self, *, indent: Optional[int] = 2) -> FlowArchive:
        archive = FlowArchive()
        for name, value in self.entries.items():
            archive.write_json(name, value, indent=indent)
        return archive

    def to_bytes(self, *, indent: Optional[int] = 2) -> bytes:
        return self.to_archive(indent=indent).to_bytes()


def decompile_document(doc: FlowDocument, *, config: Optional[TranscoderConfig] = None) -> DecompileResult:
    cfg = config or TranscoderConfig()
    entries: Dict[str, Any] = {}
    errors: list[TranscodeError] = []
    # Nodes and agents share one pool.
    namer = UniqueNamer()

    node_templates: Dict[str, FullNode] = {}
    for i, node in enumerate(doc.nodes):
        template = node_templates.setdefault(node.template_key, node)
        if template is not node and template.shape() != node.shape():
            where = f"flow.nodes[{i}]"
            logger.warning("Node differs from the template written for its type", entry=where, node_id=node.id, template_id=template.id)
            errors.append(
                TemplateMismatch(
                    f"node '{node.id}' differs from template node '{template.id}' ({node.template_key}) "
                    "outside prop values; it will recompile with the template's shape",
                    entry=where,
                )
            )
    entries[cfg.node_templates_path] = [t.to_dict() for t in node_templates.values()]

    edge_template = edge_template_from(doc.edges[0]) if doc.edges else DEFAULT_EDGE_TEMPLATE
    entries[cfg.edge_template_path] = [edge_template.to_dict()]

    agent_template = agent_template_from(doc.agents[0]) if doc.agents else DEFAULT_AGENT_TEMPLATE
    entries[cfg.agent_template_path] = [agent_template.to_dict()]

    for i, node in enumerate(doc.nodes):
        where = f"flow.nodes[{i}]"
        for problem in _template_reference_problems(node, where):
            logger.warning("Template node cannot be referenced", entry=where, node_id=node.id, error=problem.detail)
            errors.append(problem)
        base = node.title if node.title.strip() else f"node_{node.id}"
        name = namer.claim(_safe_base_name(base))
        entries[f"{cfg.nodes_prefix}{name}.json"] = compact_node_from_full(node).to_dict()

    for i, edge in enumerate(doc.edges):
        where = f"flow.edges[{i}]"
        codes: Dict[str, Optional[int]] = {}
        for side, handle in (("fromHandle", edge.sourceHandle), ("toHandle", edge.targetHandle)):
            code = handle_code_for(handle)
            if handle is not None and code is None:
                logger.warning("Unmapped edge handle dropped", entry=where, edge_id=edge.id, handle=handle)
                errors.append(UnmappedHandle(f"handle '{handle}' (edge '{edge.id}') has no code", entry=where))
            codes[side] = code
        compact_edge = CompactEdge(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            fromHandle=codes["fromHandle"],
            toHandle=codes["toHandle"],
        )
        entries[f"{cfg.edges_prefix}edge_{i + 1}.json"] = compact_edge.to_dict()

    for i, agent in enumerate(doc.agents):
        where = f"{cfg.agents_key}[{i}]"
        code = sprite_code_for(agent.spritesheet)
        if code is None and agent.spritesheet is not None:
            logger.warning("Unmapped sprite path", entry=where, agent_id=agent.id, spritesheet=agent.spritesheet)
            errors.append(UnmappedSpriteCode(f"sprite path '{agent.spritesheet}' (agent '{agent.id}') has no code", entry=where))
        compact_agent = CompactAgent(
            id=agent.id,
            name=agent.name,
            role=agent.role,
            color=agent.color,
            spritesheet=code,
            instructions=agent.instructions,
        )
        base = agent.name if agent.name.strip() else f"agent_{agent.id}"
        name = namer.claim(_safe_base_name(base))
        entries[f"{cfg.agents_prefix}{name}.json"] = compact_agent.to_dict()

    logger.info(
        "Decompiled flow document",
        nodes=len(doc.nodes),
        edges=len(doc.edges),
        agents=len(doc.agents),
        entries=len(entries),
        errors=len(errors),
    )
    return DecompileResult(entries=entries, errors=errors)


def decompile_json(raw: Any, *, config: Optional[TranscoderConfig] = None) -> DecompileResult:
    """Decompile a parsed `.spk` JSON object."""
    cfg = config or TranscoderConfig()
    return decompile_document(load_flow_document(raw, agents_key=cfg.agents_key), config=cfg)


def decompile_path(path: str | Path, *, config: Optional[TranscoderConfig] = None) -> DecompileResult:
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Flow document not found: {p}")
    return decompile_json(json.loads(p.read_text(encoding="utf-8")), config=config)
