"""Models for the Spark flow document and its compact authoring records.

Full entities (FullNode / FullEdge / FullAgent) are what a `.spk` document
embeds. Compact records (CompactNode / CompactEdge / CompactAgent) are the
per-entity authoring files stored in an archive; they only carry the fields
that differ from a template.

Unknown keys on full entities are kept in `extra` and written back verbatim.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .config import DEFAULT_AGENTS_KEY
from .errors import ParseError

NODE_SUFFIX = "Node"
INPUT_TYPE = "input"
TEMPLATE_TYPE = "template"

EntityId = Union[str, int]


def _require_dict(raw: Any, what: str, entry: Optional[str]) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ParseError(f"{what} must be a JSON object, got {type(raw).__name__}", entry=entry)
    return raw


def _require_id(raw: Dict[str, Any], key: str, what: str, entry: Optional[str]) -> EntityId:
    v = raw.get(key)
    if isinstance(v, bool) or not isinstance(v, (str, int)):
        raise ParseError(f"{what} is missing required '{key}'", entry=entry)
    if isinstance(v, str) and not v.strip():
        raise ParseError(f"{what} has an empty '{key}'", entry=entry)
    # Ids keep their JSON type (1 stays 1, "1" stays "1").
    return v


def _opt_id(v: Any) -> EntityId:
    if v is None:
        return ""
    if isinstance(v, str) or (isinstance(v, int) and not isinstance(v, bool)):
        return v
    return str(v)


def _opt_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None


def _extra(raw: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in raw.items() if k not in known}


@dataclass(frozen=True)
class Position:
    x: Union[int, float] = 0
    y: Union[int, float] = 0

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "Position":
        d = _require_dict(raw, "position", entry)
        x = d.get("x", 0)
        y = d.get("y", 0)
        for name, v in (("x", x), ("y", y)):
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ParseError(f"position.{name} must be a number", entry=entry)
        return cls(x=x, y=y)

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class NodeProp:
    name: str = ""
    type: str = ""
    label: str = ""
    value: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "NodeProp":
        d = _require_dict(raw, "config.props item", entry)
        return cls(
            name=str(d.get("name") or ""),
            type=str(d.get("type") or ""),
            label=str(d.get("label") or ""),
            value=copy.deepcopy(d.get("value")),
            extra=_extra(d, ("name", "type", "label", "value")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "type": self.type, "label": self.label, "value": copy.deepcopy(self.value)}
        out.update(copy.deepcopy(self.extra))
        return out


@dataclass(frozen=True)
class FullNode:
    id: EntityId
    type: str
    title: str = ""
    props: List[NodeProp] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    fileName: Optional[str] = None
    # Non-`props` keys of `config`.
    config_extra: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_template_backed(self) -> bool:
        return compact_node_type(self.type) == TEMPLATE_TYPE

    @property
    def template_key(self) -> str:
        """Lookup key used by the TemplateStore for this full definition."""
        if self.is_template_backed and self.fileName:
            return f"fileName:{self.fileName}"
        return f"type:{self.type}"

    def shape(self) -> Dict[str, Any]:
        """Serialized node without identity, title, position and prop values.

        Nodes with equal shapes expand from one template without loss.
        """
        d = self.to_dict()
        for k in ("id", "title", "position"):
            d.pop(k, None)
        for p in d["config"]["props"]:
            p.pop("value", None)
        return d

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "FullNode":
        d = _require_dict(raw, "node", entry)
        node_type = d.get("type")
        if not isinstance(node_type, str) or not node_type.strip():
            raise ParseError("node is missing required 'type'", entry=entry)
        config = d.get("config") if d.get("config") is not None else {}
        config = _require_dict(config, "node.config", entry)
        props_raw = config.get("props") if config.get("props") is not None else []
        if not isinstance(props_raw, list):
            raise ParseError("node.config.props must be a list", entry=entry)
        position_raw = d.get("position")
        return cls(
            # Templates may omit identity fields; resolution always overlays them.
            id=_opt_id(d.get("id")),
            type=node_type.strip(),
            title=str(d.get("title") or ""),
            props=[NodeProp.from_dict(p, entry=entry) for p in props_raw],
            position=Position.from_dict(position_raw, entry=entry) if position_raw is not None else Position(),
            fileName=_opt_str(d.get("fileName")),
            config_extra=_extra(config, ("props",)),
            extra=_extra(d, ("id", "type", "title", "config", "position", "fileName")),
        )

    def to_dict(self) -> Dict[str, Any]:
        config: Dict[str, Any] = copy.deepcopy(self.config_extra)
        config["props"] = [p.to_dict() for p in self.props]
        out: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "config": config,
            "position": self.position.to_dict(),
        }
        if self.fileName is not None:
            out["fileName"] = self.fileName
        out.update(copy.deepcopy(self.extra))
        return out


@dataclass(frozen=True)
class FullEdge:
    id: EntityId
    source: EntityId
    target: EntityId
    sourceHandle: Optional[str] = None
    targetHandle: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "FullEdge":
        d = _require_dict(raw, "edge", entry)
        return cls(
            id=_opt_id(d.get("id")),
            source=_opt_id(d.get("source")),
            target=_opt_id(d.get("target")),
            sourceHandle=_opt_str(d.get("sourceHandle")),
            targetHandle=_opt_str(d.get("targetHandle")),
            extra=_extra(d, ("id", "source", "target", "sourceHandle", "targetHandle")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.sourceHandle is not None:
            out["sourceHandle"] = self.sourceHandle
        if self.targetHandle is not None:
            out["targetHandle"] = self.targetHandle
        out.update(copy.deepcopy(self.extra))
        return out


@dataclass(frozen=True)
class FullAgent:
    id: EntityId
    name: str = ""
    role: str = ""
    color: str = ""
    # None when the sprite code could not be resolved.
    spritesheet: Optional[str] = None
    instructions: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "FullAgent":
        d = _require_dict(raw, "agent", entry)
        return cls(
            id=_opt_id(d.get("id")),
            name=str(d.get("name") or ""),
            role=str(d.get("role") or ""),
            color=str(d.get("color") or ""),
            spritesheet=_opt_str(d.get("spritesheet")),
            instructions=str(d.get("instructions") or ""),
            extra=_extra(d, ("id", "name", "role", "color", "spritesheet", "instructions")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "color": self.color,
            "spritesheet": self.spritesheet,
            "instructions": self.instructions,
        }
        out.update(copy.deepcopy(self.extra))
        return out


@dataclass(frozen=True)
class FlowDocument:
    nodes: List[FullNode] = field(default_factory=list)
    edges: List[FullEdge] = field(default_factory=list)
    agents: List[FullAgent] = field(default_factory=list)


def load_flow_document(raw: Any, *, agents_key: str = DEFAULT_AGENTS_KEY) -> FlowDocument:
    """Parse a `.spk` JSON object into a FlowDocument.

    Raises ParseError (with the offending location as `entry`) on the first
    malformed entity.
    """
    d = _require_dict(raw, "flow document", None)
    flow = d.get("flow") if d.get("flow") is not None else {}
    flow = _require_dict(flow, "flow", "flow")

    def _list(container: Dict[str, Any], key: str, where: str) -> list:
        v = container.get(key)
        if v is None:
            return []
        if not isinstance(v, list):
            raise ParseError(f"'{key}' must be a list", entry=where)
        return v

    nodes = [FullNode.from_dict(n, entry=f"flow.nodes[{i}]") for i, n in enumerate(_list(flow, "nodes", "flow.nodes"))]
    edges = [FullEdge.from_dict(e, entry=f"flow.edges[{i}]") for i, e in enumerate(_list(flow, "edges", "flow.edges"))]
    agents = [FullAgent.from_dict(a, entry=f"{agents_key}[{i}]") for i, a in enumerate(_list(d, agents_key, agents_key))]
    return FlowDocument(nodes=nodes, edges=edges, agents=agents)


def dump_flow_document(doc: FlowDocument, *, agents_key: str = DEFAULT_AGENTS_KEY) -> Dict[str, Any]:
    return {
        "flow": {
            "nodes": [n.to_dict() for n in doc.nodes],
            "edges": [e.to_dict() for e in doc.edges],
        },
        agents_key: [a.to_dict() for a in doc.agents],
    }


# Compact authoring records


def compact_node_type(full_type: str) -> str:
    """`llmNode` -> `llm`; `input` (and any unsuffixed type) is returned unchanged."""
    s = str(full_type or "")
    if s.endswith(NODE_SUFFIX) and len(s) > len(NODE_SUFFIX):
        return s[: -len(NODE_SUFFIX)]
    return s


def full_node_type(compact_type: str) -> str:
    s = str(compact_type or "")
    if s == INPUT_TYPE:
        return s
    return f"{s}{NODE_SUFFIX}"


@dataclass(frozen=True)
class CompactProp:
    label: Optional[str] = None
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": copy.deepcopy(self.value)}


@dataclass(frozen=True)
class CompactNode:
    id: EntityId
    type: str
    templateName: Optional[str] = None
    title: Optional[str] = None
    # Index-aligned with the template's config.props; None entries keep the template default.
    props: List[Optional[CompactProp]] = field(default_factory=list)
    position: Optional[Position] = None

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "CompactNode":
        d = _require_dict(raw, "compact node", entry)
        nid = _require_id(d, "id", "compact node", entry)
        ntype = d.get("type")
        if not isinstance(ntype, str) or not ntype.strip():
            raise ParseError(f"compact node '{nid}' is missing required 'type'", entry=entry)
        ntype = ntype.strip()
        template_name = _opt_str(d.get("templateName"))
        if ntype == TEMPLATE_TYPE and not (template_name and template_name.strip()):
            raise ParseError(f"compact node '{nid}' has type 'template' but no 'templateName'", entry=entry)

        data = d.get("data") if d.get("data") is not None else {}
        data = _require_dict(data, "compact node data", entry)
        props_raw = data.get("props") if data.get("props") is not None else []
        if not isinstance(props_raw, list):
            raise ParseError(f"compact node '{nid}' data.props must be a list", entry=entry)
        props: list[Optional[CompactProp]] = []
        for p in props_raw:
            if p is None:
                props.append(None)
                continue
            if not isinstance(p, dict):
                raise ParseError(f"compact node '{nid}' data.props items must be objects", entry=entry)
            if "value" not in p:
                props.append(None)
                continue
            props.append(CompactProp(label=_opt_str(p.get("label")), value=copy.deepcopy(p.get("value"))))

        position_raw = d.get("position")
        return cls(
            id=nid,
            type=ntype,
            templateName=template_name.strip() if ntype == TEMPLATE_TYPE and template_name else None,
            title=_opt_str(data.get("title")),
            props=props,
            position=Position.from_dict(position_raw, entry=entry) if position_raw is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "type": self.type}
        if self.templateName is not None:
            out["templateName"] = self.templateName
        data: Dict[str, Any] = {}
        if self.title is not None:
            data["title"] = self.title
        data["props"] = [p.to_dict() if p is not None else None for p in self.props]
        out["data"] = data
        if self.position is not None:
            out["position"] = self.position.to_dict()
        return out


@dataclass(frozen=True)
class CompactEdge:
    id: EntityId
    source: EntityId
    target: EntityId
    fromHandle: Any = None
    toHandle: Any = None

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "CompactEdge":
        d = _require_dict(raw, "compact edge", entry)
        return cls(
            id=_require_id(d, "id", "compact edge", entry),
            source=_require_id(d, "from", "compact edge", entry),
            target=_require_id(d, "to", "compact edge", entry),
            fromHandle=d.get("fromHandle"),
            toHandle=d.get("toHandle"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "from": self.source, "to": self.target}
        if self.fromHandle is not None:
            out["fromHandle"] = self.fromHandle
        if self.toHandle is not None:
            out["toHandle"] = self.toHandle
        return out


@dataclass(frozen=True)
class CompactAgent:
    id: EntityId
    name: Optional[str] = None
    role: Optional[str] = None
    color: Optional[str] = None
    spritesheet: Any = None
    instructions: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any, *, entry: Optional[str] = None) -> "CompactAgent":
        d = _require_dict(raw, "compact agent", entry)
        return cls(
            id=_require_id(d, "id", "compact agent", entry),
            name=_opt_str(d.get("name")),
            role=_opt_str(d.get("role")),
            color=_opt_str(d.get("color")),
            spritesheet=d.get("spritesheet"),
            instructions=_opt_str(d.get("instructions")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "color": self.color,
            "spritesheet": self.spritesheet,
            "instructions": self.instructions,
        }


@dataclass(frozen=True)
class Single:
    """A compact entry file holding one record."""

    value: Any

    def records(self) -> List[Any]:
        return [self.value]


@dataclass(frozen=True)
class Many:
    """A compact entry file holding a list of records."""

    values: List[Any] = field(default_factory=list)

    def records(self) -> List[Any]:
        return list(self.values)


CompactEntry = Union[Single, Many]


def parse_compact_entry(raw: Any, *, entry: Optional[str] = None) -> CompactEntry:
    if isinstance(raw, dict):
        return Single(raw)
    if isinstance(raw, list):
        return Many(list(raw))
    raise ParseError(f"compact entry must be an object or a list, got {type(raw).__name__}", entry=entry)
