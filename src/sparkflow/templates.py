"""TemplateStore: canonical full-form definitions used to expand compact records.

The store is built once per archive, before any compact record is resolved.
Returned templates are deep copies; stored templates are never mutated.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .archive import FlowArchive
from .config import TranscoderConfig
from .errors import MissingTemplateResource, ParseError, TranscodeError
from .logging import get_logger
from .models import INPUT_TYPE, TEMPLATE_TYPE, CompactNode, FullAgent, FullEdge, FullNode, full_node_type

logger = get_logger(__name__)


@dataclass
class TemplateStore:
    """Lookup structures over the three template resources.

    A resource that is `None` was absent from the archive (or unusable);
    lookups against it raise MissingTemplateResource.
    """

    node_templates: Optional[List[FullNode]] = None
    edge: Optional[FullEdge] = None
    agent: Optional[FullAgent] = None
    # Problems found while parsing the resources (reported by the compiler).
    errors: List[TranscodeError] = field(default_factory=list)
    config: TranscoderConfig = field(default_factory=TranscoderConfig)

    @property
    def has_node_templates(self) -> bool:
        return self.node_templates is not None

    @property
    def has_edge_template(self) -> bool:
        return self.edge is not None

    @property
    def has_agent_template(self) -> bool:
        return self.agent is not None

    def find_node_template(self, compact: CompactNode) -> Optional[FullNode]:
        """Return a copy of the template matching `compact`, or None.

        - `template` nodes match on `fileName == "<templateName>Node"`
        - `input` nodes match on `type == "input"`
        - everything else matches on `type == "<type>Node"`
        """
        if self.node_templates is None:
            raise MissingTemplateResource("node template resource is missing", entry=self.config.node_templates_path)

        if compact.type == TEMPLATE_TYPE:
            wanted = full_node_type(compact.templateName or "")
            for t in self.node_templates:
                if t.fileName == wanted:
                    return copy.deepcopy(t)
            return None

        wanted = INPUT_TYPE if compact.type == INPUT_TYPE else full_node_type(compact.type)
        for t in self.node_templates:
            if t.type == wanted:
                return copy.deepcopy(t)
        return None

    def edge_template(self) -> FullEdge:
        if self.edge is None:
            raise MissingTemplateResource("edge template resource is missing", entry=self.config.edge_template_path)
        return copy.deepcopy(self.edge)

    def agent_template(self) -> FullAgent:
        if self.agent is None:
            raise MissingTemplateResource("agent template resource is missing", entry=self.config.agent_template_path)
        return copy.deepcopy(self.agent)

    @classmethod
    def from_archive(cls, archive: FlowArchive, config: Optional[TranscoderConfig] = None) -> "TemplateStore":
        cfg = config or TranscoderConfig()
        errors: list[TranscodeError] = []

        nodes_raw = _read_resource(archive, cfg.node_templates_path, errors)
        node_templates: Optional[list[FullNode]] = None
        if nodes_raw is not None:
            node_templates = []
            for i, raw in enumerate(nodes_raw):
                try:
                    node_templates.append(FullNode.from_dict(raw, entry=f"{cfg.node_templates_path}[{i}]"))
                except ParseError as e:
                    logger.warning("Skipping malformed node template", entry=e.entry, error=e.detail)
                    errors.append(e)

        edge = _single_template(archive, cfg.edge_template_path, FullEdge, errors)
        agent = _single_template(archive, cfg.agent_template_path, FullAgent, errors)

        logger.debug(
            "Template store built",
            node_templates=len(node_templates) if node_templates is not None else None,
            edge_template=edge is not None,
            agent_template=agent is not None,
        )
        return cls(node_templates=node_templates, edge=edge, agent=agent, errors=errors, config=cfg)


def _read_resource(archive: FlowArchive, path: str, errors: List[TranscodeError]) -> Optional[List[Any]]:
    """Read a template resource as a JSON list; None when absent or unusable."""
    if path not in archive:
        return None
    try:
        raw = archive.read_json(path)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        err = ParseError(f"invalid JSON: {e}", entry=path)
        logger.error("Template resource is not valid JSON", entry=path, error=str(e))
        errors.append(err)
        return None
    # A lone object is accepted as a one-item list.
    if isinstance(raw, dict):
        return [raw]
    if not isinstance(raw, list):
        err = ParseError(f"template resource must be a JSON list, got {type(raw).__name__}", entry=path)
        logger.error("Template resource has the wrong shape", entry=path)
        errors.append(err)
        return None
    return raw


def _single_template(archive: FlowArchive, path: str, model: Any, errors: List[TranscodeError]) -> Any:
    raw = _read_resource(archive, path, errors)
    if not raw:
        return None
    if len(raw) > 1:
        logger.warning("Template resource holds more than one template; using the first", entry=path, count=len(raw))
    try:
        return model.from_dict(raw[0], entry=path)
    except ParseError as e:
        logger.error("Malformed template", entry=path, error=e.detail)
        errors.append(e)
        return None
