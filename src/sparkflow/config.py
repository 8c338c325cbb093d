"""sparkflow.config

Archive layout and document format settings for the transcoder.

The defaults describe the canonical Spark archive layout:

  resources/node_data.json    NodeTemplate[]
  resources/edge_data.json    [EdgeTemplate]
  resources/agent_data.json   [AgentTemplate]
  assets/nodes/*              CompactNode | CompactNode[]
  assets/edges/*              CompactEdge | CompactEdge[]
  assets/agents/*             CompactAgent | CompactAgent[]
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_AGENTS_KEY = "agent_layer"


@dataclass(frozen=True)
class TranscoderConfig:
    """Configuration shared by the compiler and decompiler.

    Attributes:
        nodes_prefix / edges_prefix / agents_prefix: archive prefixes of compact records
        node_templates_path / edge_template_path / agent_template_path: template resources
        agents_key: top-level document key holding the agent list
        json_indent: indentation for JSON written into archives and documents
        compiled_name / extracted_name: default output file names used by the CLI
        log_level: minimum level of CLI log output (written to stderr)
    """

    nodes_prefix: str = "assets/nodes/"
    edges_prefix: str = "assets/edges/"
    agents_prefix: str = "assets/agents/"

    node_templates_path: str = "resources/node_data.json"
    edge_template_path: str = "resources/edge_data.json"
    agent_template_path: str = "resources/agent_data.json"

    agents_key: str = DEFAULT_AGENTS_KEY
    json_indent: Optional[int] = 2

    compiled_name: str = "compiled_flow.spk"
    extracted_name: str = "flow_data.zip"

    log_level: str = "WARNING"

    def resource_paths(self) -> tuple[str, str, str]:
        return (self.node_templates_path, self.edge_template_path, self.agent_template_path)

    def section_for(self, name: str) -> Optional[str]:
        """Return "nodes" / "edges" / "agents" for an archive entry name, or None."""
        if name.startswith(self.nodes_prefix):
            return "nodes"
        if name.startswith(self.edges_prefix):
            return "edges"
        if name.startswith(self.agents_prefix):
            return "agents"
        return None

    @classmethod
    def from_env(cls) -> "TranscoderConfig":
        """Build a config from `SPARKFLOW_*` environment variables (unset values keep defaults).

        Recognized variables:
        - SPARKFLOW_AGENTS_KEY
        - SPARKFLOW_JSON_INDENT (integer; "none" or "-1" writes compact JSON)
        - SPARKFLOW_COMPILED_NAME / SPARKFLOW_EXTRACTED_NAME
        - SPARKFLOW_LOG_LEVEL
        """
        cfg = cls()
        overrides: dict = {}

        agents_key = os.getenv("SPARKFLOW_AGENTS_KEY")
        if isinstance(agents_key, str) and agents_key.strip():
            overrides["agents_key"] = agents_key.strip()

        indent = os.getenv("SPARKFLOW_JSON_INDENT")
        if isinstance(indent, str) and indent.strip():
            s = indent.strip().lower()
            if s in {"none", "-1"}:
                overrides["json_indent"] = None
            else:
                try:
                    overrides["json_indent"] = max(0, int(s))
                except ValueError as e:
                    raise ValueError(f"SPARKFLOW_JSON_INDENT must be an integer, got '{indent}'") from e

        for env_name, field_name in (
            ("SPARKFLOW_COMPILED_NAME", "compiled_name"),
            ("SPARKFLOW_EXTRACTED_NAME", "extracted_name"),
            ("SPARKFLOW_LOG_LEVEL", "log_level"),
        ):
            v = os.getenv(env_name)
            if isinstance(v, str) and v.strip():
                overrides[field_name] = v.strip()

        return replace(cfg, **overrides) if overrides else cfg
