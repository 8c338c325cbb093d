from __future__ import annotations

import io
import json
import zipfile
from typing import Any, Dict, Iterable, Tuple

import pytest


NODE_TEMPLATES = [
    {
        "id": "tpl-input",
        "type": "input",
        "title": "Input",
        "config": {"props": [{"name": "prompt", "type": "text", "label": "Prompt", "value": ""}]},
        "position": {"x": 0, "y": 0},
    },
    {
        "id": "tpl-llm",
        "type": "llmNode",
        "title": "LLM",
        "config": {
            "props": [
                {"name": "model", "type": "select", "label": "Model", "value": "gpt-4"},
                {"name": "temperature", "type": "number", "label": "Temperature", "value": 0.7},
            ]
        },
        "position": {"x": 0, "y": 0},
    },
    {
        "id": "tpl-summarize",
        "type": "templateNode",
        "fileName": "summarizeNode",
        "title": "Summarize",
        "config": {"props": [{"name": "length", "type": "number", "label": "Length", "value": 100}]},
        "position": {"x": 0, "y": 0},
    },
    {
        "id": "tpl-output",
        "type": "outputNode",
        "title": "Output",
        "config": {"props": []},
        "position": {"x": 0, "y": 0},
    },
]

EDGE_TEMPLATES = [{"id": "", "source": "", "target": "", "type": "smoothstep", "animated": True}]

AGENT_TEMPLATES = [
    {
        "id": "",
        "name": "",
        "role": "",
        "color": "#ffffff",
        "spritesheet": "/spritesheets/character_1.png",
        "instructions": "",
    }
]


def make_zip(entries: Iterable[Tuple[str, Any]]) -> bytes:
    """Build zip bytes; dict/list values are JSON-encoded, str/bytes written as-is."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, value in entries:
            if isinstance(value, (dict, list)):
                zf.writestr(name, json.dumps(value, indent=2))
            else:
                zf.writestr(name, value)
    return buf.getvalue()


def template_entries() -> list:
    return [
        ("resources/node_data.json", NODE_TEMPLATES),
        ("resources/edge_data.json", EDGE_TEMPLATES),
        ("resources/agent_data.json", AGENT_TEMPLATES),
    ]


@pytest.fixture
def sample_entries() -> list:
    return template_entries() + [
        (
            "assets/nodes/Start.json",
            {"id": "n1", "type": "input", "data": {"title": "Start", "props": [{"label": "Prompt", "value": "hi"}]}, "position": {"x": 10, "y": 20}},
        ),
        (
            "assets/nodes/Think.json",
            {
                "id": "n2",
                "type": "llm",
                "data": {"title": "Think", "props": [{"label": "Model", "value": "claude"}]},
                "position": {"x": 200, "y": 20},
            },
        ),
        (
            "assets/nodes/Shorten.json",
            {
                "id": "n3",
                "type": "template",
                "templateName": "summarize",
                "data": {"title": "Shorten", "props": [{"label": "Length", "value": 42}]},
                "position": {"x": 400, "y": 20},
            },
        ),
        ("assets/edges/edge_1.json", {"id": "e1", "from": "n1", "to": "n2", "fromHandle": 1, "toHandle": 2}),
        ("assets/edges/edge_2.json", {"id": "e2", "from": "n2", "to": "n3"}),
        (
            "assets/agents/Ada.json",
            {"id": "a1", "name": "Ada", "role": "planner", "color": "#ff0000", "spritesheet": 3, "instructions": "Plan the work."},
        ),
    ]


@pytest.fixture
def sample_zip(sample_entries) -> bytes:
    return make_zip(sample_entries)


@pytest.fixture(autouse=True)
def _restore_logging():
    # Tests may reconfigure logging (the CLI does); put the stderr default back.
    from sparkflow.logging import configure_logging

    yield
    configure_logging()
