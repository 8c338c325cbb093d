from __future__ import annotations

import pytest


def _doc(*, nodes=(), edges=(), agents=()):
    return {"flow": {"nodes": list(nodes), "edges": list(edges)}, "agent_layer": list(agents)}


def _node(nid, title, *, type_="llmNode", props=None, file_name=None, position=(0, 0)):
    raw = {
        "id": nid,
        "type": type_,
        "title": title,
        "config": {"props": props if props is not None else [{"name": "model", "type": "select", "label": "Model", "value": "gpt-4"}]},
        "position": {"x": position[0], "y": position[1]},
    }
    if file_name is not None:
        raw["fileName"] = file_name
    return raw


def _agent(aid, name, *, spritesheet="/spritesheets/character_2.png"):
    return {"id": aid, "name": name, "role": "writer", "color": "#00ff00", "spritesheet": spritesheet, "instructions": "Write."}


@pytest.mark.basic
def test_unique_namer_appends_running_counts() -> None:
    from sparkflow import UniqueNamer

    namer = UniqueNamer()
    assert [namer.claim(n) for n in ["a", "a", "b", "a"]] == ["a", "a_2", "b", "a_3"]


@pytest.mark.basic
def test_unique_namer_never_reissues_a_name() -> None:
    from sparkflow import UniqueNamer

    namer = UniqueNamer()
    assert [namer.claim(n) for n in ["a_2", "a", "a"]] == ["a_2", "a", "a_3"]


@pytest.mark.basic
def test_node_and_agent_names_share_one_pool() -> None:
    from sparkflow import decompile_json

    result = decompile_json(_doc(nodes=[_node("n1", "Scout"), _node("n2", "Scout")], agents=[_agent("a1", "Scout")]))
    names = [k for k in result.entries if k.startswith("assets/")]
    assert names == ["assets/nodes/Scout.json", "assets/nodes/Scout_2.json", "assets/agents/Scout_3.json"]


@pytest.mark.basic
def test_fallback_names_use_ids() -> None:
    from sparkflow import decompile_json

    result = decompile_json(_doc(nodes=[_node("n7", "")], agents=[_agent("a9", "")]))
    assert "assets/nodes/node_n7.json" in result.entries
    assert "assets/agents/agent_a9.json" in result.entries


@pytest.mark.basic
def test_path_separators_in_titles_stay_under_prefix() -> None:
    from sparkflow import decompile_json

    result = decompile_json(_doc(nodes=[_node("n1", "in/out\\x")]))
    assert "assets/nodes/in_out_x.json" in result.entries


@pytest.mark.basic
def test_compact_node_records() -> None:
    from sparkflow import decompile_json

    result = decompile_json(
        _doc(
            nodes=[
                _node("n1", "Start", type_="input", props=[{"name": "prompt", "type": "text", "label": "Prompt", "value": "hi"}]),
                _node("n2", "Think", position=(5, 6)),
                _node("n3", "Shorten", type_="templateNode", file_name="summarizeNode", props=[]),
            ]
        )
    )
    start = result.entries["assets/nodes/Start.json"]
    assert start == {
        "id": "n1",
        "type": "input",
        "data": {"title": "Start", "props": [{"label": "Prompt", "value": "hi"}]},
        "position": {"x": 0, "y": 0},
    }
    think = result.entries["assets/nodes/Think.json"]
    assert think["type"] == "llm"
    assert "templateName" not in think
    assert think["position"] == {"x": 5, "y": 6}
    shorten = result.entries["assets/nodes/Shorten.json"]
    assert shorten["type"] == "template"
    assert shorten["templateName"] == "summarize"


@pytest.mark.basic
def test_node_template_resource_keeps_first_definition_per_key() -> None:
    from sparkflow import decompile_json

    result = decompile_json(
        _doc(
            nodes=[
                _node("n1", "A"),
                _node("n2", "B"),
                _node("n3", "C", type_="templateNode", file_name="summarizeNode", props=[]),
                _node("n4", "D", type_="templateNode", file_name="translateNode", props=[]),
            ]
        )
    )
    templates = result.entries["resources/node_data.json"]
    assert [(t["id"], t["type"], t.get("fileName")) for t in templates] == [
        ("n1", "llmNode", None),
        ("n3", "templateNode", "summarizeNode"),
        ("n4", "templateNode", "translateNode"),
    ]


@pytest.mark.basic
def test_compact_edges_invert_handle_names() -> None:
    from sparkflow import UnmappedHandle, decompile_json

    result = decompile_json(
        _doc(
            edges=[
                {"id": "e1", "source": "a", "target": "b", "sourceHandle": "second-two-source", "targetHandle": "second-one-target", "type": "smoothstep"},
                {"id": "e2", "source": "b", "target": "c"},
                {"id": "e3", "source": "c", "target": "d", "sourceHandle": "exec-out"},
            ]
        )
    )
    assert result.entries["assets/edges/edge_1.json"] == {"id": "e1", "from": "a", "to": "b", "fromHandle": 2, "toHandle": 1}
    assert result.entries["assets/edges/edge_2.json"] == {"id": "e2", "from": "b", "to": "c"}
    assert result.entries["assets/edges/edge_3.json"] == {"id": "e3", "from": "c", "to": "d"}

    assert result.entries["resources/edge_data.json"] == [{"id": "", "source": "", "target": "", "type": "smoothstep"}]

    assert len(result.errors) == 1
    assert isinstance(result.errors[0], UnmappedHandle)
    assert result.errors[0].entry == "flow.edges[2]"


@pytest.mark.basic
def test_compact_agents_invert_sprite_paths() -> None:
    from sparkflow import UnmappedSpriteCode, decompile_json

    result = decompile_json(_doc(agents=[_agent("a1", "Ada"), _agent("a2", "Bob", spritesheet="/elsewhere.png")]))
    assert result.entries["assets/agents/Ada.json"] == {
        "id": "a1",
        "name": "Ada",
        "role": "writer",
        "color": "#00ff00",
        "spritesheet": 2,
        "instructions": "Write.",
    }
    assert result.entries["assets/agents/Bob.json"]["spritesheet"] is None
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], UnmappedSpriteCode)

    (template,) = result.entries["resources/agent_data.json"]
    assert template["id"] == "" and template["spritesheet"] is None


@pytest.mark.basic
def test_empty_document_still_writes_template_resources() -> None:
    from sparkflow import decompile_json

    result = decompile_json(_doc())
    assert result.ok
    assert list(result.entries) == ["resources/node_data.json", "resources/edge_data.json", "resources/agent_data.json"]
    assert result.entries["resources/node_data.json"] == []
    assert len(result.entries["resources/edge_data.json"]) == 1
    assert len(result.entries["resources/agent_data.json"]) == 1


@pytest.mark.basic
def test_invalid_document_raises_parse_error() -> None:
    from sparkflow import ParseError, decompile_json

    with pytest.raises(ParseError) as excinfo:
        decompile_json({"flow": {"nodes": [{"id": "n1"}]}})
    assert excinfo.value.entry == "flow.nodes[0]"

    with pytest.raises(ParseError):
        decompile_json([])


@pytest.mark.basic
def test_agents_key_is_configurable() -> None:
    from sparkflow import TranscoderConfig, decompile_json

    raw = {"flow": {"nodes": [], "edges": []}, "characters": [_agent("a1", "Ada")]}
    assert not [k for k in decompile_json(raw).entries if k.startswith("assets/agents/")]

    cfg = TranscoderConfig(agents_key="characters")
    assert "assets/agents/Ada.json" in decompile_json(raw, config=cfg).entries


@pytest.mark.basic
def test_nodes_that_differ_from_their_written_template_are_reported() -> None:
    from sparkflow import TemplateMismatch, decompile_json

    two_props = [
        {"name": "model", "type": "select", "label": "Model", "value": "gpt-4"},
        {"name": "temperature", "type": "number", "label": "Temperature", "value": 0.2},
    ]
    wide = _node("n2", "B", props=two_props)
    wide["width"] = 320
    result = decompile_json(_doc(nodes=[_node("n1", "A"), wide, _node("n3", "C", props=[{"name": "model", "type": "select", "label": "Model", "value": "claude"}])]))

    # n3 differs from n1 only in values and layout, which the compact form carries.
    assert [type(e) for e in result.errors] == [TemplateMismatch]
    assert result.errors[0].entry == "flow.nodes[1]"
    assert [t["id"] for t in result.entries["resources/node_data.json"]] == ["n1"]


@pytest.mark.basic
def test_template_nodes_that_cannot_be_referenced_are_reported() -> None:
    from sparkflow import ParseError, TemplateNotFound, decompile_json

    result = decompile_json(
        _doc(
            nodes=[
                _node("n1", "Loose", type_="templateNode", props=[]),
                _node("n2", "Odd", type_="templateNode", file_name="summarize", props=[]),
                _node("n3", "Out", type_="output", props=[]),
                _node("n4", "Fine", type_="templateNode", file_name="summarizeNode", props=[]),
            ]
        )
    )
    assert [(type(e), e.entry) for e in result.errors] == [
        (ParseError, "flow.nodes[0]"),
        (TemplateNotFound, "flow.nodes[1]"),
        (TemplateNotFound, "flow.nodes[2]"),
    ]
    # Entries are still written so the rest of the document survives.
    assert {"assets/nodes/Loose.json", "assets/nodes/Odd.json", "assets/nodes/Out.json", "assets/nodes/Fine.json"} <= set(result.entries)
