from __future__ import annotations

import pytest
from pydantic import ValidationError

from ckp_runtime.a2a import (
    map_a2a_message_to_ckp_task_message,
    map_a2a_part_to_ckp_content,
    map_a2a_task_state_to_ckp,
    map_ckp_content_to_a2a_part,
    map_ckp_task_message_to_a2a_message,
    map_ckp_task_state_to_a2a,
    project_agent_card,
    project_skill_to_a2a,
)


def test_task_states_are_identity() -> None:
    for state in ("submitted", "working", "input_required", "auth_required", "completed", "failed", "canceled", "rejected"):
        assert map_a2a_task_state_to_ckp(state) == state
        assert map_ckp_task_state_to_a2a(state) == state
    with pytest.raises(ValueError):
        map_a2a_task_state_to_ckp("done")
    with pytest.raises(ValueError):
        map_ckp_task_state_to_a2a("cancelled")


def test_a2a_parts_to_ckp_content() -> None:
    assert map_a2a_part_to_ckp_content({"kind": "text", "text": "hi"}) == {"type": "text", "text": "hi"}
    assert map_a2a_part_to_ckp_content({"kind": "url", "url": "https://x/y.png", "mime_type": "image/png"}) == {
        "type": "resource",
        "uri": "https://x/y.png",
        "mimeType": "image/png",
    }
    assert map_a2a_part_to_ckp_content({"kind": "data", "data": {"k": 1}}) == {"type": "resource", "data": {"k": 1}}
    assert map_a2a_part_to_ckp_content({"kind": "raw", "data": "aGk="}) == {
        "type": "resource",
        "data": "aGk=",
        "encoding": "base64",
    }
    with pytest.raises(ValueError):
        map_a2a_part_to_ckp_content({"kind": "video"})


def test_ckp_content_to_a2a_parts() -> None:
    assert map_ckp_content_to_a2a_part({"type": "text", "text": "hi"}) == {"kind": "text", "text": "hi"}
    assert map_ckp_content_to_a2a_part({"type": "text"}) == {"kind": "text", "text": ""}
    assert map_ckp_content_to_a2a_part({"type": "resource", "uri": "file:///a", "mimeType": "text/plain"}) == {
        "kind": "url",
        "url": "file:///a",
        "mime_type": "text/plain",
    }
    assert map_ckp_content_to_a2a_part({"type": "image", "data": "aGk="}) == {"kind": "raw", "data": "aGk="}
    assert map_ckp_content_to_a2a_part({"type": "resource", "data": {}}) == {"kind": "data", "data": {}}
    assert map_ckp_content_to_a2a_part({"type": "resource"}) == {"kind": "data", "data": {"type": "resource"}}


def test_message_mapping_keeps_role_and_metadata() -> None:
    a2a = {"role": "user", "parts": [{"kind": "text", "text": "hello"}], "metadata": {"trace": "t1"}}
    ckp = map_a2a_message_to_ckp_task_message(a2a)
    assert ckp == {"role": "user", "content": [{"type": "text", "text": "hello"}], "metadata": {"trace": "t1"}}
    assert map_ckp_task_message_to_a2a_message(ckp) == a2a

    with pytest.raises(ValueError):
        map_a2a_message_to_ckp_task_message({"role": "user"})


def test_skill_projection() -> None:
    skill = project_skill_to_a2a(
        {
            "name": "Code_Review helper",
            "description": "Reviews diffs",
            "labels": {"domain": "code"},
            "tools_required": ["read_file"],
            "input_schema": {"type": "object"},
        }
    )
    assert skill == {
        "id": "code-review-helper",
        "name": "Code Review helper",
        "description": "Reviews diffs",
        "tags": ["domain:code", "tool:read_file"],
        "extensions": {"ckp": {"input_schema": {"type": "object"}}},
    }


def test_agent_card_truncates_personality() -> None:
    card = project_agent_card({"name": "a", "version": "1.0.0", "personality": "word " * 100})
    assert len(card["description"]) == 200
    assert card["description"].endswith("...")

    short = project_agent_card({"name": "a", "version": "1", "personality": "  calm \n and   kind  ", "skills": []})
    assert short["description"] == "calm and kind"
    assert short["skills"] == []
    assert "capabilities" not in short


def test_agent_card_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        project_agent_card({"name": "a", "version": "1", "unexpected": True})
