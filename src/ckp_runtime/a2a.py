"""
CKP ↔ A2A 边界适配（experimental）。

说明：
- 把 CKP 运行时元数据投影为 A2A 发现对象（agent card / skill）；
- 在 A2A message parts 与 CKP content blocks 之间双向映射；
- 纯函数，不做 IO；输入输出均为 JSON dict。
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from ckp_runtime.protocol.models import TASK_STATES

_PERSONALITY_MAX = 200


class CkpSkillProjection(BaseModel):
    """待投影的 CKP skill 元数据。"""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str
    labels: Optional[Dict[str, str]] = None
    tools_required: Optional[List[str]] = None
    input_schema: Optional[Dict[str, Any]] = None
    input_modes: Optional[List[str]] = None
    output_modes: Optional[List[str]] = None


class CkpAgentProjectionInput(BaseModel):
    """待投影的 CKP agent 元数据。"""

    model_config = ConfigDict(extra="forbid")

    name: str
    version: str
    personality: Optional[str] = None
    interfaces: Optional[List[Dict[str, Any]]] = None
    capabilities: Optional[Dict[str, Any]] = None
    security_schemes: Optional[Dict[str, Any]] = None
    security_requirements: Optional[List[Dict[str, Any]]] = None
    default_input_modes: Optional[List[str]] = None
    default_output_modes: Optional[List[str]] = None
    skills: Optional[List[CkpSkillProjection]] = None


# ── task state ──────────────────────────────────────────────────────────────


def is_supported_task_state(value: Any) -> bool:
    return isinstance(value, str) and value in TASK_STATES


def map_a2a_task_state_to_ckp(state: str) -> str:
    """两侧共享同一组 8 个状态，映射为恒等。"""

    if not is_supported_task_state(state):
        raise ValueError(f"unsupported task state: {state!r}")
    return state


def map_ckp_task_state_to_a2a(state: str) -> str:
    if not is_supported_task_state(state):
        raise ValueError(f"unsupported task state: {state!r}")
    return state


# ── payload ────────────────────────────────────────────────────────────────


def map_a2a_part_to_ckp_content(part: Mapping[str, Any]) -> Dict[str, Any]:
    """
    A2A part → CKP content block。

    映射：
    - text → text
    - url → resource(uri, mimeType?)
    - data → resource(data)
    - raw → resource(data, encoding=base64, mimeType?)

    异常：
    - ValueError：未知 kind
    """

    kind = part.get("kind")
    mime_type = part.get("mime_type")
    if kind == "text":
        return {"type": "text", "text": part.get("text")}
    if kind == "url":
        out: Dict[str, Any] = {"type": "resource", "uri": part.get("url")}
        if mime_type:
            out["mimeType"] = mime_type
        return out
    if kind == "data":
        return {"type": "resource", "data": part.get("data")}
    if kind == "raw":
        out = {"type": "resource", "data": part.get("data"), "encoding": "base64"}
        if mime_type:
            out["mimeType"] = mime_type
        return out
    raise ValueError(f"unsupported A2A part kind: {kind!r}")


def map_ckp_content_to_a2a_part(content: Mapping[str, Any]) -> Dict[str, Any]:
    """CKP content block → A2A part（无法识别的块整体作为 data part）。"""

    if content.get("type") == "text":
        text = content.get("text")
        return {"kind": "text", "text": "" if text is None else str(text)}

    uri = content.get("uri")
    mime_type = content.get("mimeType")
    if isinstance(uri, str) and uri:
        part: Dict[str, Any] = {"kind": "url", "url": uri}
        if isinstance(mime_type, str) and mime_type:
            part["mime_type"] = mime_type
        return part

    data = content.get("data")
    if isinstance(data, str):
        part = {"kind": "raw", "data": data}
        if isinstance(mime_type, str) and mime_type:
            part["mime_type"] = mime_type
        return part
    if isinstance(data, Mapping):
        return {"kind": "data", "data": dict(data)}

    return {"kind": "data", "data": dict(content)}


def map_a2a_message_to_ckp_task_message(message: Mapping[str, Any]) -> Dict[str, Any]:
    parts = message.get("parts")
    if not isinstance(parts, list):
        raise ValueError("A2A message requires a parts list")
    out: Dict[str, Any] = {
        "role": message.get("role"),
        "content": [map_a2a_part_to_ckp_content(p) for p in parts],
    }
    if message.get("metadata"):
        out["metadata"] = message["metadata"]
    return out


def map_ckp_task_message_to_a2a_message(message: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "role": message.get("role"),
        "parts": [map_ckp_content_to_a2a_part(c) for c in (message.get("content") or [])],
    }
    if message.get("metadata"):
        out["metadata"] = message["metadata"]
    return out


# ── discovery projection ───────────────────────────────────────────────────


def _to_skill_id(name: str) -> str:
    slug = re.sub(r"[^a-z0-9-]+", "-", name.strip().lower())
    return re.sub(r"^-+|-+$", "", slug)


def _humanize(name: str) -> str:
    normalized = re.sub(r"[-_]+", " ", name).strip()
    if not normalized:
        return name
    return normalized[0].upper() + normalized[1:]


def _summarize_personality(personality: Optional[str]) -> Optional[str]:
    if not personality:
        return None
    compact = re.sub(r"\s+", " ", personality).strip()
    if len(compact) <= _PERSONALITY_MAX:
        return compact or None
    return compact[: _PERSONALITY_MAX - 3] + "..."


def project_skill_to_a2a(skill: Any) -> Dict[str, Any]:
    """CKP skill → A2A AgentSkill（labels 与 tools_required 折叠为 tags）。"""

    s = skill if isinstance(skill, CkpSkillProjection) else CkpSkillProjection.model_validate(skill)
    tags: List[str] = [f"{k}:{v}" for k, v in (s.labels or {}).items()]
    tags.extend(f"tool:{t}" for t in (s.tools_required or []))

    out: Dict[str, Any] = {"id": _to_skill_id(s.name), "name": _humanize(s.name), "description": s.description}
    if tags:
        out["tags"] = tags
    if s.input_modes is not None:
        out["input_modes"] = list(s.input_modes)
    if s.output_modes is not None:
        out["output_modes"] = list(s.output_modes)
    if s.input_schema is not None:
        out["extensions"] = {"ckp": {"input_schema": s.input_schema}}
    return out


def project_agent_card(agent: Any) -> Dict[str, Any]:
    """CKP agent 元数据 → A2A AgentCard。"""

    a = agent if isinstance(agent, CkpAgentProjectionInput) else CkpAgentProjectionInput.model_validate(agent)
    card: Dict[str, Any] = {"name": a.name, "version": a.version}
    description = _summarize_personality(a.personality)
    if description:
        card["description"] = description
    if a.interfaces is not None:
        card["supported_interfaces"] = a.interfaces
    for field in (
        "capabilities",
        "security_schemes",
        "security_requirements",
        "default_input_modes",
        "default_output_modes",
    ):
        value = getattr(a, field)
        if value is not None:
            card[field] = value
    if a.skills is not None:
        card["skills"] = [project_skill_to_a2a(s) for s in a.skills]
    return card
