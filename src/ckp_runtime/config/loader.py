"""
配置加载器（YAML）。

设计目标：
- 支持加载多个 YAML，并按顺序做深度合并（后者覆盖前者）；
- 使用 pydantic 做 schema 校验；默认拒绝未知字段（避免拼写错误与误配置被静默吞掉）；
- 内置默认配置见 `ckp_runtime/assets/default.yaml`。
"""

from __future__ import annotations

import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator, model_validator

_ENTRYPOINT_RE = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")


def _deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """
    深度合并两个 dict（overlay 覆盖 base）。

    合并规则：
    - dict + dict：递归合并
    - 其它类型：overlay 直接覆盖
    - list：整体覆盖（不做去重/拼接）
    """

    for key, overlay_value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(overlay_value, Mapping):
            _deep_merge(base[key], overlay_value)  # type: ignore[arg-type]
            continue
        base[key] = deepcopy(overlay_value)
    return base


class CkpAgentConfig(BaseModel):
    """agent 身份。"""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr = Field(default="ckp-agent", min_length=1)
    version: StrictStr = Field(default="0.1.0", min_length=1)


class CkpLifecycleConfig(BaseModel):
    """
    生命周期参数。

    说明：
    - `heartbeat_interval_ms <= 0` 表示禁用心跳；
    - 实际间隔不会低于 `min_heartbeat_interval_ms`。
    """

    model_config = ConfigDict(extra="forbid")

    heartbeat_interval_ms: int = 30000
    min_heartbeat_interval_ms: int = Field(default=100, ge=1)
    strict_initialize: bool = True


class CkpToolEntryConfig(BaseModel):
    """单个工具：`entrypoint` 形如 `package.module:callable`。"""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr = Field(min_length=1)
    entrypoint: StrictStr
    timeout_ms: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None

    @field_validator("entrypoint")
    @classmethod
    def _validate_entrypoint(cls, value: str) -> str:
        if not _ENTRYPOINT_RE.match(value):
            raise ValueError("entrypoint must look like 'module.path:attr'")
        return value


class CkpToolsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_timeout_ms: int = Field(default=30000, ge=1)
    entries: List[CkpToolEntryConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "CkpToolsConfig":
        names = [e.name for e in self.entries]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate tool names: {dupes}")
        return self


class CkpSafetyConfig(BaseModel):
    """
    安全闸门配置（policy / sandbox / quota / approval）。

    说明：
    - `approval.mode`：never（不审批）、always（所有工具）、tools（仅 `approval.tools` 中的工具）。
    """

    model_config = ConfigDict(extra="forbid")

    class Policy(BaseModel):
        model_config = ConfigDict(extra="forbid")

        enabled: bool = False
        tool_allowlist: List[str] = Field(default_factory=list)
        tool_denylist: List[str] = Field(default_factory=list)

    class Sandbox(BaseModel):
        model_config = ConfigDict(extra="forbid")

        enabled: bool = False
        blocked_patterns: List[str] = Field(default_factory=list)
        blocked_hosts: List[str] = Field(default_factory=list)

    class Quota(BaseModel):
        model_config = ConfigDict(extra="forbid")

        enabled: bool = False
        default_max_calls: Optional[int] = Field(default=None, ge=0)
        tool_limits: Dict[str, int] = Field(default_factory=dict)

    class Approval(BaseModel):
        model_config = ConfigDict(extra="forbid")

        mode: Literal["never", "always", "tools"] = "never"
        tools: List[str] = Field(default_factory=list)
        timeout_ms: int = Field(default=60000, ge=1)

    policy: Policy = Field(default_factory=Policy)
    sandbox: Sandbox = Field(default_factory=Sandbox)
    quota: Quota = Field(default_factory=Quota)
    approval: Approval = Field(default_factory=Approval)


class CkpMemoryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    max_entries: int = Field(default=100, ge=0)


class CkpSwarmConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    class Peer(BaseModel):
        model_config = ConfigDict(extra="forbid")

        identity: StrictStr
        uri: StrictStr
        status: Literal["ready", "busy", "unavailable"] = "ready"

    enabled: bool = False
    peers: List[Peer] = Field(default_factory=list)


class CkpTasksConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = False


class CkpTelemetryConfig(BaseModel):
    """
    telemetry 配置。

    说明：
    - `sink=log` 写入 logging（logger：`ckp_runtime.telemetry.events`）；`none` 不输出；
    - `events` 为启用的事件类别列表。
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    sink: Literal["log", "none"] = "log"
    events: List[Literal["lifecycle", "tool_call", "memory_op", "swarm_op", "task_op", "error"]] = Field(
        default_factory=lambda: ["lifecycle", "tool_call", "memory_op", "swarm_op", "task_op", "error"]
    )


class CkpLoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("level", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class RuntimeConfig(BaseModel):
    """配置根对象。"""

    model_config = ConfigDict(extra="forbid")

    config_version: int = Field(default=1, ge=1)
    agent: CkpAgentConfig = Field(default_factory=CkpAgentConfig)
    lifecycle: CkpLifecycleConfig = Field(default_factory=CkpLifecycleConfig)
    tools: CkpToolsConfig = Field(default_factory=CkpToolsConfig)
    safety: CkpSafetyConfig = Field(default_factory=CkpSafetyConfig)
    memory: CkpMemoryConfig = Field(default_factory=CkpMemoryConfig)
    swarm: CkpSwarmConfig = Field(default_factory=CkpSwarmConfig)
    tasks: CkpTasksConfig = Field(default_factory=CkpTasksConfig)
    telemetry: CkpTelemetryConfig = Field(default_factory=CkpTelemetryConfig)
    logging: CkpLoggingConfig = Field(default_factory=CkpLoggingConfig)


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """读取 YAML 文件为 dict；空文件返回空 dict。"""

    if not path.exists():
        raise FileNotFoundError(f"配置文件不存在：{path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"配置文件根节点必须为 mapping(dict)：{path}")
    return data


def load_config_dicts(config_dicts: List[Dict[str, Any]]) -> RuntimeConfig:
    """
    加载并合并多个 dict 配置，返回校验后的 `RuntimeConfig`。

    参数：
    - config_dicts：按顺序做深度合并（后者覆盖前者）
    """

    merged: Dict[str, Any] = {}
    for overlay in config_dicts:
        if not overlay:
            continue
        _deep_merge(merged, overlay)
    return RuntimeConfig.model_validate(merged)


def load_config(config_paths: List[Path], *, include_defaults: bool = True) -> RuntimeConfig:
    """
    加载并合并多个配置文件，返回校验后的 `RuntimeConfig`。

    参数：
    - config_paths：YAML 路径列表；按顺序合并（后者覆盖前者）
    - include_defaults：是否以内置默认配置作为最底层
    """

    overlays: List[Dict[str, Any]] = []
    if include_defaults:
        from ckp_runtime.config.defaults import load_default_config_dict

        overlays.append(load_default_config_dict())
    for path in config_paths:
        overlays.append(_load_yaml_file(Path(path)))
    return load_config_dicts(overlays)
