"""
配置驱动的参考闸门实现（policy / sandbox / quota）。

说明：
- 这些实现只依赖工具名与参数，不依赖工具注册表；
- 默认 fail-closed：规则判定异常时视为拒绝。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from ckp_runtime.safety.gates import GateResult

logger = logging.getLogger(__name__)


class RulePolicyEvaluator:
    """
    工具名 allowlist / denylist 策略。

    规则：
    - denylist 命中：拒绝（deny 优先于 allow）；
    - allowlist 非空且未命中：拒绝；
    - 其它：放行。
    """

    def __init__(
        self,
        *,
        tool_allowlist: Optional[Iterable[str]] = None,
        tool_denylist: Optional[Iterable[str]] = None,
    ) -> None:
        self._allow = {str(x) for x in (tool_allowlist or [])}
        self._deny = {str(x) for x in (tool_denylist or [])}

    def evaluate(self, tool_name: str, context: Dict[str, Any]) -> GateResult:
        if tool_name in self._deny:
            return GateResult.deny(f'Tool "{tool_name}" is denied by policy')
        if self._allow and tool_name not in self._allow:
            return GateResult.deny(f'Tool "{tool_name}" is not in the policy allowlist')
        return GateResult.allow()


def _iter_strings(value: Any) -> Iterator[str]:
    """递归取出参数中的所有字符串（dict 的 key 与 value 都算）。"""

    if isinstance(value, str):
        yield value
    elif isinstance(value, Mapping):
        for k, v in value.items():
            if isinstance(k, str):
                yield k
            yield from _iter_strings(v)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item)


class PatternSandboxChecker:
    """
    基于子串匹配的参数沙箱。

    参数：
    - blocked_patterns：禁止出现在任何字符串参数中的子串（例如凭据路径 `/etc/shadow`、`~/.ssh`）
    - blocked_hosts：禁止访问的主机片段（例如链路本地元数据地址段 `169.254`）

    说明：
    - 这是协议层的参考实现，不等价于容器/系统级隔离。
    """

    def __init__(
        self,
        *,
        blocked_patterns: Optional[Iterable[str]] = None,
        blocked_hosts: Optional[Iterable[str]] = None,
    ) -> None:
        self._patterns: List[str] = [str(x) for x in (blocked_patterns or []) if str(x)]
        self._hosts: List[str] = [str(x) for x in (blocked_hosts or []) if str(x)]

    def check(self, tool_name: str, arguments: Dict[str, Any]) -> GateResult:
        for text in _iter_strings(arguments or {}):
            for host in self._hosts:
                if host in text:
                    return GateResult.deny(f"Network access to {host} is blocked by sandbox")
            for pattern in self._patterns:
                if pattern in text:
                    return GateResult.deny(f"Argument matches blocked pattern: {pattern}")
        return GateResult.allow()


class CallQuotaChecker:
    """
    按工具计数的调用预算。

    规则：
    - `tool_limits[name]` 优先；否则使用 `default_max_calls`；两者都没有则不限；
    - 仅在放行时计数（被拒绝的检查不消耗预算）。
    """

    def __init__(
        self,
        *,
        default_max_calls: Optional[int] = None,
        tool_limits: Optional[Mapping[str, int]] = None,
    ) -> None:
        self._default = default_max_calls
        self._limits: Dict[str, int] = {str(k): int(v) for k, v in (tool_limits or {}).items()}
        self._counts: Dict[str, int] = {}

    def limit_for(self, tool_name: str) -> Optional[int]:
        if tool_name in self._limits:
            return self._limits[tool_name]
        return self._default

    def used(self, tool_name: str) -> int:
        return self._counts.get(tool_name, 0)

    def check(self, tool_name: str) -> GateResult:
        limit = self.limit_for(tool_name)
        used = self._counts.get(tool_name, 0)
        if limit is not None and used >= limit:
            logger.debug("quota exhausted (tool=%s, used=%s, limit=%s)", tool_name, used, limit)
            return GateResult.deny(f'Quota exceeded for tool "{tool_name}"')
        self._counts[tool_name] = used + 1
        return GateResult.allow()

    def reset(self) -> None:
        self._counts.clear()
