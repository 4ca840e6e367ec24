"""安全闸门与审批（quota / policy / sandbox / approval）。"""

from __future__ import annotations

from ckp_runtime.safety.approvals import ApprovalConfig, ApprovalQueue
from ckp_runtime.safety.gates import GateResult, PolicyEvaluator, QuotaChecker, SandboxChecker
from ckp_runtime.safety.rules import CallQuotaChecker, PatternSandboxChecker, RulePolicyEvaluator

__all__ = [
    "ApprovalConfig",
    "ApprovalQueue",
    "CallQuotaChecker",
    "GateResult",
    "PatternSandboxChecker",
    "PolicyEvaluator",
    "QuotaChecker",
    "RulePolicyEvaluator",
    "SandboxChecker",
]
