"""core/utils.py 与错误模型测试。"""

from __future__ import annotations

import asyncio

from ckp_runtime.core.errors import BootstrapError, CkpError
from ckp_runtime.core.utils import error_message, maybe_await, now_rfc3339
from ckp_runtime.protocol.codes import ErrorCode
from ckp_runtime.protocol.messages import error_response, is_notification, is_valid_id, notification, ok_response, salvage_id


def test_now_rfc3339_is_utc_z() -> None:
    ts = now_rfc3339()
    assert ts.endswith("Z")
    assert "T" in ts


def test_maybe_await_accepts_values_and_awaitables() -> None:
    async def _coro() -> int:
        return 2

    async def _run() -> list:
        return [await maybe_await(1), await maybe_await(_coro())]

    assert asyncio.run(_run()) == [1, 2]


def test_error_message_falls_back_to_type_name() -> None:
    assert error_message(ValueError("bad")) == "bad"
    assert error_message(KeyboardInterrupt()) == "KeyboardInterrupt"


def test_error_codes_are_stable() -> None:
    assert ErrorCode.PARSE_ERROR == -32700
    assert ErrorCode.PROTOCOL_VERSION_NOT_SUPPORTED == -32001
    assert ErrorCode.SANDBOX_DENIED == -32010
    assert ErrorCode.POLICY_DENIED == -32011
    assert ErrorCode.APPROVAL_TIMEOUT == -32012
    assert ErrorCode.APPROVAL_DENIED == -32013
    assert ErrorCode.TOOL_EXECUTION_TIMEOUT == -32014
    assert ErrorCode.PROVIDER_QUOTA_EXCEEDED == -32021


def test_ckp_error_objects() -> None:
    err = CkpError.version_not_supported(("0.2.0",))
    assert err.to_error_object() == {
        "code": -32001,
        "message": "Protocol version not supported",
        "data": {"supported": ["0.2.0"]},
    }
    assert CkpError.approval_denied().message == "Approval denied"
    assert CkpError.tool_timeout("slow").message == "Tool execution timeout: slow"
    assert str(CkpError.invalid_params("x")) == "-32602: x"


def test_bootstrap_error_to_dict() -> None:
    err = BootstrapError(code="X", message="m")
    assert err.to_dict() == {"code": "X", "message": "m", "details": {}}


def test_id_helpers() -> None:
    assert salvage_id({"id": 3}) == 3
    assert salvage_id({"id": "a"}) == "a"
    assert salvage_id({"id": True}) is None
    assert salvage_id({"id": [1]}) is None
    assert salvage_id("not a dict") is None

    assert is_valid_id(None) and is_valid_id(1) and is_valid_id(1.5) and is_valid_id("x")
    assert not is_valid_id(False)
    assert not is_valid_id({})


def test_frame_builders() -> None:
    assert ok_response(1, None) == {"jsonrpc": "2.0", "id": 1, "result": None}
    assert error_response("a", -32600, "Invalid request") == {
        "jsonrpc": "2.0",
        "id": "a",
        "error": {"code": -32600, "message": "Invalid request"},
    }
    assert notification("claw.heartbeat") == {"jsonrpc": "2.0", "method": "claw.heartbeat"}
    assert is_notification({"jsonrpc": "2.0", "method": "m"})
    assert not is_notification({"jsonrpc": "2.0", "id": None, "method": "m"})


def test_gate_error_constructors_accept_overrides() -> None:
    assert CkpError.sandbox_denied().to_error_object() == {"code": -32010, "message": "Sandbox denied"}
    assert CkpError.policy_denied("no rm").message == "no rm"
    assert CkpError.quota_exceeded().code == -32021

    err = CkpError.policy_denied("blocked by org", code=-32099)
    assert (err.code, err.message) == (-32099, "blocked by org")
