"""JSON-RPC 2.0 帧构造（纯函数，不做 IO）。"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from ckp_runtime.protocol.codes import JSONRPC_VERSION

RequestId = Union[str, int, float, None]


def salvage_id(msg: Any) -> RequestId:
    """
    从（可能不合法的）消息中尽量取出 id。

    规则：
    - 仅接受 str / 数字（bool 不算数字）；
    - 其它情况（缺失、null、对象、数组）一律返回 None。
    """

    if not isinstance(msg, Mapping):
        return None
    raw = msg.get("id")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (str, int, float)):
        return raw
    return None


def is_valid_id(value: Any) -> bool:
    """请求 id 只能是 string / number / null。"""

    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, (str, int, float))


def is_notification(msg: Mapping[str, Any]) -> bool:
    """notification 的唯一判据：消息中不存在 `id` 字段。"""

    return "id" not in msg


def ok_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(
    request_id: RequestId,
    code: int,
    message: str,
    data: Optional[Any] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": int(code), "message": str(message)}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def notification(method: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    frame: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        frame["params"] = dict(params)
    return frame
