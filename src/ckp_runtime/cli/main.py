"""
ckp-agent CLI（serve / config）。

约束：
- 使用 argparse（不引入第三方 CLI 依赖）；
- `serve` 时 stdout 专用于协议帧，日志写 stderr；
- `config` 输出机器可读 JSON；失败时也输出 JSON（`code/message/details`）。
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import ValidationError

from ckp_runtime.bootstrap import build_agent_options
from ckp_runtime.config.loader import RuntimeConfig, load_config
from ckp_runtime.core.errors import BootstrapError
from ckp_runtime.runtime.agent import create_agent
from ckp_runtime.transport import StdioTransport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_CONFIG = 20


def _dump_json_to_stdout(obj: Dict[str, Any], *, pretty: bool) -> None:
    """将 dict 输出为 JSON 到 stdout（末尾包含换行）。"""

    if pretty:
        text = json.dumps(obj, ensure_ascii=False, indent=2)
    else:
        text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    print(text)


def _error_payload(exc: BaseException) -> Dict[str, Any]:
    """把配置/装配异常映射为稳定的 `code/message/details` 结构。"""

    if isinstance(exc, BootstrapError):
        return exc.to_dict()
    if isinstance(exc, FileNotFoundError):
        return {"code": "CONFIG_NOT_FOUND", "message": "Config file not found.", "details": {"reason": str(exc)}}
    if isinstance(exc, ValidationError):
        errors = [
            {"loc": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return {"code": "CONFIG_INVALID", "message": "Config validation failed.", "details": {"errors": errors}}
    if isinstance(exc, yaml.YAMLError):
        return {"code": "CONFIG_PARSE_FAILED", "message": "Config YAML could not be parsed.", "details": {"reason": str(exc)}}
    return {"code": "CONFIG_INVALID", "message": "Config could not be loaded.", "details": {"reason": str(exc)}}


def _load(paths: Optional[List[str]]) -> RuntimeConfig:
    return load_config([Path(p).expanduser() for p in (paths or [])])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ckp-agent", description="Claw Kernel Protocol agent runtime")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Serve a CKP agent over stdio")
    serve.add_argument("--config", action="append", default=None, help="YAML overlay path (repeatable, later wins).")
    serve.add_argument("--log-level", default=None, help="Override logging level (DEBUG/INFO/WARNING/ERROR).")

    cfg = sub.add_parser("config", help="Print the effective config as JSON")
    cfg.add_argument("--config", action="append", default=None, help="YAML overlay path (repeatable, later wins).")
    cfg.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    return parser


def _handle_config(args: argparse.Namespace) -> int:
    pretty = bool(args.pretty)
    try:
        cfg = _load(args.config)
    except (FileNotFoundError, ValueError, ValidationError, yaml.YAMLError) as exc:
        _dump_json_to_stdout(_error_payload(exc), pretty=pretty)
        return EXIT_CONFIG
    _dump_json_to_stdout(cfg.model_dump(mode="json"), pretty=pretty)
    return EXIT_OK


def _handle_serve(args: argparse.Namespace) -> int:
    try:
        cfg = _load(args.config)
        options = build_agent_options(cfg)
    except (FileNotFoundError, ValueError, ValidationError, yaml.YAMLError, BootstrapError) as exc:
        # stdout 保留给协议帧：错误写 stderr
        print(json.dumps(_error_payload(exc), ensure_ascii=False), file=sys.stderr)
        return EXIT_CONFIG

    level = str(args.log_level or cfg.logging.level).upper()
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    agent = create_agent(options, transport=StdioTransport())
    logger.info("serving %s %s over stdio", options.name, options.version)
    try:
        asyncio.run(agent.listen())
    except KeyboardInterrupt:
        return 130
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI 入口函数（用于 console_scripts 与测试）。

    返回：
    - int：exit code（不会直接 sys.exit，便于测试）。
    """

    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        code = getattr(exc, "code", EXIT_USAGE)
        if code is None:
            return EXIT_USAGE
        return int(code)

    if args.command == "config":
        return _handle_config(args)
    if args.command == "serve":
        return _handle_serve(args)
    return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
