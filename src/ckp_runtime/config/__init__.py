"""YAML 配置（内置默认 + overlays 深度合并 + pydantic 校验）。"""

from __future__ import annotations

from ckp_runtime.config.defaults import load_default_config_dict
from ckp_runtime.config.loader import RuntimeConfig, load_config, load_config_dicts

__all__ = [
    "RuntimeConfig",
    "load_config",
    "load_config_dicts",
    "load_default_config_dict",
]
