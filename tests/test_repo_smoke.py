from __future__ import annotations

import sys
from importlib.machinery import PathFinder
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def test_package_is_importable_from_src() -> None:
    src = _repo_root() / "src"
    assert PathFinder.find_spec("ckp_runtime", [str(src)]) is not None

    sys.path.insert(0, str(src))
    try:
        import ckp_runtime

        assert ckp_runtime.PROTOCOL_VERSION == "0.2.0"
    finally:
        sys.path.remove(str(src))


def test_default_config_ships_inside_package() -> None:
    assert (_repo_root() / "src" / "ckp_runtime" / "assets" / "default.yaml").is_file()


def test_pyproject_declares_cli_and_version() -> None:
    text = (_repo_root() / "pyproject.toml").read_text(encoding="utf-8")
    assert 'ckp-agent = "ckp_runtime.cli.main:main"' in text

    import ckp_runtime

    assert f'version = "{ckp_runtime.__version__}"' in text


def test_examples_have_runnable_entrypoints() -> None:
    examples = _repo_root() / "examples"
    for name in ("l1_agent", "l2_agent", "l3_agent", "a2a_agent"):
        text = (examples / name / "run.py").read_text(encoding="utf-8")
        assert "def build_agent(" in text
        assert 'if __name__ == "__main__":' in text
