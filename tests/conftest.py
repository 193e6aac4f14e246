"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import zstandard

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from p4_cli.config import Config  # noqa: E402
from p4_cli.errors import UnsupportedPlatformError  # noqa: E402
from p4_cli.provisioning import detect_platform, payload_name  # noqa: E402

IS_WINDOWS = sys.platform == "win32"

# 假 p4 脚本
FAKE_P4 = Path(__file__).parent / "fixtures" / "fake_p4.py"


def fake_argv(*args: str) -> list[str]:
    """通过当前解释器运行假 p4 的命令行。"""
    return [sys.executable, str(FAKE_P4), *args]


def build_fake_executable() -> bytes:
    """生成带 shebang 的假 p4 脚本内容（POSIX 可直接执行）。"""
    interpreter = sys.executable
    # Linux 对 shebang 长度有限制
    shebang = f"#!{interpreter}" if len(interpreter) < 120 else "#!/usr/bin/env python3"
    body = FAKE_P4.read_text(encoding="utf-8").split("\n", 1)[1]
    return f"{shebang}\n{body}".encode("utf-8")


@pytest.fixture
def payload_dir(tmp_path: Path) -> Path:
    """包含当前平台 payload 的目录。"""
    if IS_WINDOWS:
        pytest.skip("Fake payload is a shebang script")
    try:
        name = payload_name(detect_platform())
    except UnsupportedPlatformError:
        pytest.skip("Host platform has no payload slot")

    directory = tmp_path / "payloads"
    directory.mkdir()
    data = zstandard.ZstdCompressor(level=3).compress(build_fake_executable())
    (directory / name).write_bytes(data)
    return directory


@pytest.fixture
def test_config(tmp_path: Path, payload_dir: Path) -> Config:
    """指向临时目录和假 payload 的配置。"""
    return Config(temp_dir=tmp_path / "bin", payload_dir=payload_dir)
