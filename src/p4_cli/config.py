"""p4-cli 环境变量配置管理。

所有变量都是可选的，未设置时的默认值即库的标准行为。

环境变量:
    P4CLI_PATH_MODE: 可执行文件落盘路径策略
        - unique = 每个进程一个路径 p4_binary.<pid> (默认)
        - fixed = 固定路径 p4_binary，多实例后写者覆盖

    P4CLI_TEMP_DIR: 可执行文件所在目录
        - 默认为系统临时目录

    P4CLI_PAYLOAD_DIR: 存放 p4cli-<slug>.zst 的目录
        - 默认从包内 payloads 资源读取

    P4CLI_MERGE: stdout/stderr 合并策略
        - stdout-first = 优先读 stdout (默认)
        - arrival = 按到达顺序

    P4CLI_ENCODING: 子进程输出的文本编码
        - 默认 utf-8，非法字节视为致命错误
        - 换行符必须是单字节的编码，utf-16/utf-32 回退到 utf-8

    P4CLI_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from .runtime.records import is_line_safe_encoding

__all__ = [
    "Config",
    "PathMode",
    "load_config",
    "get_config",
    "reload_config",
    "DEFAULT_MERGE",
    "MERGE_NAMES",
]

DEFAULT_MERGE = "stdout-first"

# 支持的合并策略名（与 runtime.merge.MERGE_POLICIES 的键一致）
MERGE_NAMES = frozenset({"stdout-first", "arrival"})


class PathMode(Enum):
    """可执行文件路径策略。

    - UNIQUE: 每进程独立路径，避免跨进程写入竞争
    - FIXED: 固定文件名，重复落盘覆盖同一路径
    """

    UNIQUE = "unique"
    FIXED = "fixed"

    @classmethod
    def from_string(cls, value: str) -> "PathMode":
        """从字符串解析模式，无效值返回 UNIQUE。"""
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.UNIQUE


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_path(value: str | None) -> Path | None:
    if not value or not value.strip():
        return None
    return Path(value.strip()).expanduser()


def _parse_merge(value: str | None) -> str:
    """解析合并策略，未知值回退到默认。"""
    if not value:
        return DEFAULT_MERGE
    name = value.strip().lower()
    return name if name in MERGE_NAMES else DEFAULT_MERGE


def _parse_encoding(value: str | None) -> str:
    """解析编码名，无法识别或不能按行切分（如 utf-16）时回退到 utf-8。"""
    if not value or not value.strip():
        return "utf-8"
    try:
        name = codecs.lookup(value.strip()).name
    except LookupError:
        return "utf-8"
    return name if is_line_safe_encoding(name) else "utf-8"


@dataclass
class Config:
    """p4-cli 配置。

    Attributes:
        path_mode: 可执行文件路径策略
        temp_dir: 可执行文件所在目录
        payload_dir: 压缩包目录（None = 包内资源）
        merge: 默认的 stdout/stderr 合并策略名
        encoding: 输出流文本编码
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    path_mode: PathMode = PathMode.UNIQUE
    temp_dir: Path | None = None
    payload_dir: Path | None = None
    merge: str = DEFAULT_MERGE
    encoding: str = "utf-8"
    log_debug: bool = False
    log_file: str | None = None

    @property
    def resolved_temp_dir(self) -> Path:
        """实际使用的临时目录。"""
        return self.temp_dir if self.temp_dir is not None else Path(tempfile.gettempdir())

    def __repr__(self) -> str:
        return (
            f"Config(path_mode={self.path_mode.value}, "
            f"temp_dir={self.resolved_temp_dir}, "
            f"payload_dir={self.payload_dir or 'package'}, "
            f"merge={self.merge}, "
            f"encoding={self.encoding}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "p4-cli"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"p4cli_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("P4CLI_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        path_mode=PathMode.from_string(os.environ.get("P4CLI_PATH_MODE", "")),
        temp_dir=_parse_path(os.environ.get("P4CLI_TEMP_DIR")),
        payload_dir=_parse_path(os.environ.get("P4CLI_PAYLOAD_DIR")),
        merge=_parse_merge(os.environ.get("P4CLI_MERGE")),
        encoding=_parse_encoding(os.environ.get("P4CLI_ENCODING")),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
