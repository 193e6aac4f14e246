"""日志配置。

库本身只通过 logging.getLogger(__name__) 记录调试信息；宿主程序可调用
setup_logging() 获得与 P4CLI_LOG_DEBUG 一致的输出方式。
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config | None = None) -> logging.Handler:
    """配置 p4_cli 命名空间的日志输出。

    - LOG_DEBUG 模式：DEBUG 级别，输出到临时文件
    - 默认模式：INFO 级别，输出到 stderr

    Args:
        config: 配置（默认读取全局配置）

    Returns:
        安装到 p4_cli logger 的 handler
    """
    config = config if config is not None else get_config()

    handler: logging.Handler
    if config.log_debug and config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # 只挂在 p4_cli 命名空间上，不改动宿主程序的 root logger
    package_logger = logging.getLogger("p4_cli")
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)

    return handler
