"""p4-cli - 内嵌 Perforce 命令行客户端。

按平台解压内嵌的 p4 可执行文件，并将其 stdout/stderr 以带标签的行序列返回。

环境变量:
    P4CLI_PATH_MODE: 可执行文件路径策略 (unique/fixed，默认 unique)
    P4CLI_MERGE: 输出合并策略 (stdout-first/arrival，默认 stdout-first)
    P4CLI_LOG_DEBUG: 日志调试模式 (默认 false)

用法:
    from p4_cli import P4Cli

    p4 = P4Cli()
    for record in p4.run(["--help"]):
        print(record)
"""

__version__ = "0.1.0"

from .client import P4Cli, ToolHandle
from .config import Config, PathMode, get_config, load_config, reload_config
from .errors import (
    P4CliError,
    PayloadNotFoundError,
    ProvisioningError,
    SpawnError,
    StreamDecodeError,
    UnsupportedPlatformError,
)
from .log import setup_logging
from .runtime import (
    AsyncInvocation,
    CompletedRun,
    Invocation,
    InvocationState,
    LineRecord,
    StderrLine,
    StdoutLine,
    Stream,
)

__all__ = [
    "__version__",
    "AsyncInvocation",
    "CompletedRun",
    "Config",
    "Invocation",
    "InvocationState",
    "LineRecord",
    "P4Cli",
    "P4CliError",
    "PathMode",
    "PayloadNotFoundError",
    "ProvisioningError",
    "SpawnError",
    "StderrLine",
    "StdoutLine",
    "Stream",
    "StreamDecodeError",
    "ToolHandle",
    "UnsupportedPlatformError",
    "get_config",
    "load_config",
    "reload_config",
    "setup_logging",
]
