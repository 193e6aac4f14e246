"""p4-cli 异常类。

所有致命错误都从 P4CliError 派生，由调用方决定如何处理；
库内部不重试，也不吞掉异常。
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "P4CliError",
    "UnsupportedPlatformError",
    "ProvisioningError",
    "PayloadNotFoundError",
    "SpawnError",
    "StreamDecodeError",
]


class P4CliError(Exception):
    """p4-cli 基础异常。"""
    pass


class UnsupportedPlatformError(P4CliError):
    """当前 (OS, 架构) 没有对应的内嵌二进制。

    Attributes:
        system: 规范化后的操作系统名
        machine: 规范化后的 CPU 架构名
    """

    def __init__(self, system: str, machine: str) -> None:
        self.system = system
        self.machine = machine
        super().__init__(f"Unsupported platform: {system}-{machine}")


class ProvisioningError(P4CliError):
    """解压、写盘、fsync 或 chmod 失败。"""
    pass


class PayloadNotFoundError(ProvisioningError):
    """平台受支持，但找不到对应的压缩包。

    Attributes:
        name: payload 文件名
        location: 查找位置
    """

    def __init__(self, name: str, location: str) -> None:
        self.name = name
        self.location = location
        super().__init__(f"Payload {name} not found in {location}")


class SpawnError(P4CliError):
    """操作系统拒绝启动子进程（文件不存在、无执行权限等）。

    Attributes:
        argv: 启动时使用的命令行
    """

    def __init__(self, argv: Sequence[str], reason: str) -> None:
        self.argv = list(argv)
        super().__init__(f"Failed to spawn {self.argv[0] if self.argv else '<empty>'}: {reason}")


class StreamDecodeError(P4CliError):
    """管道上出现无法解码的字节序列，整个输出序列随之终止。

    Attributes:
        stream: "stdout" 或 "stderr"
        raw: 出错的原始行
    """

    def __init__(self, stream: str, raw: bytes, reason: str) -> None:
        self.stream = stream
        self.raw = raw
        super().__init__(f"Malformed line on {stream}: {reason}")
