"""
证书部署流程的错误分类。

每个阶段只抛出 WorkflowError 的子类，流程控制器据 kind 记录失败阶段并立即终止。
不在此分类中的告警类情况（备份源缺失、服务未运行、重启失败、未知系统类型）只记日志。
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PRIVILEGE = "privilege"
    DEPENDENCY = "dependency"
    CONNECTIVITY = "connectivity"
    ACQUISITION = "acquisition"
    VERIFICATION = "verification"
    INSTALL = "install"
    SCHEDULING = "scheduling"


class WorkflowError(RuntimeError):
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PrivilegeError(WorkflowError):
    kind = ErrorKind.PRIVILEGE


class DependencyError(WorkflowError):
    kind = ErrorKind.DEPENDENCY


class ConnectivityError(WorkflowError):
    """tailscale up 失败或等待上线超时。"""

    kind = ErrorKind.CONNECTIVITY


class AcquisitionError(WorkflowError):
    kind = ErrorKind.ACQUISITION


class VerificationError(WorkflowError):
    """外部命令报告成功，但预期产物不存在。"""

    kind = ErrorKind.VERIFICATION


class InstallError(WorkflowError):
    kind = ErrorKind.INSTALL

    def __init__(self, part: str, message: str):
        super().__init__(message)
        self.part = part


class SchedulingError(WorkflowError):
    kind = ErrorKind.SCHEDULING
