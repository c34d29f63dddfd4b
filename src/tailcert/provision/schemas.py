"""
文件功能：
    定义证书部署与续期流程的数据模型（Pydantic）。

公开接口：
    - SystemType: 宿主机类型（PVE / PBS / UNKNOWN）
    - NodeIdentity: 申请证书所用的节点身份
    - CertificateMaterial: tailscale cert 产出的证书与私钥文件
    - InstallTarget: 消费证书的服务的证书/私钥路径
    - InstallReport: 一次安装的结果摘要
    - ProvisionContext: 身份解析完成后构造的不可变上下文
    - RenewalJob: 持久化的续期任务描述
    - StageResult / WorkflowOutcome: 阶段执行结果

内部方法：
    无
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind


class SystemType(str, Enum):
    PVE = "PVE"
    PBS = "PBS"
    UNKNOWN = "UNKNOWN"


class NodeIdentity(BaseModel):
    """节点身份；创建后不可变，续期任务原样复用 fqdn。"""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="操作员输入的短主机名")
    domain_suffix: str = Field(description="MagicDNS 域名后缀，如 example.ts.net")
    fqdn: str = Field(description="label.domain_suffix，已去除末尾的点")


class CertificateMaterial(BaseModel):
    model_config = ConfigDict(frozen=True)

    fqdn: str
    cert_path: Path = Field(description="{fqdn}.crt")
    key_path: Path = Field(description="{fqdn}.key")

    @property
    def cert_bytes(self) -> bytes:
        return self.cert_path.read_bytes()

    @property
    def key_bytes(self) -> bytes:
        return self.key_path.read_bytes()


class InstallTarget(BaseModel):
    """一个 TLS 终结服务的证书安装位置。"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="目标名称，仅用于日志")
    cert_path: Path
    key_path: Path
    backup: bool = Field(default=True, description="覆盖前是否备份现有文件")


class InstallReport(BaseModel):
    system_type: SystemType = SystemType.UNKNOWN
    backups: list[Path] = Field(default_factory=list, description="本次生成的备份文件")
    installed: list[str] = Field(default_factory=list, description="已写入的目标名称")
    restarted: list[str] = Field(default_factory=list, description="已成功重启的服务")


class ProvisionContext(BaseModel):
    """身份解析完成后构造一次，之后各阶段只读使用。"""

    model_config = ConfigDict(frozen=True)

    identity: NodeIdentity
    node_name: str = Field(description="宿主机主机名，用于展开 PVE 证书目录")
    work_dir: Path = Field(description="tailscale cert 的工作目录")
    primary: InstallTarget
    secondary: InstallTarget | None = None


class RenewalJob(BaseModel):
    """续期任务：在生成时写死 fqdn 与安装路径，续期时不再重新解析。"""

    fqdn: str
    work_dir: Path
    targets: list[InstallTarget] = Field(description="按顺序安装的目标")
    system_type: SystemType = SystemType.UNKNOWN
    restart_services: list[str] = Field(default_factory=list)
    schedule: str = Field(description="cron 表达式")
    script_path: Path = Field(description="cron 调用的启动脚本")


class StageResult(BaseModel):
    stage: str
    ok: bool
    kind: ErrorKind | None = None
    message: str = ""


class WorkflowOutcome(BaseModel):
    stages: list[StageResult] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.stages)

    @property
    def failed_stage(self) -> StageResult | None:
        return next((s for s in self.stages if not s.ok), None)
