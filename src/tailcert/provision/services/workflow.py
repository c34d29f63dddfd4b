"""
“部署与续期”流程控制器。

流程由具名阶段顺序组成：preflight -> bring_up -> wait -> resolve -> acquire -> install -> schedule。
每个阶段要么返回输出，要么抛出带分类的 WorkflowError；控制器记录每个阶段的结果，
在第一个失败处停止，已完成的阶段不回滚。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, TypeVar

from loguru import logger

from ...config import config
from ...host import system, tailscale
from ..errors import DependencyError, PrivilegeError, WorkflowError
from ..schemas import (
    CertificateMaterial,
    InstallReport,
    ProvisionContext,
    StageResult,
    SystemType,
    WorkflowOutcome,
)
from . import acquisition, connectivity, identity, installation, renewal, scheduling

T = TypeVar("T")


class StageRunner:
    """执行单个阶段并记录结果；失败时记录后原样抛出 WorkflowError。"""

    def __init__(self) -> None:
        self.outcome = WorkflowOutcome()

    def __call__(self, stage: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        logger.debug(f"进入阶段：{stage}")
        try:
            result = fn(*args, **kwargs)
        except WorkflowError as e:
            logger.error(e.message)
            self.outcome.stages.append(StageResult(stage=stage, ok=False, kind=e.kind, message=e.message))
            raise
        self.outcome.stages.append(StageResult(stage=stage, ok=True))
        return result


def preflight() -> None:
    """root 检查、依赖安装、按需安装 Tailscale。"""
    if not system.is_root():
        raise PrivilegeError("请以 root 身份运行此脚本。")

    logger.info("开始安装 Tailscale 并为 Proxmox 配置 HTTPS。")
    try:
        system.install_packages(config.apt_packages)
    except (RuntimeError, OSError) as e:
        raise DependencyError(f"安装依赖失败：{e}")

    if tailscale.is_installed():
        logger.info("Tailscale 已安装，跳过安装。")
        return
    logger.info("正在安装 Tailscale...")
    try:
        tailscale.install()
    except (RuntimeError, OSError) as e:
        raise DependencyError(f"安装 Tailscale 失败：{e}。请检查网络连接后重试。")


def resolve_context(label: str) -> ProvisionContext:
    """解析身份并一次性构造不可变上下文。"""
    node_identity = identity.resolve_identity(label)
    node_name = system.hostname()
    return ProvisionContext(
        identity=node_identity,
        node_name=node_name,
        work_dir=Path(config.cert_work_dir),
        primary=installation.primary_target(node_name),
        secondary=installation.secondary_target(),
    )


def install(ctx: ProvisionContext, material: CertificateMaterial) -> InstallReport:
    """探测系统类型并据此选择安装目标，依次备份、安装后重启对应服务。"""
    system_type = installation.detect_system_type()
    targets = installation.targets_for(system_type, ctx.primary, ctx.secondary)
    report = installation.install_certificate(material, targets)
    report.system_type = system_type
    report.restarted = installation.restart_services(installation.services_for(system_type))
    return report


def _log_summary(ctx: ProvisionContext, system_type: SystemType) -> None:
    fqdn = ctx.identity.fqdn
    if system_type is SystemType.PVE:
        logger.info(f"配置完成。现在可以通过 https://{fqdn}:{config.pve_port}/ 访问 Proxmox VE。")
    elif system_type is SystemType.PBS:
        logger.info(f"配置完成。现在可以通过 https://{fqdn}:{config.pbs_port}/ 访问 Proxmox Backup Server。")
    else:
        logger.info("配置完成。请根据系统配置确认正确的访问地址。")
    logger.info("请确认：")
    logger.info("- 已在 Tailscale 管理后台启用 MagicDNS。")
    logger.info("- 可以从已接入 Tailscale 网络的设备访问上述地址。")


def provision() -> WorkflowOutcome:
    """交互式完成一次证书部署并注册自动续期。"""
    run = StageRunner()
    try:
        run("preflight", preflight)
        label = run("bring_up", identity.bring_up)
        run("wait", connectivity.wait_until_online)
        ctx = run("resolve", resolve_context, label)
        material = run("acquire", acquisition.acquire, ctx.identity.fqdn, ctx.work_dir)
        report = run("install", install, ctx, material)
        run("schedule", scheduling.schedule_renewal, ctx, report.system_type)
    except WorkflowError:
        return run.outcome
    _log_summary(ctx, report.system_type)
    return run.outcome


def renew(job_path: Path) -> WorkflowOutcome:
    """无人值守续期：只执行申请与安装。"""
    run = StageRunner()
    try:
        job = run("load", renewal.read_job, job_path)
        logger.info(f"开始续期 {job.fqdn} 的证书。")
        material = run("acquire", acquisition.acquire, job.fqdn, job.work_dir)
        run("install", renewal.install_job, job, material)
    except WorkflowError:
        return run.outcome
    logger.info("证书续期完成。")
    return run.outcome
