"""
证书安装服务。

对每个安装目标：先尽力备份现有证书/私钥（带秒级时间戳后缀），再依次覆盖证书与私钥。
证书复制失败时不会尝试复制私钥，也不会重启任何服务，避免服务加载只更新了一半的证书对。
"""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable

from loguru import logger

from ...config import config
from ...host import system
from ..errors import InstallError
from ..schemas import CertificateMaterial, InstallReport, InstallTarget, SystemType

BACKUP_TIME_FORMAT = "%Y-%m-%d_%H:%M:%S"


def primary_target(node_name: str) -> InstallTarget:
    """PVE Web 代理（pveproxy）使用的证书位置。"""
    cert_dir = config.pve_dir_for(node_name)
    return InstallTarget(
        name="pveproxy",
        cert_path=cert_dir / config.pve_cert_name,
        key_path=cert_dir / config.pve_key_name,
    )


def secondary_target() -> InstallTarget:
    """PBS 代理使用的证书位置。"""
    cert_dir = Path(config.pbs_cert_dir)
    return InstallTarget(
        name="proxmox-backup-proxy",
        cert_path=cert_dir / config.pbs_cert_name,
        key_path=cert_dir / config.pbs_key_name,
        backup=config.backup_secondary_target,
    )


def detect_system_type() -> SystemType:
    """按标记文件顺序探测：先 PVE 后 PBS，均不存在时为 UNKNOWN（非致命）。"""
    if Path(config.pve_marker).is_file():
        logger.info("检测到 Proxmox VE 系统。")
        return SystemType.PVE
    if Path(config.pbs_marker).is_file():
        logger.info("检测到 Proxmox Backup Server 系统。")
        return SystemType.PBS
    logger.warning("警告：当前系统看起来不是 Proxmox VE 或 Proxmox Backup Server。")
    logger.warning("流程将继续，但部分 Proxmox 相关操作可能失败。")
    return SystemType.UNKNOWN


def targets_for(
    system_type: SystemType,
    primary: InstallTarget,
    secondary: InstallTarget | None,
) -> list[InstallTarget]:
    """
    按系统类型选择安装目标：PBS 时追加次目标；
    仅运行 PBS 的主机上不存在 PVE 证书目录，此时跳过主目标。
    """
    if system_type is not SystemType.PBS or secondary is None:
        return [primary]
    if not primary.cert_path.parent.is_dir():
        logger.info(f"未找到 {primary.cert_path.parent}，跳过 {primary.name} 证书安装。")
        return [secondary]
    return [primary, secondary]


def services_for(system_type: SystemType) -> list[str]:
    if system_type is SystemType.PVE:
        return [config.pve_service]
    if system_type is SystemType.PBS:
        return [config.pbs_service]
    return []


def _backup_path(path: Path, stamp: str) -> Path:
    dest = path.with_name(f"{path.name}.backup.{stamp}")
    n = 1
    while dest.exists():
        dest = path.with_name(f"{path.name}.backup.{stamp}.{n}")
        n += 1
    return dest


def backup_file(path: Path, stamp: str) -> Path | None:
    """备份单个文件；文件不存在（首次运行）或复制失败只记警告。"""
    if not path.is_file():
        logger.warning(f"警告：未找到 {path}，跳过备份。")
        return None
    dest = _backup_path(path, stamp)
    try:
        shutil.copy2(path, dest)
    except OSError as e:
        logger.warning(f"警告：备份 {path} 失败：{e}")
        return None
    logger.info(f"已备份 {path} -> {dest.name}")
    return dest


def install_target(material: CertificateMaterial, target: InstallTarget) -> None:
    """
    先证书后私钥地覆盖目标文件。
    :raises InstallError: part="cert" 或 part="key"，指示是哪一步失败。
    """
    try:
        shutil.copyfile(material.cert_path, target.cert_path)
    except OSError as e:
        raise InstallError("cert", f"错误：复制证书到 {target.cert_path} 失败：{e}。请检查权限与文件是否存在。")
    try:
        shutil.copyfile(material.key_path, target.key_path)
    except OSError as e:
        raise InstallError("key", f"错误：复制私钥到 {target.key_path} 失败：{e}。请检查权限与文件是否存在。")
    logger.info(f"已安装证书到 {target.name}：{target.cert_path}")


def install_certificate(
    material: CertificateMaterial,
    targets: Iterable[InstallTarget],
    now: datetime | None = None,
) -> InstallReport:
    """依次对每个目标执行“备份 -> 安装”，任一步安装失败立即抛出。"""
    stamp = (now or datetime.now()).strftime(BACKUP_TIME_FORMAT)
    report = InstallReport()
    for target in targets:
        if target.backup:
            logger.info(f"正在备份 {target.name} 的现有证书...")
            for path in (target.cert_path, target.key_path):
                dest = backup_file(path, stamp)
                if dest is not None:
                    report.backups.append(dest)
        logger.info(f"正在为 {target.name} 安装新的 TLS 证书...")
        install_target(material, target)
        report.installed.append(target.name)
    return report


def restart_service(service: str) -> bool:
    """仅重启存在且处于运行状态的服务；任何失败都降级为警告。"""
    if not system.is_active(service):
        logger.warning(f"警告：{service} 不存在或未运行。")
        return False
    if not system.restart(service):
        logger.warning(f"警告：重启 {service} 失败，可能需要手动重启。")
        return False
    logger.info(f"已成功重启 {service}。")
    return True


def restart_services(services: Iterable[str]) -> list[str]:
    services = list(services)
    if not services:
        logger.info("没有找到需要重启的 Proxmox 服务。")
        logger.info("可能需要手动配置 Web 服务器以使用新证书。")
        return []
    logger.info("正在尝试重启相关服务...")
    return [s for s in services if restart_service(s)]
