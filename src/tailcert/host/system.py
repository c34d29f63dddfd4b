"""
宿主机系统操作封装：权限检查、软件包安装、systemd 服务与 crontab。
"""

from __future__ import annotations

import os
import socket
import subprocess
from typing import Iterable

from loguru import logger


def is_root() -> bool:
    return os.geteuid() == 0


def hostname() -> str:
    return socket.gethostname()


def install_packages(packages: Iterable[str]) -> None:
    """apt update 后安装给定软件包；已安装时 apt 本身是幂等的。"""
    packages = list(packages)
    logger.info("正在更新软件包列表...")
    result = subprocess.run(["apt", "update"], check=False)
    if result.returncode != 0:
        raise RuntimeError(f"apt update 失败，退出码 {result.returncode}")
    if not packages:
        return
    logger.info(f"正在安装依赖：{' '.join(packages)}")
    result = subprocess.run(["apt", "install", "-y", *packages], check=False)
    if result.returncode != 0:
        raise RuntimeError(f"apt install 失败，退出码 {result.returncode}")


def is_active(service: str) -> bool:
    """服务存在且处于 active 状态。"""
    try:
        result = subprocess.run(["systemctl", "is-active", "--quiet", service], check=False)
    except FileNotFoundError:
        logger.debug("未找到 systemctl")
        return False
    return result.returncode == 0


def restart(service: str) -> bool:
    try:
        result = subprocess.run(["systemctl", "restart", service], capture_output=True, text=True, check=False)
    except FileNotFoundError:
        return False
    if result.returncode != 0:
        logger.debug(f"systemctl restart {service} 失败: {result.stderr.strip()}")
    return result.returncode == 0


def read_crontab() -> str:
    """读取当前用户的 crontab；用户尚无 crontab 时返回空字符串，其他失败抛出异常以免覆盖现有条目。"""
    try:
        result = subprocess.run(["crontab", "-l"], capture_output=True, text=True, check=False)
    except FileNotFoundError:
        raise RuntimeError("未找到 crontab 命令")
    if result.returncode != 0:
        if "no crontab" in result.stderr.lower():
            return ""
        raise RuntimeError(f"读取 crontab 失败: {result.stderr.strip()}")
    return result.stdout


def append_cron_entry(entry: str) -> None:
    """在现有 crontab 末尾追加一行（不去重）。"""
    current = read_crontab()
    if current and not current.endswith("\n"):
        current += "\n"
    result = subprocess.run(
        ["crontab", "-"],
        input=f"{current}{entry}\n",
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(f"写入 crontab 失败: {result.stderr.strip()}")
