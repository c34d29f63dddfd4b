"""
Tailscale 客户端 CLI 封装。

负责安装客户端、以指定主机名启动、查询本节点状态以及申请 TLS 证书。
所有失败都以 RuntimeError 抛出，由上层流程转换为带分类的错误。
"""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

import httpx
from loguru import logger

from ..config import config
from .schemas import TailscaleStatus


def _cmd(*args: str) -> list[str]:
    return [config.tailscale_bin, *args]


def is_installed() -> bool:
    """检查 tailscale 命令是否在 PATH 中。"""
    return shutil.which(config.tailscale_bin) is not None


def install() -> None:
    """下载官方安装脚本并交给 sh 执行。"""
    url = config.tailscale_install_url
    logger.info(f"开始下载 Tailscale 安装脚本：{url}")
    try:
        r = httpx.get(url, follow_redirects=True, timeout=60)
        r.raise_for_status()
    except httpx.HTTPError as e:
        raise RuntimeError(f"下载 Tailscale 安装脚本失败：{e}")

    result = subprocess.run(["sh"], input=r.text, text=True, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"Tailscale 安装脚本执行失败，退出码 {result.returncode}")
    logger.info("Tailscale 安装完成")


def up(label: str) -> None:
    """以指定主机名启动 Tailscale；输出直接透传给操作员（包含登录链接）。"""
    cmd = _cmd("up", f"--hostname={label}")
    logger.debug(f"执行命令：{' '.join(cmd)}")
    result = subprocess.run(cmd, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"tailscale up 执行失败，退出码 {result.returncode}")


def status() -> TailscaleStatus:
    """查询本节点的结构化状态。"""
    cmd = _cmd("status", "--json")
    result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise RuntimeError(f"tailscale status 执行失败: {result.stderr.strip()}")
    try:
        data = json.loads(result.stdout)
    except ValueError as e:
        raise RuntimeError(f"无法解析 tailscale status 输出: {e}")
    return TailscaleStatus.from_status_json(data)


def cert(fqdn: str, cwd: Path) -> None:
    """
    在 cwd 下为 fqdn 申请证书，成功时生成 {fqdn}.crt 与 {fqdn}.key。
    :raises RuntimeError: 命令返回非零。
    """
    cmd = _cmd("cert", fqdn)
    logger.debug(f"执行命令：{' '.join(cmd)} (cwd={cwd})")
    result = subprocess.run(cmd, cwd=str(cwd), capture_output=True, text=True, check=False)
    if result.returncode != 0:
        raise RuntimeError(
            f"tailscale cert 失败，退出码 {result.returncode}: {(result.stderr or result.stdout).strip()}"
        )
