"""
节点身份解析。

流程：操作员输入短主机名 -> tailscale up -> （等待上线后）读取 Self.DNSName，
去掉主机名前缀与末尾的点得到域名后缀，并请操作员确认；检测失败或被否认时改为手动输入。
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from ...host import prompts, tailscale
from ...host.schemas import TailscaleStatus
from ..errors import ConnectivityError
from ..schemas import NodeIdentity

NULL_DOMAIN = "null"
LABEL_PROMPT = "请输入 Proxmox 服务器在 Tailscale 中的主机名（如 prox）: "
DOMAIN_PROMPT = "请输入 Tailscale 域名（如 example.ts.net）: "
CONFIRM_PROMPT = "域名是否正确？(y/n): "
AUTH_PROMPT = "完成认证后按回车继续..."


def normalize_hostname(name: str) -> str:
    """去掉末尾的点；对已无末尾点的字符串不做改动。"""
    return name.rstrip(".")


def is_missing_domain(domain: str | None) -> bool:
    return not domain or domain == NULL_DOMAIN


def extract_domain(dns_name: str | None, label: str) -> str:
    """从 `prox.example.ts.net.` 形式的 DNSName 中取出 `example.ts.net`。"""
    if dns_name is None:
        return ""
    prefix = f"{label}."
    if dns_name.startswith(prefix):
        dns_name = dns_name[len(prefix):]
    return normalize_hostname(dns_name)


def build_identity(label: str, domain_suffix: str) -> NodeIdentity:
    domain_suffix = normalize_hostname(domain_suffix.strip())
    return NodeIdentity(
        label=label,
        domain_suffix=domain_suffix,
        fqdn=normalize_hostname(f"{label}.{domain_suffix}"),
    )


def bring_up(ask: Callable[[str], str] | None = None, pause: Callable[[str], None] | None = None) -> str:
    """
    询问主机名并以该主机名启动 Tailscale，随后等待操作员在浏览器中完成认证。
    :return: 操作员输入的主机名。
    :raises ConnectivityError: tailscale up 失败。
    """
    ask = ask or prompts.ask
    pause = pause or prompts.pause

    label = ask(LABEL_PROMPT)
    logger.info(f"正在以主机名 '{label}' 启动 Tailscale...")
    try:
        tailscale.up(label)
    except (RuntimeError, OSError) as e:
        raise ConnectivityError(f"启动 Tailscale 失败：{e}")

    logger.info("请在 Tailscale 网页中为该 Proxmox 服务器完成认证。")
    pause(AUTH_PROMPT)
    return label


def detect_domain(label: str, status_fn: Callable[[], TailscaleStatus] | None = None) -> str:
    """查询本节点状态并提取域名；查询失败时返回空字符串。"""
    status_fn = status_fn or tailscale.status
    logger.info("正在获取 Tailscale 域名...")
    try:
        st = status_fn()
    except (RuntimeError, OSError) as e:
        logger.warning(f"查询 Tailscale 状态失败：{e}")
        return ""
    return extract_domain(st.dns_name, label)


def _ask_domain(ask: Callable[[str], str]) -> str:
    domain = ""
    while is_missing_domain(domain):
        domain = normalize_hostname(ask(DOMAIN_PROMPT).strip())
    return domain


def resolve_identity(
    label: str,
    status_fn: Callable[[], TailscaleStatus] | None = None,
    ask: Callable[[str], str] | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> NodeIdentity:
    """
    解析节点身份。检测到的域名需操作员确认，否认后直接手动输入，不再重新检测。
    域名为空或为 "null" 时总是要求手动输入，且不接受空输入。
    """
    ask = ask or prompts.ask
    confirm = confirm or prompts.confirm

    domain = detect_domain(label, status_fn)
    if is_missing_domain(domain):
        logger.warning("无法检测到 Tailscale 域名。")
        domain = _ask_domain(ask)
    else:
        logger.info(f"检测到 Tailscale 域名：{domain}")
        if not confirm(CONFIRM_PROMPT):
            domain = _ask_domain(ask)

    identity = build_identity(label, domain)
    logger.info(f"完整主机名：{identity.fqdn}")
    return identity
