#!/usr/bin/env python
"""
命令行入口。

- 无参数（或 provision）：交互式安装 Tailscale、申请证书、安装到 Proxmox 并注册自动续期。
- renew --config PATH：由 cron 调用的无人值守续期。

成功退出码为 0，任何终止性失败退出码为 1。
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from src.tailcert.config import config
from src.tailcert.provision.services import provision, renew

LOG_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss}] {message}"


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tailcert", description="为 Proxmox 配置 Tailscale HTTPS 证书")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("provision", help="交互式部署证书并注册自动续期（默认）")
    renew_parser = sub.add_parser("renew", help="按续期任务无人值守地续期证书")
    renew_parser.add_argument("--config", default=config.renewal_config_path, help="续期任务 JSON 路径")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env")
    _configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    args = _build_parser().parse_args(argv)

    try:
        if args.command == "renew":
            outcome = renew(Path(args.config))
        else:
            outcome = provision()
    except (KeyboardInterrupt, EOFError):
        logger.error("操作已取消。")
        return 1

    if not outcome.ok:
        failed = outcome.failed_stage
        logger.debug(f"失败阶段：{failed.stage if failed else '-'}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
