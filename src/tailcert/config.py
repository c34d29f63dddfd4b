"""
配置加载：入参 > 环境变量 > .env > JSON 配置文件（CONFIG_FILE 指定，默认工作目录下的 config.json）> secrets。
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Annotated, Any, List, Tuple

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Config(BaseSettings):
    # Tailscale 客户端
    tailscale_bin: str = "tailscale"
    tailscale_install_url: str = "https://tailscale.com/install.sh"
    apt_packages: Annotated[List[str], NoDecode] = ["curl", "jq"]
    connect_timeout_seconds: float = 300
    connect_poll_interval_seconds: float = 5
    cert_work_dir: str = "/var/lib/tailcert"

    # Proxmox VE / Proxmox Backup Server 证书位置
    pve_cert_dir: str = "/etc/pve/nodes/{node}"
    pve_cert_name: str = "pveproxy-ssl.pem"
    pve_key_name: str = "pveproxy-ssl.key"
    pbs_cert_dir: str = "/etc/proxmox-backup"
    pbs_cert_name: str = "proxy-cert.pem"
    pbs_key_name: str = "proxy-key.pem"
    backup_secondary_target: bool = True

    # 系统类型探测与服务
    pve_marker: str = "/etc/pve/pve.cfg"
    pbs_marker: str = "/etc/proxmox-backup/proxmox-backup.cfg"
    pve_service: str = "pveproxy.service"
    pbs_service: str = "proxmox-backup-proxy.service"
    pve_port: int = 8006
    pbs_port: int = 8007

    # 自动续期
    renew_script_path: str = "/usr/local/bin/renew_tailscale_cert.sh"
    renewal_config_path: str = "/etc/tailcert/renewal.json"
    renew_schedule: str = "0 0 1 * *"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("apt_packages", mode="before")
    @classmethod
    def parse_packages(cls, value: Any) -> Any:
        """环境变量中可写成 JSON 列表，也可写成 "curl jq" / "curl,jq"。"""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [p for p in re.split(r"[\s,;]+", text) if p]

    def pve_dir_for(self, node_name: str) -> Path:
        """展开 pve_cert_dir 中的 {node} 占位符。"""
        return Path(self.pve_cert_dir.format(node=node_name))

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        cfg_path = os.environ.get("CONFIG_FILE")
        json_file = Path(cfg_path) if cfg_path else Path.cwd() / "config.json"
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=json_file),
            file_secret_settings,
        )


config = Config()
