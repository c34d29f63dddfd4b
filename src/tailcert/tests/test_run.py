"""
命令行端到端测试：外部协作方（apt、tailscale、systemctl、crontab、终端输入）全部替换为桩。

场景：
 - 标签 prox、检测到 example.ts.net 并确认 -> 申请、备份、覆盖、重启一次、注册续期，退出码 0
 - 申请失败 -> 未发生任何备份/安装，退出码 1
 - 非 root -> 退出码 1，未安装任何依赖
 - 生成的续期任务无需交互、不经过连通性闸门即可重现安装结果
"""

import json
import os
import shutil
from unittest.mock import MagicMock

import pytest

from src.tailcert import run
from src.tailcert.config import config
from src.tailcert.host import system, tailscale
from src.tailcert.host.schemas import TailscaleStatus

FQDN = "prox.example.ts.net"


class Host:
    """记录桩调用情况的假宿主机。"""

    def __init__(self, tmp_path):
        self.root = tmp_path
        self.pve_dir = tmp_path / "etc" / "pve" / "nodes" / "pve1"
        self.script = tmp_path / "usr" / "local" / "bin" / "renew_tailscale_cert.sh"
        self.job = tmp_path / "etc" / "tailcert" / "renewal.json"
        self.issued = b"ISSUED CERT"
        self.restart = MagicMock(return_value=True)
        self.cron = MagicMock()
        self.install_packages = MagicMock()
        self.cert_calls: list[str] = []

    def cert(self, fqdn, cwd):
        self.cert_calls.append(fqdn)
        (cwd / f"{fqdn}.crt").write_bytes(self.issued)
        (cwd / f"{fqdn}.key").write_bytes(self.issued + b" KEY")


@pytest.fixture
def host(tmp_path, monkeypatch):
    h = Host(tmp_path)
    h.pve_dir.mkdir(parents=True)
    (h.pve_dir / "pveproxy-ssl.pem").write_bytes(b"OLD CERT")
    (h.pve_dir / "pveproxy-ssl.key").write_bytes(b"OLD KEY")
    (tmp_path / "etc" / "pve" / "pve.cfg").write_text("")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config, "pve_cert_dir", str(tmp_path / "etc" / "pve" / "nodes" / "{node}"))
    monkeypatch.setattr(config, "pve_marker", str(tmp_path / "etc" / "pve" / "pve.cfg"))
    monkeypatch.setattr(config, "pbs_marker", str(tmp_path / "etc" / "proxmox-backup" / "proxmox-backup.cfg"))
    monkeypatch.setattr(config, "pbs_cert_dir", str(tmp_path / "etc" / "proxmox-backup"))
    monkeypatch.setattr(config, "cert_work_dir", str(tmp_path / "var" / "lib" / "tailcert"))
    monkeypatch.setattr(config, "renew_script_path", str(h.script))
    monkeypatch.setattr(config, "renewal_config_path", str(h.job))

    monkeypatch.setattr(system, "is_root", lambda: True)
    monkeypatch.setattr(system, "install_packages", h.install_packages)
    monkeypatch.setattr(system, "hostname", lambda: "pve1")
    monkeypatch.setattr(system, "is_active", lambda service: True)
    monkeypatch.setattr(system, "restart", h.restart)
    monkeypatch.setattr(system, "append_cron_entry", h.cron)

    monkeypatch.setattr(tailscale, "is_installed", lambda: True)
    monkeypatch.setattr(tailscale, "up", MagicMock())
    monkeypatch.setattr(tailscale, "status", lambda: TailscaleStatus(online=True, dns_name=f"{FQDN}."))
    monkeypatch.setattr(tailscale, "cert", h.cert)

    # 主机名、认证后回车、确认域名
    answers = iter(["prox", "", "y"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    return h


def _backups(directory):
    return sorted(p.name for p in directory.glob("*.backup.*"))


def test_provision_end_to_end(host):
    assert run.main([]) == 0

    assert host.cert_calls == [FQDN]
    assert (host.pve_dir / "pveproxy-ssl.pem").read_bytes() == b"ISSUED CERT"
    assert (host.pve_dir / "pveproxy-ssl.key").read_bytes() == b"ISSUED CERT KEY"

    backups = _backups(host.pve_dir)
    assert len(backups) == 2
    cert_backup = next(p for p in host.pve_dir.glob("pveproxy-ssl.pem.backup.*"))
    assert cert_backup.read_bytes() == b"OLD CERT"

    host.restart.assert_called_once_with("pveproxy.service")

    assert host.script.is_file()
    assert os.access(host.script, os.X_OK)
    host.cron.assert_called_once_with(f"0 0 1 * * {host.script}")
    job = json.loads(host.job.read_text(encoding="utf-8"))
    assert job["fqdn"] == FQDN
    assert job["system_type"] == "PVE"


def test_provision_issuance_failure(host, monkeypatch):
    def failing_cert(fqdn, cwd):
        raise RuntimeError("tailscale cert 失败，退出码 1")

    monkeypatch.setattr(tailscale, "cert", failing_cert)
    assert run.main([]) == 1

    assert _backups(host.pve_dir) == []
    assert (host.pve_dir / "pveproxy-ssl.pem").read_bytes() == b"OLD CERT"
    assert (host.pve_dir / "pveproxy-ssl.key").read_bytes() == b"OLD KEY"
    host.restart.assert_not_called()
    host.cron.assert_not_called()
    assert not host.script.exists()


def test_provision_requires_root(host, monkeypatch):
    monkeypatch.setattr(system, "is_root", lambda: False)
    assert run.main([]) == 1
    host.install_packages.assert_not_called()


def test_provision_cert_copy_failure_stops_before_restart(host, monkeypatch):
    monkeypatch.setattr(config, "pve_cert_dir", str(host.root / "missing" / "{node}"))
    assert run.main([]) == 1
    host.restart.assert_not_called()
    host.cron.assert_not_called()


def test_renewal_reproduces_install_without_prompts(host, monkeypatch):
    assert run.main([]) == 0
    host.restart.reset_mock()

    def no_prompt(prompt=""):
        raise AssertionError("续期时不应有交互")

    def no_status():
        raise AssertionError("续期时不应等待连通性")

    monkeypatch.setattr("builtins.input", no_prompt)
    monkeypatch.setattr(tailscale, "status", no_status)
    host.issued = b"RENEWED CERT"

    assert run.main(["renew", "--config", str(host.job)]) == 0

    assert host.cert_calls == [FQDN, FQDN]
    assert (host.pve_dir / "pveproxy-ssl.pem").read_bytes() == b"RENEWED CERT"
    assert (host.pve_dir / "pveproxy-ssl.key").read_bytes() == b"RENEWED CERT KEY"
    assert len(_backups(host.pve_dir)) == 4
    host.restart.assert_called_once_with("pveproxy.service")


def test_renewal_missing_job(host):
    assert run.main(["renew", "--config", str(host.root / "nope.json")]) == 1


def test_pbs_host_installs_secondary_target(host, monkeypatch):
    (host.root / "etc" / "pve" / "pve.cfg").unlink()
    pbs_dir = host.root / "etc" / "proxmox-backup"
    pbs_dir.mkdir(parents=True)
    (pbs_dir / "proxmox-backup.cfg").write_text("")
    (pbs_dir / "proxy-cert.pem").write_bytes(b"OLD PBS CERT")

    assert run.main([]) == 0

    assert (pbs_dir / "proxy-cert.pem").read_bytes() == b"ISSUED CERT"
    assert (pbs_dir / "proxy-key.pem").read_bytes() == b"ISSUED CERT KEY"
    assert next(pbs_dir.glob("proxy-cert.pem.backup.*")).read_bytes() == b"OLD PBS CERT"
    host.restart.assert_called_once_with("proxmox-backup-proxy.service")


def test_pbs_only_host_without_pve_directory(host, monkeypatch):
    shutil.rmtree(host.root / "etc" / "pve")
    pbs_dir = host.root / "etc" / "proxmox-backup"
    pbs_dir.mkdir(parents=True)
    (pbs_dir / "proxmox-backup.cfg").write_text("")

    assert run.main([]) == 0

    assert (pbs_dir / "proxy-cert.pem").read_bytes() == b"ISSUED CERT"
    assert not host.pve_dir.exists()
    job = json.loads(host.job.read_text())
    assert [t["name"] for t in job["targets"]] == ["proxmox-backup-proxy"]

    host.issued = b"RENEWED CERT"
    assert run.main(["renew", "--config", str(host.job)]) == 0
    assert (pbs_dir / "proxy-cert.pem").read_bytes() == b"RENEWED CERT"
    assert not host.pve_dir.exists()
