"""
自动续期任务的生成与注册。

续期参数（fqdn、安装路径、需重启的服务）序列化为 JSON 文件，
固定路径下的启动脚本只负责切换到项目根目录并以该 JSON 路径调用 `run renew`，脚本内不嵌入任何身份信息。
注册方式为向 crontab 追加一行；重复运行会产生重复条目。
"""

from __future__ import annotations

import os
import shlex
import sys
from pathlib import Path

from loguru import logger

from ...config import config
from ...host import system
from ..errors import SchedulingError
from ..schemas import ProvisionContext, RenewalJob, SystemType
from .installation import services_for, targets_for


def _get_project_root() -> Path:
    """获取 `src` 包所在的目录（源码检出目录或 site-packages）。"""
    return Path(__file__).resolve().parents[4]


def build_job(ctx: ProvisionContext, system_type: SystemType) -> RenewalJob:
    return RenewalJob(
        fqdn=ctx.identity.fqdn,
        work_dir=ctx.work_dir,
        targets=targets_for(system_type, ctx.primary, ctx.secondary),
        system_type=system_type,
        restart_services=services_for(system_type),
        schedule=config.renew_schedule,
        script_path=Path(config.renew_script_path),
    )


def write_job(job: RenewalJob, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(job.model_dump_json(indent=2), encoding="utf-8")


def load_job(path: Path) -> RenewalJob:
    return RenewalJob.model_validate_json(path.read_text(encoding="utf-8"))


def render_launcher(job_path: Path, project_root: Path | None = None) -> str:
    """cron 在 $HOME 下启动脚本，因此需要显式切换到项目根目录并设置 PYTHONPATH。"""
    root = shlex.quote(str(project_root or _get_project_root()))
    python = shlex.quote(sys.executable)
    return (
        "#!/bin/sh\n"
        "# Tailscale 证书自动续期（由 tailcert 生成）\n"
        f"cd {root} || exit 1\n"
        f"PYTHONPATH={root} exec {python} -m src.tailcert.run renew --config {shlex.quote(str(job_path))}\n"
    )


def write_launcher(script_path: Path, job_path: Path) -> None:
    script_path.parent.mkdir(parents=True, exist_ok=True)
    script_path.write_text(render_launcher(job_path), encoding="utf-8")
    script_path.chmod(0o755)


def cron_entry(job: RenewalJob) -> str:
    return f"{job.schedule} {job.script_path}"


def schedule_renewal(
    ctx: ProvisionContext,
    system_type: SystemType,
    job_path: Path | None = None,
) -> RenewalJob:
    """
    写入续期任务与启动脚本并注册到 cron。
    :raises SchedulingError: 任一文件无法创建、脚本不可执行或 crontab 写入失败。
    """
    job_path = job_path or Path(config.renewal_config_path)
    job = build_job(ctx, system_type)
    logger.info("正在设置证书自动续期。")

    try:
        write_job(job, job_path)
        write_launcher(job.script_path, job_path)
    except OSError as e:
        raise SchedulingError(f"创建续期脚本失败：{e}。请检查系统写入权限。")

    if not job.script_path.is_file() or not os.access(job.script_path, os.X_OK):
        raise SchedulingError("创建续期脚本失败，请检查系统写入权限。")

    try:
        system.append_cron_entry(cron_entry(job))
    except (RuntimeError, OSError) as e:
        raise SchedulingError(f"注册 cron 任务失败：{e}")

    logger.info("已通过 cron 设置证书自动续期。")
    return job
