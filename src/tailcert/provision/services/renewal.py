"""
无人值守的证书续期：读取续期任务，重新执行“申请 -> 安装 -> 重启”。

不解析身份、不等待连通性、不进行任何交互。
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from ..errors import SchedulingError
from ..schemas import CertificateMaterial, InstallReport, RenewalJob
from .installation import install_certificate, restart_services
from .scheduling import load_job


def read_job(path: Path) -> RenewalJob:
    try:
        return load_job(path)
    except (OSError, ValidationError) as e:
        raise SchedulingError(f"无法读取续期任务 {path}：{e}")


def install_job(job: RenewalJob, material: CertificateMaterial) -> InstallReport:
    """按任务中写死的目标安装证书，并重启生成时记录的服务。"""
    report = install_certificate(material, job.targets)
    report.system_type = job.system_type
    report.restarted = restart_services(job.restart_services)
    return report
