"""
证书申请：调用 tailscale cert 在工作目录下生成 {fqdn}.crt / {fqdn}.key。

命令失败与“命令成功但文件缺失”是两类不同的错误，均立即终止流程；本层不重试。
"""

from __future__ import annotations

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from loguru import logger

from ...host import tailscale
from ..errors import AcquisitionError, VerificationError
from ..schemas import CertificateMaterial


def material_paths(fqdn: str, work_dir: Path) -> CertificateMaterial:
    return CertificateMaterial(
        fqdn=fqdn,
        cert_path=work_dir / f"{fqdn}.crt",
        key_path=work_dir / f"{fqdn}.key",
    )


def _log_certificate_info(cert_path: Path) -> None:
    """打印新证书的主题、签发者、有效期与指纹。"""
    try:
        cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
        logger.info(
            f"证书信息: subject={cert.subject.rfc4514_string()}, "
            f"issuer={cert.issuer.rfc4514_string()}, "
            f"not_before={cert.not_valid_before_utc}, not_after={cert.not_valid_after_utc}, "
            f"sha256={cert.fingerprint(hashes.SHA256()).hex()}"
        )
    except (OSError, ValueError) as e:
        logger.debug(f"解析证书信息失败：{e}")


def acquire(fqdn: str, work_dir: Path) -> CertificateMaterial:
    """
    为 fqdn 申请证书。
    :raises AcquisitionError: tailscale cert 报告失败。
    :raises VerificationError: 报告成功但证书或私钥文件不存在。
    """
    material = material_paths(fqdn, work_dir)
    logger.info(f"正在为 {fqdn} 申请 TLS 证书...")
    try:
        work_dir.mkdir(parents=True, exist_ok=True)
        # 清掉上一次的产物，确保存在性检查只认本次生成的文件
        material.cert_path.unlink(missing_ok=True)
        material.key_path.unlink(missing_ok=True)
        tailscale.cert(fqdn, work_dir)
    except (RuntimeError, OSError) as e:
        raise AcquisitionError(f"获取 TLS 证书失败：{e}。请检查 Tailscale 配置后重试。")

    if not material.cert_path.is_file() or not material.key_path.is_file():
        raise VerificationError("未找到证书文件，请确认证书是否已成功获取。")

    _log_certificate_info(material.cert_path)
    return material
