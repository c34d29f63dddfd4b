"""
证书部署与续期服务集合。

此包按流程阶段拆分：身份解析、连通性闸门、证书申请、安装、续期调度。
"""

from .workflow import provision, renew

__all__ = [
    "provision",
    "renew",
]
