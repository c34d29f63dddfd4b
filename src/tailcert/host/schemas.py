"""
文件功能：
    定义宿主机外部协作方（Tailscale 客户端）返回的数据模型（Pydantic）。

公开接口：
    - TailscaleStatus: `tailscale status --json` 中本节点（Self）的关键字段
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TailscaleStatus(BaseModel):
    """本节点在 Tailscale 网络中的状态。"""

    online: bool = Field(default=False, description="Self.Online 是否为 true")
    dns_name: str | None = Field(default=None, description="Self.DNSName（MagicDNS 分配的完整域名，通常以 . 结尾）")

    @classmethod
    def from_status_json(cls, data: Any) -> "TailscaleStatus":
        """从 status --json 的解析结果中提取 Self 字段；结构异常时视为离线。"""
        if not isinstance(data, dict):
            return cls()
        me = data.get("Self")
        if not isinstance(me, dict):
            return cls()
        dns_name = me.get("DNSName")
        return cls(
            online=me.get("Online") is True,
            dns_name=dns_name if isinstance(dns_name, str) else None,
        )
