# -*- coding: utf-8 -*-
"""
代理同步状态模型与解析
解析istiod debug/syncz 接口返回的JSON数组
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.core.error_handler import DecodeError
from src.core.logger import get_logger

logger = get_logger("sync_status")

# xDS配置类型 -> 展示名称
XDS_TYPES = {
    "cluster": "CDS",
    "listener": "LDS",
    "endpoint": "EDS",
    "route": "RDS",
    "extensionconfig": "ECDS",
}

SYNCED = "SYNCED"
NOT_SENT = "NOT SENT"
STALE = "STALE"
STALE_NEVER_ACKED = "STALE (Never Acknowledged)"


class SyncStatus(BaseModel):
    """单个副本上报的单个代理同步状态"""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    proxy_id: str = Field(..., alias="proxy", description="代理ID")
    proxy_type: str = Field("", description="代理类型，如sidecar、router")
    istio_version: str = Field("", description="代理Istio版本")
    cluster_id: str = Field("", description="所属集群")
    proxy_version: str = Field("", description="代理二进制版本")

    cluster_sent: str = Field("", description="CDS已发送nonce")
    cluster_acked: str = Field("", description="CDS已确认nonce")
    listener_sent: str = Field("", description="LDS已发送nonce")
    listener_acked: str = Field("", description="LDS已确认nonce")
    route_sent: str = Field("", description="RDS已发送nonce")
    route_acked: str = Field("", description="RDS已确认nonce")
    endpoint_sent: str = Field("", description="EDS已发送nonce")
    endpoint_acked: str = Field("", description="EDS已确认nonce")
    extensionconfig_sent: str = Field("", description="ECDS已发送nonce")
    extensionconfig_acked: str = Field("", description="ECDS已确认nonce")

    def xds_status(self, xds_type: str) -> str:
        """
        计算某一xDS类型的同步状态

        Args:
            xds_type: cluster、listener、route、endpoint、extensionconfig之一

        Returns:
            str: SYNCED / NOT SENT / STALE / STALE (Never Acknowledged)
        """
        if xds_type not in XDS_TYPES:
            raise ValueError(f"未知的xDS类型: {xds_type}")

        sent = getattr(self, f"{xds_type}_sent")
        acked = getattr(self, f"{xds_type}_acked")
        if not sent:
            return NOT_SENT
        if sent == acked:
            return SYNCED
        # 从未确认过
        if not acked:
            return STALE_NEVER_ACKED
        return STALE


# istiod 无已连接代理时返回 null
_sync_status_list = TypeAdapter(Optional[List[SyncStatus]])


def decode_sync_status(replica: str, raw: bytes) -> List[SyncStatus]:
    """
    解析单个副本的syncz响应

    Args:
        replica: 副本标识，用于错误上下文
        raw: 原始响应体

    Returns:
        List[SyncStatus]: 按原始顺序排列的同步状态

    Raises:
        DecodeError: 响应不是合法的同步状态数组
    """
    try:
        statuses = _sync_status_list.validate_json(raw)
    except ValidationError as e:
        raise DecodeError(replica, e) from e

    if statuses is None:
        return []

    logger.debug("[状态解析][%s]解析到 %d 条同步状态", replica, len(statuses))
    return statuses
