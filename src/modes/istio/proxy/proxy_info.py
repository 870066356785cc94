# -*- coding: utf-8 -*-
"""
代理信息聚合
汇总所有istiod副本的同步状态，按代理ID去重后投影为ProxyInfo或ID列表
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.core.discovery_client import DiscoveryTransport
from src.core.error_handler import ProxyInfoError, QueryCancelledError
from src.core.logger import get_logger
from .sync_status import SyncStatus, decode_sync_status

SYNCZ_PATH = "debug/syncz"

logger = get_logger("proxy_info")


class ProxyInfo(BaseModel):
    """对外输出的代理信息"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="代理ID")
    type: str = Field("", description="代理类型")
    istio_version: str = Field("", description="代理Istio版本")


def aggregate_sync_status(responses: Dict[str, bytes]) -> List[SyncStatus]:
    """
    合并所有副本的同步状态

    副本按标识排序后依次解析，同一代理ID以最先出现的记录为准。

    Raises:
        DecodeError: 任一副本响应无法解析
    """
    seen: Dict[str, SyncStatus] = {}
    for replica in sorted(responses):
        for status in decode_sync_status(replica, responses[replica]):
            if status.proxy_id in seen:
                logger.debug(
                    "[状态聚合][%s]忽略重复代理: %s", replica, status.proxy_id
                )
                continue
            seen[status.proxy_id] = status

    return list(seen.values())


def to_proxy_info(statuses: List[SyncStatus]) -> List[ProxyInfo]:
    """同步状态 -> ProxyInfo"""
    return [
        ProxyInfo(id=s.proxy_id, type=s.proxy_type, istio_version=s.istio_version)
        for s in statuses
    ]


def to_ids(infos: List[ProxyInfo]) -> List[str]:
    return [info.id for info in infos]


async def _fetch_sync_status(
    client: DiscoveryTransport, namespace: str
) -> List[SyncStatus]:
    responses = await client.all_discovery_do(namespace, SYNCZ_PATH)
    return aggregate_sync_status(responses)


async def get_sync_status(
    client: DiscoveryTransport, namespace: str, timeout: Optional[float] = None
) -> List[SyncStatus]:
    """
    获取去重后的全部代理同步状态

    Args:
        client: 控制面扇出客户端
        namespace: istiod所在命名空间
        timeout: 查询超时（秒），None表示不限制

    Returns:
        List[SyncStatus]: 去重后的同步状态

    Raises:
        TransportError: 扇出请求失败，原样抛出
        DecodeError: 任一副本响应无法解析
        QueryCancelledError: 查询超时
    """
    start_time = datetime.now()
    logger.info("[代理状态][%s]开始查询代理同步状态", namespace)

    try:
        statuses = await asyncio.wait_for(
            _fetch_sync_status(client, namespace), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.error("[代理状态][%s]查询超时 (%s秒)", namespace, timeout)
        raise QueryCancelledError(
            f"proxy status query in {namespace} timed out after {timeout}s"
        ) from e

    processing_time = (datetime.now() - start_time).total_seconds()
    logger.info(
        "[代理状态][%s]查询完成 - 代理数=%d, 处理时间=%.2fs",
        namespace,
        len(statuses),
        processing_time,
    )
    return statuses


async def get_proxy_info(
    client: DiscoveryTransport, namespace: str, timeout: Optional[float] = None
) -> List[ProxyInfo]:
    """获取所有代理的ID、类型与版本，错误原样抛出"""
    statuses = await get_sync_status(client, namespace, timeout)
    return to_proxy_info(statuses)


async def get_ids_from_proxy_info(
    client: DiscoveryTransport, namespace: str, timeout: Optional[float] = None
) -> List[str]:
    """
    获取所有代理ID

    Raises:
        ProxyInfoError: 底层查询失败，消息为 "failed to get proxy infos: <原始错误>"
    """
    try:
        infos = await get_proxy_info(client, namespace, timeout)
    except Exception as e:
        raise ProxyInfoError(f"failed to get proxy infos: {e}") from e
    return to_ids(infos)
