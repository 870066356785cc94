# -*- coding: utf-8 -*-
"""
Istio代理同步状态API
"""

from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.core.error_handler import create_error_handler
from .proxy import (
    ProxyInfo,
    get_ids_from_proxy_info,
    get_proxy_info,
    get_sync_status,
)
from .proxy.sync_status import XDS_TYPES, SyncStatus


class ProxyStatusRequest(BaseModel):
    """代理状态请求模型"""

    namespace: Optional[str] = Field(
        None, description="istiod所在命名空间，默认取配置值"
    )
    timeout: Optional[float] = Field(
        None, gt=0, description="查询超时（秒），默认取配置值"
    )


class ProxyInfoList(BaseModel):
    """代理信息列表"""

    namespace: str = Field(..., description="命名空间")
    proxy_count: int = Field(0, description="代理数量")
    proxies: List[ProxyInfo] = Field(default_factory=list, description="代理列表")


class ProxyIDList(BaseModel):
    """代理ID列表"""

    namespace: str = Field(..., description="命名空间")
    ids: List[str] = Field(default_factory=list, description="代理ID列表")


class ProxySyncRow(BaseModel):
    """代理同步状态行"""

    proxy: str = Field(..., description="代理ID")
    cluster_id: str = Field("", description="所属集群")
    type: str = Field("", description="代理类型")
    istio_version: str = Field("", description="代理Istio版本")
    xds: Dict[str, str] = Field(default_factory=dict, description="各xDS类型同步状态")


class ProxySyncList(BaseModel):
    """代理同步状态列表"""

    namespace: str = Field(..., description="命名空间")
    proxy_count: int = Field(0, description="代理数量")
    rows: List[ProxySyncRow] = Field(default_factory=list, description="同步状态行")


class ProxyInfoListResponse(BaseModel):
    code: int = Field(..., description="响应码")
    message: Optional[str] = Field(None, description="响应消息")
    data: Optional[ProxyInfoList] = Field(None, description="代理信息")


class ProxyIDListResponse(BaseModel):
    code: int = Field(..., description="响应码")
    message: Optional[str] = Field(None, description="响应消息")
    data: Optional[ProxyIDList] = Field(None, description="代理ID")


class ProxySyncListResponse(BaseModel):
    code: int = Field(..., description="响应码")
    message: Optional[str] = Field(None, description="响应消息")
    data: Optional[ProxySyncList] = Field(None, description="同步状态")


def build_sync_row(status: SyncStatus) -> ProxySyncRow:
    """将同步状态转换为展示行"""
    return ProxySyncRow(
        proxy=status.proxy_id,
        cluster_id=status.cluster_id,
        type=status.proxy_type,
        istio_version=status.istio_version,
        xds={name: status.xds_status(xds_type) for xds_type, name in XDS_TYPES.items()},
    )


def create_instant_proxy_status_router(instant_mode_instance) -> APIRouter:
    """创建Instant模式的代理状态API路由"""
    router = APIRouter(prefix="/istio/proxy-status", tags=["Istio Proxy Status"])
    error_handler = create_error_handler(instant_mode_instance.logger)
    istio_config = instant_mode_instance.settings.istio

    def resolve(request: ProxyStatusRequest):
        namespace = request.namespace or istio_config.namespace
        timeout = request.timeout or istio_config.request_timeout
        if instant_mode_instance.discovery_client is None:
            raise error_handler.handle_validation_error(
                "控制面客户端未初始化", namespace=namespace
            )
        return instant_mode_instance.discovery_client, namespace, timeout

    @router.post("/list", response_model=ProxyInfoListResponse)
    async def list_proxies(request: ProxyStatusRequest):
        """列出所有代理及其版本"""
        client, namespace, timeout = resolve(request)
        try:
            infos = await get_proxy_info(client, namespace, timeout)
        except Exception as e:
            raise error_handler.handle_exception(e, namespace=namespace, operation="list")

        return {
            "code": 200,
            "data": ProxyInfoList(
                namespace=namespace, proxy_count=len(infos), proxies=infos
            ),
        }

    @router.post("/ids", response_model=ProxyIDListResponse)
    async def list_proxy_ids(request: ProxyStatusRequest):
        """列出所有代理ID"""
        client, namespace, timeout = resolve(request)
        try:
            ids = await get_ids_from_proxy_info(client, namespace, timeout)
        except Exception as e:
            raise error_handler.handle_exception(e, namespace=namespace, operation="ids")

        return {"code": 200, "data": ProxyIDList(namespace=namespace, ids=ids)}

    @router.post("/sync", response_model=ProxySyncListResponse)
    async def list_sync_status(request: ProxyStatusRequest):
        """列出所有代理的xDS同步状态"""
        client, namespace, timeout = resolve(request)
        try:
            statuses = await get_sync_status(client, namespace, timeout)
        except Exception as e:
            raise error_handler.handle_exception(e, namespace=namespace, operation="sync")

        rows = sorted((build_sync_row(s) for s in statuses), key=lambda r: r.proxy)
        return {
            "code": 200,
            "data": ProxySyncList(namespace=namespace, proxy_count=len(rows), rows=rows),
        }

    return router
