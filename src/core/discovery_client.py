# -*- coding: utf-8 -*-
"""
控制面副本扇出客户端
对所有运行中的istiod副本并发调用内部调试接口，返回每个副本的原始响应
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Protocol, Tuple

import urllib3
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from src.core.error_handler import TransportError
from src.core.logger import get_logger


class DiscoveryTransport(Protocol):
    """控制面扇出能力，测试中可替换为桩实现"""

    async def all_discovery_do(self, namespace: str, path: str) -> Dict[str, bytes]:
        ...


class DiscoveryClient:
    """基于Kubernetes API代理子资源的istiod扇出客户端"""

    def __init__(
        self,
        api_client: client.ApiClient,
        istiod_selector: str = "app=istiod",
        debug_port: int = 15014,
        max_concurrent: int = 10,
        request_timeout: Optional[float] = 30.0,
    ):
        """
        初始化扇出客户端

        Args:
            api_client: Kubernetes API客户端
            istiod_selector: istiod Pod标签选择器
            debug_port: istiod调试端口
            max_concurrent: 最大并发请求数
            request_timeout: 单个副本请求超时（秒）
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent必须为正整数: {max_concurrent}")

        self.api_client = api_client
        self.istiod_selector = istiod_selector
        self.debug_port = debug_port
        self.request_timeout = request_timeout
        self.logger = get_logger("DiscoveryClient")

        self.v1 = client.CoreV1Api(api_client)
        self._executor = ThreadPoolExecutor(max_workers=max_concurrent)

    @classmethod
    def from_settings(cls, api_client: client.ApiClient, istio_config):
        """根据Istio配置创建客户端"""
        return cls(
            api_client,
            istiod_selector=istio_config.istiod_selector,
            debug_port=istio_config.debug_port,
            max_concurrent=istio_config.max_concurrent,
            request_timeout=istio_config.request_timeout,
        )

    def _list_istiod_pods(self, namespace: str) -> List[str]:
        """列出命名空间中运行中的istiod Pod名称"""
        try:
            pod_list = self.v1.list_namespaced_pod(
                namespace=namespace,
                label_selector=self.istiod_selector,
                field_selector="status.phase=Running",
            )
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            raise TransportError(f"failed to list istiod pods in {namespace}: {e}") from e

        return sorted(pod.metadata.name for pod in pod_list.items)

    def _do_request(
        self, namespace: str, pod_name: str, path: str, deadline: Optional[float]
    ) -> bytes:
        """通过API Server代理向单个副本发起GET请求，超时不超过本次扇出的截止时间"""
        request_timeout = None
        if deadline is not None:
            request_timeout = deadline - time.monotonic()
            if request_timeout <= 0:
                raise TransportError(
                    f"deadline exceeded before querying {pod_name}.{namespace} at {path}"
                )

        resource_path = (
            f"/api/v1/namespaces/{namespace}/pods/{pod_name}:{self.debug_port}"
            f"/proxy/{path.lstrip('/')}"
        )
        try:
            response = self.api_client.call_api(
                resource_path,
                "GET",
                auth_settings=["BearerToken"],
                _preload_content=False,
                _return_http_data_only=True,
                _request_timeout=request_timeout,
            )
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            raise TransportError(
                f"failed to query {pod_name}.{namespace} at {path}: {e}"
            ) from e

        return response.data

    async def all_discovery_do(self, namespace: str, path: str) -> Dict[str, bytes]:
        """
        对所有istiod副本执行同一调试请求

        Args:
            namespace: istiod所在命名空间
            path: 调试路径，如 debug/syncz

        Returns:
            Dict[str, bytes]: "<pod>.<namespace>" 到原始响应的映射

        Raises:
            TransportError: 列举副本或任一副本请求失败
        """
        if not namespace:
            raise ValueError("namespace不能为空")

        loop = asyncio.get_running_loop()
        pod_names = await loop.run_in_executor(
            self._executor, self._list_istiod_pods, namespace
        )
        if not pod_names:
            raise TransportError("unable to find any Istiod instances")

        self.logger.info(
            "[副本扇出][%s]开始请求 %d 个istiod副本 - path=%s",
            namespace,
            len(pod_names),
            path,
        )

        # 所有副本共享同一截止时间
        deadline = None
        if self.request_timeout is not None:
            deadline = time.monotonic() + self.request_timeout

        async def fetch(pod_name: str) -> Tuple[str, bytes]:
            body = await loop.run_in_executor(
                self._executor, self._do_request, namespace, pod_name, path, deadline
            )
            return f"{pod_name}.{namespace}", body

        tasks = [asyncio.ensure_future(fetch(name)) for name in pod_names]
        try:
            # 全部完成或首个失败后才继续，结果在汇合后一次性构建
            results = await asyncio.gather(*tasks)
        except BaseException:
            # 失败、超时或取消时撤销尚未开始的副本请求
            for task in tasks:
                task.cancel()
            raise
        return dict(results)

    def close(self):
        """释放线程池"""
        self._executor.shutdown(wait=False)
