# -*- coding: utf-8 -*-
"""
即时App模式
直接使用集群内权限，适合作为Pod部署在K8s集群中；本地开发时回退到kubeconfig
"""

from fastapi import FastAPI
from fastapi.openapi.docs import get_swagger_ui_html
import urllib3
import uvicorn
from kubernetes import client, config

from src.core.config import Settings
from src.core.discovery_client import DiscoveryClient
from .base_mode import BaseMode
from .istio.proxy_status_api import create_instant_proxy_status_router


class InstantAppMode(BaseMode):
    """即时App模式实现"""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.app = None
        self.k8s_client = None
        self.discovery_client = None

    def _load_api_client(self) -> client.ApiClient:
        """按配置加载Kubernetes API客户端"""
        k8s = self.settings.k8s

        if k8s.api_server and k8s.token:
            # 使用API Server和Token
            configuration = client.Configuration()
            configuration.host = k8s.api_server
            configuration.api_key = {"authorization": f"Bearer {k8s.token}"}
            configuration.verify_ssl = k8s.verify_ssl
            if not k8s.verify_ssl:
                urllib3.disable_warnings()
            self.logger.info("使用API Server配置: %s", k8s.api_server)
            return client.ApiClient(configuration)

        if k8s.in_cluster:
            try:
                config.load_incluster_config()
                self.logger.info("成功加载集群内Kubernetes配置")
                return client.ApiClient()
            except config.ConfigException as e:
                self.logger.warning("加载集群内配置失败，尝试kubeconfig: %s", e)

        config.load_kube_config(config_file=k8s.kubeconfig_path)
        self.logger.info("使用本地kubeconfig初始化成功")
        return client.ApiClient()

    async def _init_k8s_client(self):
        """初始化Kubernetes客户端与控制面扇出客户端"""
        try:
            self.k8s_client = self._load_api_client()
        except Exception as e:
            self.logger.error("初始化Kubernetes客户端失败: %s", e)
            raise

        self.discovery_client = DiscoveryClient.from_settings(
            self.k8s_client, self.settings.istio
        )
        self.logger.info(
            "控制面扇出客户端初始化成功 - selector=%s, port=%d",
            self.settings.istio.istiod_selector,
            self.settings.istio.debug_port,
        )

    def _create_app(self) -> FastAPI:
        """创建FastAPI应用"""
        app = FastAPI(
            title=self.settings.app_name,
            version=self.settings.version,
            description="Istio Proxy Status - 代理同步状态聚合",
            docs_url=None,
        )

        @app.get("/")
        async def root():
            return {
                "code": 200,
                "data": {
                    "message": "Istio Proxy Status",
                    "version": self.settings.version,
                    "namespace": self.settings.istio.namespace,
                },
            }

        @app.get("/docs", include_in_schema=False)
        async def custom_swagger_ui_html():
            return get_swagger_ui_html(
                openapi_url=app.openapi_url, title="Proxy Status APIs"
            )

        @app.get("/health")
        async def health():
            """健康检查"""
            return {
                "code": 200,
                "data": {
                    "status": "healthy",
                    "client_ready": self.discovery_client is not None,
                },
            }

        app.include_router(create_instant_proxy_status_router(self))

        return app

    async def start(self, host: str = "0.0.0.0", port: int = 8000):
        """启动即时App模式"""
        self.logger.info("正在启动即时App模式...")

        await self._init_k8s_client()

        self.app = self._create_app()

        server_config = uvicorn.Config(
            self.app, host=host, port=port, log_level=self.settings.log_level.lower()
        )
        server = uvicorn.Server(server_config)

        self.logger.info("即时App模式启动成功，监听 %s:%d", host, port)
        await server.serve()

    async def stop(self):
        """停止服务"""
        self.logger.info("正在停止即时App模式...")
        if self.discovery_client:
            self.discovery_client.close()
        if self.k8s_client:
            self.k8s_client.close()
