# -*- coding: utf-8 -*-
"""
配置管理模块
支持从环境变量、配置文件等多种方式加载配置
"""

import logging
import os
import yaml
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class K8sConfig:
    """Kubernetes配置"""

    in_cluster: bool = True  # 是否在集群内运行
    kubeconfig_path: Optional[str] = None
    api_server: Optional[str] = None
    token: Optional[str] = None
    verify_ssl: bool = True


@dataclass
class IstioConfig:
    """Istio控制面配置"""

    namespace: str = "istio-system"
    istiod_selector: str = "app=istiod"
    debug_port: int = 15014
    request_timeout: float = 30.0  # 单次查询超时（秒）
    max_concurrent: int = 10  # 副本并发请求数


@dataclass
class Settings:
    """全局配置类"""

    # 基础配置
    app_name: str = "Istio Proxy Status"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # 子配置
    k8s: K8sConfig = field(default_factory=K8sConfig)
    istio: IstioConfig = field(default_factory=IstioConfig)

    def __init__(self, config_file: Optional[str] = None):
        """初始化配置"""
        self.app_name = "Istio Proxy Status"
        self.version = "0.1.0"
        self.k8s = K8sConfig()
        self.istio = IstioConfig()

        # 从环境变量加载
        self._load_from_env()

        # 从配置文件加载
        if config_file:
            self._load_from_file(config_file)

    def _load_from_env(self):
        """从环境变量加载配置"""
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # K8s配置
        self.k8s.in_cluster = os.getenv("K8S_IN_CLUSTER", "true").lower() == "true"
        if kubeconfig := os.getenv("KUBECONFIG"):
            self.k8s.kubeconfig_path = kubeconfig
        if api_server := os.getenv("K8S_API_SERVER"):
            self.k8s.api_server = api_server
        if token := os.getenv("K8S_TOKEN"):
            self.k8s.token = token

        # Istio配置
        if namespace := os.getenv("ISTIO_NAMESPACE"):
            self.istio.namespace = namespace
        if selector := os.getenv("ISTIOD_SELECTOR"):
            self.istio.istiod_selector = selector
        if port := os.getenv("ISTIOD_DEBUG_PORT"):
            self.istio.debug_port = int(port)
        if timeout := os.getenv("PROXY_STATUS_TIMEOUT"):
            self.istio.request_timeout = float(timeout)

    def _load_from_file(self, config_file: str):
        """从配置文件加载配置"""
        config_path = Path(config_file)
        if not config_path.exists():
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logging.getLogger("proxystatus.Settings").warning(
                "加载配置文件失败: %s, 错误: %s", config_file, e
            )
            return

        if config_data is not None and not isinstance(config_data, dict):
            logging.getLogger("proxystatus.Settings").warning(
                "配置文件顶层必须是映射，已忽略: %s", config_file
            )
            return

        self._update_from_dict(config_data)
        self._validate()

    def _update_from_dict(self, config_data: Dict[str, Any]):
        """从字典更新配置"""
        if not config_data:
            return

        for key in ["app_name", "version", "debug", "log_level"]:
            if key in config_data:
                setattr(self, key, config_data[key])

        if "k8s" in config_data:
            k8s_config = config_data["k8s"]
            if not isinstance(k8s_config, dict):
                k8s_config = {}
            for key in [
                "in_cluster",
                "kubeconfig_path",
                "api_server",
                "token",
                "verify_ssl",
            ]:
                if key in k8s_config:
                    setattr(self.k8s, key, k8s_config[key])

        if "istio" in config_data:
            istio_config = config_data["istio"]
            if not isinstance(istio_config, dict):
                istio_config = {}
            for key in [
                "namespace",
                "istiod_selector",
                "debug_port",
                "request_timeout",
                "max_concurrent",
            ]:
                if key in istio_config:
                    setattr(self.istio, key, istio_config[key])

    def _validate(self):
        """修正非法取值，回退为默认值"""
        defaults = IstioConfig()
        if not isinstance(self.istio.max_concurrent, int) or self.istio.max_concurrent < 1:
            logging.getLogger("proxystatus.Settings").warning(
                "max_concurrent必须为正整数，已回退为 %d: %r",
                defaults.max_concurrent,
                self.istio.max_concurrent,
            )
            self.istio.max_concurrent = defaults.max_concurrent
