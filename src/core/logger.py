# -*- coding: utf-8 -*-
"""
日志配置模块
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "proxystatus"


def setup_logger(level: str = "INFO", name: Optional[str] = None) -> logging.Logger:
    """设置日志配置，返回已挂载控制台处理器的logger"""
    logger = logging.getLogger(name or ROOT_LOGGER_NAME)

    # 避免重复添加handler
    if logger.handlers:
        return logger

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """获取组件子logger，如 proxystatus.DiscoveryClient"""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
