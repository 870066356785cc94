#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Istio Proxy Status 主启动文件
汇总所有istiod副本上报的代理同步状态，并通过HTTP接口提供去重后的视图
"""

import argparse
import asyncio
import sys

from src.core.config import Settings
from src.core.logger import setup_logger
from src.modes.instant_app import InstantAppMode


async def main():
    """主启动函数"""
    parser = argparse.ArgumentParser(description="Istio Proxy Status")
    parser.add_argument("--port", type=int, default=8000, help="服务端口 (默认: 8000)")
    parser.add_argument("--host", default="0.0.0.0", help="服务地址 (默认: 0.0.0.0)")
    parser.add_argument("--config", help="配置文件路径")

    args = parser.parse_args()

    settings = Settings(config_file=args.config)

    logger = setup_logger(settings.log_level)
    logger.info(
        "启动 Istio Proxy Status - istiod命名空间: %s", settings.istio.namespace
    )

    app_mode = InstantAppMode(settings)
    try:
        await app_mode.start(host=args.host, port=args.port)
    except KeyboardInterrupt:
        logger.info("收到停止信号，正在关闭服务...")
    except Exception as e:
        logger.error("启动失败: %s", e)
        sys.exit(1)
    finally:
        await app_mode.stop()


if __name__ == "__main__":
    asyncio.run(main())
