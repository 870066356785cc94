# -*- coding: utf-8 -*-
"""
统一错误处理模块
定义代理状态查询的错误类型，并为HTTP接口提供一致的错误响应格式
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from fastapi import HTTPException
from kubernetes.client.exceptions import ApiException
from pydantic import BaseModel


class ProxyStatusError(Exception):
    """代理状态查询错误基类"""


class TransportError(ProxyStatusError):
    """控制面副本扇出请求失败（网络、认证、集群API）"""


class DecodeError(ProxyStatusError):
    """某个副本返回的同步状态无法解析"""

    def __init__(self, replica: str, cause: Exception):
        self.replica = replica
        self.cause = cause
        super().__init__(f"failed to decode sync status from {replica}: {cause}")


class QueryCancelledError(ProxyStatusError):
    """查询超时或被取消，不返回部分结果"""


class ProxyInfoError(ProxyStatusError):
    """获取代理ID列表时的包装错误"""


class ErrorType(str, Enum):
    """错误类型枚举"""

    CONNECTION_ERROR = "connection_error"
    AUTH_ERROR = "auth_error"
    DECODE_ERROR = "decode_error"
    PROCESSING_ERROR = "processing_error"
    TIMEOUT_ERROR = "timeout_error"
    VALIDATION_ERROR = "validation_error"


class ErrorDetails(BaseModel):
    """错误详情模型"""

    namespace: Optional[str] = None
    operation: Optional[str] = None
    replica: Optional[str] = None


class ErrorResponse(BaseModel):
    """统一错误响应模型"""

    code: int
    message: str
    error_type: ErrorType
    details: ErrorDetails


def _find_in_chain(e: BaseException, exc_types) -> Optional[BaseException]:
    """沿__cause__异常链查找第一个匹配类型的异常"""
    current: Optional[BaseException] = e
    while current is not None:
        if isinstance(current, exc_types):
            return current
        current = current.__cause__
    return None


class ProxyStatusErrorHandler:
    """代理状态API错误处理器"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def handle_exception(
        self,
        e: Exception,
        namespace: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> HTTPException:
        """将查询异常转换为HTTPException"""
        details = ErrorDetails(namespace=namespace, operation=operation)
        log_prefix = f"[代理状态][{namespace or '未知命名空间'}]"

        decode_error = _find_in_chain(e, DecodeError)
        api_error = _find_in_chain(e, ApiException)

        if decode_error is not None:
            details.replica = decode_error.replica
            error_type = ErrorType.DECODE_ERROR
            message = f"同步状态解析失败: {decode_error}"
            status_code = 502
            self.logger.error(
                "%s解析错误 (副本: %s): %s", log_prefix, decode_error.replica, e
            )

        elif api_error is not None and api_error.status in (401, 403):
            error_type = ErrorType.AUTH_ERROR
            message = (
                f"集群认证失败: {api_error.reason}"
                if api_error.status == 401
                else f"权限不足: {api_error.reason}"
            )
            status_code = api_error.status
            self.logger.error(
                "%sKubernetes API错误 (状态码: %s): %s",
                log_prefix,
                api_error.status,
                api_error.reason,
            )

        elif _find_in_chain(e, (QueryCancelledError, asyncio.TimeoutError)) is not None:
            error_type = ErrorType.TIMEOUT_ERROR
            message = f"查询超时: {e}"
            status_code = 408
            self.logger.error("%s查询超时: %s", log_prefix, e)

        elif _find_in_chain(e, (TransportError, ApiException, ConnectionError)) is not None:
            error_type = ErrorType.CONNECTION_ERROR
            message = f"控制面连接失败: {e}"
            status_code = 502
            self.logger.error("%s连接错误: %s", log_prefix, e)

        else:
            error_type = ErrorType.PROCESSING_ERROR
            message = f"处理失败: {e}"
            status_code = 500
            self.logger.error("%s处理错误: %s", log_prefix, e)

        error_response = ErrorResponse(
            code=status_code, message=message, error_type=error_type, details=details
        )

        return HTTPException(status_code=status_code, detail=error_response.model_dump())

    def handle_validation_error(
        self,
        message: str,
        namespace: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> HTTPException:
        """处理验证错误"""
        details = ErrorDetails(namespace=namespace, operation=operation)

        self.logger.warning(
            "[代理状态][%s]验证错误: %s", namespace or "未知命名空间", message
        )

        error_response = ErrorResponse(
            code=400,
            message=message,
            error_type=ErrorType.VALIDATION_ERROR,
            details=details,
        )

        return HTTPException(status_code=400, detail=error_response.model_dump())


def create_error_handler(logger: logging.Logger) -> ProxyStatusErrorHandler:
    """创建错误处理器实例"""
    return ProxyStatusErrorHandler(logger)
