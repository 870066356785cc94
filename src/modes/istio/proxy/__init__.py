"""
Istio Proxy Status

Aggregates the xDS sync status reported by every istiod replica into a single
de-duplicated view of connected proxies.
"""

from .sync_status import SyncStatus, decode_sync_status
from .proxy_info import (
    ProxyInfo,
    aggregate_sync_status,
    get_ids_from_proxy_info,
    get_proxy_info,
    get_sync_status,
    to_ids,
    to_proxy_info,
)

__all__ = [
    "SyncStatus",
    "ProxyInfo",
    "decode_sync_status",
    "aggregate_sync_status",
    "to_proxy_info",
    "to_ids",
    "get_sync_status",
    "get_proxy_info",
    "get_ids_from_proxy_info",
]
