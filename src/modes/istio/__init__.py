"""
Istio Proxy Status Module

This module reports the xDS sync status of data-plane proxies as seen by every
istiod replica, merged into one de-duplicated view.
"""

__version__ = "0.1.0"

from .proxy import ProxyInfo, SyncStatus, get_ids_from_proxy_info, get_proxy_info

__all__ = [
    "ProxyInfo",
    "SyncStatus",
    "get_proxy_info",
    "get_ids_from_proxy_info",
]
