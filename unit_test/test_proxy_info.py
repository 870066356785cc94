# -*- coding: utf-8 -*-
"""
代理信息聚合单元测试
"""

import asyncio
import json

import pytest

from src.core.error_handler import (
    DecodeError,
    ProxyInfoError,
    QueryCancelledError,
    TransportError,
)
from src.modes.istio.proxy import (
    ProxyInfo,
    aggregate_sync_status,
    decode_sync_status,
    get_ids_from_proxy_info,
    get_proxy_info,
    get_sync_status,
    to_ids,
    to_proxy_info,
)
from src.modes.istio.proxy.sync_status import SyncStatus

PROXY_ID = "sidecar~10.0.0.1~foo.default~cluster.local"


def sync_payload(*records) -> bytes:
    return json.dumps(list(records)).encode()


def record(proxy_id=PROXY_ID, proxy_type="sidecar", istio_version="1.18.0", **extra):
    data = {"proxy": proxy_id, "proxy_type": proxy_type, "istio_version": istio_version}
    data.update(extra)
    return data


class FakeDiscoveryClient:
    """返回预设响应或抛出预设错误的扇出客户端"""

    def __init__(self, responses=None, error=None, delay=0.0):
        self.responses = responses or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def all_discovery_do(self, namespace, path):
        self.calls.append((namespace, path))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.responses


class TestDecodeSyncStatus:
    """测试单副本响应解析"""

    def test_decode_preserves_order(self):
        raw = sync_payload(record("a~1"), record("c~3"), record("b~2"))

        statuses = decode_sync_status("istiod-a", raw)

        assert [s.proxy_id for s in statuses] == ["a~1", "c~3", "b~2"]

    def test_decode_ignores_unknown_fields(self):
        raw = sync_payload(record(cluster_sent="n1", future_field={"x": 1}))

        statuses = decode_sync_status("istiod-a", raw)

        assert len(statuses) == 1
        assert statuses[0].cluster_sent == "n1"
        assert not hasattr(statuses[0], "future_field")

    def test_decode_missing_optional_fields(self):
        statuses = decode_sync_status("istiod-a", b'[{"proxy": "router~1"}]')

        assert statuses[0].proxy_type == ""
        assert statuses[0].istio_version == ""

    def test_decode_null_is_empty(self):
        assert decode_sync_status("istiod-a", b"null") == []

    def test_decode_empty_array(self):
        assert decode_sync_status("istiod-a", b"[]") == []

    @pytest.mark.parametrize(
        "raw",
        [
            b"notjson",
            b'{"proxy": "a~1"}',
            b'["a~1"]',
            b'[{"proxy": 123}]',
            b'[{"proxy_type": "sidecar"}]',
        ],
    )
    def test_decode_malformed_payload(self, raw):
        with pytest.raises(DecodeError) as exc_info:
            decode_sync_status("istiod-a.istio-system", raw)

        assert exc_info.value.replica == "istiod-a.istio-system"
        assert "istiod-a.istio-system" in str(exc_info.value)


class TestXdsStatus:
    """测试xDS同步状态计算"""

    def test_not_sent(self):
        status = SyncStatus(proxy_id=PROXY_ID)
        assert status.xds_status("cluster") == "NOT SENT"

    def test_synced(self):
        status = SyncStatus(proxy_id=PROXY_ID, listener_sent="n1", listener_acked="n1")
        assert status.xds_status("listener") == "SYNCED"

    def test_never_acknowledged(self):
        status = SyncStatus(proxy_id=PROXY_ID, route_sent="n1")
        assert status.xds_status("route") == "STALE (Never Acknowledged)"

    def test_stale(self):
        status = SyncStatus(proxy_id=PROXY_ID, endpoint_sent="n2", endpoint_acked="n1")
        assert status.xds_status("endpoint") == "STALE"

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            SyncStatus(proxy_id=PROXY_ID).xds_status("secret")


class TestAggregateSyncStatus:
    """测试多副本合并与去重"""

    def test_merge_multiple_replicas(self):
        responses = {
            "istiod-a": sync_payload(record("a~1")),
            "istiod-b": sync_payload(record("b~1"), record("b~2")),
        }

        statuses = aggregate_sync_status(responses)

        assert [s.proxy_id for s in statuses] == ["a~1", "b~1", "b~2"]

    def test_duplicate_proxy_kept_once(self):
        responses = {
            "istiod-a": sync_payload(record()),
            "istiod-b": sync_payload(record()),
        }

        statuses = aggregate_sync_status(responses)

        assert len(statuses) == 1
        assert statuses[0].proxy_id == PROXY_ID

    def test_duplicate_first_replica_in_sorted_order_wins(self):
        responses = {
            "istiod-b": sync_payload(record(istio_version="1.19.0")),
            "istiod-a": sync_payload(record(istio_version="1.18.0")),
        }

        statuses = aggregate_sync_status(responses)

        assert len(statuses) == 1
        assert statuses[0].istio_version == "1.18.0"

    def test_order_independent_of_mapping_order(self):
        a = {"istiod-a": sync_payload(record("a~1")), "istiod-b": sync_payload(record("b~1"))}
        b = {"istiod-b": sync_payload(record("b~1")), "istiod-a": sync_payload(record("a~1"))}

        assert aggregate_sync_status(a) == aggregate_sync_status(b)

    def test_bad_replica_fails_whole_query(self):
        responses = {
            "istiod-a": sync_payload(record()),
            "istiod-b": b"notjson",
        }

        with pytest.raises(DecodeError) as exc_info:
            aggregate_sync_status(responses)

        assert exc_info.value.replica == "istiod-b"

    def test_no_replicas(self):
        assert aggregate_sync_status({}) == []


class TestProjection:
    """测试投影函数"""

    def test_to_proxy_info_copies_fields(self):
        status = SyncStatus(
            proxy_id=PROXY_ID, proxy_type="router", istio_version="1.20.1"
        )

        infos = to_proxy_info([status])

        assert infos == [ProxyInfo(id=PROXY_ID, type="router", istio_version="1.20.1")]

    def test_to_ids_preserves_order(self):
        infos = [ProxyInfo(id="b~1"), ProxyInfo(id="a~1")]
        assert to_ids(infos) == ["b~1", "a~1"]

    def test_proxy_info_is_immutable(self):
        info = ProxyInfo(id=PROXY_ID)
        with pytest.raises(Exception):
            info.id = "other"


class TestGetProxyInfo:
    """测试代理信息查询"""

    @pytest.mark.asyncio
    async def test_get_proxy_info_success(self):
        fake = FakeDiscoveryClient({"pilot": sync_payload(record())})

        infos = await get_proxy_info(fake, "istio-system")

        assert len(infos) == 1
        assert infos[0].id == PROXY_ID
        assert infos[0].type == "sidecar"
        assert infos[0].istio_version == "1.18.0"
        assert fake.calls == [("istio-system", "debug/syncz")]

    @pytest.mark.asyncio
    async def test_get_proxy_info_transport_error_unchanged(self):
        error = TransportError("fail")
        fake = FakeDiscoveryClient(error=error)

        with pytest.raises(TransportError) as exc_info:
            await get_proxy_info(fake, "istio-system")

        assert exc_info.value is error
        assert str(exc_info.value) == "fail"

    @pytest.mark.asyncio
    async def test_get_proxy_info_decode_error(self):
        fake = FakeDiscoveryClient({"pilot": b"notjson"})

        with pytest.raises(DecodeError):
            await get_proxy_info(fake, "istio-system")

    @pytest.mark.asyncio
    async def test_get_proxy_info_two_replicas_same_proxy(self):
        fake = FakeDiscoveryClient(
            {
                "istiod-a.istio-system": sync_payload(record()),
                "istiod-b.istio-system": sync_payload(record()),
            }
        )

        infos = await get_proxy_info(fake, "istio-system")

        assert [info.id for info in infos] == [PROXY_ID]

    @pytest.mark.asyncio
    async def test_get_proxy_info_idempotent(self):
        fake = FakeDiscoveryClient(
            {
                "istiod-b": sync_payload(record("b~1"), record("a~1")),
                "istiod-a": sync_payload(record("c~1"), record("b~1")),
            }
        )

        first = await get_proxy_info(fake, "istio-system")
        second = await get_proxy_info(fake, "istio-system")

        assert [i.model_dump_json() for i in first] == [
            i.model_dump_json() for i in second
        ]
        assert to_ids(first) == ["c~1", "b~1", "a~1"]

    @pytest.mark.asyncio
    async def test_get_proxy_info_timeout(self):
        fake = FakeDiscoveryClient({"pilot": sync_payload(record())}, delay=1.0)

        with pytest.raises(QueryCancelledError):
            await get_proxy_info(fake, "istio-system", timeout=0.05)

    @pytest.mark.asyncio
    async def test_get_proxy_info_cancelled(self):
        fake = FakeDiscoveryClient({"pilot": sync_payload(record())}, delay=1.0)

        task = asyncio.create_task(get_proxy_info(fake, "istio-system"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_get_sync_status_keeps_nonces(self):
        fake = FakeDiscoveryClient(
            {"pilot": sync_payload(record(cluster_sent="n1", cluster_acked="n1"))}
        )

        statuses = await get_sync_status(fake, "istio-system")

        assert statuses[0].xds_status("cluster") == "SYNCED"


class TestGetIDsFromProxyInfo:
    """测试代理ID查询"""

    @pytest.mark.asyncio
    async def test_get_ids_success(self):
        fake = FakeDiscoveryClient({"pilot": sync_payload(record())})

        ids = await get_ids_from_proxy_info(fake, "istio-system")

        assert ids == [PROXY_ID]

    @pytest.mark.asyncio
    async def test_get_ids_matches_proxy_info(self):
        fake = FakeDiscoveryClient(
            {
                "istiod-a": sync_payload(record("x~1"), record("y~1")),
                "istiod-b": sync_payload(record("z~1")),
            }
        )

        infos = await get_proxy_info(fake, "istio-system")
        ids = await get_ids_from_proxy_info(fake, "istio-system")

        assert ids == [info.id for info in infos]

    @pytest.mark.asyncio
    async def test_get_ids_wraps_transport_error(self):
        error = TransportError("fail")
        fake = FakeDiscoveryClient(error=error)

        with pytest.raises(ProxyInfoError) as exc_info:
            await get_ids_from_proxy_info(fake, "istio-system")

        assert str(exc_info.value) == "failed to get proxy infos: fail"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_get_ids_wraps_decode_error(self):
        fake = FakeDiscoveryClient({"pilot": b"notjson"})

        with pytest.raises(ProxyInfoError) as exc_info:
            await get_ids_from_proxy_info(fake, "istio-system")

        assert str(exc_info.value).startswith("failed to get proxy infos: ")
        assert isinstance(exc_info.value.__cause__, DecodeError)

    @pytest.mark.asyncio
    async def test_get_ids_wraps_timeout(self):
        fake = FakeDiscoveryClient({"pilot": sync_payload(record())}, delay=1.0)

        with pytest.raises(ProxyInfoError) as exc_info:
            await get_ids_from_proxy_info(fake, "istio-system", timeout=0.05)

        assert isinstance(exc_info.value.__cause__, QueryCancelledError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
