import httpx
import pytest

from diagnostics_api.models.diagnostics.enums import AccountStatus, DeviceRole
from diagnostics_api.services.gateway_services import HttpDeviceGateway
from diagnostics_api.utils.exceptions import GatewayUnavailableError

BASE_URL = "http://gateway.test/api/gateway"


def make_gateway(handler) -> HttpDeviceGateway:
    gateway = HttpDeviceGateway(base_url=BASE_URL, token="token-123")
    gateway.session = httpx.AsyncClient(base_url=BASE_URL, headers={'X-Auth-Token': "token-123"},
                                        transport=httpx.MockTransport(handler))
    return gateway


async def test_device_is_parsed():
    def handler(request):
        assert request.headers["X-Auth-Token"] == "token-123"
        assert request.url.path == "/api/gateway/devices/st1"
        return httpx.Response(200, json={
            "id": "st1", "name": "Station 1", "role": "station",
            "routerId": "r1", "routerName": "Core", "accessPointId": "ap1", "ownerId": "acc1",
        })

    gateway = make_gateway(handler)
    device = await gateway.get_device_by_id("st1")
    await gateway.close()

    assert device.role == DeviceRole.STATION
    assert device.router_id == "r1"
    assert device.access_point_id == "ap1"
    assert device.owner_id == "acc1"


async def test_missing_device_is_none():
    gateway = make_gateway(lambda request: httpx.Response(404, json={"error": "not found"}))

    assert await gateway.get_device_by_id("nope") is None


async def test_account_is_parsed():
    gateway = make_gateway(lambda request: httpx.Response(200, json={
        "id": "acc1", "name": "Jane", "status": "EXPIRED", "expiryDate": "2026-01-15T00:00:00Z",
    }))

    account = await gateway.get_account_status("acc1")

    assert account.status == AccountStatus.EXPIRED
    assert account.expiry_date.year == 2026


async def test_ping_and_neighbors():
    def handler(request):
        if request.url.path.endswith("/ping"):
            return httpx.Response(200, json={"reachable": True})
        assert request.url.params["mode"] == "apartment"
        return httpx.Response(200, json=[{"id": "u1", "name": "Unit 1", "accountId": "a1"},
                                         {"id": "u2", "name": "Unit 2"}])

    gateway = make_gateway(handler)

    assert await gateway.ping_target("st1") is True
    neighbors = await gateway.list_apartment_neighbors("ap1")
    assert [n.id for n in neighbors] == ["u1", "u2"]
    assert neighbors[0].account_id == "a1"


async def test_server_error_is_gateway_unavailable():
    gateway = make_gateway(lambda request: httpx.Response(503, text="maintenance"))

    with pytest.raises(GatewayUnavailableError):
        await gateway.get_device_by_id("st1")


async def test_connection_error_is_gateway_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = make_gateway(handler)

    with pytest.raises(GatewayUnavailableError):
        await gateway.ping_target("st1")
