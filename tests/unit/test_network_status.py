"""Unit tests for connectivity checkers."""

import httpx

from nailapp_client.services.network_status import (
    AlwaysConnected,
    HttpConnectivityChecker,
)


def checker_for(handler) -> HttpConnectivityChecker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpConnectivityChecker("http://probe.test/health", client=client)


async def test_always_connected():
    assert await AlwaysConnected().is_connected()


async def test_any_response_means_connected():
    """Even an error status proves the network is reachable."""
    checker = checker_for(lambda request: httpx.Response(503))

    assert await checker.is_connected()


async def test_probe_uses_head():
    methods = []

    def handler(request):
        methods.append(request.method)
        return httpx.Response(204)

    checker = checker_for(handler)
    await checker.is_connected()

    assert methods == ["HEAD"]


async def test_transport_failure_means_offline():
    def handler(request):
        raise httpx.ConnectError("Network is unreachable", request=request)

    checker = checker_for(handler)

    assert not await checker.is_connected()
    await checker.aclose()
