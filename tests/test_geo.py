"""Tests for the cached country resolver."""
import json
import threading

import httpx
import pytest

from gmdsite.analytics.geo import UNKNOWN_COUNTRY, CountryResolver

PUBLIC_IP = "8.8.8.8"
OTHER_PUBLIC_IP = "1.1.1.1"


class RecordingTransport(httpx.BaseTransport):
    """Serve canned responses and count the requests that reach the wire."""

    def __init__(self, handler):
        self._handler = handler
        self.requests = []
        self._lock = threading.Lock()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self._handler(request)


def _json_response(payload, status_code=200):
    return lambda request: httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"))


@pytest.fixture
def ok_transport():
    return RecordingTransport(_json_response({"countryCode": "US"}))


def test_successful_lookup_is_cached(ok_transport):
    resolver = CountryResolver(transport=ok_transport)

    assert resolver.resolve(PUBLIC_IP) == "US"
    assert resolver.resolve(PUBLIC_IP) == "US"

    assert len(ok_transport.requests) == 1
    request = ok_transport.requests[0]
    assert request.url.path == f"/json/{PUBLIC_IP}"
    assert request.url.params["fields"] == "countryCode"


def test_lookup_url_template_is_configurable(ok_transport):
    resolver = CountryResolver(lookup_url="https://geo.example/{address}/country", transport=ok_transport)
    resolver.resolve(PUBLIC_IP)
    assert str(ok_transport.requests[0].url).startswith(f"https://geo.example/{PUBLIC_IP}/country")


@pytest.mark.parametrize(
    "handler",
    [
        _json_response({"countryCode": "US"}, status_code=500),
        _json_response({"status": "fail", "message": "reserved range"}),
        _json_response({"countryCode": ""}),
        _json_response(["US"]),
        lambda request: httpx.Response(200, content=b"<html>not json</html>"),
    ],
)
def test_failed_lookup_is_cached_as_unknown(handler):
    transport = RecordingTransport(handler)
    resolver = CountryResolver(transport=transport)

    assert resolver.resolve(PUBLIC_IP) == UNKNOWN_COUNTRY
    assert resolver.resolve(PUBLIC_IP) == UNKNOWN_COUNTRY
    assert len(transport.requests) == 1


def test_transport_error_is_cached_as_unknown():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    transport = RecordingTransport(handler)
    resolver = CountryResolver(transport=transport)

    assert resolver.resolve(PUBLIC_IP) == UNKNOWN_COUNTRY
    assert resolver.resolve(PUBLIC_IP) == UNKNOWN_COUNTRY
    assert len(transport.requests) == 1
    assert resolver.cached(PUBLIC_IP) == UNKNOWN_COUNTRY


@pytest.mark.parametrize("address", ["", "127.0.0.1", "10.0.0.8", "192.168.1.2", "::1", "testclient"])
def test_local_or_invalid_addresses_skip_the_network(ok_transport, address):
    resolver = CountryResolver(transport=ok_transport)
    assert resolver.resolve(address) == UNKNOWN_COUNTRY
    assert ok_transport.requests == []


def test_distinct_addresses_are_looked_up_separately():
    codes = {PUBLIC_IP: "US", OTHER_PUBLIC_IP: "AU"}

    def handler(request):
        address = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"countryCode": codes[address]})

    transport = RecordingTransport(handler)
    resolver = CountryResolver(transport=transport)

    assert resolver.resolve(PUBLIC_IP) == "US"
    assert resolver.resolve(OTHER_PUBLIC_IP) == "AU"
    assert resolver.lookups == 2


def test_empty_cached_value_reads_as_unknown(ok_transport):
    resolver = CountryResolver(transport=ok_transport)
    resolver._cache[PUBLIC_IP] = ""
    assert resolver.resolve(PUBLIC_IP) == UNKNOWN_COUNTRY
    assert ok_transport.requests == []


def test_late_failure_does_not_overwrite_resolved_code():
    entered = threading.Event()
    release = threading.Event()

    def handler(request):
        entered.set()
        release.wait(timeout=5)
        return httpx.Response(500)

    resolver = CountryResolver(transport=RecordingTransport(handler))
    results = []
    worker = threading.Thread(target=lambda: results.append(resolver.resolve(PUBLIC_IP)))
    worker.start()
    assert entered.wait(timeout=5)

    # Another request resolved the address while this lookup was in flight.
    with resolver._lock:
        resolver._cache[PUBLIC_IP] = "US"
    release.set()
    worker.join(timeout=5)

    assert results == ["US"]
    assert resolver.cached(PUBLIC_IP) == "US"
