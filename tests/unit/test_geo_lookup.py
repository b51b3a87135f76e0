"""IP geolocation adapter against a mocked ip-api endpoint."""

import httpx
import pytest

from src.adapters.geo_ipapi import IpApiGeoLookup
from src.core.entities import LocationInfo
from src.rules.models import GeoRules


def make_lookup(handler, **rules) -> IpApiGeoLookup:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return IpApiGeoLookup(rules=GeoRules(**rules), client=client)


def test_success_maps_fields():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(
            200,
            json={"status": "success", "country": "Canada", "regionName": "Quebec", "city": "Montreal"},
        )

    location = make_lookup(handler).lookup("24.48.0.1")

    assert location == LocationInfo(country="Canada", region="Quebec", city="Montreal", ip="24.48.0.1")
    assert seen == ["http://ip-api.com/json/24.48.0.1"]


def test_provider_failure_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "fail", "message": "private range"})

    assert make_lookup(handler).lookup("10.0.0.1") == LocationInfo(ip="10.0.0.1")


def test_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    assert make_lookup(handler).lookup("8.8.8.8") == LocationInfo(ip="8.8.8.8")


def test_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    assert make_lookup(handler).lookup("8.8.8.8") == LocationInfo(ip="8.8.8.8")


def test_invalid_json():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    assert make_lookup(handler).lookup("8.8.8.8") == LocationInfo(ip="8.8.8.8")


@pytest.mark.parametrize("ip", ["127.0.0.1", "::1", ""])
def test_skipped_ips_make_no_request(ip):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert make_lookup(handler).lookup(ip) == LocationInfo()


def test_disabled():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert make_lookup(handler, enabled=False).lookup("8.8.8.8") == LocationInfo(ip="8.8.8.8")


def test_custom_provider_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"status": "success", "country": "Chile", "city": ""})

    location = make_lookup(handler, provider_url="https://geo.internal/{ip}/json").lookup("1.2.3.4")

    assert seen == ["https://geo.internal/1.2.3.4/json"]
    assert location.city is None
    assert location.country == "Chile"
