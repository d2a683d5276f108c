"""Tests for obtaining the initial position fix."""

import asyncio

import pytest
import requests

import location
from location import (
    PERMISSION_DENIED_MESSAGE,
    LocationPermissionDenied,
    LocationUnavailable,
    locate,
    locate_async,
    parse_fix,
)
from movement import Position


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code != 200:
            raise requests.HTTPError(f"status {self.status_code}")

    def json(self):
        return self.payload


class TimeoutSession:
    """Caller-owned aiohttp session whose request never answers in time"""

    def __init__(self):
        self.timeouts = []

    def get(self, url, timeout=None):
        self.timeouts.append(timeout)
        raise asyncio.TimeoutError()


class TestPermission:

    def test_denied_permission_raises(self):
        with pytest.raises(LocationPermissionDenied) as excinfo:
            locate({'allow': False})
        assert str(excinfo.value) == PERMISSION_DENIED_MESSAGE

    def test_denied_permission_skips_lookup(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("lookup must not run")

        monkeypatch.setattr(location.requests, 'get', fail)
        with pytest.raises(LocationPermissionDenied):
            locate({'allow': False, 'source': 'ip'})

    def test_async_denied_permission_raises(self):
        with pytest.raises(LocationPermissionDenied):
            asyncio.run(locate_async({'allow': False}))


class TestFixedSource:

    def test_fixed_fix_from_config(self):
        assert locate({'source': 'fixed', 'latitude': 10, 'longitude': 20}) == Position(10.0, 20.0)

    def test_async_fixed_fix(self):
        fix = asyncio.run(locate_async({'source': 'fixed', 'latitude': -33.9, 'longitude': 18.4}))
        assert fix == Position(-33.9, 18.4)

    def test_unknown_source(self):
        with pytest.raises(LocationUnavailable):
            locate({'source': 'gps'})


class TestIpSource:

    def test_ip_lookup(self, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append(url)
            return FakeResponse({'status': 'success', 'lat': 44.43, 'lon': 26.1})

        monkeypatch.setattr(location.requests, 'get', fake_get)
        fix = locate({'source': 'ip', 'ip_url': 'http://geo.test/json'})

        assert fix == Position(44.43, 26.1)
        assert calls == ['http://geo.test/json']

    def test_network_error_is_unavailable(self, monkeypatch):
        def fake_get(url, timeout):
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(location.requests, 'get', fake_get)
        with pytest.raises(LocationUnavailable):
            locate({'source': 'ip'})

    def test_http_error_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(location.requests, 'get', lambda url, timeout: FakeResponse({}, status=503))
        with pytest.raises(LocationUnavailable):
            locate({'source': 'ip'})

    def test_async_timeout_is_unavailable(self):
        session = TimeoutSession()
        with pytest.raises(LocationUnavailable):
            asyncio.run(locate_async({'source': 'ip', 'ip_url': 'http://geo.test/json', 'timeout': 3},
                                     session=session))
        assert session.timeouts[0].total == 3


class TestParseFix:

    def test_latitude_longitude_keys(self):
        assert parse_fix({'latitude': '1.5', 'longitude': 2}) == Position(1.5, 2.0)

    def test_failed_lookup(self):
        with pytest.raises(LocationUnavailable):
            parse_fix({'status': 'fail', 'message': 'private range'})

    @pytest.mark.parametrize('payload', [{}, {'lat': 1.0}, {'lat': 'north', 'lon': 2.0}, ['lat', 'lon']])
    def test_malformed_payloads(self, payload):
        with pytest.raises(LocationUnavailable):
            parse_fix(payload)
