import pytest
import requests
import responses

from reviewpup import ciutil

DNS_URL = "https://dnsjson.com/nat.travisci.net/A.json"
ALLOWED_IP = "67.225.139.254"
NOT_ALLOWED_IP = "93.184.216.34"


@pytest.fixture(autouse=True)
def _restore_travis(monkeypatch):
    monkeypatch.setattr(ciutil, "_travis_ip_addrs", set(ciutil._travis_ip_addrs))


def test_is_from_ci():
    assert ciutil.is_from_ci(ALLOWED_IP, {}) is True
    assert ciutil.is_from_ci(NOT_ALLOWED_IP, {}) is False


def test_is_from_appveyor():
    assert ciutil.is_from_appveyor(ALLOWED_IP, None) is True
    assert ciutil.is_from_appveyor(NOT_ALLOWED_IP, None) is False


def test_is_from_travis_ci_default_list():
    assert ciutil.is_from_travis_ci("104.154.113.151", None) is True
    assert ciutil.is_from_travis_ci(NOT_ALLOWED_IP, None) is False


def test_ip_from_request_host_port():
    assert ciutil.ip_from_request(f"{ALLOWED_IP}:1234", None) == ALLOWED_IP
    assert ciutil.is_from_ci(f"{ALLOWED_IP}:1234", None) is True


def test_ip_from_request_ipv6_and_bare():
    assert ciutil.ip_from_request("[::1]:80", None) == "::1"
    assert ciutil.ip_from_request("::1", None) == "::1"
    assert ciutil.ip_from_request(NOT_ALLOWED_IP, None) == NOT_ALLOWED_IP


def test_ip_from_request_forwarded_header():
    headers = {"forwarded": f'proto=https; For="{ALLOWED_IP}"'}
    assert ciutil.ip_from_request("10.0.0.1:80", headers) == ALLOWED_IP
    assert ciutil.is_from_ci("10.0.0.1:80", headers) is True


def test_update_travis_ci_ip_addrs():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET, DNS_URL, json={"results": {"records": ["1.2.3.4", "5.6.7.8"]}}
        )
        ciutil.update_travis_ci_ip_addrs(None)
    for addr in ("1.2.3.4", "5.6.7.8"):
        assert ciutil.is_from_travis_ci(addr, None) is True
    assert ciutil.is_from_travis_ci("104.154.113.151", None) is False
    assert ciutil.is_from_travis_ci(NOT_ALLOWED_IP, None) is False


def test_update_travis_ci_ip_addrs_with_session():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DNS_URL, json={"results": {"records": ["9.9.9.9"]}})
        ciutil.update_travis_ci_ip_addrs(requests.Session())
    assert ciutil.is_from_travis_ci("9.9.9.9", None) is True


def test_update_travis_ci_ip_addrs_empty_keeps_list():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, DNS_URL, json={"results": {"records": []}})
        with pytest.raises(ValueError, match="nat.travisci.net"):
            ciutil.update_travis_ci_ip_addrs(None)
    assert ciutil.is_from_travis_ci("104.154.113.151", None) is True