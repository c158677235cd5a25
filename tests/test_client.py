import pytest
import requests

from campaign_intel import (
    ApiError,
    InvalidIPError,
    NetworkError,
    ReputationRecord,
    ResponseParseError,
    check_ip_reputation,
    lookup_ip,
)

from conftest import FakeResponse, abuse_body


def test_request_shape(fake_api):
    check_ip_reputation("8.8.8.8", "secret")

    (call,) = fake_api.calls
    assert call["url"] == "https://api.abuseipdb.com/api/v2/check"
    assert call["headers"] == {"Key": "secret", "Accept": "application/json"}
    assert call["params"] == {"ipAddress": "8.8.8.8", "maxAgeInDays": 90, "verbose": ""}
    assert call["timeout"] == 10


def test_success_decodes_record(fake_api):
    fake_api.answers["1.2.3.4"] = 42

    rec = check_ip_reputation("1.2.3.4", "k")

    assert rec.abuse_confidence == 42
    assert rec.is_public is True
    assert rec.is_whitelisted is False
    assert rec.ip_version == 4
    assert rec.country_code == "US"
    assert rec.total_reports == 12
    assert rec.num_distinct_users == 3
    assert rec.last_reported_at == "2024-05-01T10:00:00+00:00"


def test_missing_fields_stay_none(fake_api):
    fake_api.answers["1.2.3.4"] = FakeResponse(200, {"data": {"abuseConfidencePercentage": 0, "isp": None}})

    rec = check_ip_reputation("1.2.3.4", "k")

    assert rec == ReputationRecord(abuse_confidence=0)


def test_invalid_ip_never_hits_network(fake_api):
    with pytest.raises(InvalidIPError):
        check_ip_reputation("nope", "k")
    assert fake_api.calls == []


def test_timeout_is_network_error(fake_api, timeout_error):
    fake_api.answers["1.2.3.4"] = timeout_error
    with pytest.raises(NetworkError):
        check_ip_reputation("1.2.3.4", "k")


def test_connection_error_is_network_error(fake_api):
    fake_api.answers["1.2.3.4"] = requests.ConnectionError("refused")
    with pytest.raises(NetworkError):
        check_ip_reputation("1.2.3.4", "k")


def test_non_success_status_is_api_error(fake_api):
    fake_api.answers["1.2.3.4"] = FakeResponse(429, text='{"errors": [{"detail": "Too Many Requests"}]}')

    with pytest.raises(ApiError) as exc:
        check_ip_reputation("1.2.3.4", "k")

    assert exc.value.status_code == 429
    assert "Too Many Requests" in exc.value.body


@pytest.mark.parametrize("resp", [
    FakeResponse(200, text="<html>oops</html>"),
    FakeResponse(200, {"errors": []}),
    FakeResponse(200, {"data": "nope"}),
    FakeResponse(200, abuse_body("1.2.3.4", "high")),
    FakeResponse(200, abuse_body("1.2.3.4", 150)),
    FakeResponse(200, abuse_body("1.2.3.4", 10, isPublic="yes")),
    FakeResponse(200, abuse_body("1.2.3.4", 10, totalReports=True)),
])
def test_bad_body_is_response_parse_error(fake_api, resp):
    fake_api.answers["1.2.3.4"] = resp
    with pytest.raises(ResponseParseError):
        check_ip_reputation("1.2.3.4", "k")


def test_lookup_ip_tags_failures(fake_api, timeout_error):
    fake_api.answers["1.1.1.1"] = 5
    fake_api.answers["2.2.2.2"] = timeout_error
    fake_api.answers["3.3.3.3"] = FakeResponse(401, text="unauthorized")

    ok = lookup_ip("1.1.1.1", "k")
    net = lookup_ip("2.2.2.2", "k")
    api = lookup_ip("3.3.3.3", "k")
    bad = lookup_ip("x", "k")

    assert ok.ok and ok.record.abuse_confidence == 5
    assert (net.ok, net.error_kind) == (False, "network")
    assert (api.ok, api.error_kind) == (False, "api")
    assert (bad.ok, bad.error_kind) == (False, "invalid_ip")
