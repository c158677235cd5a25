import csv
import json

import pytest
import requests

import campaign_intel


def details(ip):
    return json.dumps({"browser": {"address": ip}, "payload": {}})


def write_export(path, rows, header=("id", "email", "message", "details"), encoding="utf-8"):
    with open(path, "w", newline="", encoding=encoding) as f:
        w = csv.writer(f)
        w.writerow(header)
        for r in rows:
            w.writerow(r)
    return str(path)


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        return json.loads(self.text)


def abuse_body(ip, score, **extra):
    data = {
        "ipAddress": ip,
        "isPublic": True,
        "ipVersion": 6 if ":" in ip else 4,
        "isWhitelisted": False,
        "abuseConfidencePercentage": score,
        "countryCode": "US",
        "countryName": "United States of America",
        "usageType": "Data Center/Web Hosting/Transit",
        "isp": "Example ISP",
        "domain": "example.net",
        "totalReports": 12,
        "numDistinctUsers": 3,
        "lastReportedAt": "2024-05-01T10:00:00+00:00",
    }
    data.update(extra)
    return {"data": data}


class FakeAbuseIPDB:
    """Stands in for requests.get; answers per IP from a dict of scores or exceptions."""

    def __init__(self, answers=None):
        self.answers = answers or {}
        self.calls = []

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        ip = params["ipAddress"]
        answer = self.answers.get(ip, 0)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, FakeResponse):
            return answer
        return FakeResponse(200, abuse_body(ip, answer))

    @property
    def looked_up(self):
        return [c["params"]["ipAddress"] for c in self.calls]


@pytest.fixture
def fake_api(monkeypatch):
    api = FakeAbuseIPDB()
    monkeypatch.setattr(campaign_intel.requests, "get", api)
    return api


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(campaign_intel.time, "sleep", calls.append)
    return calls


@pytest.fixture
def timeout_error():
    return requests.Timeout("read timed out")
