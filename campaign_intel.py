#!/usr/bin/env python3
"""
campaign_intel.py — Phishing-simulation campaign tooling: IP reputation enrichment + template prep.

Key features:
- Extract unique client IPs from campaign event exports ("Clicked Link" / "Submitted Data")
- AbuseIPDB reputation lookups (sequential, throttled, per-IP failure tolerant)
- Risk bucketing (high / medium / low) + console summary
- Reputation report CSV + enhanced copy of the original export
- Template prep: .eml -> HTML, {{.URL}} hrefs, {{.Tracker}}, {{.Email}} anonymization, script removal

Outputs:
- analyze-ips: ip_reputation_report.csv, <input>_enhanced.csv
- template commands: .html next to each processed .eml (or in-place HTML rewrites)

Dependencies:
  pip install pyyaml requests python-dotenv
"""

from __future__ import annotations

import argparse
import csv
import html as html_lib
import ipaddress
import json
import logging
from logging.handlers import RotatingFileHandler
import os
import re
import sys
import time
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from email import policy
from email.parser import BytesParser
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import requests
import yaml
from dotenv import load_dotenv


# ----------------------------
# Defaults / Config
# ----------------------------

ABUSEIPDB_ENDPOINT = "https://api.abuseipdb.com/api/v2/check"

DEFAULT_CONFIG = {
    "general": {
        "log_dir": "logs",
        "delay_seconds": 1.0,
        "timeout_seconds": 10,
    },
    "abuseipdb": {
        "endpoint": ABUSEIPDB_ENDPOINT,
        "api_key_env": "ABUSEIPDB_API_KEY",
        "max_age_days": 90,
    },
    "templates": {
        "url_placeholder": "{{.URL}}",
    },
}

TARGET_MESSAGES = ("Clicked Link", "Submitted Data")
MESSAGE_COLUMN = "message"
DETAILS_COLUMN = "details"

HIGH_RISK_ABOVE = 75
LOW_RISK_AT_MOST = 25

TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base (does not mutate inputs)."""
    out = dict(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str = "config.yaml") -> dict:
    if not path or not os.path.exists(path):
        return dict(DEFAULT_CONFIG)
    try:
        with open(path, "r", encoding="utf-8") as f:
            parsed = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e
    if not isinstance(parsed, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return deep_merge(DEFAULT_CONFIG, parsed)


def resolve_api_key(explicit: Optional[str], config: dict) -> str:
    if explicit:
        return explicit
    api_env = (config.get("abuseipdb", {}) or {}).get("api_key_env", "ABUSEIPDB_API_KEY")
    api_key = os.getenv(api_env, "")
    if not api_key:
        raise ConfigError(f"AbuseIPDB API key missing. Pass --api-key or set env: {api_env}")
    return api_key


# ----------------------------
# Logging
# ----------------------------

log = logging.getLogger("campaign_intel")


def setup_logging(log_dir: str, level: int = logging.INFO) -> logging.Logger:
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "campaign_intel.log")

    logger = logging.getLogger("campaign_intel")
    logger.setLevel(level)
    logger.handlers.clear()

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    fh.setLevel(level)

    sh = logging.StreamHandler()
    sh.setFormatter(fmt)
    sh.setLevel(level)

    logger.addHandler(fh)
    logger.addHandler(sh)
    return logger


# ----------------------------
# Errors
# ----------------------------

class CampaignIntelError(Exception):
    """Base class for everything this tool raises on purpose."""


class ConfigError(CampaignIntelError):
    pass


class SchemaError(CampaignIntelError):
    """The export is missing a required column; nothing can be processed."""


class RowParseError(CampaignIntelError):
    pass


class InvalidIPError(CampaignIntelError):
    kind = "invalid_ip"


class ReputationLookupError(CampaignIntelError):
    kind = "lookup"


class NetworkError(ReputationLookupError):
    kind = "network"


class ApiError(ReputationLookupError):
    kind = "api"

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API request failed with status: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class ResponseParseError(ReputationLookupError):
    kind = "response_parse"


class TemplateError(CampaignIntelError):
    """An email or HTML file could not be decoded."""


# ----------------------------
# Data model
# ----------------------------

@dataclass
class BrowserDetails:
    address: str

    @classmethod
    def parse(cls, raw: str) -> "BrowserDetails":
        try:
            obj = json.loads(raw)
        except ValueError as e:
            raise RowParseError(str(e)) from e
        browser = obj.get("browser") if isinstance(obj, dict) else None
        if not isinstance(browser, dict):
            raise RowParseError("missing field `browser`")
        address = browser.get("address")
        if not isinstance(address, str):
            raise RowParseError("missing or non-string field `browser.address`")
        return cls(address=address)


# api field name -> (attribute, expected type)
API_FIELDS: Dict[str, Tuple[str, type]] = {
    "isPublic": ("is_public", bool),
    "ipVersion": ("ip_version", int),
    "isWhitelisted": ("is_whitelisted", bool),
    "abuseConfidencePercentage": ("abuse_confidence", int),
    "countryCode": ("country_code", str),
    "countryName": ("country_name", str),
    "usageType": ("usage_type", str),
    "isp": ("isp", str),
    "domain": ("domain", str),
    "totalReports": ("total_reports", int),
    "numDistinctUsers": ("num_distinct_users", int),
    "lastReportedAt": ("last_reported_at", str),
}


@dataclass
class ReputationRecord:
    is_public: Optional[bool] = None
    ip_version: Optional[int] = None
    is_whitelisted: Optional[bool] = None
    abuse_confidence: Optional[int] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    usage_type: Optional[str] = None
    isp: Optional[str] = None
    domain: Optional[str] = None
    total_reports: Optional[int] = None
    num_distinct_users: Optional[int] = None
    last_reported_at: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> "ReputationRecord":
        """Decode the `data` object of a /check response. Missing or null fields stay None."""
        if not isinstance(data, dict):
            raise ResponseParseError("response `data` is not an object")
        values: Dict[str, Any] = {}
        for api_name, (attr, typ) in API_FIELDS.items():
            v = data.get(api_name)
            if v is None:
                continue
            # bool is an int subclass; keep the two apart
            if typ is int and (isinstance(v, bool) or not isinstance(v, int)):
                raise ResponseParseError(f"field `{api_name}` is not an integer: {v!r}")
            if typ is not int and not isinstance(v, typ):
                raise ResponseParseError(f"field `{api_name}` has unexpected type: {v!r}")
            values[attr] = v
        score = values.get("abuse_confidence")
        if score is not None and not 0 <= score <= 100:
            raise ResponseParseError(f"field `abuseConfidencePercentage` out of range: {score}")
        return cls(**values)


REPUTATION_FIELDS = [f.name for f in fields(ReputationRecord)]


@dataclass
class EnrichmentResult:
    ip_address: str
    checked_at: str
    reputation: ReputationRecord = field(default_factory=ReputationRecord)
    error: Optional[str] = None

    @property
    def abuse_confidence(self) -> Optional[int]:
        return self.reputation.abuse_confidence

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LookupOutcome:
    ip: str
    record: Optional[ReputationRecord] = None
    error: Optional[CampaignIntelError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> str:
        if self.error is None:
            return ""
        return getattr(self.error, "kind", type(self.error).__name__)


@dataclass
class ExtractionStats:
    total_rows: int = 0
    filtered_rows: int = 0
    skipped_rows: int = 0
    invalid_ips: List[str] = field(default_factory=list)


@dataclass
class RiskSummary:
    high: List[EnrichmentResult] = field(default_factory=list)
    medium: List[EnrichmentResult] = field(default_factory=list)
    low: List[EnrichmentResult] = field(default_factory=list)
    failed: List[EnrichmentResult] = field(default_factory=list)


# ----------------------------
# IP extraction
# ----------------------------

def is_valid_ip(ip_str: str) -> bool:
    try:
        ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return True


def require_columns(fieldnames: Optional[List[str]], path: str) -> None:
    headers = fieldnames or []
    for col in (MESSAGE_COLUMN, DETAILS_COLUMN):
        if col not in headers:
            raise SchemaError(f"'{col}' column not found in CSV file {path}")


def row_ip(row: Dict[str, str]) -> Optional[str]:
    """
    Return the validated client IP of an event row, or None when the row
    does not qualify (wrong message, empty details).

    Raises RowParseError for an undecodable payload and InvalidIPError for an
    address that is not an IP literal.
    """
    if (row.get(MESSAGE_COLUMN) or "") not in TARGET_MESSAGES:
        return None
    details = row.get(DETAILS_COLUMN) or ""
    if not details:
        return None
    ip = BrowserDetails.parse(details).address
    if not is_valid_ip(ip):
        raise InvalidIPError(ip)
    return ip


def extract_unique_ips(csv_path: str) -> Tuple[List[str], ExtractionStats]:
    """Unique valid IPs from qualifying rows, in sorted order."""
    stats = ExtractionStats()
    unique_ips: Set[str] = set()

    with open(csv_path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        require_columns(reader.fieldnames, csv_path)

        for row in reader:
            stats.total_rows += 1
            if (row.get(MESSAGE_COLUMN) or "") in TARGET_MESSAGES:
                stats.filtered_rows += 1
            try:
                ip = row_ip(row)
            except RowParseError as e:
                stats.skipped_rows += 1
                log.warning(f"Invalid JSON in row {stats.total_rows}, skipping... Error: {e}")
                continue
            except InvalidIPError as e:
                stats.invalid_ips.append(str(e))
                continue
            if ip is not None:
                unique_ips.add(ip)

    log.info(f"Found {stats.filtered_rows} rows with target messages out of {stats.total_rows} total rows")
    if stats.invalid_ips:
        log.warning(f"Skipped {len(stats.invalid_ips)} invalid IP addresses:")
        for bad in stats.invalid_ips:
            log.warning(f"  - {bad} (not a valid IP address)")

    return sorted(unique_ips), stats


# ----------------------------
# AbuseIPDB client
# ----------------------------

def shorten_one_line(s: str, n: int = 260) -> str:
    s = re.sub(r"\s+", " ", s or "").strip()
    if len(s) <= n:
        return s
    return s[: n - 3] + "..."


def check_ip_reputation(
    ip: str,
    api_key: str,
    max_age_days: int = 90,
    timeout: float = 10,
    endpoint: str = ABUSEIPDB_ENDPOINT,
) -> ReputationRecord:
    if not is_valid_ip(ip):
        raise InvalidIPError(f"Invalid IP address: {ip}")

    headers = {"Key": api_key, "Accept": "application/json"}
    params = {"ipAddress": ip, "maxAgeInDays": max_age_days, "verbose": ""}
    try:
        r = requests.get(endpoint, headers=headers, params=params, timeout=timeout)
    except requests.RequestException as e:
        raise NetworkError(f"request for {ip} failed: {e}") from e

    if not 200 <= r.status_code < 300:
        raise ApiError(r.status_code, shorten_one_line(r.text, 200))

    try:
        body = r.json()
    except ValueError as e:
        log.debug(f"Response body for {ip}: {shorten_one_line(r.text)}")
        raise ResponseParseError(f"Failed to parse API response for IP {ip}: {e}") from e
    if not isinstance(body, dict) or "data" not in body:
        raise ResponseParseError(f"Failed to parse API response for IP {ip}: missing `data`")
    return ReputationRecord.from_api(body["data"])


def lookup_ip(ip: str, api_key: str, max_age_days: int = 90, timeout: float = 10,
              endpoint: str = ABUSEIPDB_ENDPOINT) -> LookupOutcome:
    try:
        record = check_ip_reputation(ip, api_key, max_age_days=max_age_days,
                                     timeout=timeout, endpoint=endpoint)
    except (InvalidIPError, ReputationLookupError) as e:
        return LookupOutcome(ip=ip, error=e)
    return LookupOutcome(ip=ip, record=record)


# ----------------------------
# Enrichment
# ----------------------------

def utc_now() -> str:
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FMT)


def enrich_ips(
    ips: List[str],
    api_key: str,
    delay_seconds: float = 1.0,
    max_age_days: int = 90,
    timeout: float = 10,
    endpoint: str = ABUSEIPDB_ENDPOINT,
) -> List[EnrichmentResult]:
    """Sequential lookups with a courtesy pause between calls (none after the last)."""
    log.info(f"Analyzing {len(ips)} unique IP addresses...")
    results: List[EnrichmentResult] = []

    for i, ip in enumerate(ips):
        log.info(f"Checking IP {i + 1}/{len(ips)}: {ip}")
        outcome = lookup_ip(ip, api_key, max_age_days=max_age_days, timeout=timeout, endpoint=endpoint)
        checked_at = utc_now()

        if outcome.ok:
            results.append(EnrichmentResult(ip_address=ip, checked_at=checked_at, reputation=outcome.record))
        else:
            log.error(f"Error checking IP {ip} ({outcome.error_kind}): {outcome.error}")
            results.append(EnrichmentResult(ip_address=ip, checked_at=checked_at, error=outcome.error_kind))

        if i < len(ips) - 1 and delay_seconds > 0:
            time.sleep(delay_seconds)

    return results


def classify_risk(results: List[EnrichmentResult]) -> RiskSummary:
    summary = RiskSummary()
    for r in results:
        score = r.abuse_confidence
        if score is None:
            summary.failed.append(r)
        elif score > HIGH_RISK_ABOVE:
            summary.high.append(r)
        elif score > LOW_RISK_AT_MOST:
            summary.medium.append(r)
        else:
            summary.low.append(r)
    return summary


def print_risk_summary(summary: RiskSummary) -> None:
    scored = len(summary.high) + len(summary.medium) + len(summary.low)
    if not scored and not summary.failed:
        return
    if not scored:
        print("\nNote: All IP lookups failed. Please check your API key and network connection.")
        return

    print(f"\nRisk: {len(summary.high)} high, {len(summary.medium)} medium, "
          f"{len(summary.low)} low, {len(summary.failed)} lookup failed")
    if summary.high:
        print("\nHigh risk IPs:")
        for r in summary.high:
            print(f"  - {r.ip_address} ({r.abuse_confidence}% confidence, {r.reputation.country_name or 'Unknown'})")


def analyze_ips(
    ips: List[str],
    api_key: str,
    report_path: str,
    delay_seconds: float = 1.0,
    max_age_days: int = 90,
    timeout: float = 10,
    endpoint: str = ABUSEIPDB_ENDPOINT,
) -> Tuple[List[EnrichmentResult], RiskSummary]:
    results = enrich_ips(ips, api_key, delay_seconds=delay_seconds, max_age_days=max_age_days,
                         timeout=timeout, endpoint=endpoint)
    write_report(results, report_path)
    print(f"\nIP reputation report saved to: {report_path}")

    summary = classify_risk(results)
    print_risk_summary(summary)
    return results, summary


# ----------------------------
# Exporters
# ----------------------------

REPORT_COLUMNS = ["ip_address"] + REPUTATION_FIELDS + ["checked_at"]

ENHANCED_COLUMNS = [
    "ip_address",
    "abuse_confidence",
    "country_name",
    "usage_type",
    "isp",
    "domain",
    "total_reports",
    "num_distinct_users",
]


def csv_cell(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


def result_row(r: EnrichmentResult) -> Dict[str, str]:
    row = {"ip_address": r.ip_address, "checked_at": r.checked_at}
    for name in REPUTATION_FIELDS:
        row[name] = csv_cell(getattr(r.reputation, name))
    return row


def write_report(results: List[EnrichmentResult], outpath: str):
    with open(outpath, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
        w.writeheader()
        for r in results:
            w.writerow(result_row(r))


def write_enhanced_csv(input_path: str, results_by_ip: Dict[str, EnrichmentResult], outpath: str) -> int:
    """Copy the export with the reputation columns appended; returns how many rows got data."""
    enhanced_rows = 0
    with open(input_path, "r", newline="", encoding="utf-8-sig") as src:
        reader = csv.reader(src)
        headers = next(reader, None)
        if headers is None:
            raise SchemaError(f"'{DETAILS_COLUMN}' column not found in CSV file {input_path}")
        require_columns(headers, input_path)

        with open(outpath, "w", newline="", encoding="utf-8") as dst:
            w = csv.writer(dst)
            w.writerow(headers + ENHANCED_COLUMNS)

            for record in reader:
                row = dict(zip(headers, record))
                try:
                    ip = row_ip(row)
                except (RowParseError, InvalidIPError):
                    ip = None

                appended = [""] * len(ENHANCED_COLUMNS)
                match = results_by_ip.get(ip) if ip else None
                if match is not None:
                    enhanced_rows += 1
                    full = result_row(match)
                    appended = [full[c] for c in ENHANCED_COLUMNS]
                w.writerow(record + appended)

    log.info(f"Enhanced CSV saved to: {outpath}")
    log.info(f"Enhanced {enhanced_rows} rows with reputation data")
    return enhanced_rows


# ----------------------------
# Pipeline
# ----------------------------

def default_enhanced_path(csv_path: str) -> str:
    p = Path(csv_path)
    return str(p.with_name(f"{p.stem}_enhanced.csv"))


def run_ip_analysis(
    csv_path: str,
    api_key: str,
    report_path: str,
    enhanced_path: str,
    delay_seconds: float = 1.0,
    config: Optional[dict] = None,
) -> Tuple[List[EnrichmentResult], ExtractionStats]:
    cfg = deep_merge(DEFAULT_CONFIG, config or {})
    abuse = cfg.get("abuseipdb", {}) or {}
    timeout = float((cfg.get("general", {}) or {}).get("timeout_seconds", 10))

    log.info(f"Analyzing CSV file: {csv_path}")
    ips, stats = extract_unique_ips(csv_path)
    log.info(f"Found {len(ips)} unique IP addresses")
    for ip in ips:
        log.info(f"  - {ip}")

    print(f"[+] Rows: {stats.total_rows} total, {stats.filtered_rows} with target messages, "
          f"{stats.skipped_rows} skipped (bad details), {len(stats.invalid_ips)} invalid IPs")
    if not ips:
        print("No IP addresses found to analyze. "
              "Make sure your CSV has 'details' and 'message' columns with the expected data.")

    results, _ = analyze_ips(
        ips,
        api_key,
        report_path,
        delay_seconds=delay_seconds,
        max_age_days=int(abuse.get("max_age_days", 90)),
        timeout=timeout,
        endpoint=abuse.get("endpoint", ABUSEIPDB_ENDPOINT),
    )

    log.info(f"Creating enhanced copy of original CSV ({len(results)} IP records)...")
    write_enhanced_csv(csv_path, {r.ip_address: r for r in results}, enhanced_path)

    print("\n=== PROCESS COMPLETE ===")
    print(f"1. IP reputation report: {report_path}")
    print(f"2. Enhanced original CSV: {enhanced_path}")
    return results, stats


# ----------------------------
# Template prep
# ----------------------------

EMAIL_REGEX = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
ANCHOR_REGEX = re.compile(r"(?is)<a\b([^>]*)>")
HREF_ATTR_REGEX = re.compile(r"""(?is)(?<=\s)href\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""")
SCRIPT_REGEX = re.compile(r"(?is)<script\b[^>]*>.*?</script\s*>")

HTML_EXTS = {".html", ".htm"}


def read_eml(path: str):
    with open(path, "rb") as f:
        return BytesParser(policy=policy.default).parse(f)


def part_text(part, eml_path: str) -> str:
    try:
        return str(part.get_content())
    except (LookupError, ValueError) as e:
        raise TemplateError(f"cannot decode body of {eml_path}: {e}") from e


def eml_to_html(eml_path: str) -> str:
    msg = read_eml(eml_path)

    part = msg.get_body(preferencelist=("html",))
    if part is not None:
        return part_text(part, eml_path)

    part = msg.get_body(preferencelist=("plain",))
    if part is not None:
        return f"<html><body><pre>{html_lib.escape(part_text(part, eml_path))}</pre></body></html>"

    return "<html><body>No content found</body></html>"


def add_href_to_anchor_tags(html: str, new_href: str = "{{.URL}}") -> str:
    def repl(m: re.Match) -> str:
        attrs = m.group(1)
        href = f'href="{new_href}"'
        if HREF_ATTR_REGEX.search(attrs):
            attrs = HREF_ATTR_REGEX.sub(lambda _: href, attrs, count=1)
        else:
            attrs = f"{attrs.rstrip()} {href}"
        return f"<a{attrs}>"

    return ANCHOR_REGEX.sub(repl, html)


def add_tracker(html: str) -> str:
    return html.replace("</html>", "{{.Tracker}}\n</html>")


def anonymize_emails(html: str) -> str:
    return EMAIL_REGEX.sub("{{.Email}}", html)


def remove_scripts(html: str) -> str:
    return SCRIPT_REGEX.sub("", html)


def iter_files(directory: str, exts: Set[str]) -> Iterator[Path]:
    for p in sorted(Path(directory).rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def rewrite_file(path: Path, *steps) -> None:
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise TemplateError(f"{path} is not valid UTF-8: {e}") from e
    for step in steps:
        content = step(content)
    path.write_text(content, encoding="utf-8")


def convert_eml_file(eml_path: Path) -> Path:
    out = eml_path.with_suffix(".html")
    out.write_text(eml_to_html(str(eml_path)), encoding="utf-8")
    return out


def add_href_to_file(html_path: Path, new_href: str = "{{.URL}}") -> None:
    rewrite_file(html_path, lambda c: add_href_to_anchor_tags(c, new_href), add_tracker)


def remove_scripts_from_file(html_path: Path) -> None:
    rewrite_file(html_path, remove_scripts)


def build_template(eml_path: Path, anonymize: bool = True, new_href: str = "{{.URL}}") -> Path:
    """Convert an .eml into a ready-to-import template next to it."""
    content = eml_to_html(str(eml_path))
    if anonymize:
        content = anonymize_emails(content)
    content = add_tracker(add_href_to_anchor_tags(content, new_href))
    content = remove_scripts(content)

    out = eml_path.with_suffix(".html")
    out.write_text(content, encoding="utf-8")
    return out


def for_each_file(directory: str, exts: Set[str], action, verb: str) -> int:
    done = 0
    for p in iter_files(directory, exts):
        try:
            action(p)
            done += 1
            log.info(f"{verb} {p}")
        except (OSError, TemplateError) as e:
            log.error(f"Failed: {p} error={e}")
    return done


def check_input_file(path: str, exts: Set[str], label: str) -> Path:
    p = Path(path)
    if not p.is_file() or p.suffix.lower() not in exts:
        raise CampaignIntelError(f"Invalid {label} file specified: {path}")
    return p


# ----------------------------
# CLI
# ----------------------------

def add_target_args(sp: argparse.ArgumentParser, file_help: str):
    g = sp.add_mutually_exclusive_group(required=True)
    g.add_argument("-f", "--file", help=file_help)
    g.add_argument("-d", "--directory", help="Directory to process recursively")


def build_arg_parser():
    ap = argparse.ArgumentParser(description="Phishing campaign tooling: IP reputation enrichment + template prep")
    ap.add_argument("--config", default="config.yaml", help="Config YAML path (optional)")
    ap.add_argument("--log-dir", default=None, help="Log directory (overrides config)")
    ap.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING, ERROR")
    sub = ap.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("analyze-ips", help="Check event-export IPs against AbuseIPDB")
    sp.add_argument("csv_path", help="Campaign event export (CSV with message/details columns)")
    sp.add_argument("-o", "--output", default="ip_reputation_report.csv", help="Reputation report CSV")
    sp.add_argument("--enhanced", default=None, help="Enhanced export CSV (default: <input>_enhanced.csv)")
    sp.add_argument("--delay", type=float, default=None, help="Seconds between API calls (default from config)")
    sp.add_argument("--api-key", default=None, help="AbuseIPDB API key (default: env from config)")

    sp = sub.add_parser("eml-to-html", help="Convert .eml files to HTML")
    add_target_args(sp, "Single .eml file")

    sp = sub.add_parser("add-href", help="Point every link at {{.URL}} and add {{.Tracker}}")
    add_target_args(sp, "Single HTML file")

    sp = sub.add_parser("strip-scripts", help="Remove <script> blocks from HTML files")
    add_target_args(sp, "Single HTML file")

    sp = sub.add_parser("build-template", help="eml-to-html + add-href + strip-scripts in one go")
    add_target_args(sp, "Single .eml file")
    sp.add_argument("--keep-emails", action="store_true",
                    help="Leave email addresses as-is (default: replace with {{.Email}})")
    return ap


def run_command(args, config: dict) -> None:
    new_href = (config.get("templates", {}) or {}).get("url_placeholder", "{{.URL}}")

    if args.command == "analyze-ips":
        api_key = resolve_api_key(args.api_key, config)
        delay = args.delay
        if delay is None:
            delay = float((config.get("general", {}) or {}).get("delay_seconds", 1.0))
        if delay < 0:
            raise ConfigError("--delay must not be negative")
        run_ip_analysis(
            args.csv_path,
            api_key,
            args.output,
            args.enhanced or default_enhanced_path(args.csv_path),
            delay_seconds=delay,
            config=config,
        )
        return

    if args.command == "eml-to-html":
        if args.file:
            out = convert_eml_file(check_input_file(args.file, {".eml"}, ".eml"))
            print(f"[+] Created {out}")
        else:
            n = for_each_file(args.directory, {".eml"}, convert_eml_file, "Converted")
            print(f"[+] Converted {n} .eml files")
        return

    if args.command == "add-href":
        if args.file:
            add_href_to_file(check_input_file(args.file, HTML_EXTS, "HTML"), new_href)
            print(f"[+] Updated {args.file}")
        else:
            n = for_each_file(args.directory, HTML_EXTS, lambda p: add_href_to_file(p, new_href), "Updated")
            print(f"[+] Updated {n} HTML files")
        return

    if args.command == "strip-scripts":
        if args.file:
            remove_scripts_from_file(check_input_file(args.file, HTML_EXTS, "HTML"))
            print(f"[+] Removed scripts from {args.file}")
        else:
            n = for_each_file(args.directory, HTML_EXTS, remove_scripts_from_file, "Removed scripts from")
            print(f"[+] Removed scripts from {n} HTML files")
        return

    if args.command == "build-template":
        def build(p: Path) -> Path:
            return build_template(p, anonymize=not args.keep_emails, new_href=new_href)

        if args.file:
            out = build(check_input_file(args.file, {".eml"}, ".eml"))
            print(f"[+] Created {out}")
        else:
            n = for_each_file(args.directory, {".eml"}, build, "Created template from")
            print(f"[+] Created {n} templates")
        return


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_arg_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except CampaignIntelError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    log_dir = args.log_dir or (config.get("general", {}) or {}).get("log_dir", "logs")
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    setup_logging(log_dir, level=level)

    try:
        run_command(args, config)
    except (CampaignIntelError, OSError) as e:
        log.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
