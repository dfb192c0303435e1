#!/usr/bin/env python3
"""
Dynamic DNS updater for Cloudflare.

Looks up this machine's public IP, reads each configured DNS record and
updates it only when the address (or TTL/proxied flag) changed.

Config (~/.homescripts/ddns_update.json):
  {
    "ApiToken": "CLOUDFLARE_API_TOKEN",
    "ZoneId": "0123456789abcdef0123456789abcdef",
    "Records": ["home.example.com", "vpn.example.com"],
    "Ttl": 300,
    "Proxied": false
  }

Usage:
  python -m homescripts.network.ddns_update
  python -m homescripts.network.ddns_update --dry-run --verbose
  python -m homescripts.network.ddns_update --create --force
"""
import sys
import logging
import argparse
import ipaddress
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from homescripts import __version__
from homescripts.utils import http
from homescripts.utils.cli import run_script
from homescripts.utils.common import print_section
from homescripts.utils.config import ConfigManager
from homescripts.utils.errors import ConfigError, ScriptError
from homescripts.utils.logs import setup_logging

SCRIPT_NAME = "ddns_update"

API_BASE = "https://api.cloudflare.com/client/v4"

DEFAULT_IP_SOURCES = {
    "A": ["https://api.ipify.org", "https://ipv4.icanhazip.com", "https://ifconfig.me/ip"],
    "AAAA": ["https://api6.ipify.org", "https://ipv6.icanhazip.com"],
}

UPDATED = "updated"
CREATED = "created"
UNCHANGED = "unchanged"
FAILED = "failed"


@dataclass
class DdnsConfig:
    """Configuration for the DNS updater"""
    api_token: str
    zone_id: str
    records: List[str] = field(default_factory=list)
    record_name: Optional[str] = None
    record_type: str = "A"
    ttl: int = 1                 # 1 = automatic
    proxied: bool = False
    ip_sources: List[str] = field(default_factory=list)

    def record_names(self) -> List[str]:
        names = list(self.records)
        if self.record_name and self.record_name not in names:
            names.append(self.record_name)
        return names


def parse_ip(text: str, record_type: str) -> Optional[str]:
    """The address in text if it is valid for the record type, else None"""
    try:
        ip = ipaddress.ip_address(text.strip())
    except ValueError:
        return None
    if record_type == "AAAA" and ip.version != 6:
        return None
    if record_type == "A" and ip.version != 4:
        return None
    return str(ip)


def get_public_ip(sources: List[str], record_type: str = "A",
                  session: Optional[requests.Session] = None) -> str:
    """Ask each source in turn until one returns a valid address"""
    http_session = session or requests
    for url in sources:
        try:
            r = http_session.get(url, timeout=10)
        except requests.RequestException as e:
            logging.warning("IP lookup via %s failed: %s", url, e)
            continue
        if r.status_code != 200:
            logging.warning("IP lookup via %s -> %d", url, r.status_code)
            continue
        ip = parse_ip(r.text, record_type)
        if ip:
            logging.debug("Public IP %s (from %s)", ip, url)
            return ip
        logging.warning("IP lookup via %s returned %r", url, r.text[:60])
    raise ScriptError("Could not determine the public IP address from any source")


class CloudflareDns:
    """The few Cloudflare v4 DNS record calls the updater needs"""

    def __init__(self, api_token: str, zone_id: str, session: Optional[requests.Session] = None):
        self.zone_id = zone_id
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

    @property
    def records_url(self) -> str:
        return f"{API_BASE}/zones/{self.zone_id}/dns_records"

    def _check(self, r: requests.Response, action: str) -> Any:
        try:
            body = r.json()
        except ValueError:
            raise ScriptError(f"{action} failed ({r.status_code}): {r.text[:200]}")
        if r.status_code >= 400 or not body.get("success", False):
            errors = "; ".join(e.get("message", str(e)) for e in body.get("errors") or []) or r.text[:200]
            raise ScriptError(f"{action} failed ({r.status_code}): {errors}")
        return body.get("result")

    def find_record(self, name: str, record_type: str) -> Optional[Dict[str, Any]]:
        r = http.get_json(self.records_url, session=self.session, headers=self.headers,
                          params={"type": record_type, "name": name})
        result = self._check(r, f"Lookup {name}") or []
        return result[0] if result else None

    def update_record(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        r = http.put_json(f"{self.records_url}/{record_id}", payload, session=self.session, headers=self.headers)
        return self._check(r, f"Update {payload['name']}")

    def create_record(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        r = http.post_json(self.records_url, payload, session=self.session, headers=self.headers)
        return self._check(r, f"Create {payload['name']}")


def record_payload(config: DdnsConfig, name: str, ip: str) -> Dict[str, Any]:
    return {
        "type": config.record_type,
        "name": name,
        "content": ip,
        "ttl": config.ttl,
        "proxied": config.proxied,
    }


def needs_update(record: Dict[str, Any], payload: Dict[str, Any]) -> bool:
    return (
        record.get("content") != payload["content"]
        or int(record.get("ttl", 1)) != payload["ttl"]
        or bool(record.get("proxied", False)) != payload["proxied"]
    )


def sync_record(dns: CloudflareDns, config: DdnsConfig, name: str, ip: str,
                create: bool = False, force: bool = False, dry_run: bool = False) -> str:
    """Bring one record in line with ip. Returns the outcome."""
    payload = record_payload(config, name, ip)
    record = dns.find_record(name, config.record_type)

    if record is None:
        if not create:
            raise ScriptError(f"{config.record_type} record {name} does not exist (use --create)")
        logging.info("[CREATE] %s -> %s", name, ip)
        if not dry_run:
            dns.create_record(payload)
        return CREATED

    if not force and not needs_update(record, payload):
        logging.info("[OK]     %s is up to date (%s)", name, ip)
        return UNCHANGED

    logging.info("[UPDATE] %s: %s -> %s", name, record.get("content"), ip)
    if not dry_run:
        dns.update_record(record["id"], payload)
    return UPDATED


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Update Cloudflare DNS records with this machine's public IP")
    p.add_argument("--config", help="Config file path")
    p.add_argument("--init-config", action="store_true", help="Write a template config file and exit")
    p.add_argument("--ip", help="Use this address instead of looking it up")
    p.add_argument("--create", action="store_true", help="Create records that do not exist")
    p.add_argument("--force", "-f", action="store_true", help="Update even when nothing changed")
    p.add_argument("--dry-run", "-n", action="store_true", help="Report without changing records")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    manager = ConfigManager(SCRIPT_NAME, args.config)

    if args.init_config:
        template = DdnsConfig(api_token="CLOUDFLARE_API_TOKEN", zone_id="ZONE_ID",
                              records=["home.example.com"], ttl=300)
        path = manager.write_template(template)
        print(f"✓ Wrote {path}")
        return 0

    config = manager.load(DdnsConfig)
    config.record_type = config.record_type.upper()
    if config.record_type not in DEFAULT_IP_SOURCES:
        raise ConfigError("RecordType must be A or AAAA")
    names = config.record_names()
    if not names:
        raise ConfigError("No records configured (set Records or RecordName)")
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)

    if args.ip:
        ip = parse_ip(args.ip, config.record_type)
        if not ip:
            raise ScriptError(f"Not a valid {config.record_type} address: {args.ip}")
    else:
        ip = get_public_ip(config.ip_sources or DEFAULT_IP_SOURCES[config.record_type], config.record_type)

    print_section("DDNS Update")
    print(f"  Public IP: {ip}")
    print(f"  Records:   {', '.join(names)}")
    if args.dry_run:
        print("  Mode:      DRY RUN")
    print("=" * 60)

    dns = CloudflareDns(config.api_token, config.zone_id)
    results: Dict[str, str] = {}
    for name in names:
        try:
            results[name] = sync_record(dns, config, name, ip, create=args.create,
                                        force=args.force, dry_run=args.dry_run)
        except (ScriptError, requests.RequestException) as e:
            logging.error("[FAIL]   %s: %s", name, e)
            results[name] = FAILED

    failed = [n for n, outcome in results.items() if outcome == FAILED]
    return 1 if failed else 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
