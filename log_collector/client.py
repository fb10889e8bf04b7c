"""
Load Generator Client

Sends synthetic log records to the Log Collector Service and reads them
back. Useful for smoke testing a deployment and for generating traffic.

Usage:
    log-collector-client --mode batch --service payment-service --batch-size 5
    log-collector-client --mode get --service auth-service --limit 10
    log-collector-client --mode get --service all --limit 50
"""

import argparse
import random
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

DEFAULT_URL = "http://localhost:3000/logs"

SERVICE_TOKENS = {
    "auth-service": "token123",
    "payment-service": "token456",
    "api-service": "token789",
    "admin": "xXAdminXx",
}

SEVERITIES = ("INFO", "WARN", "ERROR")


def make_log(service: str, rng: Optional[random.Random] = None) -> Dict[str, str]:
    """Build one synthetic log record for ``service``."""
    rng = rng or random
    return {
        "service": service,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "severity": rng.choice(SEVERITIES),
        "message": f"Log event from {service}",
    }


def build_query_params(
    service: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = 10,
    offset: int = 0,
    timestamp_start: Optional[str] = None,
    timestamp_end: Optional[str] = None,
    received_at_start: Optional[str] = None,
    received_at_end: Optional[str] = None
) -> Dict[str, Any]:
    """Query parameters for a read; "all" and empty filters are left out."""
    params: Dict[str, Any] = {}

    if service and service != "all":
        params["service"] = service
    if severity and severity != "all":
        params["severity"] = severity
    if timestamp_start:
        params["timestamp_start"] = timestamp_start
    if timestamp_end:
        params["timestamp_end"] = timestamp_end
    if received_at_start:
        params["received_at_start"] = received_at_start
    if received_at_end:
        params["received_at_end"] = received_at_end

    params["limit"] = limit
    if offset:
        params["offset"] = offset
    return params


class LogCollectorClient:
    """
    HTTP client for the Log Collector Service.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        tokens: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize the client.

        Args:
            url: Full URL of the /logs endpoint
            tokens: Service name -> token table
            client: Preconfigured httpx client (mainly for tests)
        """
        self.url = url
        self.tokens = tokens if tokens is not None else SERVICE_TOKENS
        self.client = client or httpx.Client(timeout=30.0)

    def _headers(self, service: str) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.tokens.get(service, '')}",
            "Content-Type": "application/json",
        }

    def send_one(self, service: str) -> httpx.Response:
        """POST a single record."""
        return self.client.post(self.url, headers=self._headers(service), json=make_log(service))

    def send_batch(self, service: str, size: int) -> httpx.Response:
        """POST a batch of ``size`` records."""
        logs = [make_log(service) for _ in range(size)]
        return self.client.post(self.url, headers=self._headers(service), json={"logs": logs})

    def get_logs(self, **filters) -> httpx.Response:
        """GET records matching ``filters`` (see build_query_params)."""
        return self.client.get(self.url, params=build_query_params(**filters))

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def format_rows(results: List[Dict[str, Any]]) -> str:
    """Render records as a fixed-width table."""
    columns = ("service", "severity", "message", "timestamp", "received_at")
    rows = [[str(r.get(c, "")) for c in columns] for r in results]
    widths = [max([len(c)] + [len(row[i]) for row in rows]) for i, c in enumerate(columns)]

    lines = ["  ".join(c.ljust(w) for c, w in zip(columns, widths))]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(v.ljust(w) for v, w in zip(row, widths)))
    return "\n".join(lines)


def _report_write(label: str, response: httpx.Response) -> bool:
    if response.is_success:
        body = response.json()
        print(f"{label} -> SUCCESS {response.status_code} (accepted={body.get('accepted')})")
        return True

    try:
        detail = response.json()
    except ValueError:
        detail = response.text
    print(f"{label} -> FAILED ({response.status_code}): {detail}", file=sys.stderr)
    return False


def run_get(client: LogCollectorClient, args: argparse.Namespace) -> int:
    response = client.get_logs(
        service=args.service,
        severity=args.severity,
        limit=args.limit,
        offset=args.offset,
        timestamp_start=args.timestamp_start,
        timestamp_end=args.timestamp_end,
        received_at_start=args.received_at_start,
        received_at_end=args.received_at_end,
    )
    print(f"Fetching: {response.request.url}")

    if not response.is_success:
        try:
            detail = response.json().get("error")
        except ValueError:
            detail = response.text
        print(f"GET failed ({response.status_code}): {detail}", file=sys.stderr)
        return 1

    data = response.json()
    print(f"\nRetrieved {data['count']} logs\n")
    print(format_rows(data["results"]))
    return 0


def run_send(client: LogCollectorClient, args: argparse.Namespace) -> int:
    failures = 0
    for i in range(args.repeat):
        if args.mode == "batch":
            response = client.send_batch(args.service, args.batch_size)
            label = f"[{args.service}] BATCH x{args.batch_size}"
        else:
            response = client.send_one(args.service)
            label = f"[{args.service}] ONE"

        if not _report_write(label, response):
            failures += 1

        if i < args.repeat - 1 and args.sleep > 0:
            time.sleep(args.sleep)

    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send synthetic logs to, or read logs from, the Log Collector Service"
    )
    parser.add_argument("--url", default=DEFAULT_URL, help="URL of the /logs endpoint")
    parser.add_argument("--mode", choices=["one", "batch", "get"], default="one")
    parser.add_argument("--service", default="api-service", help="Service name")
    parser.add_argument("--severity", default="all", help="Filter by severity (get mode)")
    parser.add_argument("--limit", type=int, default=10, help="How many logs to fetch (get mode)")
    parser.add_argument("--offset", type=int, default=0, help="How many logs to skip (get mode)")
    parser.add_argument("--timestamp-start", default=None, help="Start timestamp filter")
    parser.add_argument("--timestamp-end", default=None, help="End timestamp filter")
    parser.add_argument("--received-at-start", default=None, help="Start received_at filter")
    parser.add_argument("--received-at-end", default=None, help="End received_at filter")
    parser.add_argument("--repeat", type=int, default=1, help="Repeat count")
    parser.add_argument("--batch-size", type=int, default=5, help="Batch size")
    parser.add_argument("--sleep", type=float, default=1.0, help="Seconds between sends")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    with LogCollectorClient(url=args.url) as client:
        try:
            if args.mode == "get":
                return run_get(client, args)
            return run_send(client, args)
        except httpx.HTTPError as e:
            print(f"[{args.service}] ERROR: {e}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    sys.exit(main())
