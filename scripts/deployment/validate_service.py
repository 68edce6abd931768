#!/usr/bin/env python3
"""
Smoke checks against a running link shortener.

Creates a few links on the live service and follows them, so run it against
a deployment whose database may receive test rows.

Usage:
    python validate_service.py --url http://localhost:9200
"""

import argparse
import sys
import time
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

import requests


class ServiceValidator:
    """Runs checks against a live link shortener."""

    def __init__(self, base_url: str = "http://localhost:9200", timeout: float = 5):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.results: List[Tuple[str, bool]] = []
        self.run_id = str(int(time.time()))

    def record(self, name: str, passed: bool, details: str = "") -> bool:
        self.results.append((name, passed))
        print(f"{'PASS' if passed else 'FAIL'} - {name}")
        if details:
            print(f"       {details}")
        return passed

    def shorten(self, **payload) -> requests.Response:
        return self.session.post(f"{self.base_url}/api/shorten", json=payload, timeout=self.timeout)

    def follow(self, path: str, **params) -> requests.Response:
        return self.session.get(
            f"{self.base_url}/{path}",
            params=params,
            allow_redirects=False,
            timeout=self.timeout,
        )

    def check_health(self) -> bool:
        response = self.session.get(f"{self.base_url}/api/health", timeout=self.timeout)
        data = response.json() if response.status_code == 200 else {}
        return self.record(
            "Health",
            data.get("status") == "healthy",
            f"Database: {data.get('database')}, Cache: {data.get('cache')}",
        )

    def check_create(self) -> Optional[str]:
        response = self.shorten(url=f"https://example.com/validate/{self.run_id}?a=1&b=2")
        token = response.json().get("token") if response.status_code == 200 else None
        self.record("Create link", token is not None, f"Status: {response.status_code}, Key: {token}")
        return token

    def check_redirect(self, token: str) -> bool:
        response = self.follow(f"{token}/trailing", b="3", c="4")
        location = urlsplit(response.headers.get("Location", ""))
        merged = parse_qs(location.query) == {"a": ["1"], "b": ["3"], "c": ["4"]}
        return self.record(
            "Redirect with query merge",
            response.status_code == 301 and merged,
            f"Status: {response.status_code}, Location: {response.headers.get('Location')}",
        )

    def check_link_info(self, token: str) -> bool:
        response = self.session.get(f"{self.base_url}/api/links/{token}", timeout=self.timeout)
        data = response.json() if response.status_code == 200 else {}
        # The use count is incremented in the background
        return self.record(
            "Link info",
            data.get("token") == token,
            f"Use count: {data.get('use_count')}",
        )

    def check_custom_key(self) -> bool:
        key = f"check{self.run_id}"
        first = self.shorten(url="https://example.com/custom", custom_key=key, fresh=True)
        second = self.shorten(url="https://example.com/other", custom_key=key, fresh=True)
        return self.record(
            "Custom key and duplicate rejection",
            first.status_code == 200 and second.status_code == 409,
            f"Statuses: {first.status_code}, {second.status_code} (expected 200, 409)",
        )

    def check_invalid_url(self) -> bool:
        response = self.shorten(url="https://example.com/not valid")
        return self.record(
            "Invalid URL rejection",
            response.status_code == 400,
            f"Status: {response.status_code} (expected 400)",
        )

    def check_unknown_key(self) -> bool:
        response = self.follow(f"zz{self.run_id}")
        return self.record(
            "Unknown key fallback",
            response.status_code == 302,
            f"Status: {response.status_code}, Location: {response.headers.get('Location')}",
        )

    def check_stats(self) -> bool:
        response = self.session.get(f"{self.base_url}/api/stats", timeout=self.timeout)
        data = response.json() if response.status_code == 200 else {}
        return self.record(
            "Statistics",
            "total_links" in data,
            f"Links: {data.get('total_links')}, Uses: {data.get('total_uses')}",
        )

    def run(self) -> bool:
        print(f"Validating {self.base_url} at {datetime.now().isoformat()}\n")

        if not self.check_health():
            print(f"\nService is not healthy at {self.base_url}")
            return False

        token = self.check_create()
        if token:
            self.check_redirect(token)
            self.check_link_info(token)

        self.check_custom_key()
        self.check_invalid_url()
        self.check_unknown_key()
        self.check_stats()

        passed = sum(1 for _, ok in self.results if ok)
        print(f"\n{passed}/{len(self.results)} checks passed")
        for name, ok in self.results:
            if not ok:
                print(f"   - {name}")

        return passed == len(self.results)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a running link shortener")
    parser.add_argument(
        "--url",
        default="http://localhost:9200",
        help="Base URL of the service (default: http://localhost:9200)"
    )
    parser.add_argument("--timeout", type=float, default=5, help="Request timeout in seconds")

    args = parser.parse_args()

    validator = ServiceValidator(args.url, timeout=args.timeout)

    try:
        success = validator.run()
    except requests.RequestException as e:
        print(f"\nValidation aborted: {e}")
        sys.exit(3)
    except KeyboardInterrupt:
        print("\nValidation interrupted")
        sys.exit(2)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
