#!/usr/bin/env python3
"""
Backend API Smoke Test for the Partners Analytics Dashboard

Runs against a live server and checks that every endpoint is:
1. Accessible and responding
2. Returning valid JSON responses
3. Returning the expected data structure

A throwaway partner account is registered so the session-protected
endpoints can be exercised.

Usage:
    python tests/test_backend_api.py [--base-url http://localhost:8080]
"""

import argparse
import json
import sys
import uuid
from datetime import datetime

import requests


class Colors:
    """ANSI color codes for terminal output"""
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


def print_pass(message: str):
    print(f"  {Colors.GREEN}[PASS]{Colors.RESET} {message}")


def print_fail(message: str):
    print(f"  {Colors.RED}[FAIL]{Colors.RESET} {message}")


def print_warn(message: str):
    print(f"  {Colors.YELLOW}[WARN]{Colors.RESET} {message}")


def print_header(title: str):
    print(f"\n{Colors.BOLD}{'='*60}{Colors.RESET}")
    print(f"{Colors.BOLD}{title}{Colors.RESET}")
    print(f"{Colors.BOLD}{'='*60}{Colors.RESET}")


class APITester:
    """Smoke-test harness for the backend API (not collected by pytest)"""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.session = requests.Session()
        self.passed = 0
        self.failed = 0
        self.warnings = 0

    def check(
        self,
        name: str,
        method: str,
        endpoint: str,
        expected_status: int = 200,
        expected_keys: list[str] | None = None,
        expected_type: type | None = None,
        params: dict | None = None,
        body: dict | None = None
    ):
        """Call one endpoint and record the outcome; returns parsed JSON or None"""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(method, url, params=params, json=body, timeout=30)

            if response.status_code != expected_status:
                print_fail(f"{name}: HTTP {response.status_code} (expected {expected_status})")
                self.failed += 1
                return None

            try:
                data = response.json()
            except json.JSONDecodeError:
                print_fail(f"{name}: Invalid JSON response")
                self.failed += 1
                return None

            if expected_type is not None and not isinstance(data, expected_type):
                print_fail(f"{name}: Expected {expected_type.__name__}, got {type(data).__name__}")
                self.failed += 1
                return None

            if expected_keys and isinstance(data, dict):
                missing_keys = [k for k in expected_keys if k not in data]
                if missing_keys:
                    print_warn(f"{name}: Missing keys: {missing_keys}")
                    self.warnings += 1

            print_pass(name)
            self.passed += 1
            return data

        except requests.exceptions.ConnectionError:
            print_fail(f"{name}: Connection refused (is server running?)")
            self.failed += 1
        except requests.exceptions.Timeout:
            print_fail(f"{name}: Request timed out")
            self.failed += 1
        return None

    def run_all_tests(self):
        print_header("Health Check")
        self.check("Health Check", "GET", "/api/health", expected_keys=["status"], expected_type=dict)

        print_header("Auth")
        self.check("Metrics without session", "GET", "/api/metrics", expected_status=401)
        password = uuid.uuid4().hex
        self.check(
            "Register",
            "POST",
            "/api/auth/register",
            expected_status=201,
            expected_keys=["user", "project"],
            body={
                "name": "Smoke Test",
                "email": f"smoke-{uuid.uuid4().hex[:8]}@example.com",
                "password": password,
                "confirmPassword": password
            }
        )
        self.check("Me", "GET", "/api/me", expected_keys=["user", "project"], expected_type=dict)

        print_header("Project")
        self.check(
            "Update Project",
            "PATCH",
            "/api/project",
            expected_keys=["thorName", "setupCompleted"],
            body={"thorName": "smoke-test", "setupCompleted": "true"}
        )

        print_header("Dashboard Data")
        self.check("Metrics (All Time)", "GET", "/api/metrics", expected_keys=["series", "totals"], expected_type=dict)
        self.check("Metrics (7D)", "GET", "/api/metrics", expected_keys=["series", "totals"], params={"range": "7d"})
        self.check("Transactions", "GET", "/api/transactions", expected_type=list, params={"limit": 10})

        print_header("API Keys")
        created = self.check(
            "Create API Key",
            "POST",
            "/api/keys",
            expected_status=201,
            expected_keys=["id", "key"],
            body={"name": "smoke"}
        )
        self.check("List API Keys", "GET", "/api/keys", expected_type=list)
        if created:
            self.check("Delete API Key", "DELETE", f"/api/keys/{created['id']}")

        self.check("Logout", "POST", "/api/auth/logout")

        print_header("Test Summary")
        total = self.passed + self.failed
        print(f"  Total checks: {total}")
        print_pass(f"Passed: {self.passed}")
        if self.failed > 0:
            print_fail(f"Failed: {self.failed}")
        if self.warnings > 0:
            print_warn(f"Warnings: {self.warnings}")

        return self.failed == 0


def main():
    parser = argparse.ArgumentParser(description="Smoke-test the Partners Analytics backend API")
    parser.add_argument(
        "--base-url",
        default="http://localhost:8080",
        help="Base URL of the backend API (default: http://localhost:8080)"
    )
    args = parser.parse_args()

    print(f"\nPartners Analytics - Backend API Smoke Test")
    print(f"Testing against: {args.base_url}")
    print(f"Time: {datetime.now().isoformat()}")

    tester = APITester(args.base_url)
    success = tester.run_all_tests()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
