#!/usr/bin/env python3
"""
Trigger the next-day reminder batch.

Meant to be run by cron once a day at 18:00 in the service time zone, e.g.:

    0 18 * * * cd /srv/labvisit && python scripts/send_reminders.py

Environment Variables:
    ADMIN_PASSWORD: Admin dashboard password
    API_URL: Base API URL (default: http://localhost:8000)
"""

import argparse
import os
import sys

import dotenv
import requests

dotenv.load_dotenv()


def send_reminders(api_url: str, admin_password: str) -> dict:
    """Call the reminder endpoint and return its counters."""
    url = f"{api_url.rstrip('/')}/api/v1/admin/reminders/send"
    headers = {"X-Admin-Password": admin_password}

    try:
        response = requests.post(url, headers=headers, timeout=120)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.HTTPError as e:
        print(f"HTTP Error: {e}", file=sys.stderr)
        print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Request Error: {e}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Send reminders for tomorrow's appointments")
    parser.add_argument(
        "--api-url",
        default=os.getenv("API_URL", "http://localhost:8000"),
        help="Base API URL",
    )
    args = parser.parse_args()

    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_password:
        print("Error: ADMIN_PASSWORD environment variable not set", file=sys.stderr)
        sys.exit(1)

    result = send_reminders(args.api_url, admin_password)
    print(f"✓ Reminders processed: {result['processed']}, sent: {result['sent']}")


if __name__ == "__main__":
    main()
