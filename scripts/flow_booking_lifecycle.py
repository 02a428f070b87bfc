#!/usr/bin/env python3
"""
Booking lifecycle flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Tokens are minted locally with the server's JWT settings, so run it with the
same environment (.env) as the API.

Usage:
    python scripts/flow_booking_lifecycle.py --service-id <UUID> --customer-id <UUID> --provider-user-id <UUID>
    python scripts/flow_booking_lifecycle.py --service-id <UUID> --customer-id <UUID> --provider-user-id <UUID> --cancel

Flow:
    1. Create booking (as customer)
    2. Confirm booking (as provider)
    3. Start booking (as provider)
    4. Complete booking (as provider)
    5. Show status history

With --cancel the customer cancels the pending booking instead and the
provider's confirm is expected to fail with 409.
"""

import argparse
import json
import sys
from datetime import date, timedelta
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.security import create_access_token  # noqa: E402

BASE_URL = "http://localhost:8000"
API = f"{BASE_URL}/api/v1"


def token_for(user_id: str) -> str:
    """Mint an access token for an existing user."""
    return create_access_token({"sub": user_id})


def api_request(token: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    response = httpx.request(
        method,
        f"{API}{endpoint}",
        headers={"Authorization": f"Bearer {token}"},
        json=data,
        timeout=10.0,
    )
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    data = result["data"]
    if fields and isinstance(data, dict):
        data = {k: data.get(k) for k in fields if k in data}
    print(json.dumps(data, indent=2))
    return True


BOOKING_FIELDS = ["id", "booking_number", "status", "confirmed_at", "completed_at", "cancelled_by"]


def main():
    parser = argparse.ArgumentParser(description="Booking lifecycle flow")
    parser.add_argument("--service-id", required=True, help="Service UUID")
    parser.add_argument("--customer-id", required=True, help="Customer user UUID")
    parser.add_argument("--provider-user-id", required=True, help="Provider's user UUID")
    parser.add_argument("--date", default=(date.today() + timedelta(days=1)).isoformat())
    parser.add_argument("--time", default="10:00", help="HH:MM")
    parser.add_argument("--cancel", action="store_true", help="Cancel instead of completing")
    args = parser.parse_args()

    customer = token_for(args.customer_id)
    provider = token_for(args.provider_user_id)

    print_step(1, "Create booking (customer)")
    created = api_request(customer, "POST", "/bookings", {
        "service_id": args.service_id,
        "scheduled_date": args.date,
        "scheduled_time": args.time,
        "customer_name": "Flow Script",
        "customer_phone": "+15550199",
        "customer_address": "1 Test Road",
        "notes": "Created by flow_booking_lifecycle.py",
    })
    if not print_result(created, BOOKING_FIELDS):
        sys.exit(1)
    booking_id = created["data"]["id"]

    if args.cancel:
        print_step(2, "Cancel booking (customer)")
        result = api_request(customer, "PUT", f"/bookings/{booking_id}/cancel", {
            "reason": "schedule conflict",
        })
        if not print_result(result, BOOKING_FIELDS):
            sys.exit(1)

        print_step(3, "Confirm cancelled booking (provider, expect 409)")
        result = api_request(provider, "PUT", f"/bookings/{booking_id}/confirm")
        print_result(result)
        if result["status"] != 409:
            print("Expected 409 invalid_transition")
            sys.exit(1)
        step = 4
    else:
        steps = [
            ("Confirm booking (provider)", "confirm", {"provider_notes": "See you then"}),
            ("Start booking (provider)", "start", None),
            ("Complete booking (provider)", "complete", None),
        ]
        for step, (title, action, body) in enumerate(steps, start=2):
            print_step(step, title)
            result = api_request(provider, "PUT", f"/bookings/{booking_id}/{action}", body)
            if not print_result(result, BOOKING_FIELDS):
                sys.exit(1)
        step = len(steps) + 2

    print_step(step, "Status history")
    print_result(api_request(customer, "GET", f"/bookings/{booking_id}/history"))
    print("\nDone.")


if __name__ == "__main__":
    main()
