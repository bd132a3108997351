#!/usr/bin/env python3
"""
Redeem, confirm and cancel flow against a running API.

This script only orchestrates API calls; all rules live in the backend.
Tokens are signed locally with the configured JWT secret.

Usage:
    python scripts/flow_redeem_and_cancel.py --hotel-id <UUID> --check-in 2026-06-01 --check-out 2026-06-04
    python scripts/flow_redeem_and_cancel.py --hotel-id <UUID> --check-in 2026-06-01 --check-out 2026-06-04 --points 500

Flow:
    1. Enroll the customer
    2. Admin credits an opening balance
    3. Customer books, redeeming points
    4. Admin confirms
    5. Customer cancels
    6. Print the booking ledger and account summary
"""

import argparse
import json
import sys
from uuid import uuid4

import httpx

from stayledger.core.security import create_actor_token

BASE_URL = "http://localhost:8000"


def headers_for(actor_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_actor_token(actor_id, role)}"}


def api_request(headers: dict, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make authenticated API request."""
    url = f"{BASE_URL}{endpoint}"
    response = httpx.request(method, url, headers=headers, json=data, timeout=10.0, follow_redirects=True)
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None) -> bool:
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    data = result["data"]
    if fields and isinstance(data, dict):
        data = {k: data.get(k) for k in fields if k in data}
    print(json.dumps(data, indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Redeem, confirm and cancel flow")
    parser.add_argument("--hotel-id", required=True, help="Hotel UUID")
    parser.add_argument("--check-in", required=True, help="Check-in date (YYYY-MM-DD)")
    parser.add_argument("--check-out", required=True, help="Check-out date (YYYY-MM-DD)")
    parser.add_argument("--room-type", default="DELUXE")
    parser.add_argument("--points", type=int, default=500, help="Points to redeem at booking")
    parser.add_argument("--customer-id", default=None, help="Customer UUID (random if omitted)")
    args = parser.parse_args()

    customer_id = args.customer_id or str(uuid4())
    customer = headers_for(customer_id, "customer")
    admin = headers_for("flow-admin", "admin")

    print_step(1, "Enroll customer")
    if not print_result(api_request(customer, "POST", f"/api/v1/loyalty/{customer_id}/enroll")):
        sys.exit(1)

    print_step(2, "Credit opening balance")
    credit = api_request(admin, "POST", f"/api/v1/loyalty/{customer_id}/adjustments", {
        "points": max(args.points, 1000),
        "reason": "Flow script opening balance",
    })
    if not print_result(credit, ["kind", "points_amount", "new_balance"]):
        sys.exit(1)

    print_step(3, "Create booking with redemption")
    booking = api_request(customer, "POST", "/api/v1/bookings", {
        "hotel_id": args.hotel_id,
        "check_in": args.check_in,
        "check_out": args.check_out,
        "rooms": [{"room_type": args.room_type, "quantity": 1}],
        "points_to_redeem": args.points,
    })
    if not print_result(booking, ["id", "booking_number", "quoted_price", "discount_amount", "total_price", "status"]):
        sys.exit(1)
    booking_id = booking["data"]["id"]

    print_step(4, "Admin confirms")
    confirmed = api_request(admin, "POST", f"/api/v1/bookings/{booking_id}/transitions", {"target_status": "CONFIRMED"})
    if not print_result(confirmed, ["status", "effect"]):
        sys.exit(1)

    print_step(5, "Customer cancels")
    cancelled = api_request(customer, "POST", f"/api/v1/bookings/{booking_id}/transitions", {
        "target_status": "CANCELLED",
        "reason": "Change of plans",
    })
    if not print_result(cancelled, ["status", "cancelled_by", "effect"]):
        sys.exit(1)

    print_step(6, "Ledger and summary")
    print_result(api_request(customer, "GET", f"/api/v1/bookings/{booking_id}/ledger"))
    print_result(api_request(customer, "GET", f"/api/v1/loyalty/{customer_id}"))


if __name__ == "__main__":
    main()
