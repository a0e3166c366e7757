"""Post a WooCommerce-style order-created payload to a running bridge.

Useful for manual replays and duplicate-delivery checks: send the same file
twice and the second response should be `already_processed`.
"""

import argparse
import json
from pathlib import Path
from uuid import uuid4

import httpx

SAMPLE_ORDER = {
    "id": 501,
    "customer_id": 12,
    "billing": {"email": "a@b.com", "first_name": "A", "last_name": "Buyer"},
    "total": "42.50",
    "currency": "EUR",
    "payment_method": "stripe",
    "date_created": "2024-05-01T10:15:00",
    "line_items": [{"sku": "X", "quantity": 1}],
    "coupon_lines": [],
}


def send(base_url: str, payload: dict, delivery_id: str) -> httpx.Response:
    """Deliver one payload with the headers WooCommerce attaches."""

    with httpx.Client(timeout=35.0) as client:
        return client.post(
            f"{base_url}/webhooks/woocommerce/order-created",
            json=payload,
            headers={
                "X-WC-Webhook-Topic": "order.created",
                "X-WC-Webhook-Source": "http://localhost/",
                "X-WC-Webhook-Delivery-ID": delivery_id,
            },
        )


def main() -> None:
    """Parse CLI args and send one payload (the built-in sample by default)."""

    parser = argparse.ArgumentParser(description="Send an order-created webhook to orderbridge.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    parser.add_argument("--repeat", type=int, default=1, help="Deliver the same payload N times")
    args = parser.parse_args()

    if args.json_inline and args.json_file:
        raise SystemExit("Provide at most one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    elif args.json_file:
        payload = json.loads(Path(args.json_file).read_text())
    else:
        payload = SAMPLE_ORDER

    for _ in range(max(1, args.repeat)):
        resp = send(args.base_url, payload, str(uuid4()))
        print(f"status_code={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
