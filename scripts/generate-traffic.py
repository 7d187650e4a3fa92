#!/usr/bin/env python3
"""
Traffic generator for the marketplace-management service.
Simulates shoppers browsing the catalog, filling carts, favoriting and checking out.

Each shopper needs a real access token issued by the identity service, and
buyers need the id of a delivery address owned by that account.
"""

import os
import random
import threading
import time
from datetime import datetime

import requests

API_URL = "http://localhost:8000/functions/v1/marketplace-management"

PAYMENT_METHODS = ["cartao_credito", "cartao_debito", "pix", "boleto"]

# Weight for buyer actions
ACTION_WEIGHTS = {
    "browse": 0.35,
    "add_to_cart": 0.3,
    "checkout": 0.15,
    "view_cart": 0.1,
    "favorite": 0.05,
    "update_quantity": 0.05,
}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, shopper_id, token, address_id=None):
        self.shopper_id = shopper_id
        self.token = token
        self.address_id = address_id
        self.products = []
        self.cart_items = []

    def call(self, action, timeout=5, **payload):
        """POST one action; returns the JSON body or None."""
        try:
            response = requests.post(
                API_URL,
                json={"action": action, **payload},
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=timeout
            )
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: {action} failed - {e}")
            return None

        if response.status_code != 200:
            log(f"Shopper {self.shopper_id}: {action} failed - {response.status_code}")
            return None

        data = response.json()
        if "error" in data:
            log(f"Shopper {self.shopper_id}: {action} rejected - {data.get('code')} {data['error']}")
            return None
        return data

    def _remember_cart(self, data):
        if data and "items" in data:
            self.cart_items = data["items"]

    def fetch_products(self):
        action = random.choice(["get_recent_products", "get_popular_products"])
        data = self.call(action)
        if data:
            self.products = data.get("products", [])
            log(f"Shopper {self.shopper_id}: Fetched {len(self.products)} products ({action})")
            return True
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            data = self.call("get_product_details", productId=product["id"])
            if data:
                reviews = data["product"].get("product_reviews", [])
                log(f"Shopper {self.shopper_id}: Browsing {product['nome']} ({len(reviews)} reviews)")
                return True
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            data = self.call("add_to_cart", productId=product["id"], quantity=random.randint(1, 3))
            self._remember_cart(data)
            if data:
                log(f"Shopper {self.shopper_id}: Added {product['nome']} to cart")
                return True
        return False

    def update_quantity(self):
        if not self.cart_items:
            return False
        item = random.choice(self.cart_items)
        data = self.call("update_quantity", cartItemId=item["id"], quantity=random.randint(1, 4))
        self._remember_cart(data)
        return data is not None

    def favorite(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            action = random.choice(["add_to_favorites", "remove_from_favorites"])
            return self.call(action, productId=product["id"]) is not None
        return False

    def view_cart(self):
        data = self.call("get_cart")
        self._remember_cart(data)
        if data:
            summary = data["summary"]
            log(f"Shopper {self.shopper_id}: Viewing cart with {len(data['items'])} items, "
                f"total {summary['total']} ({summary['totalPoints']} points)")
            return True
        return False

    def checkout(self):
        if not self.address_id:
            log(f"Shopper {self.shopper_id}: No delivery address configured, skipping checkout")
            return False

        data = self.call(
            "checkout",
            timeout=10,
            addressId=self.address_id,
            paymentMethod=random.choice(PAYMENT_METHODS)
        )
        if data:
            self.cart_items = []
            log(f"Shopper {self.shopper_id}: Checkout successful - Order {data['orderId']} "
                f"(+{data['pointsEarned']} points)")
            return True
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]
        return getattr(self, {
            "browse": "browse_products",
            "view_cart": "view_cart",
        }.get(action, action))()


def shopper_session(shopper_id, token, address_id, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Just browses products (50%)
    - "cart_abandoner": Adds to cart but doesn't checkout (30%)
    - "buyer": Completes purchase (20%)
    """
    shopper = Shopper(shopper_id, token, address_id)
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_products()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "browser":
        log(f"Shopper {shopper_id}: Browser - viewing products only")
        while time.time() < end_time:
            shopper.browse_products()
            time.sleep(random.uniform(0.3, 0.8))

    elif shopper_type == "cart_abandoner":
        log(f"Shopper {shopper_id}: Cart abandoner - adding to cart but not checking out")
        for _ in range(random.randint(1, 3)):
            shopper.add_to_cart()
            time.sleep(random.uniform(0.3, 0.8))

        while time.time() < end_time:
            random.choice([shopper.browse_products, shopper.view_cart, shopper.update_quantity])()
            time.sleep(random.uniform(0.3, 0.8))

    elif shopper_type == "buyer":
        log(f"Shopper {shopper_id}: Buyer - will complete checkout")
        for _ in range(random.randint(1, 3)):
            shopper.add_to_cart()
            time.sleep(random.uniform(0.3, 0.8))

        while time.time() < end_time:
            shopper.random_action()
            time.sleep(random.uniform(0.5, 1.5))


def generate_traffic(accounts, num_concurrent_users=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_users} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 50% browsers, 30% cart abandoners, 20% buyers")

    threads = []
    account_index = 0

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_users:
                # Round-robin over the configured accounts
                token, address_id = accounts[account_index % len(accounts)]
                account_index += 1

                shopper_id = f"shopper_{random.randint(1000, 9999)}"

                rand = random.random()
                if rand < 0.50:
                    shopper_type = "browser"
                elif rand < 0.80:
                    shopper_type = "cart_abandoner"
                else:
                    shopper_type = "buyer"

                thread = threading.Thread(
                    target=shopper_session,
                    args=(shopper_id, token, address_id, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            time.sleep(5)

    except KeyboardInterrupt:
        log("\nStopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        log("Traffic generation stopped")


def parse_accounts(values):
    """``token[:address_id]`` entries into (token, address_id) pairs."""
    accounts = []
    for value in values:
        token, _, address_id = value.partition(":")
        if token:
            accounts.append((token, address_id or None))
    return accounts


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the marketplace-management service")
    parser.add_argument(
        "--users",
        type=int,
        default=5,
        help="Number of concurrent shoppers (default: 5)"
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=60,
        help="Session duration in seconds (default: 60)"
    )
    parser.add_argument(
        "--url",
        type=str,
        default=API_URL,
        help=f"Action endpoint URL (default: {API_URL})"
    )
    parser.add_argument(
        "--account",
        action="append",
        default=os.getenv("MARKETPLACE_ACCOUNTS", "").split(),
        help="Access token, optionally followed by ':<address id>' for checkout; repeatable "
             "(default: whitespace-separated MARKETPLACE_ACCOUNTS)"
    )

    args = parser.parse_args()
    API_URL = args.url

    accounts = parse_accounts(args.account)
    if not accounts:
        parser.error("at least one --account (or MARKETPLACE_ACCOUNTS) is required")

    log("=" * 60)
    log("Marketplace Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Accounts: {len(accounts)}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(accounts, args.users, args.duration)
