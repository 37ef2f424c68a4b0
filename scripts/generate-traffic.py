#!/usr/bin/env python3
"""
Traffic generator for the storefront order service
Simulates shoppers browsing, filling carts, placing orders and paying
"""

import requests
import random
import time
import threading
from collections import Counter
from datetime import datetime

API_URL = "http://localhost:8000"

CREDENTIALS = [
    {"username": "user123", "password": "password123"},
    {"username": "test", "password": "test123"},
]

CATEGORIES = ["electronics", "furniture", "books", None]

# Weight for actions
ACTION_WEIGHTS = {
    "browse": 0.4,
    "add_to_cart": 0.3,
    "checkout": 0.15,
    "view_cart": 0.1,
    "view_orders": 0.05,
}

# Outcome tally shared by all shopper threads
stats = Counter()
stats_lock = threading.Lock()


def record(outcome):
    with stats_lock:
        stats[outcome] += 1


def get_headers(token):
    return {"Authorization": f"Bearer {token}"}


def log(message):
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] {message}")


class Shopper:
    def __init__(self, shopper_id):
        self.shopper_id = shopper_id
        self.token = None
        self.address_id = None
        self.products = []

    def authenticate(self):
        """Log in with one of the demo accounts."""
        cred = random.choice(CREDENTIALS)

        # Simulate authentication failures (~1%)
        if random.random() < 0.01:
            cred = {"username": cred["username"], "password": "wrong_password"}

        try:
            response = requests.post(f"{API_URL}/auth/login", json=cred, timeout=5)
            if response.status_code == 200:
                self.token = response.json()["token"]
                log(f"Shopper {self.shopper_id}: Authenticated as {cred['username']}")
                return True
            log(f"Shopper {self.shopper_id}: Authentication failed - {response.status_code}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Authentication error - {e}")
        return False

    def ensure_address(self):
        """Pick the default address, creating one on first use."""
        if self.address_id is not None:
            return True
        try:
            response = requests.get(
                f"{API_URL}/user/addresses",
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 200 and response.json():
                self.address_id = response.json()[0]["id"]
                return True

            response = requests.post(
                f"{API_URL}/user/addresses",
                json={
                    "name": f"Shopper {self.shopper_id}",
                    "phone": f"138{random.randint(10000000, 99999999)}",
                    "province": "Zhejiang",
                    "city": "Hangzhou",
                    "district": "Xihu",
                    "detail": f"{random.randint(1, 999)} Wensan Road",
                    "is_default": True
                },
                headers=get_headers(self.token),
                timeout=5
            )
            if response.status_code == 201:
                self.address_id = response.json()["id"]
                return True
            log(f"Shopper {self.shopper_id}: Failed to create address - {response.status_code}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to load addresses - {e}")
        return False

    def fetch_products(self):
        category = random.choice(CATEGORIES)
        params = {"category": category} if category else None
        try:
            response = requests.get(f"{API_URL}/products", params=params, timeout=5)
            if response.status_code == 200:
                self.products = response.json()["products"] or self.products
                log(f"Shopper {self.shopper_id}: Fetched {len(self.products)} products ({category or 'all'})")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to fetch products - {e}")
        return False

    def browse_products(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.get(f"{API_URL}/products/{product['id']}", timeout=5)
                if response.status_code == 200:
                    log(f"Shopper {self.shopper_id}: Browsing {product['name']} (stock {response.json()['stock']})")
                    return True
            except requests.RequestException as e:
                log(f"Shopper {self.shopper_id}: Failed to browse product - {e}")
        return False

    def add_to_cart(self):
        if not self.products:
            self.fetch_products()

        if self.products:
            product = random.choice(self.products)
            try:
                response = requests.post(
                    f"{API_URL}/cart",
                    json={"product_id": product["id"], "quantity": random.randint(1, 3)},
                    headers=get_headers(self.token),
                    timeout=5
                )
                if response.status_code == 200:
                    log(f"Shopper {self.shopper_id}: Added {product['name']} to cart")
                    return True
                log(f"Shopper {self.shopper_id}: Failed to add to cart - {response.status_code}")
            except requests.RequestException as e:
                log(f"Shopper {self.shopper_id}: Failed to add to cart - {e}")
        return False

    def view_cart(self):
        try:
            response = requests.get(f"{API_URL}/cart", headers=get_headers(self.token), timeout=5)
            if response.status_code == 200:
                cart = response.json()
                log(f"Shopper {self.shopper_id}: Viewing cart with {len(cart['items'])} items, total {cart['total']}")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to view cart - {e}")
        return False

    def checkout(self):
        """Place an order for the whole cart, then pay for it."""
        if not self.ensure_address():
            return False
        try:
            response = requests.post(
                f"{API_URL}/orders",
                json={"address_id": self.address_id},
                headers=get_headers(self.token),
                timeout=10
            )
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Checkout failed - {e}")
            record("checkout_error")
            return False

        if response.status_code == 409:
            log(f"Shopper {self.shopper_id}: Checkout rejected - {response.json()['message']}")
            record("stock_rejected")
            return False
        if response.status_code == 400:
            log(f"Shopper {self.shopper_id}: Checkout rejected - {response.json()['code']}")
            record("bad_request")
            return False
        if response.status_code != 201:
            log(f"Shopper {self.shopper_id}: Checkout failed - {response.status_code}")
            record("checkout_error")
            return False

        order = response.json()
        record("placed")
        log(f"Shopper {self.shopper_id}: Order {order['order_no']} placed - {order['total_amount']}")

        # Some shoppers never pay
        if random.random() < 0.2:
            record("unpaid")
            return True
        return self.pay(order["id"])

    def pay(self, order_id):
        try:
            response = requests.post(
                f"{API_URL}/payment",
                json={"order_id": order_id},
                headers=get_headers(self.token),
                timeout=10
            )
            if response.status_code == 200:
                record("paid")
                log(f"Shopper {self.shopper_id}: Order {order_id} paid")
                return True
            log(f"Shopper {self.shopper_id}: Payment failed - {response.status_code}")
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Payment failed - {e}")
        record("payment_error")
        return False

    def view_orders(self):
        try:
            response = requests.get(f"{API_URL}/orders", headers=get_headers(self.token), timeout=5)
            if response.status_code == 200:
                orders = response.json()["orders"]
                log(f"Shopper {self.shopper_id}: Viewing {len(orders)} orders")
                return True
        except requests.RequestException as e:
            log(f"Shopper {self.shopper_id}: Failed to view orders - {e}")
        return False

    def random_action(self):
        action = random.choices(
            list(ACTION_WEIGHTS.keys()),
            weights=list(ACTION_WEIGHTS.values())
        )[0]

        if action == "browse":
            return self.browse_products()
        elif action == "add_to_cart":
            return self.add_to_cart()
        elif action == "checkout":
            return self.checkout()
        elif action == "view_cart":
            return self.view_cart()
        elif action == "view_orders":
            return self.view_orders()


def shopper_session(shopper_id, duration_seconds, shopper_type="browser"):
    """
    Simulate a shopper session

    shopper_type:
    - "browser": Just browses products (50%)
    - "cart_abandoner": Fills a cart but never orders (30%)
    - "buyer": Orders and pays (20%)
    """
    shopper = Shopper(shopper_id)
    end_time = time.time() + duration_seconds

    shopper.fetch_products()
    for _ in range(random.randint(2, 5)):
        shopper.browse_products()
        time.sleep(random.uniform(0.5, 1.5))

    if shopper_type == "browser":
        while time.time() < end_time:
            shopper.browse_products()
            time.sleep(random.uniform(0.3, 0.8))
        return

    if not shopper.authenticate():
        return
    time.sleep(random.uniform(0.2, 0.5))

    for _ in range(random.randint(1, 3)):
        shopper.add_to_cart()
        time.sleep(random.uniform(0.3, 0.8))

    if shopper_type == "cart_abandoner":
        while time.time() < end_time:
            if random.random() < 0.5:
                shopper.browse_products()
            else:
                shopper.view_cart()
            time.sleep(random.uniform(0.3, 0.8))
        return

    shopper.checkout()
    while time.time() < end_time:
        shopper.random_action()
        time.sleep(random.uniform(0.5, 1.5))


def report():
    with stats_lock:
        snapshot = dict(stats)
    log(
        "Checkouts: {placed} placed, {paid} paid, {unpaid} left unpaid, "
        "{stock_rejected} rejected for stock, {bad_request} bad requests, "
        "{errors} errors".format(
            placed=snapshot.get("placed", 0),
            paid=snapshot.get("paid", 0),
            unpaid=snapshot.get("unpaid", 0),
            stock_rejected=snapshot.get("stock_rejected", 0),
            bad_request=snapshot.get("bad_request", 0),
            errors=snapshot.get("checkout_error", 0) + snapshot.get("payment_error", 0)
        )
    )


def generate_traffic(num_concurrent_shoppers=5, session_duration=60):
    """Generate traffic with multiple concurrent shoppers"""
    log(f"Starting traffic generation with {num_concurrent_shoppers} concurrent shoppers")
    log(f"Session duration: {session_duration} seconds")
    log("Shopper mix: 50% browsers, 30% cart abandoners, 20% buyers")

    threads = []

    try:
        while True:
            while len([t for t in threads if t.is_alive()]) < num_concurrent_shoppers:
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
                    args=(shopper_id, session_duration, shopper_type)
                )
                thread.start()
                threads.append(thread)

                time.sleep(random.uniform(1, 3))

            threads = [t for t in threads if t.is_alive()]
            report()
            time.sleep(5)

    except KeyboardInterrupt:
        log("\nStopping traffic generation...")
        log("Waiting for active sessions to complete...")
        for thread in threads:
            thread.join(timeout=10)
        report()
        log("Traffic generation stopped")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate traffic for the storefront order service")
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
        default="http://localhost:8000",
        help="API URL (default: http://localhost:8000)"
    )

    args = parser.parse_args()
    API_URL = args.url

    log("=" * 60)
    log("Storefront Traffic Generator")
    log("=" * 60)
    log(f"API URL: {API_URL}")
    log(f"Concurrent Shoppers: {args.users}")
    log(f"Session Duration: {args.duration}s")
    log("=" * 60)

    generate_traffic(args.users, args.duration)
