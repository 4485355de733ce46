"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test seat-map cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Users are registered through the identity webhook and tokens are signed with
SECRET_KEY, so run against a server that shares this environment:
  IDENTITY_WEBHOOK_SECRET, SECRET_KEY, ADMIN_USER_IDS (must contain LOAD_ADMIN_ID)
"""

import os
import random
import string
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

from quickshow.core.security import create_access_token

WEBHOOK_SECRET = os.environ.get("IDENTITY_WEBHOOK_SECRET", "")
ADMIN_ID = os.environ.get("LOAD_ADMIN_ID", "load_admin")
ROWS = "ABCDEFGHIJ"

# Shared state
SHOW_IDS = []
CONCURRENCY_SHOW_ID = None
# Everyone fights over the same handful of seats
CONTESTED_SEATS = ["A1", "A2", "A3", "A4", "A5"]


def random_user_id():
    return "load_" + "".join(random.choices(string.ascii_lowercase + string.digits, k=10))


def random_seats(count):
    return random.sample([f"{row}{n}" for row in ROWS for n in range(1, 10)], count)


def future_show(days):
    return {
        "movie_id": f"load_movie_{random.randint(1, 50)}",
        "movie_title": f"Load Test Movie {random.randint(1, 50)}",
        "show_datetime": (datetime.now(timezone.utc) + timedelta(days=days)).isoformat(),
        "show_price": "9.99",
    }


def auth_headers(user_id):
    token = create_access_token(data={"sub": user_id}, expires_delta=timedelta(hours=2))
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"SETUP: contested seats {CONTESTED_SEATS}, admin {ADMIN_ID}")
    print("="*60)


class RegisteredUser(HttpUser):
    """Base user: syncs a profile through the identity webhook on start."""
    abstract = True

    def on_start(self):
        self.user_id = random_user_id()
        resp = self.client.post(
            "/api/v1/users/webhook",
            json={
                "type": "user.created",
                "data": {
                    "id": self.user_id,
                    "first_name": "Load",
                    "last_name": self.user_id,
                    "email_addresses": [{"email_address": f"{self.user_id}@test.com"}],
                },
            },
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            name="/api/v1/users/webhook",
        )
        self.headers = auth_headers(self.user_id) if resp.status_code == 200 else {}


class ConcurrencyUser(RegisteredUser):
    """
    TEST 1: Concurrency - 100 users → 5 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify no seat was sold twice:
      SELECT occupied_seats FROM shows WHERE id = X;
      SELECT booked_seats FROM bookings WHERE show_id = X;
    Every contested seat must appear in at most one booking.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        super().on_start()

        if not CONCURRENCY_SHOW_ID:
            resp = self.client.post("/api/v1/shows/",
                json=future_show(days=30),
                headers=auth_headers(ADMIN_ID)
            )
            if resp.status_code == 201:
                globals()["CONCURRENCY_SHOW_ID"] = resp.json()["id"]
                print(f"\n✓ Created show {CONCURRENCY_SHOW_ID}\n")

    @tag("concurrency")
    @task
    def book_contested_seats(self):
        """All users fight for the same seats."""
        if not CONCURRENCY_SHOW_ID or not self.headers:
            return

        seats = random.sample(CONTESTED_SEATS, random.randint(1, 2))
        with self.client.post("/api/v1/bookings/",
            json={"showId": CONCURRENCY_SHOW_ID, "selectedSeats": seats},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat already held
            elif resp.status_code == 502:
                resp.success()  # Gateway not configured; hold is rolled back
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def occupied_seats_cached(self):
        """Hammer the seat map the picker polls."""
        show_id = random.choice(SHOW_IDS) if SHOW_IDS else CONCURRENCY_SHOW_ID
        if show_id:
            self.client.get(f"/api/v1/bookings/seats/{show_id}",
                name="/api/v1/bookings/seats/{id} [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(RegisteredUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_show_id(self):
        """Book non-existent show."""
        with self.client.post("/api/v1/bookings/",
            json={"showId": 999999, "selectedSeats": ["A1"]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post("/api/v1/bookings/",
            json={"showId": 1, "selectedSeats": []},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404, 422])

    @tag("edge")
    @task
    def seat_outside_layout(self):
        with self.client.post("/api/v1/bookings/",
            json={"showId": CONCURRENCY_SHOW_ID or 1, "selectedSeats": ["Z99"]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404, 422])

    @tag("edge")
    @task
    def duplicate_seats(self):
        with self.client.post("/api/v1/bookings/",
            json={"showId": 1, "selectedSeats": ["A1", "a1"]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404, 422])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def forged_payment_webhook(self):
        with self.client.post("/api/v1/payments/webhook",
            data="{}",
            headers={"stripe-signature": "t=0,v1=forged"},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"showId": 1, "selectedSeats": ["A1"]},
            catch_response=True
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(RegisteredUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly seat-map polling (80%)
      - Some bookings (15%)
      - Rare show creation by the admin (5%)
    """
    wait_time = between(1, 3)

    @task(50)
    def poll_seat_map(self):
        if SHOW_IDS:
            self.client.get(f"/api/v1/bookings/seats/{random.choice(SHOW_IDS)}",
                name="/api/v1/bookings/seats/{id}")

    @task(20)
    def my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings/", headers=self.headers)

    @task(10)
    def book_seats(self):
        """Occasional booking."""
        if SHOW_IDS and self.headers:
            self.client.post("/api/v1/bookings/",
                json={"showId": random.choice(SHOW_IDS), "selectedSeats": random_seats(random.randint(1, 3))},
                headers=self.headers)

    @task(3)
    def create_show(self):
        """Rare: admin schedules a new show."""
        resp = self.client.post("/api/v1/shows/",
            json=future_show(days=random.randint(1, 90)),
            headers=auth_headers(ADMIN_ID))
        if resp.status_code == 201:
            SHOW_IDS.append(resp.json()["id"])
