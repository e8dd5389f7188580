"""
Locust Load Test Suite

Run scenarios:
  locust -f locust/locustfile.py --tags contention  # Same seats, many buyers
  locust -f locust/locustfile.py --tags seatmap     # Seat map cache
  locust -f locust/locustfile.py --tags edge        # Bad input
  locust -f locust/locustfile.py                    # All tests
"""

import random
from datetime import datetime, timedelta, timezone

from locust import HttpUser, task, between, tag, events

# Shared state
CONTENTION_SESSION_ID = None
CONTENTION_SEATS = [f"A-{place}" for place in range(1, 11)]


def random_customer():
    suffix = random.randint(10000, 99999)
    return {"name": f"Load {suffix}", "phone": f"+7900{suffix}", "email": f"load_{suffix}@test.com"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("SETUP: Creating contention hall and session...")
    print("=" * 60)


def ensure_contention_session(client):
    """Hall with 10 seats and a 20-place standing zone, one session tomorrow."""
    if CONTENTION_SESSION_ID:
        return
    hall = client.post("/api/v1/halls/", json={
        "name": "Contention Hall",
        "timezone": "Europe/Moscow",
        "layout": {
            "seats": [{"seat_id": seat_id, "row": 1, "place": i + 1} for i, seat_id in enumerate(CONTENTION_SEATS)],
            "zones": [{"zone_key": "dancefloor", "name": "Dance floor", "capacity": 20}],
        },
    })
    if hall.status_code != 201:
        return
    hall_id = hall.json()["id"]
    scheme = client.post("/api/v1/price-schemes/", json={
        "hall_id": hall_id,
        "name": "Flat",
        "prices": {**{seat_id: "1000" for seat_id in CONTENTION_SEATS}, "dancefloor": "500"},
    })
    starts_at = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    session = client.post("/api/v1/sessions/", json={
        "hall_id": hall_id,
        "price_scheme_id": scheme.json()["id"],
        "event_name": "Contention Test",
        "starts_at": starts_at,
    })
    if session.status_code == 201:
        globals()["CONTENTION_SESSION_ID"] = session.json()["id"]
        print(f"\n✓ Created session {CONTENTION_SESSION_ID} with 10 seats and 20 zone places\n")


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - many buyers -> 10 seats + 20 zone places

    Run: locust -f locust/locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT seat_id, COUNT(DISTINCT order_id) FROM seat_tickets
      WHERE session_id = X AND status IN ('reserved', 'sold') GROUP BY seat_id;
    Every count should be 1.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        ensure_contention_session(self.client)

    @tag("contention")
    @task(3)
    def reserve_named_seat(self):
        """All users fight for the same 10 seats."""
        if not CONTENTION_SESSION_ID:
            return
        with self.client.post("/api/v1/orders/",
            json={
                "session_id": CONTENTION_SESSION_ID,
                "seat_ids": [random.choice(CONTENTION_SEATS)],
                "mode": "pending",
                "customer": random_customer(),
            },
            name="/api/v1/orders/ [seat]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: someone else holds it
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def reserve_zone_places(self):
        """Zone places are picked by slot; conflicts are retried server-side."""
        if not CONTENTION_SESSION_ID:
            return
        with self.client.post("/api/v1/orders/",
            json={"session_id": CONTENTION_SESSION_ID, "zone_units": {"dancefloor": random.randint(1, 3)}},
            name="/api/v1/orders/ [zone]",
            catch_response=True
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class SeatMapUser(HttpUser):
    """
    TEST 2: Seat map reads - cache effectiveness

    Run twice (with Redis, then with REDIS_ENABLED=false) and compare
    P95 latency of the seat map endpoint.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        ensure_contention_session(self.client)

    @tag("seatmap", "read")
    @task(10)
    def seat_map(self):
        if CONTENTION_SESSION_ID:
            self.client.get(f"/api/v1/sessions/{CONTENTION_SESSION_ID}/seats",
                name="/api/v1/sessions/{id}/seats")

    @tag("seatmap")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    @tag("edge")
    @task
    def unknown_session(self):
        with self.client.post("/api/v1/orders/",
            json={"session_id": 999999, "seat_ids": ["A-1"]},
            catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def empty_order(self):
        with self.client.post("/api/v1/orders/",
            json={"session_id": 1, "seat_ids": []},
            catch_response=True
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")
