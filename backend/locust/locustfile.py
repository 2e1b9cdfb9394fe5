"""
Locust load tests for the station queue.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # many counters, few seats
  locust -f locustfile.py --tags throughput   # cached summaries
  locust -f locustfile.py --tags edge         # bad input
  locust -f locustfile.py                     # everything
"""

import random
import string

from locust import HttpUser, between, events, tag, task

DESTINATION_ID = "load-dest"
DESTINATION_NAME = "Load Test"
STAFF_HEADERS = {"X-Staff-Id": "load-test"}

# Shared state
QUEUED_VEHICLES = []


def random_plate() -> str:
    return f"{random.randint(100, 999)} TU {random.randint(1000, 9999)}"


def random_suffix() -> str:
    return "".join(random.choices(string.ascii_lowercase, k=6))


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: vehicles are queued for {DESTINATION_ID} on first user start")
    print("=" * 60)


def queue_vehicle(client, capacity: int = 8):
    """Register a vehicle, allow it on the load-test destination and queue it."""
    resp = client.post("/api/v1/vehicles", json={"license_plate": random_plate(), "capacity": capacity})
    if resp.status_code != 201:
        return None
    vehicle_id = resp.json()["id"]
    client.post(
        f"/api/v1/vehicles/{vehicle_id}/authorizations",
        json={"station_id": DESTINATION_ID, "station_name": DESTINATION_NAME, "base_price": "10.000"},
    )
    resp = client.post(
        "/api/v1/queue/entries",
        json={"vehicle_id": vehicle_id, "destination_id": DESTINATION_ID},
        headers=STAFF_HEADERS,
    )
    if resp.status_code == 201:
        QUEUED_VEHICLES.append(vehicle_id)
        return vehicle_id
    return None


class ConcurrencyUser(HttpUser):
    """
    Many ticket counters selling seats on a handful of vehicles.

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    Afterwards, per queue entry:
      SELECT total_seats - available_seats,
             (SELECT COALESCE(SUM(seats_booked), 0) FROM bookings b
              WHERE b.queue_entry_id = q.id AND b.payment_status = 'PAID')
      FROM queue_entries q;
    Both columns must match, and no vehicle may be over capacity.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if len(QUEUED_VEHICLES) < 3:
            queue_vehicle(self.client)
        self.headers = {"X-Staff-Id": f"counter-{random_suffix()}"}

    @tag("concurrency")
    @task
    def book_one_seat(self):
        with self.client.post(
            "/api/v1/bookings/by-destination",
            json={"destination_id": DESTINATION_ID, "seats": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    Counter screens refreshing the overview.

    Run once with Redis and once without, compare p95 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def summaries(self):
        self.client.get("/api/v1/queue/summaries", name="/api/v1/queue/summaries [cached]")

    @tag("throughput", "read")
    @task(5)
    def bookable_destinations(self):
        self.client.get("/api/v1/bookings/destinations", name="/api/v1/bookings/destinations [cached]")

    @tag("throughput", "read")
    @task(3)
    def destination_queue(self):
        self.client.get(f"/api/v1/queue/destinations/{DESTINATION_ID}", name="/api/v1/queue/destinations/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """Bad input must come back as 4xx, never 5xx."""
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_destination(self):
        with self.client.post(
            "/api/v1/bookings/by-destination",
            json={"destination_id": "nowhere", "seats": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, (409,))

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post(
            "/api/v1/bookings/by-destination",
            json={"destination_id": DESTINATION_ID, "seats": 0},
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def huge_seats(self):
        with self.client.post(
            "/api/v1/bookings/by-destination",
            json={"destination_id": DESTINATION_ID, "seats": 999999},
            catch_response=True,
        ) as resp:
            self._expect(resp, (409,))

    @tag("edge")
    @task
    def unknown_entry(self):
        with self.client.post(
            "/api/v1/bookings/by-vehicle",
            json={"queue_entry_id": "missing", "seats": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/by-destination",
            data="not json at all",
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))


class RealisticUser(HttpUser):
    """
    Mixed station traffic: mostly screen refreshes, some sales, the odd
    cancellation and new arrival.

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = {"X-Staff-Id": f"counter-{random_suffix()}"}

    @task(50)
    def browse(self):
        self.client.get("/api/v1/queue/summaries")

    @task(15)
    def sell(self):
        self.client.post(
            "/api/v1/bookings/by-destination",
            json={"destination_id": DESTINATION_ID, "seats": random.randint(1, 3)},
            headers=self.headers,
        )

    @task(3)
    def cancel_one(self):
        self.client.post(
            "/api/v1/bookings/cancel-one-seat",
            json={"destination_id": DESTINATION_ID},
            headers=self.headers,
        )

    @task(2)
    def new_arrival(self):
        queue_vehicle(self.client)

    @task(1)
    def daily_report(self):
        self.client.get("/api/v1/reports/daily")
