"""
Locust load test for the Matchday API.

Hammers the cache-first read paths; with a warm cache none of these should
spend primary-provider quota. Watch /v1/quota before and after a run.

Prereq: pip install -e ".[load]"

Run:
  locust -f scripts/load_test_locust.py --host=http://localhost:8000
  locust -f scripts/load_test_locust.py --host=http://localhost:8000 --users 50 --spawn-rate 5 --run-time 1m
"""
from datetime import datetime, timezone

from locust import HttpUser, between, task


class MatchdayUser(HttpUser):
    wait_time = between(0.5, 1.5)

    def on_start(self):
        r = self.client.get("/health")
        if r.status_code != 200:
            raise Exception("Health check failed")
        self.day = datetime.now(timezone.utc).date().isoformat()

    @task(2)
    def health(self):
        self.client.get("/health")

    @task(6)
    def matches(self):
        self.client.get("/v1/matches", params={"date": self.day}, name="/v1/matches")

    @task(3)
    def live(self):
        self.client.get("/v1/live", params={"date": self.day}, name="/v1/live")

    @task(2)
    def quota(self):
        self.client.get("/v1/quota")

    @task(1)
    def history(self):
        self.client.get("/v1/history", params={"date": self.day}, name="/v1/history")
