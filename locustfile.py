from locust import HttpUser, task, between
import random

class ShopUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Log in as the seeded staff account (python -m sweetshop.seed)
        r = self.client.post("/auth/login", json={"username": "staff", "password": "staff123"})
        if r.status_code == 200:
            self.headers = {"Authorization": f"Bearer {r.json()['data']['token']}"}
        else:
            self.headers = None
        self.sweet_ids = []

    @task(3)
    def place_order(self):
        if not self.headers or not self.sweet_ids:
            return
        items = [
            {"sweetId": sweet_id, "quantity": random.randint(1, 3)}
            for sweet_id in random.sample(self.sweet_ids, k=min(2, len(self.sweet_ids)))
        ]
        # 400 (insufficient stock) is an expected outcome once stock runs low
        with self.client.post(
            "/orders",
            json={"customerName": f"load {random.randint(1, 1_000_000)}", "items": items},
            headers=self.headers,
            catch_response=True,
        ) as r:
            if r.status_code in (201, 400):
                r.success()

    @task(1)
    def list_sweets(self):
        r = self.client.get("/sweets")
        if r.status_code == 200:
            self.sweet_ids = [s["id"] for s in r.json()["data"]["sweets"]]
