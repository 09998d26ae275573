import os
import unittest
from unittest import mock

from bestiary.index import BestiaryIndex
from render_service.app import create_app

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


class RenderServiceTests(unittest.TestCase):
    def setUp(self):
        env = mock.patch.dict(os.environ, {"RENDER_TOKEN": ""})
        env.start()
        self.addCleanup(env.stop)
        self.index = BestiaryIndex.from_paths([
            os.path.join(FIXTURES, "bestiary-sample.json"),
            os.path.join(FIXTURES, "templates-sample.json"),
        ])
        self.client = create_app(self.index.lookups()).test_client()

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {"status": "ok"})

    def test_render_posted_record(self):
        resp = self.client.post("/render", json={"record": self.index.find("Goblin Boss")})
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(data["kind"], "statblock")
        self.assertEqual(data["name"], "Goblin Boss")
        actions = next(s for s in data["sections"] if s["key"] == "action")
        self.assertEqual([f["name"] for f in actions["features"]], ["Multiattack", "Scimitar", "Shortbow"])

    def test_render_fork(self):
        resp = self.client.post("/render", json={"record": self.index.find("Guard Dog")})
        self.assertEqual(resp.get_json()["kind"], "fork_selection")
        self.assertEqual(resp.get_json()["options"], ["Base Guard Dog", "Guard Dog (Trained)"])

    def test_missing_record(self):
        resp = self.client.post("/render", json={})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "missing record")

    def test_invalid_number(self):
        resp = self.client.post("/render", json={"record": {"name": "X", "type": "beast"}, "spellLevel": "high"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "invalid_number")

    def test_invalid_variant(self):
        resp = self.client.post("/render", json={"record": self.index.find("Bestial Spirit"), "variant": "Fire"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json(), {"error": "invalid_variant", "variant": "Fire"})

    def test_creature_route(self):
        resp = self.client.get("/creatures/TCE/Bestial%20Spirit?variant=Land&spellLevel=4")
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(data["variant"], "Land")
        header = next(s for s in data["sections"] if s["key"] == "header")
        self.assertIn(
            {"label": "Summoned", "value": "Summoned by the Summon Beast spell (level 2+)"},
            header["lines"],
        )

    def test_creature_not_found(self):
        resp = self.client.get("/creatures/MM/Tarrasque")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json()["error"], "not_found")

    def test_bearer_token(self):
        with mock.patch.dict(os.environ, {"RENDER_TOKEN": "s3cret"}):
            self.assertEqual(self.client.get("/health").status_code, 401)
            self.assertEqual(
                self.client.get("/health", headers={"Authorization": "Bearer wrong"}).status_code, 401
            )
            resp = self.client.get("/health", headers={"Authorization": "Bearer s3cret"})
            self.assertEqual(resp.status_code, 200)


if __name__ == "__main__":
    unittest.main()
