import unittest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient

from api.dependencies import get_document_store, get_reference_manager
from api.main import app
from core.errors import StoreError
from core.memory_database import InMemoryDocumentStore
from core.reference_manager import ReferenceManager


class TestArchiveAPI(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.store.ensure_unique_index("SCPs", "scp_id")
        app.dependency_overrides[get_document_store] = lambda: self.store
        self.client = TestClient(app)

        for key in ("001", "002"):
            response = self.client.post(
                "/SCPs", json={"scp_id": key, "title": f"SCP-{key}", "description": "Anomalous."}
            )
            self.assertEqual(response.status_code, 201)

    def tearDown(self):
        app.dependency_overrides.clear()

    def scp(self, scp_id):
        return self.client.get(f"/SCPs/{scp_id}").json()

    def test_create_tale_links_both_scps(self):
        response = self.client.post("/SCPTales", json={"title": "T", "scp_ids": ["001", "002"]})

        self.assertEqual(response.status_code, 201)
        tale_id = response.json()["id"]
        self.assertIn(tale_id, self.scp("001")["scp_tales"])
        self.assertIn(tale_id, self.scp("002")["scp_tales"])

    def test_create_tale_with_unknown_scp_is_rejected(self):
        response = self.client.post("/SCPTales", json={"title": "T2", "scp_ids": ["999"]})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["missing"], ["999"])
        self.assertEqual(self.client.get("/SCPTales").json()["total"], 0)

    def test_update_and_delete_tale(self):
        tale_id = self.client.post("/SCPTales", json={"title": "T", "scp_ids": ["001"]}).json()["id"]

        response = self.client.put(f"/SCPTales/{tale_id}", json={"scp_ids": ["002"], "content": "Body"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["title"], "T")
        self.assertEqual(self.scp("001")["scp_tales"], [])
        self.assertEqual(self.scp("002")["scp_tales"], [tale_id])

        self.assertEqual(self.client.put(f"/SCPTales/{tale_id}", json={}).status_code, 400)

        self.assertEqual(self.client.delete(f"/SCPTales/{tale_id}").status_code, 200)
        self.assertEqual(self.client.get(f"/SCPTales/{tale_id}").status_code, 404)
        self.assertEqual(self.client.get("/SCPTales", params={"tale_id": tale_id}).status_code, 404)
        self.assertEqual(self.scp("002")["scp_tales"], [])

    def test_unknown_tale_is_404(self):
        self.assertEqual(self.client.delete("/SCPTales/missing").status_code, 404)
        self.assertEqual(self.client.put("/SCPTales/missing", json={"title": "X"}).status_code, 404)

    def test_scp_listing_and_lookup(self):
        page = self.client.get("/SCPs", params={"skip": 1, "limit": 10}).json()
        self.assertEqual(page["total"], 2)
        self.assertEqual([item["scp_id"] for item in page["items"]], ["002"])

        lookup = self.client.get("/SCPs", params={"scp_id": "001"}).json()
        self.assertEqual(lookup["items"][0]["title"], "SCP-001")
        self.assertEqual(self.client.get("/SCPs", params={"scp_id": "404"}).status_code, 404)

    def test_scp_validation_and_conflicts(self):
        missing_fields = self.client.post("/SCPs", json={"scp_id": "003"})
        self.assertEqual(missing_fields.status_code, 422)

        duplicate = self.client.post("/SCPs", json={"scp_id": "001", "title": "Again", "description": "Dup."})
        self.assertEqual(duplicate.status_code, 409)

    def test_update_scp(self):
        response = self.client.put("/SCPs/001", json={"classification": "Keter"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["classification"], "Keter")
        self.assertEqual(response.json()["title"], "SCP-001")

        self.assertEqual(self.client.put("/SCPs/001", json={"classification": "Keter"}).status_code, 400)
        self.assertEqual(self.client.put("/SCPs/001", json={}).status_code, 400)
        self.assertEqual(self.client.put("/SCPs/404", json={"title": "X"}).status_code, 404)

    def test_update_scp_rejects_empty_title_and_description(self):
        for body in ({"title": ""}, {"description": ""}):
            response = self.client.put("/SCPs/001", json=body)
            self.assertEqual(response.status_code, 422)

        stored = self.client.get("/SCPs/001")
        self.assertEqual(stored.status_code, 200)
        self.assertEqual(stored.json()["title"], "SCP-001")
        self.assertEqual(stored.json()["description"], "Anomalous.")
        self.assertEqual(self.client.get("/SCPs").status_code, 200)

    def test_delete_scp_blocked_by_policy(self):
        app.dependency_overrides[get_reference_manager] = lambda: ReferenceManager(self.store, delete_policy="block")
        tale_id = self.client.post("/SCPTales", json={"title": "T", "scp_ids": ["001"]}).json()["id"]

        response = self.client.delete("/SCPs/001")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["tale_ids"], [tale_id])
        self.assertEqual(self.client.delete("/SCPs/002").status_code, 200)

    def test_reconcile_endpoints(self):
        tale_id = self.client.post("/SCPTales", json={"title": "T", "scp_ids": ["001"]}).json()["id"]
        self.store.update_fields("SCPs", {"scp_id": "001"}, {"scp_tales": []})

        check = self.client.get("/maintenance/check").json()
        self.assertFalse(check["consistent"])
        self.assertEqual(self.scp("001")["scp_tales"], [])

        repaired = self.client.post("/maintenance/reconcile").json()
        self.assertEqual(repaired["repaired"][0]["added"], [tale_id])
        self.assertEqual(self.scp("001")["scp_tales"], [tale_id])

    def test_store_failure_is_500(self):
        broken = MagicMock()
        broken.find_one.side_effect = StoreError("connection refused")
        app.dependency_overrides[get_document_store] = lambda: broken

        response = self.client.get("/SCPs/001")

        self.assertEqual(response.status_code, 500)


if __name__ == '__main__':
    unittest.main()
