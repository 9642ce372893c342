import unittest

from fastapi.testclient import TestClient

from speedlesen.app import create_app
from speedlesen.config import Settings
from speedlesen.db import SnapshotStore
from speedlesen.store import StoreFacade


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.store = StoreFacade(SnapshotStore())
        self.client = TestClient(create_app(settings=Settings(), store=self.store))

    def record(self, week_number, readings, **extra):
        return self.client.post(
            f"/api/groups/A/weeks/{week_number}/record",
            json={"readings": readings, **extra},
        )

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {"backend": "snapshot", "ok": True, "missing": []}
        )

    def test_groups_and_members(self):
        response = self.client.post("/api/groups", json={"id": "B"})
        self.assertEqual(response.status_code, 201)
        response = self.client.post(
            "/api/members", json={"groupId": "B", "pid": "b1", "name": "Bea"}
        )
        self.assertEqual(response.json(), {"added": True})
        response = self.client.post("/api/members", json={"groupId": "B", "pid": "b1"})
        self.assertEqual(response.json(), {"added": False})

        self.assertEqual(
            self.client.get("/api/groups").json(),
            [{"id": "B", "members": [{"pid": "b1", "name": "Bea", "alias": "Bea"}]}],
        )
        self.assertEqual(len(self.client.get("/api/groups/B/members").json()), 1)

    def test_member_without_identity_is_rejected(self):
        response = self.client.post("/api/members", json={"groupId": "B"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"], "ValidationError")

    def test_record_and_list_weeks(self):
        response = self.record(
            1,
            [{"pid": "a1", "name": "Anna", "words3min": 150, "errors": 2}],
            coachingMet=True,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["persons"][0]["wcpm"], 48)

        weeks = self.client.get("/api/groups/A/weeks").json()
        self.assertEqual([w["weekNumber"] for w in weeks], [1])
        summary = self.client.get("/api/groups/A/summary").json()
        self.assertEqual(summary["cumulativePoints"], 4)

    def test_write_week_validation(self):
        response = self.client.post("/api/weeks", json={"weekNumber": 1})
        self.assertEqual(response.status_code, 422)
        response = self.client.post(
            "/api/weeks", json={"groupId": "C", "weekNumber": 2}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["groupId"], "C")

    def test_settings(self):
        self.assertEqual(self.client.get("/api/settings/mode").status_code, 404)
        self.client.put("/api/settings/mode", json={"value": "strikt"})
        response = self.client.get("/api/settings/mode")
        self.assertEqual(response.json()["value"], "strikt")

    def test_export_import(self):
        self.record(1, [{"pid": "a1", "name": "Anna", "words3min": 150}])
        exported = self.client.get("/api/export").json()
        self.assertEqual(exported["weeks"][0]["groupId"], "A")

        self.client.post("/api/reset")
        self.assertEqual(self.client.get("/api/groups").json(), [])

        response = self.client.post("/api/import?overwrite=true", json=exported)
        self.assertEqual(
            response.json(), {"status": "ok", "groups": 1, "weeks": 1, "settings": 0}
        )
        again = self.client.get("/api/export").json()
        self.assertEqual(again["weeks"], exported["weeks"])

        response = self.client.post("/api/import", json={"something": []})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "FormatError")

    def test_malformed_persons_are_rejected(self):
        week = {"groupId": "A", "weekNumber": 1, "personen": "ab"}
        response = self.client.post("/api/import", json={"weeks": [week]})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "FormatError")

        response = self.client.post(
            "/api/weeks", json={"groupId": "A", "weekNumber": 1, "persons": ["x"]}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/api/groups").json(), [])

    def test_backup_download_and_restore(self):
        self.record(1, [{"pid": "a1", "name": "Anna", "words3min": 150}])
        response = self.client.get("/api/backup")
        self.assertIn("attachment", response.headers["content-disposition"])
        envelope = response.json()

        self.client.post("/api/reset")
        restored = self.client.post("/api/backup/restore?overwrite=true", json=envelope)
        self.assertEqual(restored.status_code, 200)
        self.assertTrue(restored.json()["ok"])
        self.assertEqual(len(self.client.get("/api/groups/A/weeks").json()), 1)

        envelope["data"]["weeks"][0]["woche"] = 7
        tampered = self.client.post("/api/backup/restore", json=envelope)
        self.assertEqual(tampered.status_code, 409)

    def test_csv(self):
        self.record(1, [{"pid": "a1", "name": "Anna", "words3min": 150}])
        response = self.client.get("/api/export.csv")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.text.startswith("Woche,Gruppe"))
        self.assertEqual(len(response.text.split("\n")), 2)


if __name__ == "__main__":
    unittest.main()
