import unittest

from speedlesen import interchange
from speedlesen.errors import FormatError, ValidationError
from speedlesen.models import (
    Dataset,
    Group,
    Person,
    PersonMeasurement,
    Setting,
    Week,
)


LEGACY = {
    "gruppen": [{"id": "B", "name": "Bienen"}],
    "mitglieder": [
        {"id": "m1", "pid": "b1", "name": "Bea", "alias": "", "gruppe_id": "B"},
        {"id": "b2", "name": "Bo", "gruppe_id": "C"},
    ],
    "messungen": [
        {
            "id": "B_W1",
            "gruppe_id": "B",
            "woche": "1",
            "anzahl_personen": 2,
            "personen": [
                {"pid": "b1", "name": "Bea", "woerter3": 120, "wpm": 40, "fehler": 2},
                {"name": "Neu", "woerter3": "60"},
            ],
            "flagA": True,
            "flags": {"flagD": 1},
            "punkte_gruppe_roh": 5,
            "punkte_gruppe_normalisiert": 5,
            "punkte_gruppe_kumuliert": 5,
        }
    ],
}


class ClassifyTests(unittest.TestCase):
    def test_canonical(self):
        tagged = interchange.classify({"groups": [], "settings": []})
        self.assertIsInstance(tagged, interchange.CanonicalPayload)
        self.assertEqual(tagged.kind, "canonical")

    def test_legacy(self):
        tagged = interchange.classify({"messungen": []})
        self.assertIsInstance(tagged, interchange.LegacyPayload)

    def test_unrecognized(self):
        for payload in ({}, {"groups": "nope"}, [], "text", {"settings": []}):
            with self.assertRaises(FormatError):
                interchange.classify(payload)


class NormalizeLegacyTests(unittest.TestCase):
    def setUp(self):
        self.dataset = interchange.parse(LEGACY)

    def test_members_are_embedded_in_groups(self):
        groups = {g.id: g for g in self.dataset.groups}
        self.assertEqual(sorted(groups), ["B", "C"])
        self.assertEqual(groups["B"].members, [Person("b1", "Bea", "Bea")])
        self.assertEqual(groups["C"].members, [Person("b2", "Bo", "Bo")])

    def test_week_fields_are_mapped(self):
        (week,) = self.dataset.weeks
        self.assertEqual((week.group_id, week.week_number), ("B", 1))
        self.assertEqual(week.person_count, 2)
        self.assertEqual(week.points_cumulative, 5)
        self.assertIs(week.flags.improved_wpm, True)
        self.assertIs(week.flags.mission_met, True)
        self.assertIs(week.flags.reduced_errors, False)
        bea, neu = week.persons
        self.assertEqual((bea.words3min, bea.wpm, bea.errors), (120, 40, 2))
        self.assertEqual(neu.pid, "Neu")
        self.assertEqual(neu.wpm, 20)

    def test_member_without_group_is_rejected(self):
        with self.assertRaises(ValidationError):
            interchange.parse({"mitglieder": [{"pid": "x", "name": "X"}]})

    def test_week_without_number_is_rejected(self):
        with self.assertRaises(ValidationError):
            interchange.parse({"messungen": [{"gruppe_id": "B"}]})


class NormalizeCanonicalTests(unittest.TestCase):
    def test_duplicates_collapse_last_wins(self):
        dataset = interchange.parse(
            {
                "groups": [
                    {"id": "A", "personen": [{"pid": "1", "name": "Old"}]},
                    {"id": "A", "personen": [{"pid": "1", "name": "New"}]},
                ],
                "weeks": [
                    {"groupId": "A", "weekNumber": 1, "punkte_gruppe_roh": 1},
                    {"gruppe": "A", "woche": 1, "punkte_gruppe_roh": 4},
                ],
                "settings": [{"name": "mode", "value": "strikt"}],
            }
        )
        self.assertEqual(dataset.groups[0].members[0].name, "New")
        self.assertEqual(len(dataset.weeks), 1)
        self.assertEqual(dataset.weeks[0].points_raw, 4)
        self.assertEqual(dataset.settings, [Setting("mode", "strikt")])

    def test_bad_entries(self):
        with self.assertRaises(FormatError):
            interchange.parse({"groups": ["A"]})
        with self.assertRaises(FormatError):
            interchange.parse(
                {"weeks": [{"groupId": "A", "weekNumber": 1, "flags": 3}]}
            )
        with self.assertRaises(ValidationError):
            interchange.parse({"groups": [{"personen": []}]})
        with self.assertRaises(ValidationError):
            interchange.parse({"groups": [], "settings": [{"value": 1}]})

    def test_persons_must_be_a_list_of_objects(self):
        for persons in ("ab", 5, ["x"], [{"pid": "a1"}, 3], {"pid": "a1"}):
            payload = {
                "weeks": [{"groupId": "A", "weekNumber": 1, "personen": persons}]
            }
            with self.assertRaises(FormatError):
                interchange.parse(payload)

    def test_empty_pid_falls_back_to_name(self):
        dataset = interchange.parse(
            {"groups": [{"id": "A", "personen": [{"pid": "", "name": "Eva"}]}]}
        )
        self.assertEqual(dataset.groups[0].members, [Person("Eva", "Eva", "Eva")])


class SerializeTests(unittest.TestCase):
    def test_canonical_shape(self):
        dataset = Dataset(
            groups=[Group("B"), Group("A", [Person("a1", "Anna")])],
            weeks=[
                Week("A", 2),
                Week(
                    "A",
                    1,
                    person_count=1,
                    persons=[PersonMeasurement("a1", "Anna", words3min=30, wpm=10)],
                    saved_at="2024-01-01",
                ),
            ],
            settings=[Setting("mode", "standard")],
        )
        out = interchange.serialize(dataset, "2024-02-02T00:00:00+00:00")

        self.assertEqual(out["version"], 2)
        self.assertEqual(out["exportedAt"], "2024-02-02T00:00:00+00:00")
        self.assertEqual([g["id"] for g in out["groups"]], ["A", "B"])
        self.assertEqual(
            out["groups"][0]["personen"],
            [{"pid": "a1", "name": "Anna", "alias": "Anna"}],
        )
        first = out["weeks"][0]
        self.assertEqual((first["groupId"], first["weekNumber"]), ("A", 1))
        self.assertEqual((first["gruppe"], first["woche"]), ("A", 1))
        self.assertEqual(first["anzahl_personen"], 1)
        self.assertEqual(
            first["personen"][0],
            {
                "pid": "a1",
                "name": "Anna",
                "alias": "Anna",
                "woerter3": 30,
                "wpm": 10,
                "wps": 0,
                "fehler": 0,
                "wcpm": 0,
                "punkte_person": 0,
            },
        )
        self.assertEqual(
            first["flags"],
            {
                "improvedWpm": False,
                "reducedErrors": False,
                "coachingMet": False,
                "missionMet": False,
            },
        )
        self.assertEqual(out["settings"], [{"name": "mode", "value": "standard"}])

    def test_serialized_output_parses_back(self):
        dataset = interchange.parse(LEGACY)
        out = interchange.serialize(dataset, "now")
        again = interchange.serialize(interchange.parse(out), "now")
        self.assertEqual(again, out)


if __name__ == "__main__":
    unittest.main()
