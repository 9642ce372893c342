import unittest
from types import SimpleNamespace

from speedlesen import scoring


def person(pid, wpm=0, errors=0, wcpm=0):
    return SimpleNamespace(pid=pid, name=pid, wpm=wpm, errors=errors, wcpm=wcpm)


def week(number, normalized=0, persons=()):
    return SimpleNamespace(
        week_number=number, points_normalized=normalized, persons=list(persons)
    )


class ConversionTests(unittest.TestCase):
    def test_rates(self):
        self.assertEqual(scoring.wpm(150), 50)
        self.assertEqual(scoring.wps(180), 1)
        self.assertEqual(scoring.wcpm(50, 2), 48)
        self.assertEqual(scoring.wpm(None), 0)
        self.assertEqual(scoring.wpm("abc"), 0)


class TeamPointsTests(unittest.TestCase):
    def test_first_week_only_scores_goals(self):
        points = scoring.team_points([], [person("a", 50)], True, False)
        self.assertEqual(points.raw, 2)
        self.assertFalse(points.flag_a)
        self.assertTrue(points.flag_c)
        self.assertFalse(points.flag_d)

    def test_improvements_are_matched_by_pid(self):
        before = [person("a", wpm=40, errors=3), person("b", wpm=60, errors=0)]
        after = [person("a", wpm=45, errors=3), person("c", wpm=99, errors=0)]
        points = scoring.team_points(before, after, False, False)
        self.assertTrue(points.flag_a)
        self.assertFalse(points.flag_b)
        self.assertEqual(points.raw, 2)

    def test_capped_at_ten(self):
        before = [person("a", wpm=40, errors=3)]
        after = [person("a", wpm=45, errors=1)]
        points = scoring.team_points(before, after, True, True)
        self.assertEqual(points.raw, 10)

    def test_strict_mode_ignores_goals(self):
        before = [person("a", wpm=40, errors=3)]
        after = [person("a", wpm=45, errors=1)]
        points = scoring.team_points(before, after, True, True, mode="strikt")
        self.assertEqual(points.raw, 5)
        self.assertTrue(points.flag_c)
        self.assertTrue(points.flag_d)


class NormalizationTests(unittest.TestCase):
    def test_scales_to_pairs(self):
        self.assertEqual(scoring.normalize_team_points(10, 2), 10)
        self.assertEqual(scoring.normalize_team_points(10, 4), 5)

    def test_small_groups_are_not_capped(self):
        self.assertEqual(scoring.normalize_team_points(10, 1), 20)
        self.assertEqual(scoring.normalize_team_points(10, 0), 20)


class LevelTests(unittest.TestCase):
    def test_thresholds(self):
        self.assertEqual(scoring.level_for_cumulative(0), "Starter")
        self.assertEqual(scoring.level_for_cumulative(9.9), "Starter")
        self.assertEqual(scoring.level_for_cumulative(10), "Reader")
        self.assertEqual(scoring.level_for_cumulative(20), "Speedster")
        self.assertEqual(scoring.level_for_cumulative(35), "Flow-Master")

    def test_last_level_up_week(self):
        weeks = [week(3, 8), week(1, 6), week(2, 6), week(4, 1)]
        self.assertEqual(scoring.last_level_up_week(weeks), 3)
        self.assertEqual(scoring.last_level_up_week([]), 0)

    def test_median_wcpm_uses_latest_week(self):
        weeks = [
            week(1, persons=[person("a", wcpm=100)]),
            week(2, persons=[person("a", wcpm=10), person("b", wcpm=30)]),
        ]
        self.assertEqual(scoring.median_wcpm_last_week(weeks), 20)
        self.assertEqual(scoring.median_wcpm_last_week([]), 0)


if __name__ == "__main__":
    unittest.main()
