import unittest

from okrflow.progress import (
    calc_progress,
    calc_progress_from_progress,
    kr_progress,
    objective_progress,
    objective_score,
    scored_status,
    traffic_light,
    validate_kr_weights,
)
from okrflow.types import ObjectiveStatus, TrafficLight


class KeyResultProgressTests(unittest.TestCase):
    def test_ratio_is_clamped(self):
        self.assertEqual(kr_progress(50, 100), 50.0)
        self.assertEqual(kr_progress(150, 100), 100.0)
        self.assertEqual(kr_progress(-5, 100), 0.0)

    def test_zero_target(self):
        self.assertEqual(kr_progress(10, 0), 0.0)


class ObjectiveProgressTests(unittest.TestCase):
    def test_calc_progress_weights_raw_values(self):
        key_results = [
            {"current": 50, "target": 100, "weight": 60},
            {"current": 10, "target": 10, "weight": 40},
        ]
        self.assertEqual(calc_progress(key_results), 70)

    def test_calc_progress_does_not_normalize(self):
        self.assertEqual(calc_progress([{"current": 100, "target": 100, "weight": 50}]), 50)
        self.assertEqual(calc_progress([]), 0)

    def test_from_progress_normalizes_weights(self):
        self.assertEqual(calc_progress_from_progress([{"progress": 100, "weight": 50}]), 100)
        self.assertEqual(
            calc_progress_from_progress(
                [{"progress": 20, "weight": 30}, {"progress": 80, "weight": 10}]
            ),
            35,
        )

    def test_from_progress_empty_or_weightless(self):
        self.assertEqual(calc_progress_from_progress([]), 0)
        self.assertEqual(calc_progress_from_progress([{"progress": 90, "weight": 0}]), 0)

    def test_objective_progress_is_clamped(self):
        self.assertEqual(objective_progress([{"progress": 100, "weight": 150}]), 100.0)
        self.assertEqual(objective_progress([]), 0.0)


class TrafficLightTests(unittest.TestCase):
    def test_thresholds(self):
        self.assertEqual(traffic_light(None), TrafficLight.GRAY)
        self.assertEqual(traffic_light(0), TrafficLight.GRAY)
        self.assertEqual(traffic_light(29), TrafficLight.RED)
        self.assertEqual(traffic_light(30), TrafficLight.YELLOW)
        self.assertEqual(traffic_light(70), TrafficLight.YELLOW)
        self.assertEqual(traffic_light(71), TrafficLight.GREEN)


class ScoreTests(unittest.TestCase):
    def test_score_scale(self):
        self.assertEqual(objective_score(70), 0.7)
        self.assertEqual(objective_score(None), 0.0)
        self.assertEqual(objective_score(150), 1.0)

    def test_weight_total(self):
        self.assertTrue(validate_kr_weights([{"weight": 60}], 40))
        self.assertFalse(validate_kr_weights([{"weight": 60}], 41))

    def test_scored_status(self):
        self.assertEqual(scored_status(95, ObjectiveStatus.IN_PROGRESS), ObjectiveStatus.DONE)
        self.assertEqual(scored_status(80, ObjectiveStatus.AT_RISK), ObjectiveStatus.IN_PROGRESS)
        self.assertEqual(scored_status(50, ObjectiveStatus.IN_PROGRESS), ObjectiveStatus.AT_RISK)
        self.assertEqual(scored_status(10, ObjectiveStatus.NOT_STARTED), ObjectiveStatus.AT_RISK)
        self.assertEqual(scored_status(0, ObjectiveStatus.NOT_STARTED), ObjectiveStatus.NOT_STARTED)


if __name__ == "__main__":
    unittest.main()
