import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_timer import Done, Idle, RestTimer, Running, rest_seconds_for, run_countdown


class RestDurationTest(unittest.TestCase):
    def test_compound_names(self) -> None:
        for name in (
            "Bench Press",
            "Overhead Press",
            "Squat",
            "Romanian Deadlift",
            "Barbell Row",
            "Lat Pulldown",
            "Lat Pull-Down",
        ):
            self.assertEqual(rest_seconds_for(name), 90, name)

    def test_isolation_names(self) -> None:
        for name in ("Bicep Curl", "Lateral Raise", "Plank", "Pressure Drill"):
            self.assertEqual(rest_seconds_for(name), 60, name)

    def test_custom_durations(self) -> None:
        self.assertEqual(rest_seconds_for("Squat", 120, 45), 120)
        self.assertEqual(rest_seconds_for("Curl", 120, 45), 45)


class RestTimerTest(unittest.TestCase):
    def test_done_fires_exactly_once(self) -> None:
        finished = []
        timer = RestTimer(on_done=finished.append)
        timer.start("Bench Press", 0)
        fired = [timer.tick(t) for t in range(1, 101)]
        self.assertEqual(fired.count(True), 1)
        self.assertTrue(fired[89])
        self.assertEqual(timer.state, Done("Bench Press"))
        self.assertEqual(finished, ["Bench Press"])

    def test_dismiss_before_deadline(self) -> None:
        timer = RestTimer()
        timer.start("Bench Press", 0)
        for t in range(1, 41):
            self.assertFalse(timer.tick(t))
        timer.dismiss()
        self.assertEqual(timer.state, Idle())
        self.assertFalse(any(timer.tick(t) for t in range(41, 200)))
        self.assertTrue(timer.is_idle)

    def test_start_replaces_running_countdown(self) -> None:
        timer = RestTimer()
        timer.start("Bench Press", 0)
        timer.start("Bicep Curl", 10)
        self.assertEqual(timer.state, Running("Bicep Curl", 60.0, 70))
        self.assertEqual(timer.remaining(40), 30)
        self.assertFalse(timer.tick(69))
        self.assertTrue(timer.tick(70))

    def test_done_stays_until_dismissed(self) -> None:
        timer = RestTimer()
        timer.start("Curl", 0, duration=5)
        self.assertTrue(timer.tick(5))
        self.assertFalse(timer.tick(500))
        self.assertTrue(timer.is_done)
        self.assertEqual(timer.remaining(500), 0.0)

    def test_invalid_duration(self) -> None:
        with self.assertRaises(ValueError):
            RestTimer().start("Curl", 0, duration=0)

    def test_run_countdown_with_fake_clock(self) -> None:
        now = [0.0]
        seen = []
        timer = RestTimer()
        timer.start("Curl", 0.0, duration=3)
        result = run_countdown(
            timer,
            clock=lambda: now[0],
            sleep=lambda s: now.__setitem__(0, now[0] + s),
            on_tick=seen.append,
        )
        self.assertTrue(result)
        self.assertTrue(timer.is_done)
        self.assertEqual(seen, [3.0, 2.0, 1.0])


if __name__ == "__main__":
    unittest.main()
