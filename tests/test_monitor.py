import unittest

import numpy as np

from speakdrill.util.timers import ManualClock
from speakdrill.vad.monitor import AmplitudeMonitor, SpeechEnded, SpeechStarted, frame_average, level_bars


class AmplitudeMonitorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.mon = AmplitudeMonitor(threshold=30, min_speech_ms=1000)

    def test_threshold_value_counts_as_quiet(self) -> None:
        self.assertIsNone(self.mon.observe(30, now_ms=0))
        self.assertFalse(self.mon.active)
        self.assertIsInstance(self.mon.observe(31, now_ms=16), SpeechStarted)
        self.assertTrue(self.mon.active)

    def test_qualifying_speech(self) -> None:
        started = self.mon.observe(120, now_ms=100)
        self.assertEqual(started, SpeechStarted(at_ms=100))
        self.assertIsNone(self.mon.observe(90, now_ms=600))
        ended = self.mon.observe(5, now_ms=1300)
        self.assertIsInstance(ended, SpeechEnded)
        self.assertEqual(ended.duration_ms, 1200)
        self.assertTrue(ended.qualifying)

    def test_exactly_min_duration_qualifies(self) -> None:
        self.mon.observe(100, now_ms=0)
        self.assertTrue(self.mon.observe(0, now_ms=1000).qualifying)

    def test_short_burst_does_not_qualify(self) -> None:
        self.mon.observe(100, now_ms=0)
        ended = self.mon.observe(0, now_ms=400)
        self.assertFalse(ended.qualifying)
        self.assertIsNone(self.mon.observe(0, now_ms=500))

    def test_frame_uses_mean(self) -> None:
        frame = np.array([0, 62], dtype=np.uint8)
        self.assertEqual(frame_average(frame), 31.0)
        self.assertTrue(self.mon.is_loud(frame))
        self.assertEqual(frame_average([]), 0.0)

    def test_clock_is_used_when_no_time_given(self) -> None:
        clock = ManualClock(500)
        mon = AmplitudeMonitor(clock=clock)
        self.assertEqual(mon.observe(200), SpeechStarted(at_ms=500))
        clock.advance(1500)
        self.assertEqual(mon.observe(0).duration_ms, 1500)

    def test_quiet_stream_never_starts(self) -> None:
        events = [self.mon.observe(level, now_ms=i * 16) for i, level in enumerate([0, 12, 29, 30, 25] * 40)]
        self.assertEqual([e for e in events if e is not None], [])

    def test_missing_time_without_clock_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.mon.observe(10)

    def test_reset_forgets_open_window(self) -> None:
        self.mon.observe(100, now_ms=0)
        self.mon.reset()
        self.assertFalse(self.mon.window.is_speaking)
        self.assertIsNone(self.mon.observe(0, now_ms=2000))


class LevelBarsTests(unittest.TestCase):
    def test_heights_are_clamped(self) -> None:
        self.assertEqual(level_bars(np.zeros(128), 5), [10] * 5)
        self.assertEqual(level_bars(np.full(128, 255), 3), [60] * 3)

    def test_bars_sample_across_frame(self) -> None:
        frame = np.arange(0, 256, 2, dtype=np.uint8)  # 128 bins rising
        bars = level_bars(frame, 4)
        self.assertEqual(len(bars), 4)
        self.assertEqual(bars, sorted(bars))

    def test_zero_bars(self) -> None:
        self.assertEqual(level_bars(np.zeros(8), 0), [])


if __name__ == "__main__":
    unittest.main()
