import unittest

from speakdrill.util.timers import ManualClock, TimerQueue


class TimerQueueTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.q = TimerQueue(self.clock)
        self.fired = []

    def test_fires_only_when_due(self) -> None:
        h = self.q.call_later(100, lambda: self.fired.append("a"))
        self.assertEqual(self.q.run_due(), 0)
        self.clock.advance(99)
        self.assertEqual(self.q.run_due(), 0)
        self.clock.advance(1)
        self.assertEqual(self.q.run_due(), 1)
        self.assertEqual(self.fired, ["a"])
        self.assertTrue(h.fired)
        self.assertFalse(h.pending)

    def test_cancelled_timer_never_fires(self) -> None:
        h = self.q.call_later(10, lambda: self.fired.append("x"))
        h.cancel()
        self.assertTrue(h.cancelled)
        self.clock.advance(50)
        self.assertEqual(self.q.run_due(), 0)
        self.assertEqual(self.fired, [])

    def test_order_by_due_then_insertion(self) -> None:
        self.q.call_later(20, lambda: self.fired.append("late"))
        self.q.call_later(10, lambda: self.fired.append("first"))
        self.q.call_later(10, lambda: self.fired.append("second"))
        self.clock.advance(30)
        self.q.run_due()
        self.assertEqual(self.fired, ["first", "second", "late"])

    def test_cancel_all(self) -> None:
        a = self.q.call_later(10, lambda: self.fired.append("a"))
        self.q.call_later(20, lambda: self.fired.append("b"))
        self.assertEqual(self.q.pending_count(), 2)
        self.q.cancel_all()
        self.assertEqual(self.q.pending_count(), 0)
        self.assertTrue(a.cancelled)
        self.clock.advance(100)
        self.assertEqual(self.q.run_due(), 0)

    def test_explicit_now(self) -> None:
        self.q.call_later(10, lambda: self.fired.append("a"))
        self.assertEqual(self.q.run_due(now_ms=10), 1)


if __name__ == "__main__":
    unittest.main()
