import unittest

from zeo_bridge.clock import (
    Correction,
    SequenceGap,
    SequenceTracker,
    SubsecondHistogram,
    TimestampReconciler,
)


class SequenceTrackerTests(unittest.TestCase):
    def test_first_frame_has_no_gap(self):
        tracker = SequenceTracker()
        self.assertIsNone(tracker.observe(17))
        self.assertEqual(tracker.last, 17)

    def test_reports_lost_frames(self):
        tracker = SequenceTracker()
        tracker.observe(5)
        tracker.observe(6)
        gap = tracker.observe(8)
        self.assertEqual(gap, SequenceGap(expected=7, observed=8))
        self.assertEqual(gap.lost, 1)

    def test_gap_across_wraparound(self):
        tracker = SequenceTracker()
        tracker.observe(250)
        self.assertEqual(tracker.observe(2).lost, 7)

    def test_state_updates_on_gap(self):
        tracker = SequenceTracker()
        tracker.observe(1)
        tracker.observe(10)
        self.assertIsNone(tracker.observe(11))


class TimestampReconcilerTests(unittest.TestCase):
    def setUp(self):
        self.clock = TimestampReconciler()

    def test_undefined_before_sync(self):
        self.assertEqual(self.clock.reconcile(0x03), (None, None))

    def test_exact(self):
        self.clock.sync(0x1003)
        self.assertEqual(self.clock.reconcile(0x03), (0x1003, Correction.EXACT))

    def test_behind(self):
        self.clock.sync(0x1003)
        self.assertEqual(self.clock.reconcile(0x02), (0x1002, Correction.BEHIND))

    def test_ahead(self):
        self.clock.sync(0x1003)
        self.assertEqual(self.clock.reconcile(0x04), (0x1004, Correction.AHEAD))

    def test_ahead_across_low_byte_wrap(self):
        self.clock.sync(0x10FF)
        self.assertEqual(self.clock.reconcile(0x00), (0x1100, Correction.AHEAD))

    def test_no_match_keeps_absolute(self):
        self.clock.sync(0x1003)
        self.assertEqual(self.clock.reconcile(0x80), (0x1003, Correction.RESET))

    def test_version(self):
        self.assertIsNone(self.clock.state.version)
        self.clock.set_version(3)
        self.assertEqual(self.clock.state.version, 3)

    def test_reset(self):
        self.clock.sync(42)
        self.clock.set_version(3)
        self.clock.reset()
        self.assertIsNone(self.clock.state.absolute)
        self.assertIsNone(self.clock.state.version)


class SubsecondHistogramTests(unittest.TestCase):
    def test_unexpected_values(self):
        histogram = SubsecondHistogram()
        for value in (2, 4, 4, 22, 1):
            histogram.record(value)
        self.assertEqual(histogram.counts[4], 2)
        self.assertEqual(histogram.unexpected(), [1, 22])
        self.assertEqual(len(histogram), 4)


if __name__ == "__main__":
    unittest.main()
