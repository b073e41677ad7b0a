from services.concurrency_tracker import ConcurrencyTracker


class TestConcurrencyTracker:
    def test_ramp_up_scenario(self):
        tracker = ConcurrencyTracker()
        for ts, threads in ((0, 1), (1000, 5), (2000, 5)):
            tracker.observe(ts, "Login", threads)
        summary = tracker.finalize()
        assert summary.ramp_start == 0
        assert summary.ramp_end == 1000
        assert summary.duration_ms == 1000
        assert summary.duration == "1s"
        assert summary.users == 5
        assert summary.users_per_test == 5

    def test_no_concurrency_observed(self):
        tracker = ConcurrencyTracker()
        tracker.observe(1000, "Login", 0)
        tracker.observe(2000, "Login", -3)
        summary = tracker.finalize()
        assert summary.ramp_start is None
        assert summary.ramp_end is None
        assert summary.duration == "0s"
        assert summary.users == 0
        assert summary.users_per_test == 0
        assert summary.to_dict() == {"users": 0, "usersPerTest": 0, "duration": "0s"}

    def test_totals_sum_labels_at_same_timestamp(self):
        tracker = ConcurrencyTracker()
        tracker.observe(1000, "A", 2)
        tracker.observe(1000, "A", 3)
        tracker.observe(1000, "B", 4)
        tracker.observe(1001, "B", 6)
        assert tracker.totals_by_timestamp() == {1000: 7, 1001: 6}
        summary = tracker.finalize()
        assert summary.users == 7
        assert summary.users_per_test == 6
        assert summary.users >= summary.users_per_test

    def test_peak_reached_immediately(self):
        tracker = ConcurrencyTracker()
        tracker.observe(5000, "A", 10)
        tracker.observe(6000, "A", 10)
        summary = tracker.finalize()
        assert summary.duration_ms == 0
        assert summary.duration == "0s"

    def test_first_peak_wins_with_out_of_order_input(self):
        tracker = ConcurrencyTracker()
        tracker.observe(3_725_000, "A", 20)
        tracker.observe(1000, "A", 1)
        tracker.observe(5_000_000, "A", 20)
        summary = tracker.finalize()
        assert summary.ramp_start == 1000
        assert summary.ramp_end == 3_725_000
        assert summary.duration == "1h 2m 4s"
