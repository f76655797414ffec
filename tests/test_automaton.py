"""
Tests for the capture automaton.
"""

import pytest

from algorithms.capture import CaptureAutomaton, CaptureGoal, LabelsPresent


def goal(goal_id, label="triangle", stable=2, gap=0.0, confidence=0.5):
    return CaptureGoal(
        id=goal_id,
        predicate=LabelsPresent(labels=(label,)),
        required_stable_frames=stable,
        min_gap_after_previous_ms=gap,
        confidence_threshold=confidence,
    )


@pytest.fixture
def two_goal_plan():
    return (goal("without_glass_image"), goal("with_glass_image", gap=6000))


class TestStability:
    def test_fires_on_second_stable_frame(self, det):
        fired = []
        automaton = CaptureAutomaton([goal("G1", label="A")], cooldown_ms=2000,
                                     on_capture=lambda gid, dets: fired.append(gid))

        assert automaton.step([det("A")], now=0) is None
        event = automaton.step([det("A")], now=100)

        assert event is not None
        assert event.goal_id == "G1"
        assert event.timestamp_ms == 100
        assert fired == ["G1"]

    def test_single_frame_does_not_fire(self, det):
        automaton = CaptureAutomaton([goal("G1", label="A")])

        assert automaton.step([det("A")], now=0) is None
        assert automaton.state.consecutive_stable_count == 1
        assert automaton.state.completed_goal_ids == []

    def test_count_resets_on_false_tick(self, det):
        automaton = CaptureAutomaton([goal("G1", stable=3)])

        automaton.step([det("triangle")], now=0)
        automaton.step([det("triangle")], now=10)
        automaton.step([det("glass")], now=20)

        assert automaton.state.consecutive_stable_count == 0
        assert automaton.step([det("triangle")], now=30) is None

    def test_low_confidence_does_not_count(self, det):
        automaton = CaptureAutomaton([goal("G1", confidence=0.6)])

        automaton.step([det("triangle", 0.55)], now=0)

        assert automaton.state.consecutive_stable_count == 0

    def test_first_fire_with_clock_at_zero(self, det):
        automaton = CaptureAutomaton([goal("G1", stable=1)], cooldown_ms=2000)

        assert automaton.step([det("triangle")], now=0) is not None

    def test_event_carries_qualifying_detections(self, det):
        automaton = CaptureAutomaton([goal("G1", stable=1)])

        event = automaton.step([det("triangle", 0.8), det("glass", 0.9)], now=0)

        assert [d.label for d in event.detections] == ["triangle"]


class TestPhaseGap:
    def test_second_goal_waits_for_gap(self, det, two_goal_plan):
        automaton = CaptureAutomaton(two_goal_plan, cooldown_ms=2000)
        automaton.step([det("triangle")], now=-100)
        assert automaton.step([det("triangle")], now=0).goal_id == "without_glass_image"

        assert automaton.step([det("triangle")], now=3000) is None
        assert automaton.step([det("triangle")], now=3100) is None
        assert automaton.state.goal_index == 1

        events = [automaton.step([det("triangle")], now=t) for t in (7000, 7100)]
        fired = [e for e in events if e is not None]

        assert [e.goal_id for e in fired] == ["with_glass_image"]
        assert fired[0].timestamp_ms >= 7000
        assert automaton.is_done

    def test_gap_is_strict(self, det):
        automaton = CaptureAutomaton((goal("a", stable=1), goal("b", stable=1, gap=6000)), cooldown_ms=0)
        automaton.step([det("triangle")], now=0)

        assert automaton.step([det("triangle")], now=6000) is None
        assert automaton.step([det("triangle")], now=6001).goal_id == "b"

    def test_goals_fire_in_order(self, det):
        plan = (goal("a", label="glass", stable=1), goal("b", label="triangle", stable=1))
        automaton = CaptureAutomaton(plan, cooldown_ms=0)

        # "b" satisfied first but is not armed yet
        assert automaton.step([det("triangle")], now=0) is None
        assert automaton.step([det("glass")], now=10).goal_id == "a"
        assert automaton.step([det("triangle")], now=20).goal_id == "b"


class TestCooldown:
    def test_cooldown_blocks_next_goal(self, det):
        plan = (goal("a", stable=1), goal("b", stable=1))
        automaton = CaptureAutomaton(plan, cooldown_ms=2000)
        automaton.step([det("triangle")], now=0)

        assert automaton.step([det("triangle")], now=2000) is None
        assert automaton.step([det("triangle")], now=2001).goal_id == "b"

    def test_fire_pairs_respect_cooldown(self, det):
        plan = tuple(goal(f"g{i}", stable=1) for i in range(4))
        automaton = CaptureAutomaton(plan, cooldown_ms=500)

        events = [automaton.step([det("triangle")], now=t) for t in range(0, 3000, 100)]
        times = [e.timestamp_ms for e in events if e is not None]

        assert len(times) == 4
        assert all(t2 - t1 > 500 for t1, t2 in zip(times, times[1:]))

    def test_at_most_one_fire_per_tick(self, det):
        plan = (goal("a", stable=1), goal("b", stable=1))
        automaton = CaptureAutomaton(plan, cooldown_ms=0)

        automaton.step([det("triangle")], now=0)

        assert automaton.state.completed_goal_ids == ["a"]
        assert automaton.state.consecutive_stable_count == 0


class TestLifecycle:
    def test_done_is_noop(self, det):
        automaton = CaptureAutomaton([goal("G1", stable=1)])
        automaton.step([det("triangle")], now=0)
        before = automaton.snapshot()

        assert automaton.step([det("triangle")], now=5000) is None
        assert automaton.snapshot() == before
        assert automaton.armed_goal is None

    def test_reset_then_replay_is_deterministic(self, det, two_goal_plan):
        automaton = CaptureAutomaton(two_goal_plan, cooldown_ms=2000)
        script = [(t, [det("triangle")] if t % 700 else [det("glass")]) for t in range(0, 12000, 250)]

        def replay():
            return [
                (e.goal_id, e.timestamp_ms)
                for e in (automaton.step(dets, now=t) for t, dets in script)
                if e is not None
            ]

        first = replay()
        automaton.reset()
        second = replay()

        assert first == second
        assert [gid for gid, _ in first] == ["without_glass_image", "with_glass_image"]

    def test_callback_error_does_not_undo_fire(self, det, caplog):
        def boom(goal_id, detections):
            raise RuntimeError("upload failed")

        automaton = CaptureAutomaton([goal("G1", stable=1)], on_capture=boom)

        event = automaton.step([det("triangle")], now=0)

        assert event is not None
        assert automaton.is_done
        assert "upload failed" in caplog.text

    def test_snapshot(self, det, two_goal_plan):
        automaton = CaptureAutomaton(two_goal_plan)
        automaton.step([det("triangle")], now=0)

        snap = automaton.snapshot()

        assert snap["goal_index"] == 0
        assert snap["armed_goal"] == "without_glass_image"
        assert snap["consecutive_stable_count"] == 1
        assert snap["required_stable_frames"] == 2
        assert snap["last_fire_ts"] is None
        assert snap["plan"] == ["without_glass_image", "with_glass_image"]
        assert snap["done"] is False

    def test_states_are_independent(self, det, two_goal_plan):
        a = CaptureAutomaton(two_goal_plan)
        b = CaptureAutomaton(two_goal_plan)

        a.step([det("triangle")], now=0)

        assert b.state.consecutive_stable_count == 0
