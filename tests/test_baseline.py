from step_tracker.baseline import StepBaselineTracker


def test_first_reading_is_zero():
    tracker = StepBaselineTracker()
    assert tracker.on_raw_step_count(10432) == 0
    assert tracker.baseline == 10432


def test_outputs_are_delta_from_first_reading():
    values = [500, 503, 503, 520, 600]
    tracker = StepBaselineTracker()
    outputs = [tracker.on_raw_step_count(v) for v in values]
    assert outputs == [max(0, v - values[0]) for v in values]


def test_counter_going_backwards_is_floored():
    tracker = StepBaselineTracker()
    tracker.on_raw_step_count(1000)
    tracker.on_raw_step_count(1010)
    # Device reboot resets the hardware counter
    assert tracker.on_raw_step_count(3) == 0
    assert tracker.baseline == 1000


def test_baseline_is_fixed_for_the_session():
    tracker = StepBaselineTracker()
    tracker.on_raw_step_count(200)
    tracker.on_raw_step_count(150)
    assert tracker.baseline == 200


def test_rebaseline_keeps_count_and_takes_new_reference():
    tracker = StepBaselineTracker()
    tracker.on_raw_step_count(100)
    tracker.on_raw_step_count(140)
    tracker.rebaseline()
    assert tracker.on_raw_step_count(900) == 40
    assert tracker.on_raw_step_count(910) == 50


def test_reset_clears_everything():
    tracker = StepBaselineTracker()
    tracker.on_raw_step_count(100)
    tracker.on_raw_step_count(140)
    tracker.reset()
    assert tracker.baseline is None
    assert tracker.steps == 0
    assert tracker.on_raw_step_count(7) == 0
