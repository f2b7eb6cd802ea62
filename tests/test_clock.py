from core.clock import WallClock, deadline_after


def test_wall_clock_never_steps_backwards():
    readings = iter([100.0, 105.5, 99.0, 106.0])
    clock = WallClock(source=lambda: next(readings))

    assert clock() == 100.0
    assert clock() == 105.5
    assert clock() == 105.5
    assert clock() == 106.0


def test_deadline_rounds_fractional_seconds_up():
    assert deadline_after(1_700_000_000.0, 60) == 1_700_000_060
    assert deadline_after(1_700_000_000.0001, 60) == 1_700_000_061
    assert deadline_after(1_700_000_000.9995, 1) == 1_700_000_002
