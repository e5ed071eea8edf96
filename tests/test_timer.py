import time
from datetime import timedelta

import pytest

from beautyhttp.application import Application, start, stop
from beautyhttp.timer import Timer, after, repeat


@pytest.fixture(autouse=True)
def running_app():
    start()
    yield Application.instance()
    stop()


def _ms(seconds):
    return int(seconds * 1000)


def test_simple_timer():
    called = []
    begin = time.monotonic()
    end = []

    def callback():
        called.append(True)
        end.append(time.monotonic())

    timer = Timer(timedelta(milliseconds=100), callback)
    timer.start()
    time.sleep(0.150)

    assert timer.delay == 0.1
    assert called == [True]
    delay = _ms(end[0] - begin)
    assert delay >= 90
    assert delay <= 130


def test_simple_timer_multiple_time():
    count = 0

    def callback():
        nonlocal count
        count += 1

    timer = Timer(timedelta(milliseconds=50), callback, True)
    timer.start()
    time.sleep(0.230)

    assert timer.delay == 0.05
    assert count == 4


def test_two_timers():
    values = []
    Timer(timedelta(milliseconds=30), lambda: values.append(1)).start()
    Timer(timedelta(milliseconds=130), lambda: values.append(2)).start()
    time.sleep(0.150)

    assert values == [1, 2]


def test_nested_timers_using_timer():
    values = []

    def outer():
        values.append(1)
        Timer(timedelta(milliseconds=80), lambda: values.append(2)).start()

    timer = Timer(timedelta(milliseconds=50), outer)
    timer.start()

    time.sleep(0.060)
    assert values == [1]

    time.sleep(0.090)
    assert values == [1, 2]
    assert timer.delay == 0.05


def test_nested_timers_using_after():
    values = []
    inner = []

    def outer():
        values.append(1)
        inner.append(after(timedelta(milliseconds=80), lambda: values.append(2)))

    timer = after(timedelta(milliseconds=50), outer)

    time.sleep(0.060)
    assert values == [1]

    time.sleep(0.090)
    assert values == [1, 2]
    assert timer.delay == 0.05
    assert inner[0].delay == 0.08


def test_stopped_timers(running_app):
    count = 0

    def callback():
        nonlocal count
        count += 1

    t1 = repeat(timedelta(milliseconds=50), callback)

    time.sleep(0.125)
    assert count == 2

    t1.stop()
    time.sleep(0.100)
    assert count == 2

    t1.start()
    time.sleep(0.130)
    assert count == 4

    t1.stop()
    t1.stop()
    time.sleep(0.100)
    assert count == 4

    assert len(running_app.timers) == 1


def test_after_duration_timer():
    called = []
    begin = time.monotonic()
    end = []

    def callback():
        called.append(True)
        end.append(time.monotonic())

    timer = after(timedelta(milliseconds=100), callback)
    time.sleep(0.150)

    assert timer.delay == 0.1
    assert called == [True]
    delay = _ms(end[0] - begin)
    assert delay >= 99
    assert delay <= 130


def test_after_seconds_timer():
    called = []
    begin = time.monotonic()
    end = []

    def callback():
        called.append(True)
        end.append(time.monotonic())

    timer = after(0.250, callback)
    time.sleep(0.300)

    assert timer.delay == 0.25
    assert called == [True]
    delay = _ms(end[0] - begin)
    assert delay >= 245
    assert delay <= 280


def test_repeat_timer():
    count = 0

    def callback():
        nonlocal count
        count += 1

    timer = repeat(timedelta(milliseconds=40), callback)
    time.sleep(0.130)

    assert timer.delay == 0.04
    assert count == 3


def test_repeat_timer_but_stop():
    count = 0

    def callback():
        nonlocal count
        count += 1
        return count != 2

    timer = repeat(timedelta(milliseconds=40), callback)
    time.sleep(0.160)

    assert timer.delay == 0.04
    assert count == 2


def test_timer_starts_stopped_application():
    stop()
    app = Application.instance()
    assert not app.is_started()
    Timer(0.01, lambda: None).start()
    assert app.is_started()


def test_application_stop_cancels_timer(running_app):
    count = 0

    def callback():
        nonlocal count
        count += 1

    repeat(0.02, callback)
    time.sleep(0.05)
    running_app.stop()
    seen = count
    running_app.start()
    time.sleep(0.06)
    assert count == seen
    assert running_app.timers == []


def test_delay_accepts_timedelta_and_seconds():
    assert Timer(timedelta(milliseconds=250), lambda: None).delay == 0.25
    assert Timer(0.25, lambda: None).delay == 0.25