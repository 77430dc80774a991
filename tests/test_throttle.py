from timeline_allocator.throttle import CoalescingThrottle


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_first_push_is_delivered_immediately():
    delivered = []
    throttle = CoalescingThrottle(delivered.append, interval=0.1, clock=_Clock())

    assert throttle.push("a") is True
    assert delivered == ["a"]
    assert not throttle.has_pending


def test_pushes_inside_interval_keep_only_latest():
    delivered = []
    clock = _Clock()
    throttle = CoalescingThrottle(delivered.append, interval=0.1, clock=clock)

    throttle.push("a")
    clock.now = 0.05
    assert throttle.push("b") is False
    assert throttle.push("c") is False
    assert delivered == ["a"]

    clock.now = 0.2
    throttle.push("d")
    assert delivered == ["a", "d"]
    assert throttle.delivered == 2


def test_flush_delivers_pending_value_once():
    delivered = []
    throttle = CoalescingThrottle(delivered.append, interval=10, clock=_Clock())

    throttle.push("a")
    throttle.push("b")

    assert throttle.flush() is True
    assert throttle.flush() is False
    assert delivered == ["a", "b"]


def test_discard_drops_pending_value():
    delivered = []
    throttle = CoalescingThrottle(delivered.append, interval=10, clock=_Clock())

    throttle.push("a")
    throttle.push("b")
    throttle.discard()

    assert throttle.flush() is False
    assert delivered == ["a"]


def test_poll_delivers_pending_value_after_interval():
    delivered = []
    clock = _Clock()
    throttle = CoalescingThrottle(delivered.append, interval=0.1, clock=clock)

    throttle.push("a")
    clock.now = 0.05
    throttle.push("b")
    assert throttle.poll() is False

    clock.now = 0.2
    assert throttle.poll() is True
    assert throttle.poll() is False
    assert delivered == ["a", "b"]
