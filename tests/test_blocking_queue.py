import threading

import pytest

from gamestream.blocking_queue import (
    LinkedBlockingQueue,
    QueueBoundExceeded,
    QueueEmpty,
    QueueInterrupted,
    QueueUserWake,
)


def test_items_come_out_in_fifo_order():
    queue = LinkedBlockingQueue(10)
    for item in ["a", "b", "c"]:
        queue.offer(item)
    assert len(queue) == 3
    assert [queue.wait(), queue.poll(), queue.wait()] == ["a", "b", "c"]
    assert len(queue) == 0


def test_offer_beyond_bound_raises():
    queue = LinkedBlockingQueue(2)
    queue.offer(1)
    queue.offer(2)
    with pytest.raises(QueueBoundExceeded):
        queue.offer(3)
    assert len(queue) == 2
    assert queue.poll() == 1


def test_poll_on_empty_queue_raises_empty():
    queue = LinkedBlockingQueue(4)
    with pytest.raises(QueueEmpty):
        queue.poll()


def test_peek_leaves_item_in_place():
    queue = LinkedBlockingQueue(4)
    queue.offer("x")
    queue.offer("y")
    assert queue.peek() == "x"
    assert len(queue) == 2
    assert queue.poll() == "x"
    assert queue.peek() == "y"


def test_peek_on_empty_queue_raises_empty():
    queue = LinkedBlockingQueue(4)
    with pytest.raises(QueueEmpty):
        queue.peek()


def test_shutdown_rejects_offers_and_aborts_reads_with_data():
    queue = LinkedBlockingQueue(4)
    queue.offer("left")
    queue.signal_shutdown()
    with pytest.raises(QueueInterrupted):
        queue.offer("new")
    with pytest.raises(QueueInterrupted):
        queue.wait()
    with pytest.raises(QueueInterrupted):
        queue.poll()
    with pytest.raises(QueueInterrupted):
        queue.peek()
    assert len(queue) == 1


def test_drain_hands_out_remaining_items_then_interrupts():
    queue = LinkedBlockingQueue(4)
    queue.offer(1)
    queue.offer(2)
    queue.signal_drain()
    with pytest.raises(QueueInterrupted):
        queue.offer(3)
    assert queue.wait() == 1
    assert queue.poll() == 2
    with pytest.raises(QueueInterrupted):
        queue.wait()
    with pytest.raises(QueueInterrupted):
        queue.poll()
    with pytest.raises(QueueInterrupted):
        queue.peek()


def test_user_wake_is_delivered_once():
    queue = LinkedBlockingQueue(4)
    queue.offer("item")
    queue.signal_user_wake()
    with pytest.raises(QueueUserWake):
        queue.wait()
    assert queue.wait() == "item"


def test_flush_empties_queue_and_returns_items():
    queue = LinkedBlockingQueue(4)
    queue.offer(1)
    queue.offer(2)
    assert queue.flush() == [1, 2]
    assert len(queue) == 0
    assert queue.flush() == []
    queue.offer(3)
    assert queue.poll() == 3


def test_destroy_returns_leftover_items():
    queue = LinkedBlockingQueue(4)
    queue.offer("a")
    queue.offer("b")
    queue.signal_shutdown()
    assert queue.destroy() == ["a", "b"]
    assert len(queue) == 0


def test_wait_blocks_until_item_is_offered():
    queue = LinkedBlockingQueue(4)
    timer = threading.Timer(0.05, queue.offer, args=("payload",))
    timer.start()
    try:
        assert queue.wait() == "payload"
    finally:
        timer.join(timeout=5)
    assert len(queue) == 0


def test_shutdown_wakes_blocked_waiter():
    queue = LinkedBlockingQueue(4)
    timer = threading.Timer(0.05, queue.signal_shutdown)
    timer.start()
    try:
        with pytest.raises(QueueInterrupted):
            queue.wait()
    finally:
        timer.join(timeout=5)
    with pytest.raises(QueueInterrupted):
        queue.offer("late")


def test_queue_errors_share_a_base_class():
    queue = LinkedBlockingQueue(0)
    with pytest.raises(QueueBoundExceeded) as info:
        queue.offer(1)
    assert isinstance(info.value, Exception)
    assert type(info.value).__mro__[1].__name__ == "QueueError"