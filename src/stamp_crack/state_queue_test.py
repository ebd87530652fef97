import threading

import pytest

from stamp_crack.state_queue import SingleSlotQueue


class TestSingleSlotQueue:
    """Test suite for the latest-wins snapshot queue"""

    def test_latest_wins(self):
        """Test only the newest unread item is returned"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.publish(1)
        queue.publish(2)
        queue.publish(3)
        assert queue.get(timeout=1) == 3
        assert queue.dropped == 2

    def test_close_returns_none(self):
        """Test a closed empty queue returns None"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.close()
        assert queue.closed
        assert queue.get(timeout=1) is None

    def test_pending_value_survives_close(self):
        """Test the final snapshot is not lost when the producer closes"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.publish(7)
        queue.close()
        assert queue.get(timeout=1) == 7
        assert queue.get(timeout=1) is None

    def test_publish_after_close_is_ignored(self):
        """Test nothing can be published once closed"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        queue.close()
        queue.publish(1)
        assert queue.get(timeout=1) is None

    def test_timeout(self):
        """Test get() gives up after the timeout"""
        queue: SingleSlotQueue[int] = SingleSlotQueue()
        with pytest.raises(TimeoutError):
            queue.get(timeout=0.01)

    def test_cross_thread(self):
        """Test a consumer thread is woken by a publish"""
        queue: SingleSlotQueue[str] = SingleSlotQueue()
        received = []
        consumer = threading.Thread(target=lambda: received.append(queue.get(timeout=5)))
        consumer.start()
        queue.publish("snapshot")
        consumer.join(timeout=5)
        assert received == ["snapshot"]
