import pytest


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Stands in for an event loop: frames run only when the test says so"""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if not h.cancelled and h.callback is not None]

    def run_frame(self):
        """Fire every live callback once; returns how many fired"""
        due = self.live
        for handle in due:
            callback, handle.callback = handle.callback, None
            callback()
        return len(due)

    def run_until_idle(self, limit=10000):
        frames = 0
        while self.live and frames < limit:
            frames += self.run_frame()
        return frames


@pytest.fixture
def scheduler():
    return FakeScheduler()
