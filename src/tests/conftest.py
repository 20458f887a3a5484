import os
import sys
import tempfile
from pathlib import Path

import pytest

# Keep settings, logs and the encrypted store out of the real home directory.
# Must happen before utils.settings is imported by any test module.
os.environ["CATDBTERM_HOME"] = tempfile.mkdtemp(prefix="catdbterm-test-")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class ManualDispatcher:
    """JobDispatcher stand-in that runs submitted jobs only when asked to."""

    def __init__(self):
        self.jobs = []
        self.events = []
        self.closed = False

    def submit(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))

    def post(self, event):
        self.events.append(event)

    def drain(self, max_items=50):
        out, self.events = self.events[:max_items], self.events[max_items:]
        return out

    def run_next(self):
        func, args, kwargs = self.jobs.pop(0)
        return func(*args, **kwargs)

    def run_pending(self, controller=None):
        """Run queued jobs (including ones they cause) and deliver their events."""
        delivered = []
        while self.jobs:
            event = self.run_next()
            if event is None:
                continue
            delivered.append(event)
            if controller is not None:
                controller.handle_event(event)
            else:
                self.events.append(event)
        return delivered

    def shutdown(self, wait=False):
        self.closed = True


@pytest.fixture
def dispatcher():
    return ManualDispatcher()
