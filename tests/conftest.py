"""Pytest configuration. Force exit after session so process does not hang.

Some plugins (e.g. from pydantic-ai deps) can leave background threads or
resources that prevent the interpreter from exiting after all tests pass.
"""

import os
import tempfile

# Keep test runs away from the real conversation store
os.environ.setdefault("VIDYA_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="vidya-tests-"), "conversations.db"))


def pytest_sessionfinish(session, exitstatus):
    """Exit process immediately after test session to avoid shutdown hang."""
    import sys

    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(exitstatus)
