import sys
from pathlib import Path
import pytest

# Ensure project root is on sys.path so tests can import the `playledger` package
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from playledger.platform import Platform  # noqa: E402

OWNER = "0xowner"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"
START = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def platform(tmp_path, clock):
    db = tmp_path / 'ledger.db'
    return Platform.from_url(f'sqlite:///{db}', OWNER, clock=clock)


@pytest.fixture
def recorded(platform):
    """List that collects every event the platform publishes."""
    seen = []
    platform.events.subscribe(seen.append)
    return seen


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    # Clear in-memory rate limiter between tests to avoid cross-test flakiness
    try:
        import playledger.main as app_main
        app_main._RATE_LIMIT_STORE.clear()
    except Exception:
        pass
    yield
