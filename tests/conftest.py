import sys
from pathlib import Path

import fakeredis.aioredis
import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chatguard.utils.clock import ManualClock  # noqa: E402

START_MS = 1_700_000_000_000


@pytest.fixture
def clock():
    return ManualClock(START_MS)


@pytest_asyncio.fixture
async def redis():
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await r.flushall()
    yield r
    await r.flushall()
    await r.aclose()
