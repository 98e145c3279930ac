import asyncio
import os
import shutil
import sys
import tempfile
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="ac-status-tests-")

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'servers.db'}")
os.environ.setdefault("LOAD_SAMPLE_DATA", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

sys.path.append(str(Path(__file__).resolve().parents[1]))


def pytest_sessionfinish(session, exitstatus):
    from app.database import engine

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(engine.dispose())
    finally:
        loop.close()
    shutil.rmtree(_DB_DIR, ignore_errors=True)
