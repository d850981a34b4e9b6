import os
import pathlib
import sys
import tempfile

import pytest

ROOT = pathlib.Path(__file__).parent
# Add src and the fixture components to the path so tests run without installing
sys.path.insert(0, str(ROOT.parent / "src"))
sys.path.insert(0, str(ROOT))
os.environ.setdefault("BOOTPROF_LOG_DIR", tempfile.mkdtemp(prefix="bootprof-logs-"))

from bootprof.sandbox.host import Application  # noqa: E402
from bootprof.utils.config import Settings  # noqa: E402
from fixtures.sample_components import FakeClock  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    application = Application()
    application.instance(FakeClock, clock)
    return application


@pytest.fixture
def settings(tmp_path):
    return Settings(
        base_path=str(tmp_path),
        cache_dir=str(tmp_path / "cache"),
        log_dir=str(tmp_path / "logs"),
    )
