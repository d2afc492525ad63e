import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

from fakes import Harness  # noqa: E402


@pytest.fixture
def harness() -> Harness:
    return Harness()
