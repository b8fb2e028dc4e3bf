import pytest

from support import build_harness as _build_harness


@pytest.fixture
def build_harness():
    return _build_harness
