import pytest
from serdyn._host import active_scope


@pytest.fixture(autouse=True)
def _no_leaked_scope():
    yield
    assert active_scope() is None
