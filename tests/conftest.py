import pytest

from tests.helpers import FakeGateway


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def failing_gateway() -> FakeGateway:
    return FakeGateway(fail_send=True)
