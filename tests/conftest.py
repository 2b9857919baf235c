import hypothesis
import pytest

from forkdeal.test import MemoryNode

# disable hypothesis deadline globally
hypothesis.settings.register_profile("ci", deadline=None)
hypothesis.settings.load_profile("ci")

TOKEN = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
HOLDER = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


@pytest.fixture
def node():
    return MemoryNode()


@pytest.fixture
def token():
    return TOKEN


@pytest.fixture
def holder():
    return HOLDER
