import pytest
from fastapi.testclient import TestClient

from confidential_reco import create_local_advisor
from confidential_reco.api import create_app


@pytest.fixture
def local():
    return create_local_advisor()


@pytest.fixture
def client(local):
    advisor, oracle = local
    return TestClient(create_app(advisor, oracle))
