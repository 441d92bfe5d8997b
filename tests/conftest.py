import pytest
from fastapi.testclient import TestClient

from gradebook import session, storage
from gradebook.main import app


@pytest.fixture(autouse=True)
def tmp_data_dir(tmp_path, monkeypatch):
    """Redirect all storage reads/writes to a temporary directory."""
    monkeypatch.setattr(storage, 'DATA_DIR', str(tmp_path))
    session.close_session()
    yield tmp_path
    session.close_session()


@pytest.fixture()
def client():
    return TestClient(app)
