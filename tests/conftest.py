import pytest
from fastapi.testclient import TestClient

from shifted_app.core.config import settings
from shifted_app.main import app


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'shifted.db'}"
    monkeypatch.setattr(settings, "database_url", url)
    return url


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(job):
        sent.append(job)
        return True

    monkeypatch.setattr("shifted_app.core.emailing.send_waitlist_email", fake_send)
    return sent


@pytest.fixture
def client(db_url, sent_emails):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def bare_client(monkeypatch, sent_emails):
    monkeypatch.setattr(settings, "database_url", "")
    with TestClient(app) as c:
        yield c


@pytest.fixture
def drain_emails(client):
    def _drain():
        client.portal.call(client.app.state.email_dispatcher.join)

    return _drain
