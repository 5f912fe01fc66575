import pytest

from conftest import FakeChannel

from dealwithit.api.store import SessionNotFoundError, SessionStore
from dealwithit.config import Settings


@pytest.fixture
def channels():
    return []


@pytest.fixture
def store(channels):
    def factory():
        channel = FakeChannel()
        channels.append(channel)
        return channel

    settings = Settings(max_sessions=2, worker={'shutdown_timeout_s': 0.5}, render={'frame_count': 20})
    return SessionStore(settings, channel_factory=factory)


def test_sessions_get_render_defaults(store):
    session = store.create()
    assert store.get(session.id) is session
    assert session.configuration.frame_count == 20


def test_delete_closes_channel_with_configured_timeout(store, channels):
    session = store.create()
    store.delete(session.id)
    assert channels[0].closed
    assert channels[0].close_timeout == 0.5
    with pytest.raises(SessionNotFoundError):
        store.get(session.id)


def test_oldest_session_is_evicted(store, channels):
    first = store.create()
    store.create()
    store.create()
    assert len(store) == 2
    assert channels[0].closed
    with pytest.raises(SessionNotFoundError):
        store.get(first.id)


def test_close_all(store, channels):
    store.create()
    store.create()
    store.close_all()
    assert len(store) == 0
    assert all(channel.closed for channel in channels)
