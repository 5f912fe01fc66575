"""In-memory registry of editing sessions."""

import logging
from collections import OrderedDict
from typing import Callable, Dict, Optional

from ..config import Settings
from ..core.session import EditingSession
from ..core.styles import StyleCatalog, catalog as default_catalog
from ..core.worker import RenderChannel, create_channel

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Exception raised when a session id is unknown."""
    pass


class SessionStore:
    """Keeps sessions by id, closing the oldest once ``max_sessions`` is reached."""

    def __init__(
        self,
        settings: Settings,
        channel_factory: Optional[Callable[[], RenderChannel]] = None,
        catalog: StyleCatalog = default_catalog,
    ):
        self.settings = settings
        self.catalog = catalog
        self.channel_factory = channel_factory or (
            lambda: create_channel(settings.worker.backend, settings.worker.start_method)
        )
        self._sessions: Dict[str, EditingSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> EditingSession:
        while len(self._sessions) >= self.settings.max_sessions:
            oldest_id = next(iter(self._sessions))
            logger.info(f"Evicting session {oldest_id}")
            self.delete(oldest_id)
        session = EditingSession(
            channel=self.channel_factory(),
            catalog=self.catalog,
            configuration=self.settings.render.to_configuration(),
            shutdown_timeout=self.settings.worker.shutdown_timeout_s,
        )
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> EditingSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def delete(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.delete(session_id)
