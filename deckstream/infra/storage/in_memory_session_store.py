from copy import deepcopy
from typing import Dict, List, Optional

from deckstream.application.ports import SessionStorePort
from deckstream.domain.entities.conversation import ChatMessage, Session
from deckstream.domain.entities.slide import Slide


class InMemorySessionStore(SessionStorePort):
    """Process-local session store. Reads return copies."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    async def create_session(
        self, project_id: str, title: str = "", slides: Optional[List[Slide]] = None
    ) -> Session:
        session = Session(id=project_id, title=title, slides=list(slides or []))
        self._sessions[project_id] = session
        return deepcopy(session)

    async def get(self, project_id: str) -> Optional[Session]:
        session = self._sessions.get(project_id)
        return deepcopy(session) if session is not None else None

    async def replace_slides(self, project_id: str, slides: List[Slide]) -> None:
        self._record(project_id).slides = list(slides)

    async def add_message(self, project_id: str, message: ChatMessage) -> None:
        self._record(project_id).messages.append(message)

    async def save_compaction(
        self, project_id: str, summary: str, last_compacted_index: int
    ) -> None:
        session = self._record(project_id)
        session.compacted_context = summary
        session.last_compacted_index = last_compacted_index

    def _record(self, project_id: str) -> Session:
        return self._sessions.setdefault(project_id, Session(id=project_id))
