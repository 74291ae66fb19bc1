"""
Conversation compaction service.

Long conversations are condensed into a summary so the history sent to the
backend stays small. The summarizer itself is an external collaborator; this
service decides when to compact, what to send and whether the answer is
usable.
"""

from typing import List, Optional, Sequence

from deckstream.application.ports import SessionStorePort, SummarizerPort
from deckstream.domain.entities.conversation import ChatMessage, Session
from deckstream.domain.exceptions import CompactionError
from deckstream.infra.config.logging_config import get_logger

MIN_SUMMARY_CHARS = 50


class ConversationCompactor:
    def __init__(
        self,
        summarizer: SummarizerPort,
        store: SessionStorePort,
        threshold: int = 20,
    ):
        self.summarizer = summarizer
        self.store = store
        self.threshold = threshold
        self._log = get_logger("service.compaction")

    def needs_compaction(self, session: Session) -> bool:
        return self.threshold > 0 and len(session.uncompacted_messages()) >= self.threshold

    @staticmethod
    def format_conversation(
        messages: Sequence[ChatMessage], previous_summary: Optional[str] = None
    ) -> str:
        """Numbered ``[k] Role: content`` lines, the previous summary first."""
        entries: List[str] = []
        if previous_summary:
            entries.append(f"Assistant: [Previous summary: {previous_summary}]")
        for message in messages:
            role = "User" if message.role == "user" else "Assistant"
            content = message.content
            if message.slides:
                slide_list = ", ".join(
                    f"{s.slide_number}. {s.title}" for s in message.slides
                )
                content = f"Generated {len(message.slides)} slides: {slide_list}"
            entries.append(f"{role}: {content}")
        return "\n\n".join(f"[{k}] {entry}" for k, entry in enumerate(entries, 1))

    async def compact(self, session: Session) -> str:
        """
        Summarize the uncompacted window and store the result.

        Raises:
            CompactionError: if the summarizer fails or returns too little text
        """
        batch = session.uncompacted_messages()[: self.threshold]
        text = self.format_conversation(batch, session.compacted_context)
        try:
            summary = (await self.summarizer.summarize(text) or "").strip()
        except CompactionError:
            raise
        except Exception as exc:
            raise CompactionError(str(exc) or type(exc).__name__) from exc

        if len(summary) < MIN_SUMMARY_CHARS:
            raise CompactionError("Generated summary is too short or empty")

        new_index = session.last_compacted_index + len(batch)
        await self.store.save_compaction(session.id, summary, new_index)
        self._log.info(
            "compaction.saved",
            project_id=session.id,
            messages=len(batch),
            last_compacted_index=new_index,
        )
        return summary

    async def maybe_compact(self, session: Session) -> bool:
        """Compact when over threshold. Failures are logged, never raised."""
        if not self.needs_compaction(session):
            return False
        try:
            await self.compact(session)
        except CompactionError as exc:
            self._log.warning(
                "compaction.failed", project_id=session.id, error=exc.message
            )
            return False
        return True
