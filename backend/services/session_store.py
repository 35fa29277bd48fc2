# backend/services/session_store.py
"""
Session Store Service

In-memory, time-limited state for coaching conversations.

Each session holds:
- The parsed resume (if one was ingested)
- Chat history (capped, most recent messages kept)
- Bullets and skills extracted so far
- The selected bullet methodology

Sessions expire one hour after creation. Expiry is enforced lazily in get()
and by a background sweep that runs every 10 minutes while the app is up.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

import config
from models import Bullet, ChatMessage, ChatSession, Methodology, ParsedResume, Skill
from services.bullet_scorer import create_scored_bullet

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Thread-safe map of session id -> ChatSession with TTL expiry.

    Every operation holds a single lock, so concurrent appends on the same
    session are never lost and get-then-expire-then-delete is atomic.
    """

    def __init__(
        self,
        ttl_seconds: int = config.SESSION_TTL_SECONDS,
        max_messages: int = config.MAX_SESSION_MESSAGES,
        sweep_interval_seconds: int = config.SESSION_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the Session Store.

        Args:
            ttl_seconds: Lifetime of a session from creation
            max_messages: Chat history cap per session
            sweep_interval_seconds: Period of the background expiry sweep
            clock: Returns "now" in epoch seconds (swap for a fake in tests)
        """
        self.ttl_seconds = ttl_seconds
        self.max_messages = max_messages
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock

        self._sessions: Dict[str, ChatSession] = {}
        self._lock = threading.RLock()
        self._sweep_task: Optional[asyncio.Task] = None

        logger.info(f"SessionStore initialized (ttl={ttl_seconds}s, max_messages={max_messages})")

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def create(self, session_id: str) -> ChatSession:
        """Create (or replace) a session with empty state."""
        now = self._clock()
        session = ChatSession(
            id=session_id,
            createdAt=now,
            expiresAt=now + self.ttl_seconds,
        )
        with self._lock:
            self._sessions[session_id] = session
        logger.debug(f"Session created: {session_id}")
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        """
        Return the live session, or None.

        An expired session is removed here as a side effect.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                logger.info(f"Session expired on read: {session_id}")
                return None
            return session

    def get_or_create(self, session_id: str) -> ChatSession:
        with self._lock:
            return self.get(session_id) or self.create(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def set_resume(self, session_id: str, resume: ParsedResume) -> None:
        with self._lock:
            self.get_or_create(session_id).resume = resume

    def set_methodology(self, session_id: str, methodology) -> None:
        """
        Set the session's methodology.

        Raises:
            ValueError: if the value is not a known methodology
        """
        parsed = Methodology.parse(methodology)
        if parsed is None:
            raise ValueError(f"Unknown methodology: {methodology!r}")
        with self._lock:
            self.get_or_create(session_id).methodology = parsed

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def append_message(self, session_id: str, role: str, content: str) -> None:
        """Append to history, keeping only the most recent max_messages."""
        message = ChatMessage(role=role, content=content)
        with self._lock:
            session = self.get_or_create(session_id)
            session.messages.append(message)
            if len(session.messages) > self.max_messages:
                session.messages = session.messages[-self.max_messages:]

    def get_messages(self, session_id: str) -> List[ChatMessage]:
        """History, oldest first. Empty list for unknown/expired sessions."""
        with self._lock:
            session = self.get(session_id)
            return list(session.messages) if session else []

    # ------------------------------------------------------------------
    # Bullets
    # ------------------------------------------------------------------

    def append_bullet(self, session_id: str, bullet: Bullet) -> None:
        with self._lock:
            self.get_or_create(session_id).bullets.append(bullet)

    def get_bullets(self, session_id: str) -> List[Bullet]:
        with self._lock:
            session = self.get(session_id)
            return list(session.bullets) if session else []

    def remove_bullet(self, session_id: str, bullet_id: str) -> bool:
        """Delete a bullet by id. Other bullets keep their scores."""
        with self._lock:
            session = self.get(session_id)
            if not session:
                return False
            for idx, bullet in enumerate(session.bullets):
                if bullet.id == bullet_id:
                    del session.bullets[idx]
                    return True
            return False

    def update_bullet_text(self, session_id: str, bullet_id: str, text: str) -> Optional[Bullet]:
        """
        Replace a bullet's text. The edited bullet is re-scored as if newly
        created, keeping its id, company, title and source.
        """
        with self._lock:
            session = self.get(session_id)
            if not session:
                return None
            for idx, bullet in enumerate(session.bullets):
                if bullet.id == bullet_id:
                    edited = create_scored_bullet(
                        bullet.company,
                        bullet.title,
                        text,
                        bullet_id=bullet.id,
                        source=bullet.source,
                    )
                    session.bullets[idx] = edited
                    return edited
            return None

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------

    def append_skill(self, session_id: str, skill: Skill) -> bool:
        """
        Add a skill unless one with the same name (case-insensitive) exists.

        Returns:
            True if added, False if it was a duplicate
        """
        key = skill.name.strip().lower()
        with self._lock:
            session = self.get_or_create(session_id)
            if any(existing.name.strip().lower() == key for existing in session.skills):
                logger.debug(f"Skill '{skill.name}' already recorded for {session_id}")
                return False
            session.skills.append(skill)
            return True

    def get_skills(self, session_id: str) -> List[Skill]:
        with self._lock:
            session = self.get(session_id)
            return list(session.skills) if session else []

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired session. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [sid for sid, session in self._sessions.items() if session.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                cleaned = self.sweep()
                if cleaned > 0:
                    logger.info(f"Cleaned up {cleaned} expired sessions")
            except Exception:
                logger.exception("Session sweep failed")

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(f"Session sweep started (every {self.sweep_interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Session sweep stopped")


# Singleton instance for shared use
_session_store_instance: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """
    Get or create the application's SessionStore.

    Returns:
        Shared SessionStore instance
    """
    global _session_store_instance

    if _session_store_instance is None:
        _session_store_instance = SessionStore()

    return _session_store_instance


def reset_session_store():
    """Reset the singleton instance (useful for testing)."""
    global _session_store_instance
    _session_store_instance = None
    logger.info("SessionStore singleton reset")
