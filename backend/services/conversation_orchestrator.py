# backend/services/conversation_orchestrator.py
"""
Conversation Orchestrator

Runs one coaching turn end to end:

1. RECEIVED       - validate the user's message
2. CONTEXT-BUILT  - load history/resume, persist the user message, build instructions
3. STREAMING      - forward model fragments to the caller as "chunk" events
4. EXTRACTING     - parse bullet/skills, score the bullet, store both, emit events
5. PERSISTED      - store the cleaned assistant reply
6. DONE           - emit the "done" summary

Errors before streaming raise from start_turn(); errors once streaming has
begun become a single "error" event. If the caller goes away mid-stream the
upstream connection is closed and nothing from the partial reply is saved.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import config
from errors import InvalidMessageError
from models import Bullet, ChatMessage, Methodology, Skill
from prompts.coach_prompts import CoachPrompts
from services.bullet_scorer import create_scored_bullet
from services.extraction_parser import merge_results, parse_assistant_output, parse_tool_calls
from services.model_client import ModelClient, ModelStream, get_model_client
from services.session_store import SessionStore, get_session_store

logger = logging.getLogger(__name__)


class ChatTurn:
    """
    A turn whose upstream stream is already open. Iterate events() once.
    """

    def __init__(
        self,
        orchestrator: "ConversationOrchestrator",
        stream: ModelStream,
        session_id: Optional[str]
    ):
        self._orchestrator = orchestrator
        self._stream = stream
        self.session_id = session_id

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield chunk events, then extraction events, then one done or error event.
        """
        fragments: List[str] = []
        try:
            try:
                async for fragment in self._stream:
                    fragments.append(fragment)
                    yield {"type": "chunk", "content": fragment}

                # Tool-call-only turns have no deltas; fall back to the provider's full text
                full_text = "".join(fragments) or self._stream.final_text or ""
                logger.info(f"Stream complete: {len(fragments)} chunks, {len(full_text)} chars")

                for event in self._orchestrator.finish_turn(
                    self.session_id,
                    full_text,
                    self._stream.tool_calls
                ):
                    yield event

            except Exception as e:
                logger.exception(f"Chat turn failed mid-stream: {e}")
                yield {"type": "error", "error": "Stream error"}
        finally:
            await self._close_upstream()

    async def _close_upstream(self) -> None:
        try:
            await asyncio.shield(self._stream.aclose())
        except Exception as e:
            logger.warning(f"Failed to close model stream cleanly: {e}")


class ConversationOrchestrator:
    """
    Coordinates the session store, the model client, the extraction parser
    and the bullet scorer for chat turns.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        model_client: Optional[ModelClient] = None,
        use_tools: bool = config.USE_TOOL_EXTRACTION
    ):
        """
        Args:
            store: Session store shared with the HTTP layer
            model_client: Upstream streaming collaborator
            use_tools: Also offer add_bullet/add_skill function calls to the model
        """
        self.store = store or get_session_store()
        self.model_client = model_client or get_model_client()
        self.use_tools = use_tools

        logger.info(f"ConversationOrchestrator initialized (use_tools={use_tools})")

    async def start_turn(
        self,
        message: Any,
        session_id: Optional[str] = None,
        methodology: Optional[str] = None
    ) -> ChatTurn:
        """
        Validate, build context and open the model stream.

        Args:
            message: The user's message
            session_id: Session to read history from and write results to
            methodology: Optional methodology override for this and later turns

        Returns:
            ChatTurn ready to stream

        Raises:
            InvalidMessageError: empty or non-string message (nothing is stored)
            ModelServiceError: the upstream stream could not be opened
        """
        if not isinstance(message, str) or not message.strip():
            raise InvalidMessageError("Message is required")

        history: List[ChatMessage] = []
        resume = None
        effective_methodology = Methodology.parse(methodology) if methodology else None

        if session_id:
            history = self.store.get_messages(session_id)
            session = self.store.get(session_id)
            if session is not None:
                resume = session.resume

            if effective_methodology is not None:
                self.store.set_methodology(session_id, effective_methodology)
            elif methodology:
                logger.warning(f"Unknown methodology '{methodology}', using no extra guidance")
            elif session is not None:
                effective_methodology = session.methodology

            # Persist before calling the model so a failed turn keeps its context
            self.store.append_message(session_id, "user", message)

        instructions = CoachPrompts.build_instructions(effective_methodology, resume)
        messages = history + [ChatMessage(role="user", content=message)]
        tools = CoachPrompts.TOOLS if self.use_tools else None

        logger.info(
            f"Starting chat turn: session={session_id or '-'}, history={len(history)}, "
            f"methodology={effective_methodology.value if effective_methodology else 'none'}"
        )
        stream = await self.model_client.open_stream(instructions, messages, tools)
        return ChatTurn(self, stream, session_id)

    def finish_turn(
        self,
        session_id: Optional[str],
        full_text: str,
        tool_calls: Optional[List[Dict[str, str]]] = None
    ) -> List[Dict[str, Any]]:
        """
        Extract, score and persist the artifacts of a completed reply.

        All store writes happen before any event is returned.

        Returns:
            Bullet and skill events followed by the done event
        """
        result = parse_assistant_output(full_text)
        if self.use_tools and tool_calls:
            result = merge_results(result, parse_tool_calls(tool_calls, result.clean_text))

        events: List[Dict[str, Any]] = []

        bullets: List[Bullet] = []
        if result.bullet:
            payload = result.bullet
            bullet = create_scored_bullet(payload["company"], payload["title"], payload["text"])
            if bullet.isStrong != payload["isStrong"]:
                logger.debug(
                    f"Model marked bullet isStrong={payload['isStrong']}, scorer says {bullet.isStrong}"
                )
            if session_id:
                self.store.append_bullet(session_id, bullet)
            bullets.append(bullet)
            logger.info(f"Bullet extracted: score={bullet.score}, strong={bullet.isStrong}")
            events.append({"type": "bullet", "bullet": bullet.model_dump()})

        skill_count = 0
        seen = set()
        for payload in result.skills:
            key = payload["name"].lower()
            if key in seen:
                continue
            seen.add(key)

            skill = Skill(name=payload["name"], category=payload["category"])
            if session_id and not self.store.append_skill(session_id, skill):
                continue
            skill_count += 1
            events.append({"type": "skill", "skill": skill.model_dump()})

        if session_id and result.clean_text:
            self.store.append_message(session_id, "assistant", result.clean_text)

        events.append({
            "type": "done",
            "bulletCount": len(bullets),
            "skillCount": skill_count,
            "bullet": bullets[0].model_dump() if bullets else None,
        })
        return events

    def get_grouped_bullets(self, session_id: str) -> List[Dict[str, Any]]:
        """Session bullets grouped by (company, title), groups in first-seen order."""
        return group_bullets(self.store.get_bullets(session_id))


def group_bullets(bullets: List[Bullet]) -> List[Dict[str, Any]]:
    """
    Group bullets by company and title, preserving order inside each group.

    Returns:
        [{"company": str, "title": str, "bullets": [Bullet, ...]}, ...]
    """
    groups: Dict[tuple, Dict[str, Any]] = {}
    for bullet in bullets:
        key = (bullet.company, bullet.title)
        if key not in groups:
            groups[key] = {"company": bullet.company, "title": bullet.title, "bullets": []}
        groups[key]["bullets"].append(bullet)
    return list(groups.values())


# Singleton instance for shared use
_orchestrator_instance: Optional[ConversationOrchestrator] = None


def get_conversation_orchestrator() -> ConversationOrchestrator:
    """Get or create the shared ConversationOrchestrator."""
    global _orchestrator_instance

    if _orchestrator_instance is None:
        _orchestrator_instance = ConversationOrchestrator()

    return _orchestrator_instance


def reset_conversation_orchestrator():
    """Reset the singleton instance (useful for testing)."""
    global _orchestrator_instance
    _orchestrator_instance = None
    logger.info("ConversationOrchestrator singleton reset")
