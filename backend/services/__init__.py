# backend/services/__init__.py
"""
Services Package for Resume Coach

This package contains all backend services for the coaching system:

Core:
    - bullet_scorer: Deterministic strength score for resume bullets
    - session_store: In-memory sessions with TTL expiry and a background sweep
    - extraction_parser: Pull bullet/skills blocks out of assistant replies
    - conversation_orchestrator: Run one streaming coaching turn end to end

Collaborators:
    - model_client: Streaming and JSON-mode calls to the OpenAI API
    - resume_ingestion: PDF/DOCX/text/LinkedIn to a seeded session
"""

from .bullet_scorer import (
    BulletScorer,
    get_bullet_scorer,
    score_bullet,
    create_scored_bullet
)
from .session_store import (
    SessionStore,
    get_session_store,
    reset_session_store
)
from .extraction_parser import (
    ExtractionResult,
    ExtractionStatus,
    parse_assistant_output,
    parse_tool_calls
)
from .model_client import (
    ModelClient,
    ModelStream,
    get_model_client,
    reset_model_client
)
from .conversation_orchestrator import (
    ChatTurn,
    ConversationOrchestrator,
    get_conversation_orchestrator,
    reset_conversation_orchestrator,
    group_bullets
)
from .resume_ingestion import (
    ResumeIngestionService,
    ResumeStructurer,
    get_resume_ingestion_service,
    reset_resume_ingestion_service
)

__all__ = [
    # Core
    "BulletScorer",
    "get_bullet_scorer",
    "score_bullet",
    "create_scored_bullet",
    "SessionStore",
    "get_session_store",
    "reset_session_store",
    "ExtractionResult",
    "ExtractionStatus",
    "parse_assistant_output",
    "parse_tool_calls",
    "ChatTurn",
    "ConversationOrchestrator",
    "get_conversation_orchestrator",
    "reset_conversation_orchestrator",
    "group_bullets",
    # Collaborators
    "ModelClient",
    "ModelStream",
    "get_model_client",
    "reset_model_client",
    "ResumeIngestionService",
    "ResumeStructurer",
    "get_resume_ingestion_service",
    "reset_resume_ingestion_service",
]
