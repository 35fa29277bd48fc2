# Resume Coach API

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

import config
from errors import (
    DocumentExtractionError,
    InvalidMessageError,
    LinkedInFetchError,
    LinkedInPrivateProfileError,
    ResumeStructureError,
)
from models import Methodology
from services.conversation_orchestrator import (
    ConversationOrchestrator,
    group_bullets,
    get_conversation_orchestrator,
)
from services.resume_ingestion import (
    ResumeIngestionService,
    get_resume_ingestion_service,
    is_linkedin_url,
)
from services.session_store import SessionStore, get_session_store

config.configure_logging()
logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_SUFFIXES = (".pdf", ".docx")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = get_session_store()
    store.start()
    logger.info("Resume Coach API started")
    yield
    await store.stop()
    logger.info("Resume Coach API stopped")


# ---------- FastAPI & CORS ----------
app = FastAPI(title="Resume Coach API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request schemas ----------
class ChatReq(BaseModel):
    message: Optional[str] = None
    sessionId: Optional[str] = None
    methodology: Optional[str] = None


class ParseTextReq(BaseModel):
    text: Optional[str] = None


class LinkedInReq(BaseModel):
    url: Optional[str] = None


class BulletEditReq(BaseModel):
    text: str


class MethodologyReq(BaseModel):
    methodology: str


# ---------- Health ----------
@app.get("/")
def root():
    return {"message": "Resume Coach API - Ready"}


@app.get("/health")
def health(store: SessionStore = Depends(get_session_store)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessions": store.count(),
    }


# ---------- Resume ingestion ----------
@app.post("/api/upload")
async def upload_resume(
    resume: UploadFile = File(...),
    ingestion: ResumeIngestionService = Depends(get_resume_ingestion_service),
) -> Dict[str, Any]:
    name = (resume.filename or "").lower()
    if not name.endswith(ALLOWED_UPLOAD_SUFFIXES):
        raise HTTPException(status_code=400, detail="Only PDF or DOCX files are allowed")

    data = await resume.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB.",
        )

    try:
        result = await ingestion.ingest_document(resume.filename or "", data)
    except DocumentExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ResumeStructureError:
        logger.exception("Resume structuring failed for upload")
        raise HTTPException(status_code=500, detail="Failed to parse resume")

    return {"success": True, "file": {"originalName": resume.filename, "size": len(data)}, **result}


@app.post("/api/parse-text")
async def parse_text(
    req: ParseTextReq,
    ingestion: ResumeIngestionService = Depends(get_resume_ingestion_service),
) -> Dict[str, Any]:
    if not req.text or not req.text.strip():
        raise HTTPException(status_code=400, detail="Text is required")

    try:
        result = await ingestion.ingest_text(req.text)
    except ResumeStructureError:
        logger.exception("Parse text failed")
        raise HTTPException(status_code=500, detail="Failed to parse text")

    return {"success": True, **result}


@app.post("/api/linkedin")
async def import_linkedin(
    req: LinkedInReq,
    ingestion: ResumeIngestionService = Depends(get_resume_ingestion_service),
) -> Dict[str, Any]:
    if not req.url:
        raise HTTPException(status_code=400, detail="URL is required")
    if not is_linkedin_url(req.url):
        raise HTTPException(
            status_code=400,
            detail="Invalid LinkedIn URL. Please use a URL like: https://linkedin.com/in/username",
        )

    try:
        return await ingestion.ingest_linkedin(req.url)
    except LinkedInPrivateProfileError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": str(e),
                "hint": (
                    "LinkedIn profiles must be set to public for us to read them. "
                    "You can paste your profile text instead."
                ),
            },
        )
    except LinkedInFetchError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error": str(e),
                "hint": "LinkedIn profiles can be tricky to access. Try pasting your profile text instead.",
            },
        )


# ---------- Chat ----------
async def _sse(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
    finally:
        await events.aclose()


@app.post("/api/chat")
async def chat(
    req: ChatReq,
    orchestrator: ConversationOrchestrator = Depends(get_conversation_orchestrator),
):
    try:
        turn = await orchestrator.start_turn(req.message, req.sessionId, req.methodology)
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception("Chat turn could not start")
        raise HTTPException(status_code=500, detail="Failed to process chat")

    return StreamingResponse(
        _sse(turn.events()),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# ---------- Bullets & skills ----------
@app.get("/api/bullets/{session_id}")
def get_bullets(session_id: str, store: SessionStore = Depends(get_session_store)) -> Dict[str, Any]:
    bullets = store.get_bullets(session_id)
    groups = group_bullets(bullets)
    return {
        "success": True,
        "total": len(bullets),
        "groups": [
            {
                "company": g["company"],
                "title": g["title"],
                "bullets": [b.model_dump() for b in g["bullets"]],
            }
            for g in groups
        ],
    }


@app.delete("/api/bullets/{session_id}/{bullet_id}")
def delete_bullet(session_id: str, bullet_id: str, store: SessionStore = Depends(get_session_store)):
    if not store.remove_bullet(session_id, bullet_id):
        raise HTTPException(status_code=404, detail="Bullet not found")
    return {"success": True}


@app.patch("/api/bullets/{session_id}/{bullet_id}")
def edit_bullet(
    session_id: str,
    bullet_id: str,
    req: BulletEditReq,
    store: SessionStore = Depends(get_session_store),
):
    text = req.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Text is required")

    bullet = store.update_bullet_text(session_id, bullet_id, text)
    if bullet is None:
        raise HTTPException(status_code=404, detail="Bullet not found")
    return {"success": True, "bullet": bullet.model_dump()}


@app.get("/api/skills/{session_id}")
def get_skills(session_id: str, store: SessionStore = Depends(get_session_store)) -> Dict[str, Any]:
    skills = store.get_skills(session_id)
    return {"success": True, "total": len(skills), "skills": [s.model_dump() for s in skills]}


@app.put("/api/session/{session_id}/methodology")
def set_methodology(
    session_id: str,
    req: MethodologyReq,
    store: SessionStore = Depends(get_session_store),
):
    methodology = Methodology.parse(req.methodology)
    if methodology is None:
        raise HTTPException(status_code=400, detail=f"Unknown methodology: {req.methodology}")
    store.set_methodology(session_id, methodology)
    return {"success": True, "methodology": methodology.value}
