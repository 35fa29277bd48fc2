# backend/services/resume_ingestion.py
"""
Resume Ingestion Service

Turns a resume source into a structured ParsedResume and seeds a session:

- Uploaded document (PDF via PyMuPDF, DOCX via python-docx)
- Pasted text
- Public LinkedIn profile URL (JSON-LD first, <title> fallback)

Structuring is delegated to the model (JSON mode). Bullets already present on
the resume are scored and stored as "imported" bullets.
"""

import io
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse
from uuid import uuid4

import docx
import fitz
import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

import config
from errors import (
    DocumentExtractionError,
    LinkedInFetchError,
    LinkedInPrivateProfileError,
    ModelServiceError,
    ResumeStructureError,
)
from models import Bullet, Contact, Experience, ParsedResume
from prompts.coach_prompts import CoachPrompts
from services.bullet_scorer import create_scored_bullet
from services.model_client import ModelClient, get_model_client
from services.session_store import SessionStore, get_session_store

logger = logging.getLogger(__name__)


RESUME_INDICATORS = [
    "experience",
    "education",
    "skills",
    "work history",
    "employment",
    "professional",
    "summary",
    "objective",
]

# Below this, pasted text is not worth a structuring call
MIN_STRUCTURE_CHARS = 50

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}


# ---------- Document text ----------
def extract_pdf_text(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return "\n".join(p.get_text() for p in doc)


def extract_docx_text(data: bytes) -> str:
    d = docx.Document(io.BytesIO(data))
    return "\n".join(p.text for p in d.paragraphs)


def clean_text(t: str) -> str:
    t = t.replace("\x00", " ")
    t = t.replace("\r\n", "\n").replace("\r", "\n")
    t = re.sub(r"[ \t]{2,}", " ", t)
    t = "\n".join(line.strip() for line in t.split("\n"))
    t = re.sub(r"\n{3,}", "\n\n", t)
    return t.strip()


def extract_document_text(filename: str, data: bytes) -> str:
    """
    Pull text out of an uploaded PDF or DOCX.

    Raises:
        DocumentExtractionError: unreadable or unsupported file
    """
    name = (filename or "").lower()
    try:
        if name.endswith(".pdf"):
            text = extract_pdf_text(data)
        elif name.endswith(".docx"):
            text = extract_docx_text(data)
        else:
            try:
                text = extract_pdf_text(data)
            except Exception:
                text = extract_docx_text(data)
    except Exception as e:
        logger.error(f"Text extraction failed for {filename!r}: {e}")
        raise DocumentExtractionError("Unsupported file. Please upload a PDF or DOCX.") from e

    return clean_text(text)


def looks_like_resume(text: str) -> bool:
    """True when at least two common resume section words appear."""
    lower_text = (text or "").lower()
    return sum(1 for ind in RESUME_INDICATORS if ind in lower_text) >= 2


# ---------- Structuring ----------
def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text[3:]
        if text.startswith("json"):
            text = text[4:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def normalize_resume(data: Dict[str, Any]) -> ParsedResume:
    """Fill defaults for anything the model left out, then validate."""
    contact = data.get("contact")
    if not isinstance(contact, dict):
        contact = {}
    experience = []
    for exp in data.get("experience") or []:
        if not isinstance(exp, dict):
            continue
        experience.append({
            "company": exp.get("company") or "Unknown Company",
            "title": exp.get("title") or "Unknown Title",
            "startDate": exp.get("startDate") or "Unknown",
            "endDate": exp.get("endDate") or "Unknown",
            "bullets": [b for b in exp.get("bullets") or [] if isinstance(b, str) and b.strip()],
            "isCurrentRole": bool(exp.get("isCurrentRole")),
        })

    education = []
    for edu in data.get("education") or []:
        if not isinstance(edu, dict):
            continue
        education.append({
            "institution": edu.get("institution") or "Unknown",
            "degree": edu.get("degree") or "Unknown",
            "year": edu.get("year") or None,
        })

    skills = data.get("skills")
    return ParsedResume.model_validate({
        "contact": {
            "name": contact.get("name") or "Unknown",
            "email": contact.get("email") or None,
            "phone": contact.get("phone") or None,
            "location": contact.get("location") or None,
        },
        "experience": experience,
        "education": education,
        "skills": [s for s in skills if isinstance(s, str)] if isinstance(skills, list) else [],
    })


class ResumeStructurer:
    """Asks the model to turn raw resume text into a ParsedResume."""

    MAX_INPUT_CHARS = 28000

    def __init__(self, model_client: Optional[ModelClient] = None, model: str = config.STRUCTURE_MODEL):
        self.model_client = model_client or get_model_client()
        self.model = model

    async def extract_structure(self, raw_text: str) -> ParsedResume:
        """
        Raises:
            ResumeStructureError: the model failed or returned unusable JSON
        """
        snippet = raw_text[:self.MAX_INPUT_CHARS]
        try:
            raw = await self.model_client.complete_json(
                CoachPrompts.STRUCTURE_SYSTEM_PROMPT,
                snippet,
                model=self.model,
            )
        except ModelServiceError as e:
            raise ResumeStructureError(f"Structuring call failed: {e}") from e

        try:
            data = json.loads(_strip_code_fence(raw))
            if not isinstance(data, dict):
                raise ValueError("top-level JSON is not an object")
            resume = normalize_resume(data)
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse resume structure: {raw[:500]!r}")
            raise ResumeStructureError("Failed to parse resume structure from model response") from e

        logger.info(
            f"Resume structured: {len(resume.experience)} roles, "
            f"{len(resume.education)} education, {len(resume.skills)} skills"
        )
        return resume


# ---------- LinkedIn ----------
def is_linkedin_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return "linkedin.com" in (parsed.hostname or "") and parsed.path.startswith("/in/")


async def fetch_linkedin_profile(url: str, client: Optional[httpx.AsyncClient] = None) -> Tuple[str, bool]:
    """
    Fetch a profile page.

    Returns:
        (html, is_public) - is_public is False when LinkedIn served a login wall

    Raises:
        LinkedInFetchError: network failure or non-2xx response
    """
    try:
        if client is None:
            async with httpx.AsyncClient(follow_redirects=True, timeout=15) as own_client:
                resp = await own_client.get(url, headers=BROWSER_HEADERS)
        else:
            resp = await client.get(url, headers=BROWSER_HEADERS)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"LinkedIn fetch error: {e}")
        raise LinkedInFetchError(
            "Failed to fetch LinkedIn profile. The profile may be private or LinkedIn may be blocking requests."
        ) from e

    html = resp.text
    is_public = "authwall" not in html and "sign-in" not in html
    return html, is_public


def _parse_json_ld_person(data: Dict[str, Any]) -> ParsedResume:
    experience = []
    works_for = data.get("worksFor") or []
    if isinstance(works_for, dict):
        works_for = [works_for]
    for work in works_for:
        if not isinstance(work, dict):
            continue
        organization = work.get("organization") if isinstance(work.get("organization"), dict) else {}
        experience.append(Experience(
            company=work.get("name") or organization.get("name") or "Unknown",
            title=work.get("jobTitle") or "Unknown",
            startDate="Unknown",
            endDate="Present",
            bullets=[],
            isCurrentRole=True,
        ))

    address = data.get("address") if isinstance(data.get("address"), dict) else {}
    return ParsedResume(
        contact=Contact(name=data.get("name") or "Unknown", location=address.get("addressLocality")),
        experience=experience,
    )


def parse_linkedin_html(html: str) -> Optional[ParsedResume]:
    """Best-effort partial resume from a public profile page, or None."""
    soup = BeautifulSoup(html, "html.parser")

    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            logger.warning("Skipping unparseable JSON-LD block on LinkedIn page")
            continue
        if isinstance(data, dict) and data.get("@type") == "Person":
            return _parse_json_ld_person(data)

    if soup.title and soup.title.string:
        name = soup.title.string.split("|")[0].strip()
        if name:
            return ParsedResume(contact=Contact(name=name))

    return None


def linkedin_profile_text(partial: ParsedResume) -> str:
    """Plain-text rendering of a partial profile, fed to the structurer."""
    text = f"Name: {partial.contact.name}\n"
    if partial.contact.location:
        text += f"Location: {partial.contact.location}\n"
    if partial.experience:
        text += "\nExperience:\n"
        for exp in partial.experience:
            text += f"- {exp.title} at {exp.company}\n"
    return text


# ---------- Session seeding ----------
def imported_bullets(resume: ParsedResume) -> List[Bullet]:
    """Score every bullet already on the resume."""
    bullets = []
    for exp in resume.experience:
        for text in exp.bullets:
            bullets.append(create_scored_bullet(exp.company, exp.title, text, source="imported"))
    return bullets


class ResumeIngestionService:
    """
    Creates a session from a resume source.

    Every ingest_* method returns:
        {"sessionId", "resume", "mostRecentRoleIndex", "bullets"}
    plus source-specific keys.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        structurer: Optional[ResumeStructurer] = None
    ):
        self.store = store or get_session_store()
        self.structurer = structurer or ResumeStructurer()

    def seed_session(self, resume: Optional[ParsedResume], session_id: Optional[str] = None) -> Dict[str, Any]:
        session_id = session_id or str(uuid4())
        self.store.create(session_id)

        bullets: List[Bullet] = []
        most_recent = -1
        if resume is not None:
            self.store.set_resume(session_id, resume)
            bullets = imported_bullets(resume)
            for bullet in bullets:
                self.store.append_bullet(session_id, bullet)
            most_recent = resume.most_recent_role_index()

        logger.info(f"Session {session_id} seeded with {len(bullets)} imported bullets")
        return {
            "sessionId": session_id,
            "resume": resume.model_dump() if resume else None,
            "mostRecentRoleIndex": most_recent,
            "bullets": [b.model_dump() for b in bullets],
        }

    async def ingest_text(self, text: str) -> Dict[str, Any]:
        """
        Structure pasted text. Very short text is not sent to the model.

        Raises:
            ResumeStructureError
        """
        resume = None
        if len(text) > MIN_STRUCTURE_CHARS:
            resume = await self.structurer.extract_structure(text)

        result = self.seed_session(resume)
        result["extracted"] = {"charCount": len(text), "isResume": looks_like_resume(text)}
        return result

    async def ingest_document(self, filename: str, data: bytes) -> Dict[str, Any]:
        """
        Raises:
            DocumentExtractionError, ResumeStructureError
        """
        text = extract_document_text(filename, data)
        if len(text) < 20:
            raise DocumentExtractionError(
                "Could not read text from file (image-only PDF?). Try a text-based PDF/DOCX."
            )

        resume = await self.structurer.extract_structure(text)
        result = self.seed_session(resume)
        result["extracted"] = {"charCount": len(text), "isResume": looks_like_resume(text)}
        return result

    async def ingest_linkedin(self, url: str) -> Dict[str, Any]:
        """
        Import a public profile. Falls back to the partial scrape when the
        structurer fails.

        Returns:
            The seeded session dict, with "success" False and a "hint" when
            the page had no profile data, or a "note" on success.

        Raises:
            LinkedInFetchError: the page could not be fetched
            LinkedInPrivateProfileError: LinkedIn served a login wall
        """
        html, is_public = await fetch_linkedin_profile(url)
        if not is_public:
            raise LinkedInPrivateProfileError("Profile is not public")

        partial = parse_linkedin_html(html)
        if partial is None or partial.contact.name == "Unknown":
            result = self.seed_session(None)
            result.update({
                "success": False,
                "error": "Could not extract profile data",
                "hint": "LinkedIn may be blocking access. Please try pasting your profile text instead.",
            })
            return result

        try:
            resume = await self.structurer.extract_structure(linkedin_profile_text(partial))
        except ResumeStructureError as e:
            logger.warning(f"Structuring LinkedIn profile failed, using scraped data: {e}")
            resume = partial

        result = self.seed_session(resume)
        result.update({
            "success": True,
            "note": "LinkedIn data may be incomplete. Please verify and add missing details.",
        })
        return result


# Singleton instance for shared use
_ingestion_instance: Optional[ResumeIngestionService] = None


def get_resume_ingestion_service() -> ResumeIngestionService:
    global _ingestion_instance

    if _ingestion_instance is None:
        _ingestion_instance = ResumeIngestionService()

    return _ingestion_instance


def reset_resume_ingestion_service():
    """Reset the singleton instance (useful for testing)."""
    global _ingestion_instance
    _ingestion_instance = None
