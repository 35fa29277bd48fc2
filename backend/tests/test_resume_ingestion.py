"""
Test suite for Resume Ingestion

This module tests resume structuring and session seeding to ensure:
- Model JSON (fenced or bare) becomes a ParsedResume with defaults filled in
- Unusable model output raises ResumeStructureError
- Seeding a session stores the resume and scores existing bullets as imported
- LinkedIn pages yield a partial resume from JSON-LD or the page title
- The most recent role is located correctly

Run tests with: pytest backend/tests/test_resume_ingestion.py -v
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from errors import (
    DocumentExtractionError,
    LinkedInPrivateProfileError,
    ModelServiceError,
    ResumeStructureError,
)
from models import Contact, Experience, ParsedResume
from services.resume_ingestion import (
    ResumeIngestionService,
    ResumeStructurer,
    clean_text,
    is_linkedin_url,
    looks_like_resume,
    normalize_resume,
    parse_linkedin_html,
)


RESUME_JSON = {
    "contact": {"name": "Ada Lovelace", "email": "ada@example.com"},
    "experience": [
        {
            "company": "Acme",
            "title": "Staff Engineer",
            "startDate": "Jan 2021",
            "endDate": "Present",
            "bullets": ["Led migration to Kubernetes, cutting deploy time by 80% across the platform", ""],
            "isCurrentRole": True,
        },
        {"company": "Initech", "title": "Engineer", "bullets": ["Fixed bugs"]},
    ],
    "education": [{"institution": "MIT", "degree": "BSc"}],
    "skills": ["Python", 7, "Go"],
}

RESUME_TEXT = (
    "Ada Lovelace\nSummary: engineer.\nExperience\nAcme - Staff Engineer\n"
    "Education\nMIT\nSkills\nPython, Go"
)


@pytest.fixture
def structurer_factory():
    """Factory fixture: ResumeStructurer whose model returns the given raw text."""
    def create_structurer(raw=None, error=None):
        model = MagicMock()
        model.complete_json = AsyncMock(return_value=raw, side_effect=error)
        return ResumeStructurer(model_client=model, model="test-model"), model

    return create_structurer


class TestStructurer:

    @pytest.mark.asyncio
    async def test_fenced_json_is_parsed(self, structurer_factory):
        structurer, model = structurer_factory(f"```json\n{json.dumps(RESUME_JSON)}\n```")

        resume = await structurer.extract_structure(RESUME_TEXT)

        assert resume.contact.name == "Ada Lovelace"
        assert [e.company for e in resume.experience] == ["Acme", "Initech"]
        assert resume.experience[0].bullets == ["Led migration to Kubernetes, cutting deploy time by 80% across the platform"]
        assert resume.skills == ["Python", "Go"]
        assert model.complete_json.await_args.kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_input_is_truncated(self, structurer_factory):
        structurer, model = structurer_factory(json.dumps(RESUME_JSON))

        await structurer.extract_structure("x" * 50000)

        sent = model.complete_json.await_args.args[1]
        assert len(sent) == ResumeStructurer.MAX_INPUT_CHARS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"just a string"'])
    async def test_unusable_output_raises(self, structurer_factory, raw):
        structurer, _ = structurer_factory(raw)

        with pytest.raises(ResumeStructureError):
            await structurer.extract_structure(RESUME_TEXT)

    @pytest.mark.asyncio
    async def test_model_failure_raises(self, structurer_factory):
        structurer, _ = structurer_factory(error=ModelServiceError("timeout"))

        with pytest.raises(ResumeStructureError):
            await structurer.extract_structure(RESUME_TEXT)


class TestNormalize:

    def test_defaults_filled(self):
        resume = normalize_resume({"experience": [{"bullets": None}, "junk"], "education": [{}]})

        assert resume.contact.name == "Unknown"
        assert resume.experience[0].company == "Unknown Company"
        assert resume.experience[0].title == "Unknown Title"
        assert resume.experience[0].bullets == []
        assert resume.education[0].institution == "Unknown"
        assert resume.skills == []

    def test_clean_text(self):
        assert clean_text("a\x00b\r\n\r\n\r\n\r\nc   d  ") == "a b\n\nc d"

    def test_looks_like_resume(self):
        assert looks_like_resume(RESUME_TEXT) is True
        assert looks_like_resume("a grocery list: eggs, milk") is False


class TestMostRecentRole:

    def test_no_experience(self):
        assert ParsedResume(contact=Contact(name="A")).most_recent_role_index() == -1

    def test_current_role_wins(self):
        resume = ParsedResume(contact=Contact(name="A"), experience=[
            Experience(company="Old", title="Eng", endDate="2019"),
            Experience(company="Now", title="Eng", endDate="present"),
        ])

        assert resume.most_recent_role_index() == 1

    def test_defaults_to_first(self):
        resume = ParsedResume(contact=Contact(name="A"), experience=[
            Experience(company="B", title="Eng", endDate="2022"),
            Experience(company="C", title="Eng", endDate="2019"),
        ])

        assert resume.most_recent_role_index() == 0


class TestIngestionService:

    @pytest.mark.asyncio
    async def test_ingest_text_seeds_session(self, store, structurer_factory):
        structurer, _ = structurer_factory(json.dumps(RESUME_JSON))
        service = ResumeIngestionService(store=store, structurer=structurer)

        result = await service.ingest_text(RESUME_TEXT)

        session_id = result["sessionId"]
        assert store.get(session_id).resume.contact.name == "Ada Lovelace"
        assert result["mostRecentRoleIndex"] == 0
        assert result["extracted"]["isResume"] is True

        bullets = store.get_bullets(session_id)
        assert [b.source for b in bullets] == ["imported", "imported"]
        assert [b.company for b in bullets] == ["Acme", "Initech"]
        assert bullets[0].isStrong is True
        assert result["bullets"][0]["id"] == bullets[0].id

    @pytest.mark.asyncio
    async def test_short_text_skips_structuring(self, store, structurer_factory):
        structurer, model = structurer_factory(json.dumps(RESUME_JSON))
        service = ResumeIngestionService(store=store, structurer=structurer)

        result = await service.ingest_text("hi there")

        assert result["resume"] is None
        assert result["mostRecentRoleIndex"] == -1
        assert store.get(result["sessionId"]) is not None
        model.complete_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_document(self, store, structurer_factory):
        structurer, _ = structurer_factory(json.dumps(RESUME_JSON))
        service = ResumeIngestionService(store=store, structurer=structurer)

        with patch("services.resume_ingestion.extract_pdf_text", return_value="  "):
            with pytest.raises(DocumentExtractionError):
                await service.ingest_document("scan.pdf", b"%PDF-1.4")

    @pytest.mark.asyncio
    async def test_ingest_linkedin_private_profile(self, store, structurer_factory):
        structurer, _ = structurer_factory(json.dumps(RESUME_JSON))
        service = ResumeIngestionService(store=store, structurer=structurer)

        with patch(
            "services.resume_ingestion.fetch_linkedin_profile",
            AsyncMock(return_value=("<html>authwall</html>", False)),
        ):
            with pytest.raises(LinkedInPrivateProfileError):
                await service.ingest_linkedin("https://www.linkedin.com/in/ada")

        assert store.count() == 0

    @pytest.mark.asyncio
    async def test_ingest_linkedin_without_profile_data(self, store, structurer_factory):
        structurer, model = structurer_factory(json.dumps(RESUME_JSON))
        service = ResumeIngestionService(store=store, structurer=structurer)

        with patch(
            "services.resume_ingestion.fetch_linkedin_profile",
            AsyncMock(return_value=("<html><body>nothing</body></html>", True)),
        ):
            result = await service.ingest_linkedin("https://www.linkedin.com/in/ada")

        assert result["success"] is False
        assert "hint" in result
        assert store.get(result["sessionId"]) is not None
        model.complete_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ingest_linkedin_falls_back_to_scrape(self, store, structurer_factory):
        structurer, _ = structurer_factory("not json")
        service = ResumeIngestionService(store=store, structurer=structurer)
        html = "<html><head><title>Ada Lovelace | LinkedIn</title></head></html>"

        with patch(
            "services.resume_ingestion.fetch_linkedin_profile",
            AsyncMock(return_value=(html, True)),
        ):
            result = await service.ingest_linkedin("https://www.linkedin.com/in/ada")

        assert result["success"] is True
        assert result["resume"]["contact"]["name"] == "Ada Lovelace"
        assert store.get(result["sessionId"]).resume.contact.name == "Ada Lovelace"


class TestLinkedIn:

    @pytest.mark.parametrize("url,expected", [
        ("https://www.linkedin.com/in/ada-lovelace", True),
        ("https://linkedin.com/in/ada", True),
        ("https://www.linkedin.com/company/acme", False),
        ("https://example.com/in/ada", False),
        ("not a url", False),
    ])
    def test_is_linkedin_url(self, url, expected):
        assert is_linkedin_url(url) is expected

    def test_json_ld_person(self):
        person = {
            "@type": "Person",
            "name": "Ada Lovelace",
            "address": {"addressLocality": "London"},
            "worksFor": [{"name": "Acme", "jobTitle": "Staff Engineer"}],
        }
        html = f'<html><script type="application/ld+json">{json.dumps(person)}</script></html>'

        resume = parse_linkedin_html(html)

        assert resume.contact.name == "Ada Lovelace"
        assert resume.contact.location == "London"
        assert resume.experience[0].company == "Acme"
        assert resume.experience[0].is_current is True

    def test_title_fallback(self):
        resume = parse_linkedin_html("<html><head><title>Ada Lovelace | LinkedIn</title></head></html>")

        assert resume.contact.name == "Ada Lovelace"
        assert resume.experience == []

    def test_nothing_usable(self):
        assert parse_linkedin_html("<html><body>Sign in</body></html>") is None
