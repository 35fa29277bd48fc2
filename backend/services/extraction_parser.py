# backend/services/extraction_parser.py
"""
Extraction Parser Service

Pulls structured artifacts out of a finished assistant turn.

The coach embeds them as fenced blocks:

    ```bullet
    {"company": "Acme", "title": "Engineer", "text": "...", "isStrong": true}
    ```

    ```skills
    [{"name": "Python", "category": "technical"}]
    ```

Only the first block of each tag is read; all of them are stripped from the
text shown to the user. Bad JSON never raises: it is logged and reported as
MALFORMED.

When tool calling is enabled, the same payloads arrive as add_bullet /
add_skill function calls; parse_tool_calls() turns those into the same result.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from models import SKILL_CATEGORIES

logger = logging.getLogger(__name__)


class ExtractionStatus(str, Enum):
    FOUND = "found"
    MALFORMED = "malformed"
    ABSENT = "absent"


@dataclass
class ExtractionResult:
    bullet: Optional[Dict[str, Any]] = None
    skills: List[Dict[str, str]] = field(default_factory=list)
    clean_text: str = ""
    bullet_status: ExtractionStatus = ExtractionStatus.ABSENT
    skills_status: ExtractionStatus = ExtractionStatus.ABSENT


BULLET_TAG = "bullet"
SKILLS_TAG = "skills"

ADD_BULLET_TOOL = "add_bullet"
ADD_SKILL_TOOL = "add_skill"


def _block_pattern(tag: str) -> "re.Pattern[str]":
    # Optional newline after the tag and before the closing fence
    return re.compile(r"```" + tag + r"[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)


BULLET_BLOCK = _block_pattern(BULLET_TAG)
SKILLS_BLOCK = _block_pattern(SKILLS_TAG)


def _load_json(raw: str, tag: str) -> Tuple[Any, bool]:
    try:
        return json.loads(raw.strip()), True
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Ignoring malformed {tag} block: {e}")
        return None, False


def normalize_bullet_payload(data: Any) -> Optional[Dict[str, Any]]:
    """Validate a bullet payload. Returns None when it is unusable."""
    if not isinstance(data, dict):
        return None

    company = data.get("company")
    title = data.get("title")
    text = data.get("text")
    if not all(isinstance(v, str) for v in (company, title, text)) or not text.strip():
        return None

    is_strong = data.get("isStrong", False)
    return {
        "company": company.strip(),
        "title": title.strip(),
        "text": text.strip(),
        "isStrong": is_strong if isinstance(is_strong, bool) else False,
    }


def normalize_skill_payload(data: Any) -> Optional[Dict[str, str]]:
    """Validate one skill entry; category falls back to 'technical'."""
    if not isinstance(data, dict):
        return None

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return None

    category = data.get("category")
    if not isinstance(category, str) or category.strip().lower() not in SKILL_CATEGORIES:
        category = "technical"

    return {"name": name.strip(), "category": category.strip().lower()}


def parse_assistant_output(text: str) -> ExtractionResult:
    """
    Extract the bullet and skills blocks from one assistant turn.

    Args:
        text: Full accumulated text of the turn

    Returns:
        ExtractionResult with payloads, per-block status and the clean text
    """
    text = text or ""
    result = ExtractionResult()

    bullet_match = BULLET_BLOCK.search(text)
    if bullet_match:
        data, ok = _load_json(bullet_match.group(1), BULLET_TAG)
        bullet = normalize_bullet_payload(data) if ok else None
        if bullet:
            result.bullet = bullet
            result.bullet_status = ExtractionStatus.FOUND
        else:
            if ok:
                logger.warning("Bullet block is missing company/title/text")
            result.bullet_status = ExtractionStatus.MALFORMED

    skills_match = SKILLS_BLOCK.search(text)
    if skills_match:
        data, ok = _load_json(skills_match.group(1), SKILLS_TAG)
        if ok and isinstance(data, list):
            result.skills = [s for s in (normalize_skill_payload(item) for item in data) if s]
            result.skills_status = ExtractionStatus.FOUND
        else:
            result.skills_status = ExtractionStatus.MALFORMED

    clean = BULLET_BLOCK.sub("", text)
    clean = SKILLS_BLOCK.sub("", clean)
    result.clean_text = clean.strip()

    logger.debug(
        f"Extraction: bullet={result.bullet_status.value}, "
        f"skills={result.skills_status.value} ({len(result.skills)})"
    )
    return result


def parse_tool_calls(calls: Iterable[Dict[str, Any]], text: str = "") -> ExtractionResult:
    """
    Convert add_bullet / add_skill function calls into an ExtractionResult.

    Args:
        calls: [{"name": str, "arguments": str (JSON)}, ...]
        text: Assistant text of the same turn, used as clean_text

    Returns:
        ExtractionResult; the first valid add_bullet wins, skills accumulate
    """
    result = ExtractionResult(clean_text=(text or "").strip())

    for call in calls:
        name = call.get("name")
        data, ok = _load_json(call.get("arguments") or "", name or "tool call")

        if name == ADD_BULLET_TOOL:
            if result.bullet is not None:
                continue
            bullet = normalize_bullet_payload(data) if ok else None
            if bullet:
                result.bullet = bullet
                result.bullet_status = ExtractionStatus.FOUND
            else:
                result.bullet_status = ExtractionStatus.MALFORMED

        elif name == ADD_SKILL_TOOL:
            skill = normalize_skill_payload(data) if ok else None
            if skill:
                result.skills.append(skill)
                result.skills_status = ExtractionStatus.FOUND
            elif result.skills_status is ExtractionStatus.ABSENT:
                result.skills_status = ExtractionStatus.MALFORMED

        else:
            logger.warning(f"Ignoring unknown tool call: {name}")

    return result


def merge_results(primary: ExtractionResult, extra: ExtractionResult) -> ExtractionResult:
    """
    Combine block and tool-call extraction for one turn.

    The primary result's bullet and clean text win; skills are concatenated
    (the store de-duplicates them).
    """
    merged = ExtractionResult(
        bullet=primary.bullet or extra.bullet,
        skills=list(primary.skills) + list(extra.skills),
        clean_text=primary.clean_text,
        bullet_status=primary.bullet_status if primary.bullet else extra.bullet_status,
        skills_status=primary.skills_status if primary.skills else extra.skills_status,
    )
    if merged.bullet_status is ExtractionStatus.ABSENT and primary.bullet_status is ExtractionStatus.MALFORMED:
        merged.bullet_status = ExtractionStatus.MALFORMED
    return merged
