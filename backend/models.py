# models.py
from enum import Enum
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


SkillCategory = Literal["technical", "tool", "soft", "methodology"]
SKILL_CATEGORIES = ("technical", "tool", "soft", "methodology")

BulletSource = Literal["extracted", "imported"]


def new_id() -> str:
    return str(uuid4())


class Methodology(str, Enum):
    """Bullet-writing convention the coach steers the user towards."""

    OPEN = "Open"
    STAR = "STAR"  # situation, task, action, result
    XYZ = "XYZ"    # accomplished X, measured by Y, by doing Z
    CAR = "CAR"    # challenge, action, result

    @classmethod
    def parse(cls, value) -> Optional["Methodology"]:
        """Case-insensitive lookup that also accepts the long names. Unknown -> None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        alias = _METHODOLOGY_ALIASES.get(value.strip().lower())
        return cls(alias) if alias else None


_METHODOLOGY_ALIASES = {
    "open": "Open",
    "open-ended": "Open",
    "star": "STAR",
    "situation-task-action-result": "STAR",
    "structured-situation-task-action-result": "STAR",
    "xyz": "XYZ",
    "accomplishment-metric-method": "XYZ",
    "structured-accomplishment-metric-method": "XYZ",
    "car": "CAR",
    "challenge-action-result": "CAR",
    "structured-challenge-action-result": "CAR",
}


# ---------- Resume snapshot ----------
class Contact(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class Experience(BaseModel):
    company: str
    title: str
    startDate: str = "Unknown"
    endDate: str = "Unknown"  # a date or "Present"
    bullets: List[str] = []
    isCurrentRole: bool = False

    @property
    def is_current(self) -> bool:
        return self.isCurrentRole or self.endDate.strip().lower() in ("present", "current")


class Education(BaseModel):
    institution: str
    degree: str
    year: Optional[str] = None


class ParsedResume(BaseModel):
    """
    Structured resume, experience ordered most recent first.
    """
    contact: Contact
    experience: List[Experience] = []
    education: List[Education] = []
    skills: List[str] = []

    def most_recent_role_index(self) -> int:
        """Index of the current role, else 0, or -1 with no experience at all."""
        if not self.experience:
            return -1
        for idx, exp in enumerate(self.experience):
            if exp.is_current:
                return idx
        return 0


# ---------- Conversation artifacts ----------
class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class Bullet(BaseModel):
    id: str = Field(default_factory=new_id)
    company: str
    title: str
    text: str
    isStrong: bool
    score: int = Field(ge=0, le=7)
    source: BulletSource = "extracted"


class Skill(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    category: SkillCategory = "technical"


class ChatSession(BaseModel):
    """
    Server-side state of one coaching conversation.

    Timestamps are epoch seconds from the store's clock.
    """
    id: str
    resume: Optional[ParsedResume] = None
    messages: List[ChatMessage] = []
    bullets: List[Bullet] = []
    skills: List[Skill] = []
    methodology: Methodology = Methodology.OPEN
    createdAt: float
    expiresAt: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiresAt
