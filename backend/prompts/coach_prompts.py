# backend/prompts/coach_prompts.py
"""
Resume Coach Prompt Templates

Instruction text sent to the model for coaching turns and resume structuring.

Usage:
    from prompts.coach_prompts import CoachPrompts

    instructions = CoachPrompts.build_instructions(
        methodology=Methodology.STAR,
        resume=session.resume
    )
"""

from typing import Any, Dict, List, Optional

from models import Methodology, ParsedResume


class CoachPrompts:
    """
    Static class containing the coach's prompt templates.

    Attributes:
        METHODOLOGY_GUIDANCE (Dict): Extra instructions per non-open methodology
        TOOLS (List): OpenAI function definitions for tool-call extraction
    """

    BASE_SYSTEM_PROMPT = """You are a friendly, sharp resume coach. Help the user update their resume by asking targeted questions about their work experience, one question at a time.

Your goals:
- Draw out specific accomplishments: what they did, how, and the measurable result.
- Push gently for numbers (%, $, time saved, users, team size). If they only have estimates, help them estimate honestly.
- Once you have enough detail, write ONE polished bullet point.

When you write a bullet, append it at the end of your reply in a fenced block tagged "bullet":
```bullet
{"company": "Company name", "title": "Job title", "text": "Polished bullet text", "isStrong": true}
```
- isStrong is true when the bullet has specific quantifiable metrics, false for qualitative impact.
- Lead with a strong action verb: Spearheaded, Architected, Drove, Slashed, Boosted, Streamlined, Orchestrated.
- Structure: [Action verb] + [what you did] + [quantified result] + [how/technologies].
- Do not copy the user's words verbatim; polish them into professional resume language.
- Round numbers sensibly (95.83% -> ~96%).

When the user mentions or demonstrates skills, append them in a fenced block tagged "skills":
```skills
[{"name": "Python", "category": "technical"}]
```
Categories: "technical" (languages, frameworks), "tool" (software, platforms), "soft" (interpersonal), "methodology" (processes, practices).

Never mention these blocks in your visible reply. Keep replies short and conversational."""

    METHODOLOGY_GUIDANCE = {
        Methodology.STAR: (
            "Format bullets using STAR: briefly set the Situation and Task, focus on the "
            "Action the user took, and finish with a measurable Result. Ask follow-up "
            "questions until you know all four parts."
        ),
        Methodology.XYZ: (
            "Format bullets using the XYZ formula: 'Accomplished [X] as measured by [Y], "
            "by doing [Z]'. Make sure you have a concrete metric for Y before writing the bullet."
        ),
        Methodology.CAR: (
            "Format bullets using CAR: the Challenge faced, the Action taken, and the Result "
            "achieved. Ask what made the challenge hard before writing the bullet."
        ),
    }

    TOOLS: List[Dict[str, Any]] = [
        {
            "type": "function",
            "function": {
                "name": "add_bullet",
                "description": (
                    "Add a polished bullet point to the user's resume. Call this when you have a "
                    "specific accomplishment with clear action taken and either metrics or "
                    "significant qualitative impact."
                ),
                "parameters": {
                    "type": "object",
                    "properties": {
                        "company": {"type": "string", "description": "Company where this happened"},
                        "title": {"type": "string", "description": "Job title at the time"},
                        "text": {"type": "string", "description": "The polished bullet text"},
                        "isStrong": {
                            "type": "boolean",
                            "description": "true if the bullet has specific quantifiable metrics",
                        },
                    },
                    "required": ["company", "title", "text", "isStrong"],
                },
            },
        },
        {
            "type": "function",
            "function": {
                "name": "add_skill",
                "description": "Record a skill the user mentioned or demonstrated.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Skill name, e.g. Python, AWS, Leadership"},
                        "category": {
                            "type": "string",
                            "enum": ["technical", "tool", "soft", "methodology"],
                        },
                    },
                    "required": ["name", "category"],
                },
            },
        },
    ]

    STRUCTURE_SYSTEM_PROMPT = """You are a resume parser. Extract structured data from resume text and respond ONLY with valid JSON matching this schema:

{
  "contact": {"name": "string", "email": "string or null", "phone": "string or null", "location": "string or null"},
  "experience": [
    {
      "company": "string",
      "title": "string",
      "startDate": "string (e.g., Jan 2020)",
      "endDate": "string (e.g., Dec 2021 or Present)",
      "bullets": ["string array of accomplishments"],
      "isCurrentRole": true/false
    }
  ],
  "education": [{"institution": "string", "degree": "string", "year": "string or null"}],
  "skills": ["string array"]
}

Important:
- Order experience from most recent to oldest
- Mark the most recent role as isCurrentRole: true
- Respond with ONLY the JSON, no other text"""

    @staticmethod
    def methodology_guidance(methodology: Any) -> str:
        """Guidance for the methodology, or "" for open-ended/unknown values."""
        parsed = Methodology.parse(methodology)
        if parsed is None or parsed is Methodology.OPEN:
            return ""
        return CoachPrompts.METHODOLOGY_GUIDANCE.get(parsed, "")

    @staticmethod
    def resume_context(resume: Optional[ParsedResume]) -> str:
        """Summarize the resume so the coach knows which roles to ask about."""
        if resume is None:
            return ""

        lines = [f"The user's name is {resume.contact.name}."]
        if resume.experience:
            lines.append("Their experience (most recent first):")
            for exp in resume.experience:
                lines.append(f"- {exp.title} at {exp.company} ({exp.startDate} - {exp.endDate})")

            idx = resume.most_recent_role_index()
            recent = resume.experience[idx]
            lines.append(
                f"Start with their most recent role: {recent.title} at {recent.company}. "
                "Use this company and title in bullets unless the user says otherwise."
            )
        if resume.skills:
            lines.append(f"Skills already on the resume: {', '.join(resume.skills[:30])}")

        return "\n".join(lines)

    @staticmethod
    def build_instructions(methodology: Any = None, resume: Optional[ParsedResume] = None) -> str:
        """Full instruction text for one coaching turn."""
        parts = [CoachPrompts.BASE_SYSTEM_PROMPT]

        guidance = CoachPrompts.methodology_guidance(methodology)
        if guidance:
            parts.append(f"BULLET METHODOLOGY:\n{guidance}")

        context = CoachPrompts.resume_context(resume)
        if context:
            parts.append(f"RESUME CONTEXT:\n{context}")

        return "\n\n".join(parts)
