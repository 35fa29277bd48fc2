# backend/services/bullet_scorer.py
"""
Bullet Scorer Service

Scores resume bullet points for strength using a deterministic heuristic.
No model calls: the same text always gets the same score.

Scoring (max 7):
- +2 quantified impact (%, $, 10K, 3x, user/team counts, durations)
- +1 strong action verb as the first word
- +1 outcome language (result, impact, delivered...)
- +1 technical / business keywords
- +1 two or more distinct kinds of metric
- +1 length between 10 and 30 words

A bullet is "strong" at 4 or above.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from models import Bullet, BulletSource, new_id

logger = logging.getLogger(__name__)


class BulletScorer:
    """
    Heuristic strength scorer for resume bullets.
    """

    STRONG_THRESHOLD = 4
    MAX_SCORE = 7

    MIN_GOOD_LENGTH = 10
    MAX_GOOD_LENGTH = 30

    STRONG_VERBS = [
        "led", "launched", "built", "created", "designed", "developed", "drove",
        "established", "generated", "grew", "implemented", "improved", "increased",
        "initiated", "managed", "orchestrated", "pioneered", "reduced", "saved",
        "scaled", "spearheaded", "streamlined", "transformed", "delivered",
        "achieved", "accelerated", "automated", "consolidated", "doubled", "tripled",
    ]

    QUANTIFIED_PATTERNS = [
        re.compile(r"\d+%"),                                            # 40%, 100%
        re.compile(r"\$[\d,]+[KMB]?", re.IGNORECASE),                   # $50K, $1M
        re.compile(r"\d+[KMB]\+?", re.IGNORECASE),                      # 10K, 1M+
        re.compile(r"\d+x", re.IGNORECASE),                             # 2x, 10x
        re.compile(r"\d+\s*(users?|clients?|customers?)", re.IGNORECASE),
        re.compile(r"\d+\s*(team|engineers?|developers?|people)", re.IGNORECASE),
        re.compile(r"\d+\s*(days?|weeks?|months?|hours?)", re.IGNORECASE),
    ]

    OUTCOME_WORDS = ["result", "outcome", "impact", "achieved", "delivered", "success"]

    KEYWORD_PATTERNS = [
        re.compile(r"\b(api|database|system|platform|infrastructure|architecture)\b", re.IGNORECASE),
        re.compile(r"\b(agile|scrum|ci/cd|devops|automation)\b", re.IGNORECASE),
        re.compile(r"\b(revenue|profit|efficiency|performance|scalability)\b", re.IGNORECASE),
    ]

    def __init__(self):
        self._verb_forms = set()
        for verb in self.STRONG_VERBS:
            self._verb_forms.update((verb, verb + "d", verb + "ed"))

    def score(self, text: str) -> Dict[str, Any]:
        """
        Score one bullet.

        Args:
            text: The bullet text

        Returns:
            {"score": int 0-7, "isStrong": bool, "reasons": [str, ...]}
        """
        if not text or not text.strip():
            return {"score": 0, "isStrong": False, "reasons": []}

        lower_text = text.lower()
        score = 0
        reasons: List[str] = []

        metric_count = sum(1 for pattern in self.QUANTIFIED_PATTERNS if pattern.search(text))
        if metric_count:
            score += 2
            reasons.append("Quantified impact")

        first_word = lower_text.split()[0]
        if first_word in self._verb_forms:
            score += 1
            reasons.append("Strong action verb")

        if any(word in lower_text for word in self.OUTCOME_WORDS):
            score += 1
            reasons.append("Specific outcome")

        if any(pattern.search(text) for pattern in self.KEYWORD_PATTERNS):
            score += 1
            reasons.append("Relevant keywords")

        if metric_count >= 2:
            score += 1
            reasons.append("Multiple metrics")

        word_count = len(text.split())
        if self.MIN_GOOD_LENGTH <= word_count <= self.MAX_GOOD_LENGTH:
            score += 1
            reasons.append("Good length")

        logger.debug(f"Scored bullet {score}/{self.MAX_SCORE}: {reasons}")
        return {
            "score": score,
            "isStrong": score >= self.STRONG_THRESHOLD,
            "reasons": reasons,
        }

    def create_bullet(
        self,
        company: str,
        title: str,
        text: str,
        bullet_id: Optional[str] = None,
        source: BulletSource = "extracted"
    ) -> Bullet:
        """Build a Bullet with its score computed from the text."""
        result = self.score(text)
        return Bullet(
            id=bullet_id or new_id(),
            company=company,
            title=title,
            text=text,
            isStrong=result["isStrong"],
            score=result["score"],
            source=source,
        )


# Singleton instance for shared use
_bullet_scorer_instance: Optional[BulletScorer] = None


def get_bullet_scorer() -> BulletScorer:
    """Get or create the shared BulletScorer."""
    global _bullet_scorer_instance

    if _bullet_scorer_instance is None:
        _bullet_scorer_instance = BulletScorer()

    return _bullet_scorer_instance


# Convenience functions for direct usage
def score_bullet(text: str) -> Dict[str, Any]:
    return get_bullet_scorer().score(text)


def create_scored_bullet(
    company: str,
    title: str,
    text: str,
    bullet_id: Optional[str] = None,
    source: BulletSource = "extracted"
) -> Bullet:
    return get_bullet_scorer().create_bullet(company, title, text, bullet_id, source)
