# backend/prompts/__init__.py
"""
Coach Prompts Package

Contains LLM prompt templates for coaching turns and resume structuring.
"""

from .coach_prompts import CoachPrompts

__all__ = [
    "CoachPrompts"
]
