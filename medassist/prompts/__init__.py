"""Prompt templates for the guidance features.

Each module provides the prompt builder and default generation settings for
one feature.

Examples:
    >>> from medassist.prompts import symptoms
    >>> prompt = symptoms.get_prompt("headache and fever", age="34")
"""

from medassist.prompts import (
    chat,
    diet,
    health_tips,
    medicine,
    prescription,
    report,
    symptoms,
)

__all__ = [
    "chat",
    "symptoms",
    "report",
    "medicine",
    "health_tips",
    "diet",
    "prescription",
]
