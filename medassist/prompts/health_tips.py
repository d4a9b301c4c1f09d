"""Health tips prompt template."""

import json
from typing import Any

GENERATION_CONFIG = {"temperature": 0.7, "max_output_tokens": 500}

PROMPT_TEMPLATE = """Generate 5 practical, evidence-based health tips for the category: **{category}**

User Profile: {profile}

**Format each tip as:**
**Tip #X: [Catchy Title]**
[Detailed explanation of the tip - 2-3 sentences]
Why it matters: [Brief benefit explanation]

Make tips:
- Actionable and specific
- Easy to implement in daily life
- Based on scientific evidence
- Motivating and positive
- Culturally sensitive

Provide exactly 5 tips, numbered 1-5."""


def get_prompt(category: str | None = None, user_profile: Any = None) -> str:
    """Get the health tips prompt.

    Args:
        category: Tip category, "General Health" when absent
        user_profile: Free-form profile data, serialized as JSON

    Returns:
        Formatted prompt
    """
    profile = json.dumps(user_profile) if user_profile else "General audience"
    return PROMPT_TEMPLATE.format(category=category or "General Health", profile=profile)
