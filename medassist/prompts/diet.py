"""One-day diet plan prompt template."""

GENERATION_CONFIG = {"temperature": 0.6, "max_output_tokens": 800}

PROMPT_TEMPLATE = """Create a personalized one-day diet plan.

**Goal:** {goal}
**Dietary Restrictions:** {restrictions}
**Preferences:** {preferences}

Provide:

**BREAKFAST (7-9 AM):**
- Meal description
- Approximate calories
- Key nutrients

**MID-MORNING SNACK (11 AM):**
- Snack suggestion
- Benefits

**LUNCH (1-2 PM):**
- Meal description
- Approximate calories
- Key nutrients

**EVENING SNACK (4-5 PM):**
- Snack suggestion
- Benefits

**DINNER (7-8 PM):**
- Meal description
- Approximate calories
- Key nutrients

**HYDRATION TIPS:**
Water intake recommendations

**NUTRITIONAL SUMMARY:**
Total approximate calories and macronutrient breakdown

Make it practical, affordable, and easy to prepare."""


def get_prompt(
    goal: str | None = None,
    restrictions: str | None = None,
    preferences: str | None = None,
) -> str:
    return PROMPT_TEMPLATE.format(
        goal=goal or "General health",
        restrictions=restrictions or "None",
        preferences=preferences or "None",
    )
