"""Symptom analysis prompt template.

Examples:
    >>> from medassist.prompts.symptoms import get_prompt
    >>> prompt = get_prompt("sore throat", age="29", duration="3 days")
"""

GENERATION_CONFIG = {"temperature": 0.3, "max_output_tokens": 600}

PROMPT_TEMPLATE = """You are a medical AI assistant. Analyze the following patient symptoms and provide a structured medical assessment.

**Patient Information:**
- Age: {age}
- Gender: {gender}
- Symptoms: {symptoms}
- Duration: {duration}

**Provide analysis in this exact format:**

**POSSIBLE CONDITIONS:**
1. [Condition Name] - Probability: [High/Medium/Low]
   Brief explanation of why this is suspected.

2. [Condition Name] - Probability: [High/Medium/Low]
   Brief explanation of why this is suspected.

3. [Condition Name] - Probability: [High/Medium/Low]
   Brief explanation of why this is suspected.

**SEVERITY LEVEL:** [Low/Medium/High]
Brief explanation of severity assessment.

**URGENCY:** [Immediate/Soon/Routine]
When should the patient seek medical attention.

**RECOMMENDATIONS:**
1. [Specific recommendation]
2. [Specific recommendation]
3. [Specific recommendation]
4. [Specific recommendation]
5. [Specific recommendation]

**IMPORTANT DISCLAIMER:**
[Clear statement about seeking professional medical help]

Provide detailed, accurate, and helpful information while being clear this is preliminary guidance only."""


def get_prompt(
    symptoms: str,
    age: str | None = None,
    gender: str | None = None,
    duration: str | None = None,
) -> str:
    """Get the symptom analysis prompt.

    Args:
        symptoms: Patient-described symptoms
        age: Patient age, if given
        gender: Patient gender, if given
        duration: How long symptoms have lasted, if given

    Returns:
        Formatted prompt
    """
    return PROMPT_TEMPLATE.format(
        symptoms=symptoms,
        age=age or "Not specified",
        gender=gender or "Not specified",
        duration=duration or "Not specified",
    )
