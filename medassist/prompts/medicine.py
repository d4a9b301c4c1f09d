"""Medicine information prompt template."""

GENERATION_CONFIG = {"temperature": 0.3, "max_output_tokens": 400}

PROMPT_TEMPLATE = """Provide accurate, patient-friendly information about the medicine: **{medicine_name}**

Include the following sections:

**WHAT IT'S USED FOR:**
Primary uses and conditions it treats.

**HOW IT WORKS:**
Simple explanation of mechanism.

**COMMON SIDE EFFECTS:**
Most frequently reported side effects.

**IMPORTANT PRECAUTIONS:**
- Who should not take it
- Drug interactions to be aware of
- Special warnings

**WHEN TO CONSULT A DOCTOR:**
Signs that require immediate medical attention.

**IMPORTANT NOTE:**
Always remind to consult healthcare provider or pharmacist for personalized advice.

Keep information accurate and helpful. Use simple language."""


def get_prompt(medicine_name: str) -> str:
    return PROMPT_TEMPLATE.format(medicine_name=medicine_name)
