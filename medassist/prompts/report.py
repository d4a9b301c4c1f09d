"""Medical report summary prompt template."""

GENERATION_CONFIG = {"temperature": 0.4, "max_output_tokens": 500}

PROMPT_TEMPLATE = """You are a medical AI assistant specializing in explaining medical reports to patients.

**Report Type:** {report_type}

**Report Content:**
{report_text}

**Please provide a patient-friendly summary with:**

1. **KEY FINDINGS:** Main results from the report
2. **ABNORMAL VALUES:** Any values outside normal range (explain what they mean)
3. **WHAT IT MEANS:** What the findings could imply and whether the patient should discuss them with a doctor
4. **NEXT STEPS:** Suggested actions or follow-up needed
5. **QUESTIONS TO ASK YOUR DOCTOR:** Important questions patient should ask

Use simple, non-technical language. Avoid medical jargon. Be clear and reassuring while being honest about findings."""


def get_prompt(report_text: str, report_type: str | None = None) -> str:
    """Get the report summary prompt.

    Args:
        report_text: Full text of the report
        report_type: Kind of report (blood test, X-ray, ...), if given

    Returns:
        Formatted prompt
    """
    return PROMPT_TEMPLATE.format(
        report_text=report_text,
        report_type=report_type or "Medical Report",
    )
