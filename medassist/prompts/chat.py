"""Health chatbot prompts.

The chatbot opens every fresh dialogue with a fixed system turn and a
greeting. Providers without native chat re-send these two turns with every
message.

Examples:
    >>> from medassist.prompts.chat import get_priming
    >>> [turn.role for turn in get_priming()]
    ['user', 'model']
"""

from medassist.core.providers.base import DialogueTurn

SYSTEM_PROMPT = (
    "You are Dr. AI, a friendly and empathetic medical assistant chatbot for a virtual "
    "healthcare platform. Your role is to: 1) Ask relevant questions about symptoms, "
    "2) Provide general health guidance, 3) Show empathy and be reassuring, 4) Keep "
    "responses concise (2-4 sentences), 5) ALWAYS remind users this is not a replacement "
    "for professional medical advice. Be warm, professional, and helpful."
)

GREETING = (
    "Hello! I'm Dr. AI, your virtual health assistant. I'm here to help answer your health "
    "questions and provide general guidance. Please remember that I'm not a replacement for "
    "professional medical advice. How can I assist you today?"
)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_k": 40,
    "top_p": 0.95,
    "max_output_tokens": 300,
}


def get_priming() -> tuple[DialogueTurn, ...]:
    """Opening turns for a fresh chat dialogue."""
    return (
        DialogueTurn(role="user", text=SYSTEM_PROMPT),
        DialogueTurn(role="model", text=GREETING),
    )
