from typing import Dict, Optional

DEFAULT_TOPIC = "general"

SYSTEM_PROMPTS: Dict[str, str] = {
    "cocina": (
        "Eres LINA en modo cocina. Responde en español, con recetas simples, "
        "pasos cortos y tips prácticos. Sé clara y amable."
    ),
    "finanzas": (
        "Eres LINA en modo finanzas personales. Responde en español, simple y "
        "responsable. No es asesoría profesional."
    ),
    "estudio": (
        "Eres LINA en modo estudio. Explica paso a paso, con ejemplos sencillos "
        "y resúmenes claros."
    ),
    DEFAULT_TOPIC: (
        "Eres LINA, una asistente útil, concreta y amable. Responde en español "
        "de forma práctica y fácil."
    ),
}

# Sent after the topic prompt on every call
BREVITY_PROMPT = "Sé breve, clara y orientada a la acción."


def resolve_topic(topic: Optional[str]) -> str:
    key = (topic or "").strip().lower()
    return key if key in SYSTEM_PROMPTS else DEFAULT_TOPIC


def build_system_prompt(topic: Optional[str] = DEFAULT_TOPIC) -> str:
    return SYSTEM_PROMPTS[resolve_topic(topic)]


def normalize_user_text(text: Optional[str], max_chars: int = 4000) -> str:
    """Trim and cut the user message to the provider-safe maximum."""
    return str(text or "").strip()[:max_chars]
