from api.features.enhance.dtos import EnhanceStyle

ENHANCE_SYSTEM_PROMPT = "Eres un editor que reescribe mensajes de atención al cliente."
FALLBACK_ENHANCED_TEXT = "No se pudo mejorar el texto"

STYLE_PROMPTS = {
    EnhanceStyle.FORMAL: {
        "low": "Haz este texto ligeramente más formal manteniendo su esencia.",
        "medium": "Transforma este texto a un tono profesional y formal.",
        "high": "Convierte este texto en un lenguaje altamente formal y corporativo.",
    },
    EnhanceStyle.CONCISO: {
        "low": "Reduce ligeramente este texto eliminando palabras innecesarias.",
        "medium": "Haz este texto más conciso y directo al punto.",
        "high": "Condensa este texto al mínimo necesario manteniendo toda la información clave.",
    },
    EnhanceStyle.AMABLE: {
        "low": "Añade un toque más amigable a este texto.",
        "medium": "Haz este texto más cálido y cercano.",
        "high": "Transforma este texto en extremadamente amigable y empático.",
    },
    EnhanceStyle.VENDEDOR: {
        "low": "Añade un ligero enfoque comercial a este texto.",
        "medium": "Haz este texto más persuasivo y orientado a ventas.",
        "high": "Convierte este texto en altamente persuasivo con enfoque de ventas agresivo.",
    },
    EnhanceStyle.NEUTRO: {
        "low": "Haz este texto ligeramente más objetivo y neutro.",
        "medium": "Elimina sesgos y haz este texto completamente neutro.",
        "high": "Transforma este texto en totalmente imparcial y objetivo.",
    },
}


def intensity_level(intensity: int) -> str:
    if intensity <= 33:
        return "low"
    if intensity <= 66:
        return "medium"
    return "high"


def build_enhancement_prompt(original_text: str, style: EnhanceStyle, intensity: int) -> str:
    instruction = STYLE_PROMPTS[EnhanceStyle(style)][intensity_level(intensity)]
    return (
        f"{instruction}\n\n"
        f'Texto original:\n"{original_text}"\n\n'
        "Instrucciones:\n"
        "- Mantén el significado y la información principal\n"
        "- Devuelve solo el texto mejorado, sin explicaciones\n"
        "- Conserva el idioma original (español)\n"
        "- Ajusta la intensidad del cambio según se solicita\n\n"
        "Texto mejorado:"
    )
