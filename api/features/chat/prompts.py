"""Prompt assembly for the chat handler."""
from typing import Iterable, List, Mapping

from api.features.conversation.entities.conversation import Message, MessageSender
from infra.llm.base import ChatRole, ChatTurn

BASE_SYSTEM_PROMPT = (
    "Eres un asistente virtual inteligente y servicial. Responde de manera clara, "
    "precisa y útil. Usa un tono profesional pero amigable."
)
NO_PROVIDER_REPLY = "Lo siento, no hay proveedores LLM disponibles en este momento."


def build_rag_context(results: Iterable[Mapping]) -> str:
    """``**title**\\ncontent`` blocks separated by blank lines."""
    return "\n\n".join(f"**{row['title']}**\n{row['content']}" for row in results)


def build_system_prompt(rag_context: str = "") -> str:
    if not rag_context:
        return BASE_SYSTEM_PROMPT
    return (
        f"{BASE_SYSTEM_PROMPT}\n\nContexto de documentos relevantes:\n{rag_context}"
        "\n\nUsa esta información para enriquecer tu respuesta cuando sea relevante."
    )


def history_to_turns(history: Iterable[Message], current_message: str) -> List[ChatTurn]:
    """User and bot messages become turns; admin and system messages are skipped."""
    turns = []
    for message in history:
        if message.sender == MessageSender.USER:
            turns.append(ChatTurn(ChatRole.USER, message.content))
        elif message.sender == MessageSender.BOT:
            turns.append(ChatTurn(ChatRole.ASSISTANT, message.content))
    turns.append(ChatTurn(ChatRole.USER, current_message))
    return turns
