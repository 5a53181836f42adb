import base64
import sys
from pathlib import Path

import streamlit as st

try:
    from core.settings import SETTINGS
except ModuleNotFoundError:
    ROOT = Path(__file__).resolve().parents[2]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from core.settings import SETTINGS

from client.admin import AdminConsole, AdminSettings, format_number
from client.api import ApiClient, ApiError
from client.files import format_file_size

STYLES = ["neutro", "formal", "conciso", "amable", "vendedor"]
STATUS_FILTERS = {"": "Todas", "active": "Activas", "closed": "Cerradas", "paused": "Bot pausado"}

st.set_page_config(page_title="Panel de administración", layout="wide")
st.title("Panel de administración")

if "console" not in st.session_state:
    api = ApiClient(SETTINGS.UI.API_BASE_URL, token=SETTINGS.UI.API_TOKEN.get_secret_value())
    st.session_state.console = AdminConsole(api)

console: AdminConsole = st.session_state.console

with st.sidebar:
    st.subheader("Configuración")
    st.text(f"API_BASE_URL = {SETTINGS.UI.API_BASE_URL}")
    st.caption("Values are loaded from environment (.env). Override by setting env vars.")


def run(action, success: str = ""):
    """Call ``action`` and surface API failures in the page instead of raising."""
    try:
        result = action()
    except ApiError as e:
        st.error(f"{e.code}: {e.message}")
        return None
    if success:
        st.success(success)
    return result


dashboard_tab, conversations_tab, documents_tab, enhance_tab, analytics_tab, settings_tab = st.tabs(
    ["Dashboard", "Conversaciones", "Documentos", "Mejorar texto", "Analítica", "Ajustes"]
)

with dashboard_tab:
    data = run(console.dashboard)
    if data:
        stats = data["stats"]
        cols = st.columns(3)
        cols[0].metric("Conversaciones", format_number(stats["total_conversations"]))
        cols[1].metric("Activas", format_number(stats["active_conversations"]))
        cols[2].metric("Bot pausado", format_number(stats["paused_conversations"]))
        cols = st.columns(3)
        cols[0].metric("Mensajes", format_number(stats["total_messages"]))
        cols[1].metric("Documentos", format_number(stats["total_documents"]))
        cols[2].metric("Intervenciones activas", format_number(stats["active_takeovers"]))
        st.subheader("Actividad reciente")
        for event in data.get("recent_events", []):
            st.caption(f"{event['created_at']} · {event['event_type']}")

with conversations_tab:
    if st.button("Recargar conversaciones") or not console.conversations:
        run(console.load_conversations)
    search = st.text_input("Buscar", key="conversation-search")
    status = st.selectbox("Estado", list(STATUS_FILTERS), format_func=STATUS_FILTERS.get)
    for conversation in console.conversations_view(search, status):
        conversation_id = str(conversation["id"])
        with st.expander(conversation.get("title") or conversation_id):
            st.caption(
                f"{conversation['status']} · bot {'pausado' if conversation.get('bot_paused') else 'activo'}"
            )
            cols = st.columns(3)
            if cols[0].button(
                "Reanudar bot" if conversation.get("bot_paused") else "Pausar bot",
                key=f"toggle-{conversation_id}",
            ):
                run(
                    lambda: console.set_bot_paused(conversation_id, not conversation.get("bot_paused")),
                    "Estado del bot actualizado",
                )
                run(console.load_conversations)
            if cols[1].button("Intervenir", key=f"start-{conversation_id}"):
                run(lambda: console.start_takeover(conversation_id), "Intervención iniciada")
            if cols[2].button("Finalizar intervención", key=f"end-{conversation_id}"):
                run(lambda: console.end_takeover(conversation_id), "Intervención finalizada")
            reply = st.text_input("Responder como agente", key=f"reply-{conversation_id}")
            if reply and st.button("Enviar", key=f"send-{conversation_id}"):
                run(lambda: console.reply(conversation_id, reply), "Mensaje enviado")

with documents_tab:
    with st.form("document-upload", clear_on_submit=True):
        uploaded = st.file_uploader("Documento", type=["pdf", "txt", "md", "doc", "docx"])
        title = st.text_input("Título")
        tags = st.text_input("Etiquetas (separadas por comas)")
        is_public = st.checkbox("Público", value=True)
        if st.form_submit_button("Subir") and uploaded is not None:
            result = run(
                lambda: console.api.upload_document(
                    base64.b64encode(uploaded.getvalue()).decode("ascii"),
                    uploaded.name,
                    uploaded.type or "text/plain",
                    title=title or None,
                    tags=[t.strip() for t in tags.split(",") if t.strip()],
                    is_public=is_public,
                )
            )
            if result:
                st.success(f"{result['chunks_created']} fragmentos indexados")

    if st.button("Recargar documentos") or not console.documents:
        run(console.load_documents)
    search = st.text_input("Buscar", key="document-search")
    mime_types = sorted({d.get("mime_type") for d in console.documents if d.get("mime_type")})
    mime_type = st.selectbox("Tipo", [""] + mime_types, format_func=lambda m: m or "Todos")
    for document in console.documents_view(search, mime_type):
        document_id = str(document["id"])
        with st.expander(document["title"]):
            size = document.get("file_size")
            st.caption(
                f"{document.get('mime_type') or '-'}"
                + (f" · {format_file_size(size)}" if size else "")
                + f" · {', '.join(document.get('tags') or [])}"
            )
            st.text((document.get("content") or "")[:500])
            cols = st.columns(2)
            if cols[0].button("Reindexar", key=f"reindex-{document_id}"):
                run(lambda: console.api.reindex_document(document_id), "Documento reindexado")
            if cols[1].button("Eliminar", key=f"delete-{document_id}"):
                if run(lambda: console.api.delete_document(document_id), "Documento eliminado"):
                    run(console.load_documents)

with enhance_tab:
    text = st.text_area("Texto original")
    style = st.selectbox("Estilo", STYLES)
    intensity = st.slider("Intensidad", 0, 100, 50)
    if st.button("Mejorar") and text.strip():
        result = run(lambda: console.api.enhance(text, style, intensity))
        if result:
            st.text_area("Texto mejorado", result["enhanced_text"])
            st.json(result["metrics"])

with analytics_tab:
    summary = run(console.analytics_summary)
    if summary:
        cols = st.columns(len(summary))
        for col, (label, value) in zip(cols, summary.items()):
            col.metric(label.replace("_", " ").capitalize(), value)

with settings_tab:
    current = AdminSettings.load()
    with st.form("admin-settings"):
        max_tokens = st.number_input("Max tokens", 1, 32000, current.max_tokens)
        temperature = st.slider("Temperatura", 0.0, 2.0, current.temperature)
        rag_threshold = st.slider("Umbral RAG", 0.0, 1.0, current.rag_threshold)
        rag_max_results = st.number_input("Resultados RAG", 1, 50, current.rag_max_results)
        if st.form_submit_button("Guardar"):
            path = AdminSettings(
                max_tokens=max_tokens,
                temperature=temperature,
                rag_threshold=rag_threshold,
                rag_max_results=rag_max_results,
            ).save()
            st.success(f"Ajustes guardados en {path}")
