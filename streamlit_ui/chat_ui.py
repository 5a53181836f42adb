import sys
from pathlib import Path

import streamlit as st

try:
    from core.settings import SETTINGS
except ModuleNotFoundError:
    ROOT = Path(__file__).resolve().parents[1]
    if str(ROOT) not in sys.path:
        sys.path.insert(0, str(ROOT))
    from core.settings import SETTINGS

from client.api import ApiClient, ApiError
from client.files import format_file_size
from client.session import ChatWidgetSession
from client.state import Feature, WidgetConfig

MODELS = {"auto": "Automático", "gemini": "Gemini", "minimax": "MiniMax"}
AVATARS = {"user": "user", "bot": "assistant", "admin": "assistant"}
REALTIME_POLL_SECONDS = 2

st.set_page_config(page_title=SETTINGS.UI.WIDGET_TITLE, layout="centered")
st.title(SETTINGS.UI.WIDGET_TITLE)


def build_session() -> ChatWidgetSession:
    config = WidgetConfig(token=SETTINGS.UI.API_TOKEN.get_secret_value())
    api = ApiClient(config.api_base_url, token=config.token)
    session = ChatWidgetSession(api, config)
    session.open()
    try:
        session.load_or_create_conversation()
    except ApiError as e:
        session.state.error = f"No se pudo conectar: {e.message}"
    return session


if "widget" not in st.session_state:
    st.session_state.widget = build_session()

widget: ChatWidgetSession = st.session_state.widget
state = widget.state
widget.start_realtime()
widget.sync_realtime()

with st.sidebar:
    st.subheader("Configuración")
    st.text(f"API_BASE_URL = {widget.config.api_base_url}")
    model = st.selectbox(
        "Modelo",
        options=list(MODELS),
        format_func=MODELS.get,
        index=list(MODELS).index(state.current_model) if state.current_model in MODELS else 0,
    )
    if model != state.current_model:
        widget.set_model(model)
    if st.button("Nueva conversación"):
        try:
            widget.start_new_conversation()
        except ApiError as e:
            state.error = e.message
    if widget.conversation_id:
        st.caption(f"Conversación: {widget.conversation_id}")

if state.bot_paused:
    st.info("Un agente humano está atendiendo esta conversación.")
if state.error:
    st.error(state.error)
    widget.clear_error()


def render_message(message) -> None:
    with st.chat_message(AVATARS.get(message.sender, "assistant")):
        if message.sender == "admin":
            st.caption("Agente")
        if message.type == "vision_analysis":
            st.caption(f"Análisis de imagen ({message.metadata.get('model_used') or 'vision'})")
        st.markdown(message.content or "...")
        for attachment in message.attachments:
            size = attachment.get("size_bytes")
            label = attachment.get("name") or attachment.get("storage_path") or "archivo"
            st.caption(f"📎 {label}" + (f" ({format_file_size(size)})" if size else ""))
        if message.status == "error":
            st.caption("No enviado")


for message in widget.messages:
    render_message(message)


@st.fragment(run_every=REALTIME_POLL_SECONDS)
def realtime_updates() -> None:
    # Admin replies and takeover changes arrive on the feed thread
    if widget.sync_realtime():
        st.rerun()
    if widget.state.is_typing:
        st.caption("Escribiendo...")


realtime_updates()

if widget.config.enabled(Feature.FILES):
    uploaded = st.file_uploader("Adjuntar archivo", key=f"file-{len(widget.messages)}")
    if uploaded is not None:
        with st.spinner("Procesando archivo..."):
            widget.handle_file(uploaded.name, uploaded.getvalue(), uploaded.type or "")
        st.rerun()

if widget.config.enabled(Feature.AUDIO):
    recording = st.audio_input("Grabar mensaje", key=f"audio-{len(widget.messages)}")
    if recording is not None:
        with st.spinner("Transcribiendo..."):
            widget.handle_audio(recording.getvalue(), recording.type or "audio/wav")
        st.rerun()

if prompt := st.chat_input("Escribe tu mensaje..."):
    with st.chat_message("user"):
        st.markdown(prompt)
    with st.chat_message("assistant"):
        placeholder = st.empty()
        placeholder.markdown("...")
        reply = widget.send_message(prompt, on_delta=placeholder.markdown)
        if reply is not None:
            placeholder.markdown(reply.content)
    st.rerun()
