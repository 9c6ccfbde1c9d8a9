# ==============================
# File: src/mindbloom/config.py
# ==============================
import os
from dataclasses import dataclass

@dataclass
class Config:
    # Reply backend selection: 'botpress', 'openai' or 'ollama'
    chat_backend: str = os.getenv("CHAT_BACKEND", "botpress")

    # Botpress-style chat bot endpoint
    botpress_api_url: str = os.getenv("BOTPRESS_API_URL", "https://cdn.botpress.cloud/webchat/v3.2/shareable.html")
    botpress_bot_id: str = os.getenv("BOTPRESS_BOT_ID", "20250921130550-P1WEUHCI")

    # OpenAI
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Ollama (local LLM)
    ollama_host: str = os.getenv("OLLAMA_HOST", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    # Optional JSON string for extra options: {"temperature":0.7,"num_predict":512,"num_ctx":4096}
    ollama_options_json: str = os.getenv("OLLAMA_OPTIONS_JSON", "")

    # Conversation
    reply_timeout_s: float = float(os.getenv("REPLY_TIMEOUT_S", "8"))
    history_turns: int = int(os.getenv("HISTORY_TURNS", "10"))

    # Cloud proxy for speech-to-text and blob storage; empty means local only
    cloud_proxy_url: str = os.getenv("CLOUD_PROXY_URL", "")
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "mindbloom-app-storage")

    # Speech input
    stt_language: str = os.getenv("STT_LANGUAGE", "en-US")
    # e.g. https://alphacephei.com/vosk/models
    vosk_model_path: str = os.getenv("VOSK_MODEL_PATH", "./models/vosk-model-small-en-us-0.15")
    stt_sample_rate: int = int(os.getenv("STT_SAMPLE_RATE", "16000"))
    listen_timeout_s: float = float(os.getenv("LISTEN_TIMEOUT_S", "5"))

    # Piper TTS (download an ONNX voice from rhasspy/piper-voices; set path here)
    piper_model_path: str = os.getenv("PIPER_MODEL_PATH", "./voices/en_US-lessac-medium.onnx")
    tts_block_ms: int = int(os.getenv("TTS_BLOCK_MS", "32"))  # size of chunks sent to speaker
    tts_rate: float = float(os.getenv("TTS_RATE", "0.9"))
    tts_pitch: float = float(os.getenv("TTS_PITCH", "1.0"))
    tts_volume: float = float(os.getenv("TTS_VOLUME", "0.8"))

    # Avatar
    lipsync_tick_ms: int = int(os.getenv("LIPSYNC_TICK_MS", "150"))

    # Local profile store
    data_dir: str = os.getenv("DATA_DIR", "./data")
    user_nickname: str = os.getenv("USER_NICKNAME", "friend")

    # UI
    window_title: str = os.getenv("APP_TITLE", "MindBloom")
    ui_width: int = int(os.getenv("UI_WIDTH", "1024"))
    ui_height: int = int(os.getenv("UI_HEIGHT", "720"))

    # Misc
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

CFG = Config()
