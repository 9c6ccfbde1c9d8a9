# ==============================
# File: src/mindbloom/chat_backend.py
# ==============================
from __future__ import annotations
from typing import Dict, List, Optional, Protocol
import logging

from .config import CFG, Config
from .models import ReplyErr, ReplyResult

log = logging.getLogger(__name__)


class ReplyService(Protocol):
    """What the conversation session needs from any reply backend.

    Both calls block and must return a result variant rather than raise for
    network or service trouble.
    """

    def reply(self, text: str, history: Optional[List[Dict[str, str]]] = None) -> ReplyResult: ...

    def greeting(self) -> ReplyResult: ...


class OfflineReplyService:
    """Stand-in when no provider is configured; the session answers with fallback text."""

    def __init__(self, reason: str = "no reply provider configured"):
        self.reason = reason

    def reply(self, text: str, history: Optional[List[Dict[str, str]]] = None) -> ReplyResult:
        return ReplyErr(self.reason)

    def greeting(self) -> ReplyResult:
        return ReplyErr(self.reason)


def create_reply_service(cfg: Config | None = None) -> ReplyService:
    """Build the backend named by ``cfg.chat_backend``.

    Raises MissingConfigurationError when the chosen backend lacks its
    credentials; the caller decides how to surface that.
    """
    cfg = cfg or CFG
    backend = cfg.chat_backend.lower()
    log.info("Reply backend: %s", backend)
    if backend == "openai":
        from .chat_client import ChatClient
        return ChatClient(model=cfg.openai_model, api_key=cfg.openai_api_key, timeout=cfg.reply_timeout_s)
    if backend == "ollama":
        from .chat_ollama import ChatClient
        return ChatClient(host=cfg.ollama_host, model=cfg.ollama_model,
                          options_json=cfg.ollama_options_json, timeout=cfg.reply_timeout_s)
    if backend != "botpress":
        log.warning("Unknown CHAT_BACKEND=%r, using botpress", cfg.chat_backend)
    from .chat_botpress import BotpressClient
    return BotpressClient(api_url=cfg.botpress_api_url, bot_id=cfg.botpress_bot_id, timeout=cfg.reply_timeout_s)
