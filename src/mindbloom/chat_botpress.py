# ==============================
# File: src/mindbloom/chat_botpress.py
# ==============================
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

import requests

from .config import CFG
from .models import ReplyErr, ReplyOk, ReplyResult
from .utils import new_id

log = logging.getLogger(__name__)

# Sent instead of user text to ask the bot for its opening line.
GREETING_REQUEST = "start conversation"


@dataclass
class BotMessage:
    id: str
    text: str
    type: str = "text"


def parse_messages(data: Any) -> List[BotMessage]:
    """Normalize the bot's JSON into a list of messages.

    Accepts ``{"messages": [...]}`` or a bare ``{"text": "..."}``. Anything
    else is an empty list, which callers treat as "no content".
    """
    if not isinstance(data, dict):
        return []
    out: List[BotMessage] = []
    raw = data.get("messages")
    if isinstance(raw, list):
        for i, m in enumerate(raw):
            if not isinstance(m, dict):
                continue
            text = m.get("text") or m.get("message")
            out.append(BotMessage(
                id=str(m.get("id") or f"msg_{i}"),
                text=text if isinstance(text, str) else "",
                type=m.get("type") or "text",
            ))
    elif isinstance(data.get("text"), str) and data["text"]:
        out.append(BotMessage(id="msg_0", text=data["text"]))
    return out


class BotpressClient:
    """Chat-bot platform client: one POST per user message, first text message wins."""

    def __init__(self, api_url: str | None = None, bot_id: str | None = None, user_id: str | None = None,
                 conversation_id: str | None = None, timeout: float | None = None):
        self.api_url = api_url or CFG.botpress_api_url
        self.bot_id = bot_id or CFG.botpress_bot_id
        self.user_id = user_id or new_id("user")
        self.conversation_id = conversation_id or new_id("conv")
        self.timeout = timeout or CFG.reply_timeout_s

    def send(self, text: str) -> List[BotMessage]:
        payload: Dict[str, Any] = {
            "type": "text",
            "text": text,
            "userId": self.user_id,
            "conversationId": self.conversation_id,
            "botId": self.bot_id,
        }
        log.info("Botpress send conversation=%s", self.conversation_id)
        r = requests.post(self.api_url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        return parse_messages(r.json())

    def reply(self, text: str, history: Optional[List[Dict[str, str]]] = None) -> ReplyResult:
        # The platform keeps its own history per conversation id.
        try:
            messages = self.send(text)
        except (requests.RequestException, ValueError) as e:
            log.warning("Botpress request failed: %s", e)
            return ReplyErr(str(e))
        first = messages[0].text if messages else ""
        if not first or not first.strip():
            return ReplyErr("empty reply")
        return ReplyOk(first)

    def greeting(self) -> ReplyResult:
        return self.reply(GREETING_REQUEST)
