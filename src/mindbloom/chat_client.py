# ==============================
# File: src/mindbloom/chat_client.py
# ==============================
from typing import List, Dict, Optional
from openai import OpenAI, OpenAIError
from .config import CFG
from .errors import MissingConfigurationError
from .models import ReplyErr, ReplyOk, ReplyResult
import logging

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are Mira, a warm and supportive wellness companion. Keep replies short, kind and "
    "encouraging. You are not a therapist; when someone may be in danger, gently point them "
    "to crisis lines such as 988."
)
GREETING_PROMPT = "Greet the user warmly in one or two sentences and ask how they are feeling today."


class ChatClient:
    """Tiny wrapper around OpenAI Chat Completions."""

    def __init__(self, model: str | None = None, api_key: str | None = None, timeout: float | None = None):
        api_key = api_key or CFG.openai_api_key
        if not api_key:
            raise MissingConfigurationError("No API key configured for OpenAI. Please set OPENAI_API_KEY")
        self.client = OpenAI(api_key=api_key, timeout=timeout or CFG.reply_timeout_s)
        self.model = model or CFG.openai_model

    def ask(self, messages: List[Dict[str, str]]) -> str:
        """Send a chat completion request and return the assistant's text."""
        log.info("Calling OpenAI model=%s", self.model)
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0.7,
        )
        content = (resp.choices[0].message.content if resp.choices else "") or ""
        log.debug("OpenAI response len=%d", len(content))
        return content

    def reply(self, text: str, history: Optional[List[Dict[str, str]]] = None) -> ReplyResult:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}, *(history or []), {"role": "user", "content": text}]
        try:
            content = self.ask(messages)
        except OpenAIError as e:
            log.warning("OpenAI request failed: %s", e)
            return ReplyErr(str(e))
        if not content.strip():
            return ReplyErr("empty reply")
        return ReplyOk(content)

    def greeting(self) -> ReplyResult:
        return self.reply(GREETING_PROMPT)
