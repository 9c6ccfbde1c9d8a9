# ==============================
# File: src/mindbloom/chat_ollama.py
# ==============================
from __future__ import annotations
import json
from typing import List, Dict, Optional
import requests
from .config import CFG
from .chat_client import GREETING_PROMPT, SYSTEM_PROMPT
from .models import ReplyErr, ReplyOk, ReplyResult
import logging

log = logging.getLogger(__name__)


class ChatClient:
    """Local LLM chat via Ollama's /api/chat endpoint.

    Requires `ollama serve` running locally and a pulled model (e.g. `ollama pull llama3.1`).
    """
    def __init__(self, host: str | None = None, model: str | None = None, options_json: str | None = None, timeout: float | None = None):
        self.host = (host or CFG.ollama_host).rstrip('/')
        self.model = model or CFG.ollama_model
        self.timeout = timeout or CFG.reply_timeout_s
        try:
            self.options = json.loads(options_json or CFG.ollama_options_json or '{}')
        except ValueError:
            log.warning("Ignoring malformed OLLAMA_OPTIONS_JSON")
            self.options = {}

    def ask(self, messages: List[Dict[str, str]]) -> str:
        url = f"{self.host}/api/chat"
        payload = {
            "model": self.model,
            "messages": messages,
            "options": {"temperature": 0.7, **self.options},
            "stream": False,
        }
        log.info("Ollama chat model=%s host=%s", self.model, self.host)
        r = requests.post(url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            return ""
        # Non-streaming response format: {'message': {'role': 'assistant','content': '...'}, ...}
        msg = data.get('message')
        content = msg.get('content') if isinstance(msg, dict) else None
        if not content and isinstance(data.get('messages'), list):
            # Some versions echo a list
            for m in data['messages'][::-1]:
                if isinstance(m, dict) and m.get('role') == 'assistant' and m.get('content'):
                    content = m['content']
                    break
        return content if isinstance(content, str) else ""

    def reply(self, text: str, history: Optional[List[Dict[str, str]]] = None) -> ReplyResult:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}, *(history or []), {"role": "user", "content": text}]
        try:
            content = self.ask(messages)
        except (requests.RequestException, ValueError) as e:
            log.warning("Ollama request failed: %s", e)
            return ReplyErr(str(e))
        if not content.strip():
            return ReplyErr("empty reply")
        return ReplyOk(content)

    def greeting(self) -> ReplyResult:
        return self.reply(GREETING_PROMPT)
