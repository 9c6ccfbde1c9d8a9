# ==============================
# File: src/mindbloom/session.py
# ==============================
from __future__ import annotations
import asyncio
import random
from typing import Callable, Dict, List, Optional, Tuple
import logging

from .chat_backend import ReplyService
from .config import CFG
from .crisis import classify
from .emotion import ASSISTANT_GREETING, ASSISTANT_REPLY, EmotionEngine
from .models import (
    CrisisAlert,
    Message,
    ReplyErr,
    ReplyOk,
    ReplyResult,
    SpeechErrored,
    UserProfile,
)
from .speech_output import SpeechOptions, SpeechOutputDriver

log = logging.getLogger(__name__)

FALLBACK_REPLIES: Tuple[str, ...] = (
    "I'm here to listen and support you. How are you feeling today?",
    "Thank you for sharing that with me. I understand this might be difficult to talk about.",
    "I'm glad you reached out. Let's work through this together, one step at a time.",
    "Your feelings are valid, and it's okay to not be okay sometimes. I'm here to help.",
    "I can hear that you're going through a challenging time. You're not alone in this.",
)
DEFAULT_GREETING = (
    "Hello! I'm Mira, your wellness guide. I'm here to listen and support you. "
    "How are you feeling today?"
)

Listener = Callable[["ConversationSession"], None]


class ConversationSession:
    """Conversation state for one running app: message log, composing and
    speaking flags, greeting flag and the current crisis alert.

    All mutation happens on the event loop. Listeners are called
    synchronously after every state change.

    Turn flow for ``submit_user_message``::

        append user message -> classify (maybe set alert) -> composing
        -> fetch reply (fallback on failure) -> append assistant message
        -> not composing -> speaking -> play speech -> not speaking
    """

    def __init__(self, reply_service: ReplyService, speech_output: SpeechOutputDriver,
                 classifier: Callable[[str], Optional[CrisisAlert]] = classify,
                 emotion: EmotionEngine | None = None, speech_options: SpeechOptions | None = None,
                 reply_timeout_s: float | None = None, history_turns: int | None = None,
                 rng: random.Random | None = None, user: UserProfile | None = None):
        self.reply_service = reply_service
        self.speech_output = speech_output
        self.classifier = classifier
        self.emotion = emotion or EmotionEngine()
        self.speech_options = speech_options or SpeechOptions.from_config()
        self.reply_timeout_s = reply_timeout_s if reply_timeout_s is not None else CFG.reply_timeout_s
        self.history_turns = history_turns if history_turns is not None else CFG.history_turns
        self.rng = rng or random.Random()
        self.user = user

        self._messages: List[Message] = []
        self._composing = False
        self._avatar_speaking = False
        self._utterance = ""
        self._utterance_token: Optional[object] = None
        self._has_greeted = False
        self._greeting_in_flight = False
        self._alert: Optional[CrisisAlert] = None
        self._listeners: List[Listener] = []

    # ── Read-only state ─────────────────────────────────────────────────────
    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def is_composing(self) -> bool:
        return self._composing

    @property
    def is_avatar_speaking(self) -> bool:
        return self._avatar_speaking

    @property
    def current_utterance_text(self) -> str:
        return self._utterance

    @property
    def has_greeted(self) -> bool:
        return self._has_greeted

    @property
    def last_crisis_alert(self) -> Optional[CrisisAlert]:
        return self._alert

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def set_user(self, user: UserProfile) -> None:
        self.user = user
        self._notify()

    # ── Operations ──────────────────────────────────────────────────────────
    async def submit_user_message(self, text: str) -> Optional[Message]:
        """Run one conversational turn. Returns the assistant message, or None
        when the text is blank or a reply is already being composed."""
        if not text or not text.strip():
            return None
        if self._composing:
            log.info("Ignoring message while a reply is being composed")
            return None

        mood = self.emotion.analyze(text)
        self._append(Message.create(True, text, mood.label, mood.score))

        alert = self.classifier(text)
        if alert is not None:
            # Replaces any undismissed alert, even a more severe one.
            log.warning("Crisis keywords %s severity=%s action=%s", sorted(alert.matched_keywords),
                        alert.severity.value, alert.recommended_action.value)
            self._alert = alert

        history = self._history()
        self._composing = True
        self._notify()
        try:
            result = await self._fetch(lambda: self.reply_service.reply(text, history))
            reply_text = self._text_or(result, self._fallback_reply())
            tag, intensity = ASSISTANT_REPLY
            assistant = self._append(Message.create(False, reply_text, tag, intensity), notify=False)
        finally:
            self._composing = False
            self._notify()

        await self._speak(reply_text)
        return assistant

    async def show_initial_greeting(self) -> Optional[Message]:
        if self._has_greeted or self._greeting_in_flight:
            return None
        if self.user is None:
            log.warning("Greeting requested before a user profile exists")
            return None

        self._greeting_in_flight = True
        try:
            result = await self._fetch(self.reply_service.greeting)
            greeting = self._text_or(result, DEFAULT_GREETING)
            tag, intensity = ASSISTANT_GREETING
            message = self._append(Message.create(False, greeting, tag, intensity))
            await self._speak(greeting)
            self._has_greeted = True
        finally:
            self._greeting_in_flight = False
        self._notify()
        return message

    def dismiss_crisis_alert(self) -> None:
        self._alert = None
        self._notify()

    # ── Internals ───────────────────────────────────────────────────────────
    async def _fetch(self, call: Callable[[], ReplyResult]) -> ReplyResult:
        try:
            return await asyncio.wait_for(asyncio.to_thread(call), timeout=self.reply_timeout_s)
        except asyncio.TimeoutError:
            log.warning("Reply service timed out after %.1fs", self.reply_timeout_s)
            return ReplyErr("timeout")
        except Exception as e:
            log.exception("Reply service failed")
            return ReplyErr(str(e) or e.__class__.__name__)

    async def _speak(self, text: str) -> None:
        token = object()
        self._utterance_token = token
        self._avatar_speaking = True
        self._utterance = text
        self._notify()
        try:
            result = await self.speech_output.speak(text, self.speech_options)
            if isinstance(result, SpeechErrored):
                log.warning("Speech playback ended with error: %s", result.reason)
        except Exception:
            log.exception("Speech playback failed")
        finally:
            # A newer utterance owns the flags now; leave them alone.
            if self._utterance_token is token:
                self._utterance_token = None
                self._avatar_speaking = False
                self._utterance = ""
                self._notify()

    def _text_or(self, result: ReplyResult, fallback: str) -> str:
        if isinstance(result, ReplyOk) and result.text.strip():
            return result.text
        if isinstance(result, ReplyErr):
            log.info("Using fallback text (%s)", result.reason)
        return fallback

    def _fallback_reply(self) -> str:
        return self.rng.choice(FALLBACK_REPLIES)

    def _history(self) -> List[Dict[str, str]]:
        # Everything before the message just appended, newest last.
        prior = self._messages[:-1]
        if self.history_turns <= 0:
            return []
        return [
            {"role": "user" if m.author_is_user else "assistant", "content": m.text}
            for m in prior[-self.history_turns:]
        ]

    def _append(self, message: Message, notify: bool = True) -> Message:
        self._messages.append(message)
        if notify:
            self._notify()
        return message

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                log.exception("Session listener failed")
