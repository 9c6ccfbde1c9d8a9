# ==============================
# File: src/mindbloom/main.py
# ==============================
import asyncio
import threading
import time
import logging
from typing import List, Optional

from .utils import setup_logging
from .config import CFG, Config
from .chat_backend import OfflineReplyService, create_reply_service
from .crisis import guidance_for
from .emotion import EmotionEngine
from .errors import ListenInProgressError, MindBloomError, MissingConfigurationError
from .lipsync import LipSyncAnimator
from .models import CrisisAlert, UserProfile
from .progress import record_chat_session
from .session import ConversationSession
from .speech_input import SpeechInputDriver
from .speech_output import SpeechOptions, SpeechOutputDriver
from .storage import BlobStorageClient, ProfileStore
from .stt_cloud import CloudRecognizer
from .stt_vosk import VoskRecognizer
from .ui_webview import AvatarUI

log = logging.getLogger(__name__)


class App:
    """Wires the conversation session to speech, avatar, storage and the window.

    The session lives on a private asyncio loop running in a background
    thread; calls from the JS bridge are scheduled onto it.
    """

    def __init__(self, cfg: Config | None = None):
        setup_logging()
        self.cfg = cfg or CFG
        self.notices: List[str] = []
        self.loop = asyncio.new_event_loop()
        self._loop_thread: Optional[threading.Thread] = None
        self._started_at = time.monotonic()

        self.store = ProfileStore(self.cfg.data_dir)
        self.blob = BlobStorageClient(self.cfg.cloud_proxy_url, self.cfg.storage_bucket)
        self.ui = AvatarUI(self)
        self.emotion = EmotionEngine()

        try:
            reply_service = create_reply_service(self.cfg)
        except MissingConfigurationError as e:
            self._notice(str(e))
            reply_service = OfflineReplyService(str(e))

        self.tts = SpeechOutputDriver(self._load_tts())
        self.stt = SpeechInputDriver(
            cloud=CloudRecognizer(self.cfg.cloud_proxy_url, self.cfg.stt_language, self.cfg.stt_sample_rate),
            local=VoskRecognizer(self.cfg.vosk_model_path, self.cfg.stt_sample_rate),
            timeout_s=self.cfg.listen_timeout_s,
        )
        self.session = ConversationSession(
            reply_service,
            self.tts,
            emotion=self.emotion,
            speech_options=SpeechOptions(self.cfg.tts_rate, self.cfg.tts_pitch, self.cfg.tts_volume),
            reply_timeout_s=self.cfg.reply_timeout_s,
            history_turns=self.cfg.history_turns,
            user=self._ensure_user(),
        )
        self.avatar = LipSyncAnimator(on_change=self.ui.set_mouth, tick_s=self.cfg.lipsync_tick_ms / 1000.0)
        self.avatar.follow(self.session)

        self._shown_messages = 0
        self._shown_alert: Optional[CrisisAlert] = None
        self._shown_composing = False
        self.session.subscribe(self._on_session_change)

    # ── Setup helpers ───────────────────────────────────────────────────────
    def _load_tts(self):
        from .tts_piper import PiperTTS

        try:
            return PiperTTS(self.cfg.piper_model_path, self.cfg.tts_block_ms)
        except MissingConfigurationError as e:
            self._notice(str(e))
            return None

    def _ensure_user(self) -> UserProfile:
        user = self.store.load_user()
        if user is None:
            user = UserProfile.new(self.cfg.user_nickname)
            self.store.save_user(user)
            log.info("Created profile %s", user.id)
        return user

    def _notice(self, text: str):
        log.error(text)
        self.notices.append(text)
        self.ui.show_notice(text)

    def _submit(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    # ── Session -> UI ───────────────────────────────────────────────────────
    def _on_session_change(self, session: ConversationSession):
        messages = session.messages
        for message in messages[self._shown_messages:]:
            self.ui.append_message(message)
        self._shown_messages = len(messages)

        if session.is_composing != self._shown_composing:
            self._shown_composing = session.is_composing
            self.ui.set_composing(session.is_composing)

        alert = session.last_crisis_alert
        if alert is not self._shown_alert:
            self._shown_alert = alert
            if alert is None:
                self.ui.hide_crisis_alert()
            else:
                self.ui.show_crisis_alert(alert.severity.value, guidance_for(alert))

        self.ui.set_subtitle(session.current_utterance_text)

    # ── UI-initiated controls (called from JS via Bridge) ────────────────────
    def handle_user_text(self, text: str):
        return self._submit(self.session.submit_user_message(text))

    def dismiss_crisis_alert(self):
        self.loop.call_soon_threadsafe(self.session.dismiss_crisis_alert)

    def start_listening(self):
        return self._submit(self._listen_and_submit())

    def stop_listening(self):
        self.stt.stop()

    async def _listen_and_submit(self):
        try:
            text = await self.stt.listen_once()
        except ListenInProgressError:
            log.info("Already listening")
            return None
        except MindBloomError as e:
            self.ui.show_notice(str(e))
            return None
        except Exception as e:
            log.exception("Speech recognition failed")
            self.ui.show_notice(f"Sorry, I couldn't hear you. Speech recognition failed ({e.__class__.__name__}).")
            return None
        if not text.strip():
            self.ui.show_notice("I didn't catch that. Please try again.")
            return None
        return await self.session.submit_user_message(text)

    # ── Lifecycle ────────────────────────────────────────────────────────────
    def _on_loaded(self):
        # Setup problems found before the page existed
        for text in self.notices:
            self.ui.show_notice(text)
        self._submit(self.session.show_initial_greeting())

    def start_loop(self):
        self._loop_thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self._loop_thread.start()

    def shutdown(self):
        self.record_session()
        self.tts.cancel()
        self.stt.stop()
        self.loop.call_soon_threadsafe(self.loop.stop)

    def record_session(self):
        """Persist XP/streak for this chat and upload the transcript."""
        user = self.session.user
        messages = self.session.messages
        user_texts = [m.text for m in messages if m.author_is_user]
        if user is None or not user_texts:
            return None
        minutes = max(1, int((time.monotonic() - self._started_at) // 60))
        record = record_chat_session(user, len(user_texts), minutes)
        self.store.save_user(user)
        self.store.add_session(record)
        self.blob.upload_json_background(
            f"sessions/{user.id}/{record.id}.json",
            {
                "userId": user.id,
                "sessionId": record.id,
                "messages": [m.to_dict() for m in messages],
                "emotions": {k.value: v for k, v in self.emotion.counts(user_texts).items()},
            },
            metadata={"kind": "chat"},
        )
        return record

    def run(self):
        import webview

        self.start_loop()
        window = self.ui.create()
        window.events.loaded += self._on_loaded
        try:
            webview.start(debug=False)
        finally:
            self.shutdown()


def main():
    App().run()


if __name__ == "__main__":
    main()
