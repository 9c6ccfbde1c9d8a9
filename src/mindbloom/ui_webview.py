# ==============================
# File: src/mindbloom/ui_webview.py
# ==============================
import json
import os

import webview

from .config import CFG
from .crisis import CrisisGuidance
from .models import AvatarVisualState, Message
import logging

log = logging.getLogger(__name__)

WEB_INDEX = os.path.abspath(os.path.join(os.path.dirname(__file__), "web", "index.html"))


class Bridge:
    """Python methods callable from JavaScript: window.pywebview.api.*"""

    def __init__(self, app):
        self.app = app

    def start_listening(self):
        log.info("JS called start_listening")
        self.app.start_listening()
        return {"ok": True}

    def stop_listening(self):
        log.info("JS called stop_listening")
        self.app.stop_listening()
        return {"ok": True}

    def send_user_text(self, text: str):
        if not text or not text.strip():
            return {"ok": False}
        log.info("JS user text (%d chars)", len(text))
        self.app.handle_user_text(text)
        return {"ok": True}

    def dismiss_crisis_alert(self):
        log.info("JS dismissed crisis alert")
        self.app.dismiss_crisis_alert()
        return {"ok": True}


class AvatarUI:
    def __init__(self, app):
        self.app = app
        self.window: webview.Window | None = None

    def create(self):
        self.window = webview.create_window(
            CFG.window_title,
            url=WEB_INDEX,
            js_api=Bridge(self.app),
            width=CFG.ui_width,
            height=CFG.ui_height,
        )
        return self.window

    def eval_js(self, code: str):
        if self.window:
            try:
                self.window.evaluate_js(code)
            except Exception as e:
                log.warning("eval_js error: %s", e)

    def _call(self, method: str, *args):
        payload = ", ".join(json.dumps(a) for a in args)
        self.eval_js(f"window.avatar && window.avatar.{method}({payload});")

    def set_subtitle(self, text: str):
        self._call("setSubtitle", text)

    def append_message(self, message: Message):
        self._call("appendMessage", message.to_dict())

    def set_composing(self, composing: bool):
        self._call("setComposing", composing)

    def set_mouth(self, state: AvatarVisualState):
        self._call("setMouth", state.mouth_shape.value, state.is_speaking)

    def show_crisis_alert(self, severity: str, guidance: CrisisGuidance):
        self._call("showCrisisAlert", severity, guidance.to_dict())

    def hide_crisis_alert(self):
        self._call("hideCrisisAlert")

    def show_notice(self, text: str):
        self._call("showNotice", text)
