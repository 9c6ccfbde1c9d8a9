"""Tests for the ConversationSession turn-taking state machine."""

from __future__ import annotations

import asyncio

import pytest
import requests

from mindbloom.models import EmotionType, ReplyErr, ReplyOk, Severity
from mindbloom.session import DEFAULT_GREETING, FALLBACK_REPLIES
from mindbloom.speech_output import SpeechOutputDriver

from conftest import FakeEngine, FakeReplyService


def run(coro):
    return asyncio.run(coro)


class TestSubmitUserMessage:
    def test_turn_appends_user_then_assistant(self, session, engine):
        assistant = run(session.submit_user_message("hello"))
        msgs = session.messages
        assert len(msgs) == 2
        assert msgs[0].author_is_user and msgs[0].text == "hello"
        assert not msgs[1].author_is_user
        assert msgs[1] is assistant
        assert assistant.text == "That sounds like a lot. Tell me more."
        assert assistant.emotion_tag is EmotionType.ENCOURAGING
        assert not session.is_composing
        assert engine.spoken == [assistant.text]

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_blank_is_noop(self, session, replies, text):
        assert run(session.submit_user_message(text)) is None
        assert session.messages == ()
        assert not session.is_composing
        assert replies.calls == []

    def test_text_preserved_exactly(self, session):
        text = "  I had a weird day…\n  "
        run(session.submit_user_message(text))
        assert session.messages[0].text == text

    @pytest.mark.parametrize("service", [
        FakeReplyService(error=requests.ConnectionError("offline")),
        FakeReplyService(replies=[ReplyErr("HTTP 500")]),
        FakeReplyService(replies=[ReplyOk("")]),
        FakeReplyService(replies=[ReplyOk("   ")]),
    ])
    def test_failure_or_empty_uses_fallback(self, make_session, service):
        session = make_session(reply_service=service)
        assistant = run(session.submit_user_message("hello"))
        assert len(session.messages) == 2
        assert assistant.text in FALLBACK_REPLIES
        assert not session.is_composing

    def test_timeout_uses_fallback(self, make_session, gate):
        session = make_session(reply_service=FakeReplyService(gate=gate), reply_timeout_s=0.05)

        async def scenario():
            try:
                return await session.submit_user_message("hello")
            finally:
                # let the worker thread finish so the loop can shut down
                gate.set()

        assistant = run(scenario())
        assert assistant.text in FALLBACK_REPLIES
        assert not session.is_composing

    def test_zero_timeout_kept(self, make_session):
        assert make_session(reply_timeout_s=0).reply_timeout_s == 0

    def test_second_submit_while_composing_is_ignored(self, make_session, gate):
        service = FakeReplyService(gate=gate)
        session = make_session(reply_service=service)

        async def scenario():
            first = asyncio.create_task(session.submit_user_message("first"))
            while not session.is_composing:
                await asyncio.sleep(0.01)
            second = await session.submit_user_message("second")
            gate.set()
            await first
            return second

        assert run(scenario()) is None
        authors = [m.author_is_user for m in session.messages]
        assert authors == [True, False]
        assert [c[0] for c in service.calls] == ["first"]

    def test_alternating_log_over_several_turns(self, session):
        async def scenario():
            for text in ("one", "two", "three"):
                await session.submit_user_message(text)
        run(scenario())
        authors = [m.author_is_user for m in session.messages]
        assert authors == [True, False] * 3

    def test_history_excludes_current_message(self, session, replies):
        async def scenario():
            await session.submit_user_message("one")
            await session.submit_user_message("two")
        run(scenario())
        _, history = replies.calls[1]
        assert history[0] == {"role": "user", "content": "one"}
        assert history[-1]["role"] == "assistant"
        assert all(h["content"] != "two" for h in history)

    def test_user_message_gets_emotion_tag(self, session):
        run(session.submit_user_message("I'm so happy today"))
        assert session.messages[0].emotion_tag is EmotionType.HAPPY


class TestCrisisAlerts:
    def test_alert_set_and_reply_still_fetched(self, session, replies):
        run(session.submit_user_message("I want to kill myself"))
        alert = session.last_crisis_alert
        assert alert.severity is Severity.CRITICAL
        assert alert.matched_keywords == frozenset({"kill myself"})
        assert len(replies.calls) == 1
        assert len(session.messages) == 2

    def test_alert_set_before_fetch(self, make_session):
        seen = []

        class Recording(FakeReplyService):
            def reply(self, text, history=None):
                seen.append(session.last_crisis_alert)
                return super().reply(text, history)

        session = make_session(reply_service=Recording())
        run(session.submit_user_message("I feel hopeless"))
        assert seen[0] is not None and seen[0].severity is Severity.HIGH

    def test_dismiss_then_new_alert(self, session):
        async def scenario():
            await session.submit_user_message("I feel hopeless")
            session.dismiss_crisis_alert()
            assert session.last_crisis_alert is None
            await session.submit_user_message("so lonely")
        run(scenario())
        assert session.last_crisis_alert.severity is Severity.MEDIUM

    def test_new_alert_overwrites_undismissed(self, session):
        async def scenario():
            await session.submit_user_message("I want to die")
            await session.submit_user_message("just tired")
        run(scenario())
        assert session.last_crisis_alert.severity is Severity.LOW

    def test_clean_message_keeps_current_alert(self, session):
        async def scenario():
            await session.submit_user_message("I feel worthless")
            await session.submit_user_message("what's for dinner")
        run(scenario())
        assert session.last_crisis_alert.severity is Severity.HIGH


class TestSpeakingFlags:
    def test_flags_set_during_playback_and_cleared_after(self, make_session):
        snapshots = []
        session = make_session(speech_output=SpeechOutputDriver(FakeEngine(delay=0.05)))
        session.subscribe(lambda s: snapshots.append(
            (len(s.messages), s.is_composing, s.is_avatar_speaking, s.current_utterance_text)))
        run(session.submit_user_message("hello"))

        speaking = [snap for snap in snapshots if snap[2]]
        assert speaking
        # speaking only after the assistant message exists and composing ended
        assert all(n == 2 and not composing and text for n, composing, _, text in speaking)
        assert not session.is_avatar_speaking
        assert session.current_utterance_text == ""

    def test_playback_error_still_resets(self, make_session):
        session = make_session(speech_output=SpeechOutputDriver(FakeEngine(error=RuntimeError("audio device busy"))))
        run(session.submit_user_message("hello"))
        assert not session.is_avatar_speaking
        assert session.current_utterance_text == ""
        assert len(session.messages) == 2

    def test_driver_raising_still_resets(self, make_session):
        class Exploding:
            async def speak(self, text, options=None):
                raise RuntimeError("boom")

        session = make_session(speech_output=Exploding())
        run(session.submit_user_message("hello"))
        assert not session.is_avatar_speaking
        assert session.current_utterance_text == ""

    def test_no_engine_still_resets(self, make_session):
        session = make_session(speech_output=SpeechOutputDriver(None))
        run(session.submit_user_message("hello"))
        assert not session.is_avatar_speaking

    def test_newer_utterance_keeps_flags(self, make_session):
        driver = SpeechOutputDriver(FakeEngine(delay=0.5))
        session = make_session(speech_output=driver)

        async def scenario():
            first = asyncio.create_task(session.submit_user_message("one"))
            while not session.is_avatar_speaking:
                await asyncio.sleep(0.01)
            second = asyncio.create_task(session.submit_user_message("two"))
            await first
            # first turn was interrupted but the second owns the avatar now
            while not driver.is_speaking:
                await asyncio.sleep(0.01)
            assert session.is_avatar_speaking
            driver.cancel()
            await second

        run(scenario())
        assert not session.is_avatar_speaking
        assert len(session.messages) == 4


class TestGreeting:
    def test_greeting_appended_once(self, session, replies):
        async def scenario():
            await session.show_initial_greeting()
            await session.show_initial_greeting()
        run(scenario())
        assert len(session.messages) == 1
        assert session.messages[0].text == "Hi there, welcome back!"
        assert session.messages[0].emotion_tag is EmotionType.WELCOMING
        assert session.has_greeted
        assert replies.greeting_calls == 1
        assert not session.is_avatar_speaking

    def test_concurrent_greetings_append_once(self, session):
        async def scenario():
            await asyncio.gather(session.show_initial_greeting(), session.show_initial_greeting())
        run(scenario())
        assert len(session.messages) == 1

    @pytest.mark.parametrize("service", [
        FakeReplyService(greeting=ReplyOk("")),
        FakeReplyService(greeting=ReplyErr("unreachable")),
        FakeReplyService(error=requests.Timeout("slow")),
    ])
    def test_greeting_fallback(self, make_session, service):
        session = make_session(reply_service=service)
        run(session.show_initial_greeting())
        assert session.messages[0].text == DEFAULT_GREETING
        assert session.has_greeted

    def test_no_user_no_greeting(self, make_session):
        session = make_session(user=None)
        assert run(session.show_initial_greeting()) is None
        assert session.messages == ()
        assert not session.has_greeted


class TestListeners:
    def test_unsubscribe(self, session):
        calls = []
        unsubscribe = session.subscribe(lambda s: calls.append(1))
        session.dismiss_crisis_alert()
        unsubscribe()
        session.dismiss_crisis_alert()
        assert calls == [1]

    def test_failing_listener_does_not_break_turn(self, session):
        session.subscribe(lambda s: 1 / 0)
        run(session.submit_user_message("hello"))
        assert len(session.messages) == 2

