"""Shared fakes for the conversation, speech and storage tests."""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager

import numpy as np
import pytest

from mindbloom.models import ReplyOk, UserProfile
from mindbloom.session import ConversationSession
from mindbloom.speech_output import SpeechOptions, SpeechOutputDriver


class FakeReplyService:
    def __init__(self, replies=None, greeting=None, error=None, gate=None):
        self.replies = list(replies or [])
        self.greeting_result = greeting if greeting is not None else ReplyOk("Hi there, welcome back!")
        self.error = error
        self.gate = gate
        self.calls = []
        self.greeting_calls = 0

    def reply(self, text, history=None):
        self.calls.append((text, history))
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return ReplyOk("That sounds like a lot. Tell me more.")

    def greeting(self):
        self.greeting_calls += 1
        if self.error is not None:
            raise self.error
        return self.greeting_result


class FakeEngine:
    def __init__(self, error=None, delay=0.0):
        self.error = error
        self.delay = delay
        self.spoken = []

    def play(self, text, options, stop):
        self.spoken.append(text)
        if self.delay:
            stop.wait(self.delay)
        if self.error is not None:
            raise self.error


class FakeStream:
    def __init__(self, fail_after=None):
        self.reads = 0
        self.fail_after = fail_after

    def read(self, frames):
        self.reads += 1
        if self.fail_after is not None and self.reads > self.fail_after:
            raise OSError("device unplugged")
        return np.zeros((frames, 1), dtype=np.int16), False


class FakeMicrophone:
    """Stands in for ``open_microphone``; remembers whether the stream was released."""

    def __init__(self, fail_after=None):
        self.stream = FakeStream(fail_after)
        self.opened = 0
        self.closed = 0

    @contextmanager
    def __call__(self, samplerate, channels=1):
        self.opened += 1
        try:
            yield self.stream
        finally:
            self.closed += 1


@pytest.fixture()
def engine():
    return FakeEngine()


@pytest.fixture()
def replies():
    return FakeReplyService()


@pytest.fixture()
def user():
    return UserProfile.new("sam")


@pytest.fixture()
def make_session(engine, replies, user):
    def _make(reply_service=None, speech_output=None, **kwargs):
        kwargs.setdefault("speech_options", SpeechOptions())
        kwargs.setdefault("reply_timeout_s", 2.0)
        kwargs.setdefault("rng", random.Random(7))
        kwargs.setdefault("user", user)
        return ConversationSession(
            reply_service or replies,
            speech_output or SpeechOutputDriver(engine),
            **kwargs,
        )
    return _make


@pytest.fixture()
def session(make_session):
    return make_session()


@pytest.fixture()
def gate():
    return threading.Event()
