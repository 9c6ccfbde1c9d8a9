"""Tests for SpeechOutputDriver and the Piper volume helper."""

from __future__ import annotations

import asyncio
import threading

import numpy as np

from mindbloom.models import SpeechCompleted, SpeechErrored
from mindbloom.speech_output import SpeechOptions, SpeechOutputDriver
from mindbloom.tts_piper import scale_volume

from conftest import FakeEngine


def run(coro):
    return asyncio.run(coro)


class TestSpeak:
    def test_completed(self, engine):
        transitions = []
        driver = SpeechOutputDriver(engine, on_transition=transitions.append)
        assert run(driver.speak("hello", SpeechOptions(rate=1.0))) == SpeechCompleted()
        assert transitions == ["started", "completed"]
        assert engine.spoken == ["hello"]
        assert not driver.is_speaking

    def test_engine_error_is_reported_not_raised(self):
        transitions = []
        driver = SpeechOutputDriver(FakeEngine(error=RuntimeError("no output device")),
                                    on_transition=transitions.append)
        result = run(driver.speak("hello"))
        assert result == SpeechErrored("no output device")
        assert transitions == ["started", "errored"]
        assert not driver.is_speaking

    def test_no_engine_fails_fast(self):
        result = run(SpeechOutputDriver(None).speak("hello"))
        assert isinstance(result, SpeechErrored)
        assert "not supported" in result.reason

    def test_latest_wins(self):
        class Blocking:
            def __init__(self):
                self.started = threading.Event()

            def play(self, text, options, stop):
                if text == "first":
                    self.started.set()
                    stop.wait(2)

        engine = Blocking()
        driver = SpeechOutputDriver(engine)

        async def scenario():
            first = asyncio.create_task(driver.speak("first"))
            while not engine.started.is_set():
                await asyncio.sleep(0.01)
            second = await driver.speak("second")
            return await first, second

        first, second = run(scenario())
        assert first == SpeechErrored("interrupted")
        assert second == SpeechCompleted()
        assert not driver.is_speaking

    def test_cancel_interrupts(self):
        driver = SpeechOutputDriver(FakeEngine(delay=2))

        async def scenario():
            task = asyncio.create_task(driver.speak("long story"))
            while not driver.is_speaking:
                await asyncio.sleep(0.01)
            driver.cancel()
            return await task

        assert run(scenario()) == SpeechErrored("interrupted")


class TestScaleVolume:
    def test_full_volume_untouched(self):
        pcm = np.array([1000, -1000], dtype=np.int16)
        assert scale_volume(pcm, 1.0) is pcm

    def test_half_volume(self):
        pcm = np.array([1000, -1000, 32767], dtype=np.int16)
        out = scale_volume(pcm, 0.5)
        assert out.dtype == np.int16
        assert out.tolist() == [500, -500, 16383]
