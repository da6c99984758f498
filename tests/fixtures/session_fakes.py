"""Controllable fakes for driving the session orchestrator step by step."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from anisha.core.language import Language
from anisha.core.turn import Emotion, Reply
from anisha.tts.base import Prosody


class ScriptedGenerator:
    """Stands in for ResponseGenerator; every generate() blocks until released."""

    def __init__(self, emotion: Emotion = Emotion.CALM, auto_release: bool = False, ignore_cancel: bool = False):
        self.emotion = emotion
        self.auto_release = auto_release
        self.ignore_cancel = ignore_cancel
        self.calls: List[Tuple[list, str, Language]] = []
        self._gates: List[asyncio.Event] = []

    async def generate(self, memory_window, new_user_text, language) -> Reply:
        gate = asyncio.Event()
        if self.auto_release:
            gate.set()
        self.calls.append((list(memory_window), new_user_text, language))
        self._gates.append(gate)
        try:
            await gate.wait()
        except asyncio.CancelledError:
            if not self.ignore_cancel:
                raise
            # simulate a result that arrives after the request was abandoned
            await gate.wait()
        return Reply(text=f"reply to {new_user_text}", language=language, emotion=self.emotion)

    def fallback(self, language, reason: str = "") -> Reply:
        return Reply(text="fallback", language=language, emotion=Emotion.CALM, fallback=True)

    def release(self, index: int = -1) -> None:
        self._gates[index].set()


class GatedTts:
    """Synthesizer whose playback lasts until finish() is called."""

    def __init__(self):
        self.spoken: List[Tuple[str, Prosody]] = []
        self.cancelled: List[str] = []
        self.completed: List[str] = []
        self._gates: List[asyncio.Event] = []

    async def speak(self, text: str, prosody: Prosody) -> None:
        gate = asyncio.Event()
        self._gates.append(gate)
        self.spoken.append((text, prosody))
        try:
            await gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(text)
            raise
        self.completed.append(text)

    def finish(self, index: int = -1) -> None:
        self._gates[index].set()


class SignalRecorder:
    """Orchestrator signal listener that keeps everything it hears."""

    def __init__(self):
        self.signals: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, name: str, payload: Dict[str, Any]) -> None:
        self.signals.append((name, payload))

    def named(self, name: str) -> List[Dict[str, Any]]:
        return [p for n, p in self.signals if n == name]

    @property
    def phases(self) -> list:
        return [p["to"] for p in self.named("phase_changed")]


class EventCapture:
    """Capture structured log events."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def log_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.append({"name": name, **(payload or {})})

    def get_events_by_name(self, name: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["name"] == name]


class FakePresenceSource:
    def __init__(self):
        self.callback: Optional[Callable] = None
        self.stopped = False

    def start(self, on_observation) -> None:
        self.callback = on_observation

    def stop(self) -> None:
        self.stopped = True


async def settle(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.001)
