import asyncio
import base64
from types import SimpleNamespace

import pytest
from google.genai import types

from live_interviewer.adapters.realtime_voice import RealtimeVoiceAdapter
from live_interviewer.audio.pcm import INPUT_MIME_TYPE
from live_interviewer.config import Settings
from live_interviewer.prompts import OPENING_LINE
from live_interviewer.session.errors import ConfigurationError, TransportError
from live_interviewer.session.schemas import SessionConfig


def _server_content(**fields) -> SimpleNamespace:
    return SimpleNamespace(server_content=SimpleNamespace(**fields))


def _audio_part(data: bytes) -> SimpleNamespace:
    return SimpleNamespace(inline_data=SimpleNamespace(data=data), text=None)


def _text_part(text: str, thought: bool = False) -> SimpleNamespace:
    return SimpleNamespace(inline_data=None, text=text, thought=thought)


class FakeLiveSession:
    """Scripted live session; `receive()` ends a round at turn_complete, like the real client."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.realtime_inputs: list[dict] = []
        self.client_contents: list[dict] = []

    async def receive(self):
        while True:
            item = await self.inbound.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item
            if getattr(item.server_content, "turn_complete", False):
                return

    async def send_realtime_input(self, **kwargs) -> None:
        self.realtime_inputs.append(kwargs)

    async def send_client_content(self, **kwargs) -> None:
        self.client_contents.append(kwargs)


class FakeConnection:
    def __init__(self, session: FakeLiveSession, fail: Exception | None = None) -> None:
        self.session = session
        self.fail = fail
        self.exited = 0

    async def __aenter__(self):
        if self.fail is not None:
            raise self.fail
        return self.session

    async def __aexit__(self, *exc) -> None:
        self.exited += 1


class FakeClient:
    def __init__(self, connection: FakeConnection) -> None:
        self.connect_calls: list[dict] = []
        self.connection = connection
        self.aio = SimpleNamespace(live=SimpleNamespace(connect=self._connect))

    def _connect(self, **kwargs):
        self.connect_calls.append(kwargs)
        return self.connection


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{"gemini_api_key": "", **overrides})


def _adapter(session: FakeLiveSession, fail: Exception | None = None, **settings):
    client = FakeClient(FakeConnection(session, fail))
    keys: list[str] = []

    def factory(api_key: str) -> FakeClient:
        keys.append(api_key)
        return client

    return RealtimeVoiceAdapter(_settings(**settings), client_factory=factory), client, keys


async def _next_events(adapter, count: int, timeout: float = 1.0):
    events = []

    async def collect() -> None:
        async for event in adapter.events():
            events.append(event)
            if len(events) == count or event.is_terminal:
                return

    await asyncio.wait_for(collect(), timeout=timeout)
    return events


def test_demux_flushes_user_speech_before_ai_output():
    adapter, _, _ = _adapter(FakeLiveSession())

    assert adapter.demux(_server_content(input_transcription=SimpleNamespace(text="I used "))) == []
    assert adapter.demux(_server_content(input_transcription=SimpleNamespace(text="Redis."))) == []

    events = adapter.demux(
        _server_content(
            model_turn=SimpleNamespace(parts=[_audio_part(b"\x01\x00"), _text_part("Why Redis?")]),
            output_transcription=SimpleNamespace(text="Why Redis?"),
        )
    )

    assert events[0].user_transcript == "I used Redis."
    assert events[1].audio_chunk == b"\x01\x00"
    assert [e.text_fragment for e in events[2:]] == ["Why Redis?", "Why Redis?"]


def test_demux_skips_thought_parts():
    adapter, _, _ = _adapter(FakeLiveSession())

    events = adapter.demux(
        _server_content(model_turn=SimpleNamespace(parts=[_text_part("planning...", thought=True)]))
    )

    assert events == []


def test_demux_turn_complete_flushes_pending_user_speech():
    adapter, _, _ = _adapter(FakeLiveSession())
    adapter.demux(_server_content(input_transcription=SimpleNamespace(text="Done.")))

    events = adapter.demux(_server_content(turn_complete=True))

    assert events[0].user_transcript == "Done."
    assert events[1].turn_complete


def test_demux_reports_interruption():
    adapter, _, _ = _adapter(FakeLiveSession())

    events = adapter.demux(_server_content(interrupted=True))

    assert len(events) == 1
    assert events[0].interrupted


def test_demux_ignores_messages_without_server_content():
    adapter, _, _ = _adapter(FakeLiveSession())

    assert adapter.demux(SimpleNamespace(server_content=None, setup_complete=True)) == []


def test_check_config_requires_a_key():
    adapter, _, _ = _adapter(FakeLiveSession())

    with pytest.raises(ConfigurationError):
        adapter.check_config(SessionConfig(api_key=""))


def test_connect_config_requests_audio_voice_and_transcripts():
    adapter, _, _ = _adapter(FakeLiveSession())

    config = adapter.build_connect_config("Be an interviewer.")

    assert config.response_modalities == [types.Modality.AUDIO]
    assert config.speech_config.voice_config.prebuilt_voice_config.voice_name == "Zephyr"
    assert config.input_audio_transcription is not None
    assert config.output_audio_transcription is not None
    assert config.system_instruction.parts[0].text == "Be an interviewer."


@pytest.mark.asyncio
async def test_open_uses_settings_key_and_greets():
    session = FakeLiveSession()
    adapter, client, keys = _adapter(session, gemini_api_key="env-key")

    await adapter.open(SessionConfig(), "SYSTEM")
    await adapter.greet()
    events = await _next_events(adapter, 1)
    await adapter.close()

    assert keys == ["env-key"]
    assert client.connect_calls[0]["model"] == "gemini-2.5-flash-native-audio-preview-09-2025"
    assert events[0].opened
    assert session.realtime_inputs == [{"text": OPENING_LINE}]


@pytest.mark.asyncio
async def test_send_audio_frame_sends_pcm_blob():
    session = FakeLiveSession()
    adapter, _, _ = _adapter(session)
    await adapter.open(SessionConfig(api_key="k"), "SYSTEM")

    await adapter.send_audio_frame(base64.b64encode(b"\x00\x01\x02\x03").decode("ascii"))
    await adapter.close()

    blob = session.realtime_inputs[0]["media"]
    assert blob.data == b"\x00\x01\x02\x03"
    assert blob.mime_type == INPUT_MIME_TYPE


@pytest.mark.asyncio
async def test_send_text_is_a_complete_user_turn():
    session = FakeLiveSession()
    adapter, _, _ = _adapter(session)
    await adapter.open(SessionConfig(api_key="k"), "SYSTEM")

    await adapter.send_text("My answer")
    await adapter.close()

    sent = session.client_contents[0]
    assert sent["turn_complete"] is True
    assert sent["turns"].role == "user"
    assert sent["turns"].parts[0].text == "My answer"


@pytest.mark.asyncio
async def test_receive_loop_spans_turns_until_remote_close():
    session = FakeLiveSession()
    adapter, _, _ = _adapter(session)
    await adapter.open(SessionConfig(api_key="k"), "SYSTEM")

    session.inbound.put_nowait(_server_content(output_transcription=SimpleNamespace(text="Hi")))
    session.inbound.put_nowait(_server_content(turn_complete=True))
    session.inbound.put_nowait(_server_content(output_transcription=SimpleNamespace(text="Next")))
    session.inbound.put_nowait(None)
    session.inbound.put_nowait(None)

    events = await _next_events(adapter, 10)
    await adapter.close()

    assert events[0].opened
    assert [e.text_fragment for e in events if e.text_fragment] == ["Hi", "Next"]
    assert events[-1].closed


@pytest.mark.asyncio
async def test_receive_failure_becomes_error_event():
    session = FakeLiveSession()
    adapter, _, _ = _adapter(session)
    await adapter.open(SessionConfig(api_key="k"), "SYSTEM")

    session.inbound.put_nowait(RuntimeError("socket reset"))
    events = await _next_events(adapter, 10)
    await adapter.close()

    assert events[-1].error == "socket reset"


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error():
    adapter, _, _ = _adapter(FakeLiveSession(), fail=OSError("unreachable"))

    with pytest.raises(TransportError, match="unreachable"):
        await adapter.open(SessionConfig(api_key="k"), "SYSTEM")


@pytest.mark.asyncio
async def test_close_is_idempotent_and_rejects_later_sends():
    session = FakeLiveSession()
    adapter, client, _ = _adapter(session)
    await adapter.open(SessionConfig(api_key="k"), "SYSTEM")

    await adapter.close()
    await adapter.close()

    assert client.connection.exited == 1
    with pytest.raises(TransportError):
        await adapter.send_text("late")
