import pytest

from live_interviewer.adapters import RealtimeVoiceAdapter, StreamingTextAdapter, create_adapter
from live_interviewer.config import Settings
from live_interviewer.session.errors import ConfigurationError
from live_interviewer.session.schemas import Provider, SessionConfig


def _settings() -> Settings:
    return Settings(_env_file=None, gemini_api_key="", text_api_key="", text_model="")


def test_realtime_voice_provider_builds_voice_adapter():
    adapter = create_adapter(SessionConfig(api_key="k"), _settings())

    assert isinstance(adapter, RealtimeVoiceAdapter)
    assert adapter.requires_microphone and adapter.produces_audio


def test_streaming_text_provider_builds_text_adapter():
    config = SessionConfig(provider=Provider.STREAMING_TEXT, api_key="k", model="m")

    adapter = create_adapter(config, _settings())

    assert isinstance(adapter, StreamingTextAdapter)
    assert not adapter.requires_microphone


@pytest.mark.parametrize("provider", list(Provider))
def test_missing_credentials_are_rejected(provider):
    with pytest.raises(ConfigurationError):
        create_adapter(SessionConfig(provider=provider), _settings())


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.live_voice == "Zephyr"
    assert settings.connect_timeout_s == 15.0
    assert settings.text_endpoint.startswith("https://ark.cn-beijing.volces.com/api/v3")
