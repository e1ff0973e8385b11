from __future__ import annotations

import pytest

from gemini_live.live.protocol import (
    CLASSIFICATION_RULES,
    ClassifiedMessage,
    MessageKind,
    classify_message,
    realtime_input_message,
    service_setup_message,
    session_setup_message,
    text_message,
)
from gemini_live.live.state import SessionConfig


def build_config(**overrides) -> SessionConfig:
    values = {
        "project_id": "demo-project",
        "model": "gemini-live-2.5-flash-native-audio",
        "api_host": "us-central1-aiplatform.googleapis.com",
        "proxy_url": "ws://localhost:8080",
        "voice_name": "Puck",
        "voice_locale": "en-US",
        "system_instructions": "Be brief.",
        "access_token": "secret-token",
    }
    values.update(overrides)
    return SessionConfig(**values)


def test_setup_complete_wins_over_other_fields() -> None:
    message = classify_message(
        {
            "setupComplete": True,
            "serverContent": {"modelTurn": {"parts": [{"text": "hi"}]}},
            "sessionResumptionUpdate": {"newHandle": "h1"},
        }
    )

    assert message.kind is MessageKind.SETUP_COMPLETE
    assert message.payload == ""


def test_empty_setup_complete_object_counts() -> None:
    assert classify_message({"setupComplete": {}}).kind is MessageKind.SETUP_COMPLETE


def test_text_part_is_classified_as_text() -> None:
    message = classify_message({"serverContent": {"modelTurn": {"parts": [{"text": "hi"}]}}})

    assert message == ClassifiedMessage(MessageKind.TEXT, "hi", None)


def test_inline_data_part_is_classified_as_audio() -> None:
    message = classify_message(
        {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"mimeType": "audio/pcm", "data": "QUJD"}}]}}}
    )

    assert message.kind is MessageKind.AUDIO
    assert message.payload == "QUJD"


def test_only_first_part_is_inspected() -> None:
    message = classify_message(
        {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": "QUJD"}}, {"text": "ignored"}]}}}
    )

    assert message.kind is MessageKind.AUDIO
    assert message.payload == "QUJD"


def test_text_takes_priority_over_inline_data_in_same_part() -> None:
    message = classify_message(
        {"serverContent": {"modelTurn": {"parts": [{"text": "words", "inlineData": {"data": "QUJD"}}]}}}
    )

    assert message.kind is MessageKind.TEXT


def test_resumption_update_carries_new_handle() -> None:
    message = classify_message({"sessionResumptionUpdate": {"newHandle": "h1", "resumable": True}})

    assert message.kind is MessageKind.RESUMPTION
    assert message.payload == "h1"


def test_input_transcription_prefers_text_then_finished() -> None:
    partial = classify_message({"serverContent": {"inputTranscription": {"text": "hel"}}})
    finished = classify_message({"serverContent": {"inputTranscription": {"finished": True}}})
    empty = classify_message({"serverContent": {"inputTranscription": {}}})

    assert partial.kind is MessageKind.INPUT_TRANSCRIPTION
    assert partial.payload == "hel"
    assert finished.kind is MessageKind.INPUT_TRANSCRIPTION
    assert finished.payload == "true"
    assert empty.kind is MessageKind.INPUT_TRANSCRIPTION
    assert empty.payload == ""


def test_output_transcription_finished_is_prefixed() -> None:
    message = classify_message({"serverContent": {"outputTranscription": {"finished": "x"}}})

    assert message.kind is MessageKind.OUTPUT_TRANSCRIPTION
    assert message.payload == "Finished: x"


def test_output_transcription_text_is_passed_through() -> None:
    message = classify_message({"serverContent": {"outputTranscription": {"text": "Hello there"}}})

    assert message.payload == "Hello there"


def test_input_transcription_is_checked_before_output() -> None:
    message = classify_message(
        {
            "serverContent": {
                "inputTranscription": {"text": "question"},
                "outputTranscription": {"text": "answer"},
            }
        }
    )

    assert message.kind is MessageKind.INPUT_TRANSCRIPTION
    assert message.payload == "question"


@pytest.mark.parametrize(
    "frame",
    [
        {},
        {"usageMetadata": {"totalTokenCount": 10}},
        {"serverContent": {"modelTurn": {"parts": []}}},
        {"serverContent": {"modelTurn": {"parts": "not-a-list"}}},
        {"serverContent": {"modelTurn": {"parts": [None, {"text": "second"}]}}},
        {"serverContent": "oops"},
        {"setupComplete": False},
        [],
        "text",
        None,
    ],
)
def test_unmatched_frames_are_unknown(frame) -> None:
    message = classify_message(frame)

    assert message.kind is MessageKind.UNKNOWN
    assert message.payload == ""


@pytest.mark.parametrize(
    "frame",
    [
        {"serverContent": {"modelTurn": {"parts": [{"text": "hi"}]}, "turnComplete": True}},
        {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"data": "QUJD"}}]}, "turnComplete": False}},
        {"serverContent": {"turnComplete": True}},
        {"setupComplete": {}, "serverContent": {"turnComplete": True}},
    ],
)
def test_turn_complete_is_copied_for_every_kind(frame) -> None:
    message = classify_message(frame)

    assert message.turn_complete == frame["serverContent"]["turnComplete"]


def test_turn_complete_is_none_when_absent() -> None:
    assert classify_message({"setupComplete": {}}).turn_complete is None


def test_snake_case_frames_are_accepted() -> None:
    message = classify_message(
        {"server_content": {"model_turn": {"parts": [{"inline_data": {"data": "QUJD"}}]}, "turn_complete": True}}
    )

    assert message.kind is MessageKind.AUDIO
    assert message.turn_complete is True


def test_each_rule_declines_frames_it_does_not_own() -> None:
    for rule in CLASSIFICATION_RULES:
        assert rule({"unrelated": 1}) is None


def test_classified_message_is_immutable() -> None:
    message = classify_message({"setupComplete": {}})

    with pytest.raises(AttributeError):
        message.payload = "changed"  # type: ignore[misc]


def test_service_setup_message_carries_token_and_service_url() -> None:
    frame = service_setup_message(build_config())

    assert frame == {
        "bearer_token": "secret-token",
        "service_url": (
            "wss://us-central1-aiplatform.googleapis.com"
            "/ws/google.cloud.aiplatform.v1beta1.LlmBidiService/BidiGenerateContent"
        ),
    }


def test_session_setup_omits_disabled_features() -> None:
    frame = session_setup_message(build_config())

    assert frame == {
        "setup": {
            "model": (
                "projects/demo-project/locations/us-central1/publishers/google/models/"
                "gemini-live-2.5-flash-native-audio"
            ),
            "generation_config": {
                "response_modalities": ["AUDIO"],
                "speech_config": {
                    "voice_config": {"prebuilt_voice_config": {"voice_name": "Puck"}},
                    "language_code": "en-US",
                },
            },
            "system_instruction": {"parts": [{"text": "Be brief."}]},
        }
    }


def test_session_setup_includes_enabled_features() -> None:
    config = build_config(
        enable_input_transcript=True,
        enable_output_transcript=True,
        enable_session_resumption=True,
        resumption_handle="h1",
    )

    setup = session_setup_message(config)["setup"]

    assert setup["input_audio_transcription"] == {}
    assert setup["output_audio_transcription"] == {}
    assert setup["session_resumption"] == {"handle": "h1"}


def test_session_setup_flags_are_independent() -> None:
    setup = session_setup_message(build_config(enable_output_transcript=True))["setup"]

    assert "input_audio_transcription" not in setup
    assert setup["output_audio_transcription"] == {}
    assert "session_resumption" not in setup


def test_text_message_is_a_single_complete_user_turn() -> None:
    assert text_message("hello") == {
        "client_content": {
            "turns": [{"role": "user", "parts": [{"text": "hello"}]}],
            "turn_complete": True,
        }
    }


def test_realtime_input_message_wraps_one_chunk() -> None:
    assert realtime_input_message("AAAA", "audio/pcm") == {
        "realtime_input": {"media_chunks": [{"mime_type": "audio/pcm", "data": "AAAA"}]}
    }
