"""Message protocol for the Gemini Live proxy websocket.

Outbound, this module builds the four frame shapes the client sends: the
transport setup consumed by the proxy, the session setup, a user text turn
and a realtime media chunk.  Inbound, ``classify_message`` reduces one
decoded server frame to a ``ClassifiedMessage`` with a single ``kind``.

Classification is an ordered list of rules and the first rule that matches
wins.  Every field read is tolerant: a missing or oddly typed field simply
fails to match, and a frame that matches nothing is ``UNKNOWN``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ..schemas import (
    AudioTranscriptionConfig,
    ClientContent,
    ClientContentMessage,
    Content,
    GenerationConfig,
    MediaChunk,
    PrebuiltVoiceConfig,
    RealtimeInput,
    RealtimeInputMessage,
    ServiceSetupMessage,
    SessionResumptionConfig,
    SessionSetupMessage,
    Setup,
    SpeechConfig,
    SystemInstruction,
    TextPart,
    VoiceConfig,
)
from .state import SessionConfig


AUDIO_MIME_TYPE = "audio/pcm"
IMAGE_MIME_TYPE = "image/jpeg"
FINISHED_PREFIX = "Finished: "


class MessageKind(str, Enum):
    SETUP_COMPLETE = "SETUP_COMPLETE"
    TEXT = "TEXT"
    AUDIO = "AUDIO"
    RESUMPTION = "RESUMPTION"
    INPUT_TRANSCRIPTION = "INPUT_TRANSCRIPTION"
    OUTPUT_TRANSCRIPTION = "OUTPUT_TRANSCRIPTION"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ClassifiedMessage:
    """One inbound frame reduced to a kind and its payload.

    ``payload`` is the model text, the base64 audio blob, the resumption
    handle or a transcript fragment depending on ``kind``; it is empty when
    the kind carries nothing.  ``turn_complete`` is the server's
    ``turnComplete`` value as sent, or ``None`` when the frame has none.
    """

    kind: MessageKind
    payload: str = ""
    turn_complete: Any = None


def _read_field(payload: Any, snake_name: str) -> Any:
    """Read either snake_case or lowerCamelCase from a dict."""
    if not isinstance(payload, dict):
        return None
    if snake_name in payload:
        return payload[snake_name]
    parts = snake_name.split("_")
    camel_name = parts[0] + "".join(part.capitalize() for part in parts[1:])
    return payload.get(camel_name)


def _is_set(value: Any) -> bool:
    # Empty objects count: the service sends "setupComplete": {}.
    if value is None or value is False:
        return False
    if isinstance(value, (str, int, float)) and not value:
        return False
    return True


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _first_part(frame: dict[str, Any]) -> dict[str, Any] | None:
    model_turn = _read_field(_read_field(frame, "server_content"), "model_turn")
    parts = _read_field(model_turn, "parts")
    if not isinstance(parts, list) or not parts:
        return None
    first = parts[0]
    return first if isinstance(first, dict) else None


def _match_setup_complete(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    if _is_set(_read_field(frame, "setup_complete")):
        return MessageKind.SETUP_COMPLETE, ""
    return None


def _match_text(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    text = _read_field(_first_part(frame), "text")
    if _is_set(text):
        return MessageKind.TEXT, _as_text(text)
    return None


def _match_audio(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    inline_data = _read_field(_first_part(frame), "inline_data")
    if _is_set(inline_data):
        return MessageKind.AUDIO, _as_text(_read_field(inline_data, "data"))
    return None


def _match_resumption(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    update = _read_field(frame, "session_resumption_update")
    if _is_set(update):
        return MessageKind.RESUMPTION, _as_text(_read_field(update, "new_handle"))
    return None


def _match_input_transcription(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    transcription = _read_field(_read_field(frame, "server_content"), "input_transcription")
    if not _is_set(transcription):
        return None
    text = _read_field(transcription, "text")
    finished = _read_field(transcription, "finished")
    if _is_set(text):
        return MessageKind.INPUT_TRANSCRIPTION, _as_text(text)
    if _is_set(finished):
        return MessageKind.INPUT_TRANSCRIPTION, _as_text(finished)
    return MessageKind.INPUT_TRANSCRIPTION, ""


def _match_output_transcription(frame: dict[str, Any]) -> tuple[MessageKind, str] | None:
    transcription = _read_field(_read_field(frame, "server_content"), "output_transcription")
    if not _is_set(transcription):
        return None
    text = _read_field(transcription, "text")
    finished = _read_field(transcription, "finished")
    if _is_set(text):
        return MessageKind.OUTPUT_TRANSCRIPTION, _as_text(text)
    if _is_set(finished):
        return MessageKind.OUTPUT_TRANSCRIPTION, FINISHED_PREFIX + _as_text(finished)
    return MessageKind.OUTPUT_TRANSCRIPTION, ""


CLASSIFICATION_RULES: tuple[Callable[[dict[str, Any]], tuple[MessageKind, str] | None], ...] = (
    _match_setup_complete,
    _match_text,
    _match_audio,
    _match_resumption,
    _match_input_transcription,
    _match_output_transcription,
)


def classify_message(frame: Any) -> ClassifiedMessage:
    """Classify one decoded server frame.  Never raises."""
    turn_complete = _read_field(_read_field(frame, "server_content"), "turn_complete")
    if not isinstance(frame, dict):
        return ClassifiedMessage(MessageKind.UNKNOWN, "", turn_complete)
    for rule in CLASSIFICATION_RULES:
        match = rule(frame)
        if match is not None:
            kind, payload = match
            return ClassifiedMessage(kind, payload, turn_complete)
    return ClassifiedMessage(MessageKind.UNKNOWN, "", turn_complete)


def service_setup_message(config: SessionConfig) -> dict[str, Any]:
    return ServiceSetupMessage(
        bearer_token=config.access_token,
        service_url=config.service_url,
    ).model_dump(exclude_none=True)


def session_setup_message(config: SessionConfig) -> dict[str, Any]:
    """Build the ``setup`` frame; disabled features leave their key out."""
    transcription = AudioTranscriptionConfig()
    setup = Setup(
        model=config.model_uri,
        generation_config=GenerationConfig(
            response_modalities=list(config.response_modalities),
            speech_config=SpeechConfig(
                voice_config=VoiceConfig(
                    prebuilt_voice_config=PrebuiltVoiceConfig(voice_name=config.voice_name),
                ),
                language_code=config.voice_locale,
            ),
        ),
        system_instruction=SystemInstruction(parts=[TextPart(text=config.system_instructions)]),
        input_audio_transcription=transcription if config.enable_input_transcript else None,
        output_audio_transcription=transcription if config.enable_output_transcript else None,
        session_resumption=(
            SessionResumptionConfig(handle=config.resumption_handle)
            if config.enable_session_resumption
            else None
        ),
    )
    return SessionSetupMessage(setup=setup).model_dump(exclude_none=True)


def text_message(text: str) -> dict[str, Any]:
    return ClientContentMessage(
        client_content=ClientContent(
            turns=[Content(role="user", parts=[TextPart(text=text)])],
            turn_complete=True,
        )
    ).model_dump(exclude_none=True)


def realtime_input_message(data: str, mime_type: str) -> dict[str, Any]:
    return RealtimeInputMessage(
        realtime_input=RealtimeInput(media_chunks=[MediaChunk(mime_type=mime_type, data=data)])
    ).model_dump(exclude_none=True)
