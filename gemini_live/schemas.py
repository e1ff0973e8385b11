"""Pydantic schemas for frames sent to the Live API proxy.

Every outbound frame is built from one of these models and dumped with
``exclude_none=True``.  Optional setup sections are declared as
``Optional[...] = None`` so a disabled feature disappears from the frame
entirely instead of being sent as ``null``.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class TextPart(BaseModel):
    """A single text part of a turn or system instruction."""

    text: str


class ServiceSetupMessage(BaseModel):
    """First frame on a new socket; tells the proxy where to connect upstream."""

    bearer_token: str
    service_url: str


class PrebuiltVoiceConfig(BaseModel):
    voice_name: str


class VoiceConfig(BaseModel):
    prebuilt_voice_config: PrebuiltVoiceConfig


class SpeechConfig(BaseModel):
    voice_config: VoiceConfig
    language_code: str


class GenerationConfig(BaseModel):
    response_modalities: List[str] = Field(default_factory=lambda: ["AUDIO"])
    speech_config: SpeechConfig


class SystemInstruction(BaseModel):
    parts: List[TextPart]


class AudioTranscriptionConfig(BaseModel):
    """Empty marker object; its presence switches transcription on."""


class SessionResumptionConfig(BaseModel):
    handle: str


class Setup(BaseModel):
    model: str = Field(..., description="Full model resource name")
    generation_config: GenerationConfig
    system_instruction: SystemInstruction
    input_audio_transcription: Optional[AudioTranscriptionConfig] = None
    output_audio_transcription: Optional[AudioTranscriptionConfig] = None
    session_resumption: Optional[SessionResumptionConfig] = None


class SessionSetupMessage(BaseModel):
    """Second frame on a new socket; configures the model session."""

    setup: Setup


class Content(BaseModel):
    role: str = "user"
    parts: List[TextPart]


class ClientContent(BaseModel):
    turns: List[Content]
    turn_complete: bool = True


class ClientContentMessage(BaseModel):
    """A complete user text turn."""

    client_content: ClientContent


class MediaChunk(BaseModel):
    mime_type: str
    data: str = Field(..., description="Base64 encoded media bytes")


class RealtimeInput(BaseModel):
    media_chunks: List[MediaChunk]


class RealtimeInputMessage(BaseModel):
    """A streamed media chunk (audio or image)."""

    realtime_input: RealtimeInput
