"""Session configuration and connection state for a Live API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


LIVE_API_PATH = "/ws/google.cloud.aiplatform.v1beta1.LlmBidiService/BidiGenerateContent"
DEFAULT_LOCATION = "us-central1"
DEFAULT_RESPONSE_MODALITIES = ("AUDIO",)


class ConnectionState(str, Enum):
    """Lifecycle of one ``LiveConnection`` socket.

    ``IDLE -> CONNECTING -> OPEN -> CLOSED``, with ``ERRORED`` reachable
    from ``CONNECTING`` or ``OPEN``.  Nothing moves back to ``IDLE``; a new
    ``connect()`` starts again from ``CONNECTING``.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def terminal(self) -> bool:
        return self in (ConnectionState.CLOSED, ConnectionState.ERRORED)


@dataclass
class SessionConfig:
    """Everything the next setup handshake is built from.

    ``model_uri`` and ``service_url`` are derived on every read, so a changed
    project id, model or host is always what the next session setup sends.
    """

    project_id: str
    model: str
    api_host: str
    proxy_url: str
    location: str = DEFAULT_LOCATION
    response_modalities: list[str] = field(
        default_factory=lambda: list(DEFAULT_RESPONSE_MODALITIES)
    )
    system_instructions: str = ""
    voice_name: str = ""
    voice_locale: str = ""
    enable_input_transcript: bool = False
    enable_output_transcript: bool = False
    enable_session_resumption: bool = False
    resumption_handle: str = ""
    access_token: str = field(default="", repr=False)

    @property
    def model_uri(self) -> str:
        return (
            f"projects/{self.project_id}/locations/{self.location}/"
            f"publishers/google/models/{self.model}"
        )

    @property
    def service_url(self) -> str:
        return f"wss://{self.api_host}{LIVE_API_PATH}"
