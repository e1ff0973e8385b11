"""Websocket connection to the Gemini Live proxy.

``LiveConnection`` owns one socket at a time.  Opening it sends the proxy
transport setup followed by the model session setup; afterwards a reader
task classifies every inbound frame and hands it to the caller.  There is
no retry: when the socket ends the caller hears about it once through
``on_error_message`` and may call ``connect`` again.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..settings import Settings
from .protocol import (
    AUDIO_MIME_TYPE,
    IMAGE_MIME_TYPE,
    ClassifiedMessage,
    classify_message,
    realtime_input_message,
    service_setup_message,
    session_setup_message,
    text_message,
)
from .state import DEFAULT_LOCATION, ConnectionState, SessionConfig


logger = logging.getLogger("gemini-live")

CONNECTION_CLOSED_MESSAGE = "Connection closed"
CONNECTION_ERROR_MESSAGE = "Connection error"
MALFORMED_MESSAGE = "Malformed message"
MAX_FRAME_BYTES = 16 * 1024 * 1024

ResponseCallback = Callable[[ClassifiedMessage], Union[None, Awaitable[None]]]
StartedCallback = Callable[[], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[str], Union[None, Awaitable[None]]]


class LiveConnectionError(RuntimeError):
    """Raised when the connection is used in a state that cannot serve the call."""


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _ignore(*_args: Any) -> None:
    return None


class LiveConnection:
    """Client side of one Gemini Live session through the proxy."""

    def __init__(
        self,
        proxy_url: str,
        project_id: str,
        model: str,
        api_host: str,
        *,
        location: str = DEFAULT_LOCATION,
        on_receive_response: ResponseCallback | None = None,
        on_connection_started: StartedCallback | None = None,
        on_error_message: ErrorCallback | None = None,
    ) -> None:
        self.config = SessionConfig(
            project_id=project_id,
            model=model,
            api_host=api_host,
            proxy_url=proxy_url,
            location=location,
        )
        self.on_receive_response: ResponseCallback = on_receive_response or _ignore
        self.on_connection_started: StartedCallback = on_connection_started or _ignore
        self.on_error_message: ErrorCallback = on_error_message or _ignore

        self._state = ConnectionState.IDLE
        self._websocket: Any | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._generation = 0

    @classmethod
    def from_settings(cls, settings: Settings, **callbacks: Any) -> "LiveConnection":
        connection = cls(
            settings.proxy_url,
            settings.project_id,
            settings.model,
            settings.api_host,
            location=settings.location,
            **callbacks,
        )
        connection.set_response_modalities(settings.response_modalities)
        connection.set_system_instructions(settings.system_instructions)
        connection.set_voice(settings.voice_name, settings.voice_locale)
        connection.set_transcript(settings.enable_input_transcript, settings.enable_output_transcript)
        connection.set_resumption(settings.enable_session_resumption, settings.resumption_handle)
        if settings.access_token:
            connection.set_access_token(settings.access_token)
        return connection

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def model_uri(self) -> str:
        return self.config.model_uri

    @property
    def service_url(self) -> str:
        return self.config.service_url

    def set_project_id(self, project_id: str) -> None:
        self.config.project_id = project_id

    def set_model(self, model: str) -> None:
        self.config.model = model

    def set_api_host(self, api_host: str) -> None:
        self.config.api_host = api_host

    def set_access_token(self, access_token: str) -> None:
        logger.debug("Access token updated")
        self.config.access_token = access_token

    def set_transcript(self, enable_input: bool, enable_output: bool) -> None:
        logger.debug("Transcripts: input=%s output=%s", enable_input, enable_output)
        self.config.enable_input_transcript = enable_input
        self.config.enable_output_transcript = enable_output

    def set_voice(self, name: str, locale: str) -> None:
        self.config.voice_name = name
        self.config.voice_locale = locale

    def set_resumption(self, enable: bool, handle: str = "") -> None:
        self.config.enable_session_resumption = enable
        self.config.resumption_handle = handle

    def set_system_instructions(self, instructions: str) -> None:
        self.config.system_instructions = instructions

    def set_response_modalities(self, modalities: list[str]) -> None:
        self.config.response_modalities = list(modalities)

    async def connect(self, access_token: str) -> None:
        """Open a socket to the proxy and send the setup handshake.

        Failing to open the socket is reported through ``on_error_message``
        rather than raised, the same way a socket that drops later is.  A
        newer ``connect`` or a ``disconnect`` issued while this one is still
        opening wins; the socket opened here is then closed unused.
        """
        self.set_access_token(access_token)
        await self._force_close_websocket()
        self._generation += 1
        generation = self._generation
        self._state = ConnectionState.CONNECTING
        logger.info("Connecting to %s", self.config.proxy_url)
        try:
            websocket = await websockets.connect(
                self.config.proxy_url,
                max_size=MAX_FRAME_BYTES,
            )
        except (OSError, InvalidURI, InvalidHandshake) as exc:
            logger.warning("Live proxy connect failed for %s: %s", self.config.proxy_url, exc)
            if generation == self._generation:
                await self._finish(ConnectionState.ERRORED, CONNECTION_ERROR_MESSAGE)
            return
        if generation != self._generation:
            logger.info("Discarding superseded live proxy socket")
            await websocket.close()
            return

        self._websocket = websocket
        self._state = ConnectionState.OPEN
        logger.info("Live proxy websocket open")
        try:
            await self._send_initial_setup_messages()
            await _maybe_await(self.on_connection_started())
        except LiveConnectionError as exc:
            logger.warning("Live proxy closed during setup: %s", exc)
            if self._websocket is websocket:
                await self._finish(ConnectionState.ERRORED, CONNECTION_ERROR_MESSAGE)
            return
        except Exception as exc:
            logger.exception("Live proxy setup failed: %s", exc)
            if self._websocket is websocket:
                await self._finish(ConnectionState.ERRORED, CONNECTION_ERROR_MESSAGE)
            return
        # on_connection_started may already have called disconnect() or connect().
        if self._state is ConnectionState.OPEN and self._websocket is websocket:
            self._reader_task = asyncio.create_task(self._reader_loop(websocket))

    async def disconnect(self) -> None:
        """Close the socket, abandoning a connect that is still opening.

        A no-op when there is neither a socket nor a pending connect.
        """
        websocket = self._websocket
        if websocket is None:
            if self._state is ConnectionState.CONNECTING:
                logger.info("Abandoning pending live proxy connect")
                self._generation += 1
                await self._finish(ConnectionState.CLOSED, CONNECTION_CLOSED_MESSAGE)
            return
        logger.info("Disconnecting from live proxy")
        await websocket.close()
        reader_task = self._reader_task
        if reader_task is not None and reader_task is not asyncio.current_task():
            await reader_task
        elif reader_task is None and self._websocket is websocket:
            await self._finish(ConnectionState.CLOSED, CONNECTION_CLOSED_MESSAGE)

    async def send_message(self, message: dict[str, Any]) -> None:
        if self._state is not ConnectionState.OPEN or self._websocket is None:
            raise LiveConnectionError(f"Cannot send while the connection is {self._state.value}")
        try:
            await self._websocket.send(json.dumps(message))
        except ConnectionClosed as exc:
            raise LiveConnectionError("The live proxy connection is closed") from exc

    async def send_text_message(self, text: str) -> None:
        await self.send_message(text_message(text))

    async def send_realtime_input_message(self, data: str, mime_type: str) -> None:
        await self.send_message(realtime_input_message(data, mime_type))

    async def send_audio_message(self, base64_pcm: str) -> None:
        await self.send_realtime_input_message(base64_pcm, AUDIO_MIME_TYPE)

    async def send_image_message(self, base64_image: str, mime_type: str = IMAGE_MIME_TYPE) -> None:
        await self.send_realtime_input_message(base64_image, mime_type)

    async def _send_initial_setup_messages(self) -> None:
        await self.send_message(service_setup_message(self.config))
        setup = session_setup_message(self.config)
        logger.debug("Session setup: %s", setup)
        await self.send_message(setup)

    async def _reader_loop(self, websocket: Any) -> None:
        state, error_message = ConnectionState.CLOSED, CONNECTION_CLOSED_MESSAGE
        try:
            async for raw_message in websocket:
                await self._on_receive_message(raw_message)
            logger.info("Live proxy websocket closed")
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            logger.warning("Live proxy websocket error: %s", exc)
            state, error_message = ConnectionState.ERRORED, CONNECTION_ERROR_MESSAGE
        except Exception as exc:
            logger.exception("Live proxy reader failed: %s", exc)
            state, error_message = ConnectionState.ERRORED, CONNECTION_ERROR_MESSAGE
        # A callback may have reconnected; the new socket is not ours to end.
        if self._websocket is websocket:
            await self._finish(state, error_message)

    async def _on_receive_message(self, raw_message: Union[str, bytes]) -> None:
        try:
            payload = json.loads(raw_message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Skipping non-JSON frame from live proxy")
            await _maybe_await(self.on_error_message(MALFORMED_MESSAGE))
            return
        message = classify_message(payload)
        logger.debug("Received %s frame", message.kind.value)
        await _maybe_await(self.on_receive_response(message))

    async def _finish(self, state: ConnectionState, error_message: str) -> None:
        self._state = state
        self._reader_task = None
        websocket = self._websocket
        self._websocket = None
        if websocket is not None:
            await websocket.close()
        await _maybe_await(self.on_error_message(error_message))

    async def _force_close_websocket(self) -> None:
        reader_task = self._reader_task
        self._reader_task = None
        if reader_task is not None and reader_task is not asyncio.current_task():
            reader_task.cancel()
            try:
                await reader_task
            except asyncio.CancelledError:
                pass
        websocket = self._websocket
        self._websocket = None
        if websocket is not None:
            await websocket.close()
