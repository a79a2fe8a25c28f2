"""Per-session coordination between the transport and the speech provider."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from speech_gateway.capabilities import Codec
from speech_gateway.errors import GatewayError, ValidationError
from speech_gateway.protocol import Request, RequestKind, Response
from speech_gateway.providers import ProviderState, RecognitionResult, StreamConfig
from speech_gateway.transport import Frame

if TYPE_CHECKING:
    from speech_gateway.session import Session


@dataclass(slots=True, frozen=True)
class TransportClosed:
    """The transport's frame iterator finished."""


@dataclass(slots=True, frozen=True)
class ProviderResult:
    """A result published by the provider for stream ``generation``."""

    result: RecognitionResult
    generation: int


SessionEvent = Frame | TransportClosed | ProviderResult


class Dispatcher:
    """Routes transport frames to the provider and provider results to the transport.

    Everything the dispatcher does happens in :meth:`run`, which drains one queue fed
    by the transport pump task and by the provider subscription. Frames are therefore
    handled strictly in arrival order and never concurrently with a result push.
    """

    def __init__(self, session: Session, *, logger: logging.Logger | None = None) -> None:
        self._session = session
        self._logger = logger or logging.getLogger("speech_gateway.dispatcher")
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()

    @property
    def session(self) -> Session:
        return self._session

    async def run(self) -> None:
        """Serve the session until the transport closes, then end the provider."""
        provider = self._session.provider
        unsubscribe = provider.subscribe(self._on_provider_result)
        pump = asyncio.create_task(self._pump_transport(), name=f"transport-pump-{self._session.id}")
        self._logger.info("session_started", extra={"session_id": self._session.id, "provider": provider.name})

        try:
            while True:
                event = await self._queue.get()
                if isinstance(event, TransportClosed):
                    break
                await self.handle_event(event)
        finally:
            unsubscribe()
            pump.cancel()
            with suppress(asyncio.CancelledError):
                await pump
            await provider.end()
            self._logger.info("session_closed", extra={"session_id": self._session.id})

    async def handle_event(self, event: SessionEvent) -> None:
        if isinstance(event, Frame):
            if event.is_binary:
                await self._session.provider.write(event.data)
            else:
                await self.handle_text(event.data)
        elif isinstance(event, ProviderResult):
            await self._push_result(event)

    async def handle_text(self, data: str | bytes) -> None:
        """Parse one text frame and answer it when it is a request."""
        self._logger.debug("message_received", extra={"session_id": self._session.id, "data": data})
        try:
            payload = json.loads(data)
        except (ValueError, RecursionError):
            self._logger.warning("message_invalid_json", extra={"session_id": self._session.id})
            return

        if not isinstance(payload, dict):
            self._logger.warning("message_not_an_object", extra={"session_id": self._session.id})
            return

        if "request" in payload:
            response = await self.handle_request(payload)
            await self._session.transport.send(response.to_json(), binary=False)
        elif "response" in payload:
            self.handle_response(payload)

    async def handle_request(self, payload: dict[str, Any]) -> Response:
        """Run the matching handler; any failure becomes ``error_msg`` on the response."""
        response = Response.for_request(payload)
        try:
            request = Request.parse(payload)
            kind = RequestKind.parse(request.request)
            if kind is RequestKind.GET:
                self._handle_get(request, response)
            elif kind is RequestKind.SET or kind is RequestKind.SETUP:
                await self._handle_set(request, response)
        except GatewayError as exc:
            self._logger.warning(
                "request_failed",
                extra={"session_id": self._session.id, "request": response.response, "id": response.id, "error": str(exc)},
            )
            return response.failed(str(exc))
        except Exception as exc:  # noqa: BLE001 - a faulty request must not end the session.
            self._logger.exception(
                "request_crashed",
                extra={"session_id": self._session.id, "request": response.response, "id": response.id},
            )
            return response.failed(str(exc) or type(exc).__name__)
        return response

    def handle_response(self, payload: dict[str, Any]) -> None:
        # Pushed results are fire-and-forget; acknowledgements are not tracked.
        self._logger.debug(
            "response_ignored",
            extra={"session_id": self._session.id, "response": payload.get("response"), "id": payload.get("id")},
        )

    def _handle_get(self, request: Request, response: Response) -> None:
        if request.params is None:
            raise ValidationError("Missing request parameters")
        if not isinstance(request.params, list):
            raise ValidationError("'get' parameters must be a list of names")

        session = self._session
        params: dict[str, Any] = {}
        for name in request.params:
            if name == "codec":
                params["codecs"] = session.codecs.selected.to_descriptor()
            elif name == "language":
                params["language"] = session.languages.selected
            elif name == "results":
                params["results"] = [result.to_dict() for result in session.provider.results.drain()]
            else:
                self._ignore_parameter(request, name)

        response.params = params

    async def _handle_set(self, request: Request, response: Response) -> None:
        if request.codecs is None and request.params is None:
            raise ValidationError("Missing request parameters")
        if request.params is not None and not isinstance(request.params, dict):
            raise ValidationError(f"'{request.request}' parameters must be an object")

        session = self._session

        # Resolve everything first; nothing is assigned until every field is valid.
        codec: Codec | None = None
        language: str | None = None
        if request.codecs is not None:
            codec = session.codecs.select([Codec.from_descriptor(item) for item in request.codecs])
        for key, value in (request.params or {}).items():
            if key == "language":
                language = session.languages.select(value)
            else:
                self._ignore_parameter(request, key)

        if codec is None and language is None:
            return

        config = StreamConfig(
            codec=codec if codec is not None else session.codecs.selected,
            language=language if language is not None else session.languages.selected,
        )
        session.provider.check_config(config)

        changed = False
        if codec is not None:
            changed = changed or codec.name != session.codecs.selected.name
            session.codecs.selected = codec
            response.codecs = [codec.to_descriptor()]
        if language is not None:
            changed = changed or language != session.languages.selected
            session.languages.selected = language
            response.params = {"language": language}

        if changed or session.provider.state is not ProviderState.STREAMING:
            await session.provider.restart(config)

    async def _push_result(self, event: ProviderResult) -> None:
        provider = self._session.provider
        if event.generation != provider.generation:
            self._logger.debug(
                "result_stale_dropped",
                extra={"session_id": self._session.id, "generation": event.generation, "current": provider.generation},
            )
            return

        message = Request.push(RequestKind.SET, {"results": [event.result.to_dict()]})
        await self._session.transport.send(message.to_json(), binary=False)

    async def _pump_transport(self) -> None:
        try:
            async for frame in self._session.transport.frames():
                self._queue.put_nowait(frame)
        finally:
            self._queue.put_nowait(TransportClosed())

    def _on_provider_result(self, result: RecognitionResult, generation: int) -> None:
        self._queue.put_nowait(ProviderResult(result=result, generation=generation))

    def _ignore_parameter(self, request: Request, name: Any) -> None:
        self._logger.warning(
            "request_parameter_ignored",
            extra={"session_id": self._session.id, "request": request.request, "parameter": name},
        )
