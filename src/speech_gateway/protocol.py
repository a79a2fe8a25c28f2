"""JSON envelope exchanged with the telephony side over text frames."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from speech_gateway.errors import UnknownRequestKind, ValidationError


class RequestKind(str, Enum):
    """Request names understood by the dispatcher."""

    GET = "get"
    SET = "set"
    SETUP = "setup"

    @classmethod
    def parse(cls, name: Any) -> RequestKind:
        try:
            return cls(name)
        except ValueError as exc:
            raise UnknownRequestKind(f"Unsupported request '{name}'") from exc


class Request(BaseModel):
    """Inbound (or pushed) request message."""

    model_config = ConfigDict(extra="allow")

    request: str
    id: Any = None
    params: list[Any] | dict[str, Any] | None = None
    codecs: list[dict[str, Any]] | None = None

    @classmethod
    def parse(cls, payload: dict[str, Any]) -> Request:
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
            raise ValidationError(f"Invalid request fields: {fields}") from exc

    @classmethod
    def push(cls, kind: RequestKind, params: dict[str, Any]) -> Request:
        """Build an unsolicited request carrying a freshly generated id."""
        return cls(request=kind.value, id=str(uuid4()), params=params)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True))


class Response(BaseModel):
    """Reply to a request; always echoes the request name and id."""

    response: str
    id: Any = None
    codecs: list[dict[str, Any]] | None = None
    params: dict[str, Any] | None = None
    error_msg: str | None = None

    @classmethod
    def for_request(cls, payload: dict[str, Any]) -> Response:
        return cls(response=str(payload.get("request")), id=payload.get("id"))

    def failed(self, message: str) -> Response:
        """Error reply for the same request, dropping any partially filled fields."""
        return Response(response=self.response, id=self.id, error_msg=message)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True))
