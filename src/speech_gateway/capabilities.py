"""Codec and language capability negotiation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from speech_gateway.errors import UnsupportedCapability, ValidationError

T = TypeVar("T")


@dataclass(slots=True, frozen=True, eq=False)
class Codec:
    """Audio codec descriptor. Two codecs are the same codec when their names match."""

    name: str
    sample_rate: int = 0
    attributes: tuple[Any, ...] = field(default_factory=tuple)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Codec):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    @classmethod
    def from_descriptor(cls, descriptor: Mapping[str, Any]) -> Codec:
        """Build a codec from its wire form (``{"name", "sampleRate", "attributes"}``)."""
        if not isinstance(descriptor, Mapping):
            raise ValidationError(f"Invalid codec descriptor: {descriptor!r}")

        name = descriptor.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Codec descriptor is missing a name: {descriptor!r}")

        sample_rate = descriptor.get("sampleRate") or 0
        if not isinstance(sample_rate, int):
            raise ValidationError(f"Codec '{name}' has an invalid sampleRate: {sample_rate!r}")

        return cls(name=name, sample_rate=sample_rate, attributes=tuple(descriptor.get("attributes") or ()))

    def to_descriptor(self) -> dict[str, Any]:
        return {"name": self.name, "sampleRate": self.sample_rate, "attributes": list(self.attributes)}


ULAW = Codec(name="ulaw", sample_rate=8_000)
SLIN16 = Codec(name="slin16", sample_rate=16_000)
OPUS = Codec(name="opus", sample_rate=48_000)

SUPPORTED_CODECS: tuple[Codec, ...] = (ULAW, SLIN16, OPUS)

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "en-US",
    "en-GB",
    "en-AU",
    "es-US",
    "es-ES",
    "fr-FR",
    "fr-CA",
    "de-DE",
    "it-IT",
    "pt-BR",
    "ja-JP",
)


class Negotiator(Generic[T]):
    """Intersects a universal capability catalog with a configured subset.

    ``allowed`` keeps the order of ``universal``; ``selected`` is always a member of
    ``allowed`` and defaults to its first element. :meth:`select` only resolves a
    match, assigning ``selected`` is left to the caller so that several negotiators
    can be validated before any of them changes.
    """

    def __init__(
        self,
        universal: Sequence[T],
        configured: Iterable[T] | None = None,
        *,
        kind: str = "Capability",
        describe: Callable[[T], str] = str,
    ) -> None:
        self._universal = tuple(universal)
        self._kind = kind
        self._describe = describe

        if configured is None:
            allowed = self._universal
        else:
            wanted = list(configured)
            allowed = tuple(item for item in self._universal if any(item == other for other in wanted))

        if not allowed:
            raise UnsupportedCapability(f"No supported {kind.lower()} configured")

        self._allowed: tuple[T, ...] = allowed
        self._selected: T = allowed[0]

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def universal(self) -> tuple[T, ...]:
        return self._universal

    @property
    def allowed(self) -> tuple[T, ...]:
        return self._allowed

    @property
    def selected(self) -> T:
        return self._selected

    @selected.setter
    def selected(self, value: T) -> None:
        for item in self._allowed:
            if item == value:
                self._selected = item
                return
        raise UnsupportedCapability(f"{self._kind} '{self._describe(value)}' not supported")

    def select(self, candidates: T | Sequence[T]) -> T:
        """Return the first allowed capability matching any of ``candidates``."""
        options = list(candidates) if isinstance(candidates, (list, tuple)) else [candidates]

        for item in self._allowed:
            if any(item == candidate for candidate in options):
                return item

        names = ", ".join(self._describe_any(candidate) for candidate in options)
        raise UnsupportedCapability(f"{self._kind} '{names}' not supported")

    def _describe_any(self, value: Any) -> str:
        try:
            return self._describe(value)
        except (AttributeError, TypeError):
            return str(value)


def _codec_name(codec: Codec) -> str:
    return codec.name


def codec_negotiator(
    configured: Iterable[str | Codec] | None = None,
    universal: Sequence[Codec] = SUPPORTED_CODECS,
) -> Negotiator[Codec]:
    """Codec negotiator; ``configured`` may hold codec names or :class:`Codec` values."""
    wanted = None
    if configured is not None:
        wanted = [item if isinstance(item, Codec) else Codec(name=item) for item in configured]
    return Negotiator(universal, wanted, kind="Codec", describe=_codec_name)


def language_negotiator(
    configured: Iterable[str] | None = None,
    universal: Sequence[str] = SUPPORTED_LANGUAGES,
) -> Negotiator[str]:
    return Negotiator(universal, configured, kind="Language")
