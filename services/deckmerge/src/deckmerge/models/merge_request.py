"""Merge request schema and normalisation."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional, Tuple
from uuid import UUID

from pydantic import AfterValidator, AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import MergeRequestValidationError, ValidationIssue

GRID_COLUMNS = 10
GRID_ROWS = 7
MAX_CARDS = GRID_COLUMNS * GRID_ROWS
MAX_CARDS_WITH_HIDDEN_IMAGE = MAX_CARDS - 1

HIDDEN_IMAGE_PATTERN = re.compile(
    r"^data:image/(?P<subtype>png|jpeg|jpg);base64,(?P<payload>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_WHITESPACE = re.compile(r"\s+")
_URL_ADAPTER = TypeAdapter(AnyUrl)


def _check_url(value: str) -> str:
    """Validate ``value`` as a URL but keep the caller's exact spelling."""

    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise ValueError("Input should be a valid URL") from exc
    return value


ImageUri = Annotated[str, AfterValidator(_check_url)]


class CardDescriptorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: UUID
    imageUri: ImageUri


class DeckPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cards: List[CardDescriptorPayload] = Field(
        ..., min_length=1, max_length=MAX_CARDS_WITH_HIDDEN_IMAGE
    )
    hiddenImage: Optional[str] = None


_LEGACY_PAYLOAD = TypeAdapter(
    Annotated[
        List[CardDescriptorPayload], Field(min_length=1, max_length=MAX_CARDS)
    ]
)


@dataclass(frozen=True, slots=True)
class GridShape:
    rows: int
    columns: int

    @property
    def slots(self) -> int:
        return self.rows * self.columns


DEFAULT_GRID = GridShape(rows=GRID_ROWS, columns=GRID_COLUMNS)


@dataclass(frozen=True, slots=True)
class MergeCard:
    id: str
    image_uri: str
    index: int


@dataclass(frozen=True, slots=True)
class HiddenImage:
    data: bytes
    content_type: str


@dataclass(frozen=True, slots=True)
class MergeRequest:
    cards: Tuple[MergeCard, ...]
    grid: GridShape
    submitted_at: datetime
    hidden_image: Optional[HiddenImage] = None


def _issues_from(error: ValidationError) -> List[ValidationIssue]:
    return [
        {
            "code": issue["type"],
            "message": issue["msg"],
            "path": list(issue["loc"]),
        }
        for issue in error.errors(include_url=False, include_input=False)
    ]


def decode_hidden_image(value: str) -> HiddenImage:
    """Decode a ``data:image/...;base64,`` URI into raw bytes.

    Accepts the standard and URL-safe alphabets, embedded whitespace and missing
    padding.
    """

    match = HIDDEN_IMAGE_PATTERN.match(value.strip())
    if not match:
        raise MergeRequestValidationError.single(
            "hiddenImage must be a base64 data URI for a PNG or JPEG image",
            ["hiddenImage"],
            code="invalid_format",
        )

    subtype = match.group("subtype").lower()
    content_type = "image/png" if subtype == "png" else "image/jpeg"

    payload = _WHITESPACE.sub("", match.group("payload"))
    payload = payload.replace("-", "+").replace("_", "/")
    payload += "=" * (-len(payload) % 4)

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MergeRequestValidationError.single(
            "hiddenImage payload is not valid base64",
            ["hiddenImage"],
            code="invalid_format",
        ) from exc

    if not data:
        raise MergeRequestValidationError.single(
            "hiddenImage payload is empty", ["hiddenImage"], code="invalid_format"
        )
    return HiddenImage(data=data, content_type=content_type)


def _normalize_cards(cards: List[CardDescriptorPayload]) -> Tuple[MergeCard, ...]:
    return tuple(
        MergeCard(id=str(card.id), image_uri=card.imageUri, index=index)
        for index, card in enumerate(cards)
    )


def parse_merge_request(payload: Any) -> MergeRequest:
    """Validate a raw JSON payload and normalise it into a :class:`MergeRequest`.

    Two shapes are accepted: a bare list of card descriptors (legacy, up to
    ``MAX_CARDS`` entries) or an object with ``cards`` and an optional
    ``hiddenImage`` data URI (up to ``MAX_CARDS - 1`` cards).
    """

    hidden_image: Optional[HiddenImage] = None

    if isinstance(payload, list):
        try:
            cards = _LEGACY_PAYLOAD.validate_python(payload)
        except ValidationError as exc:
            raise MergeRequestValidationError(_issues_from(exc)) from exc
    elif isinstance(payload, dict):
        try:
            deck = DeckPayload.model_validate(payload)
        except ValidationError as exc:
            raise MergeRequestValidationError(_issues_from(exc)) from exc
        cards = deck.cards
        if deck.hiddenImage is not None:
            hidden_image = decode_hidden_image(deck.hiddenImage)
    else:
        raise MergeRequestValidationError.single(
            "Request body must be a list of cards or an object with a cards list",
            [],
            code="invalid_type",
        )

    return MergeRequest(
        cards=_normalize_cards(cards),
        grid=DEFAULT_GRID,
        submitted_at=datetime.now(timezone.utc),
        hidden_image=hidden_image,
    )


__all__ = [
    "DEFAULT_GRID",
    "GRID_COLUMNS",
    "GRID_ROWS",
    "GridShape",
    "HiddenImage",
    "MAX_CARDS",
    "MAX_CARDS_WITH_HIDDEN_IMAGE",
    "MergeCard",
    "MergeRequest",
    "decode_hidden_image",
    "parse_merge_request",
]
