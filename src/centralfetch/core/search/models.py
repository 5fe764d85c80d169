"""
Search response models.

Typed decoding of the Solr select envelope with pydantic generic models.
The document type is chosen per call: ``Artifact``, ``Version``, ``dict``
or any other pydantic model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from centralfetch.core.errors import DecodeError, ErrorKind, PermanentError

T = TypeVar("T")


# =============================================================================
# Documents
# =============================================================================


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Artifact(_Document):
    """One artifact (latest-version view) from the default core."""

    id: str = ""
    group_id: str = Field(default="", alias="g")
    artifact_id: str = Field(default="", alias="a")
    latest_version: str = Field(default="", alias="latestVersion")
    repository_id: str = Field(default="", alias="repositoryId")
    packaging: str = Field(default="", alias="p")
    timestamp: int = 0
    version_count: int = Field(default=0, alias="versionCount")
    text: list[str] = Field(default_factory=list)
    ec: list[str] = Field(default_factory=list)


class Version(_Document):
    """One concrete version from the ``gav`` core."""

    id: str = ""
    group_id: str = Field(default="", alias="g")
    artifact_id: str = Field(default="", alias="a")
    version: str = Field(default="", alias="v")
    packaging: str = Field(default="", alias="p")
    timestamp: int = 0
    ec: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


# =============================================================================
# Envelope
# =============================================================================


class ResponseHeader(BaseModel):
    status: int = 0
    qtime_ms: int = Field(default=0, alias="QTime")


class SearchBody(BaseModel, Generic[T]):
    num_found: int = Field(alias="numFound", ge=0)
    start: int = 0
    docs: list[T] = Field(default_factory=list)


class SearchResponse(BaseModel, Generic[T]):
    """The select envelope, with facet lists already folded into maps."""

    response_header: ResponseHeader = Field(default_factory=ResponseHeader, alias="responseHeader")
    response: SearchBody[T]
    facets: dict[str, dict[str, int]] | None = None
    highlighting: dict[str, dict[str, list[str]]] | None = None


@dataclass
class Page(Generic[T]):
    """One bounded page of results."""

    items: list[T]
    total: int
    start: int = 0
    facets: dict[str, dict[str, int]] | None = None
    highlighting: dict[str, dict[str, list[str]]] | None = None
    qtime_ms: int = 0
    from_cache: bool = False

    # Not part of equality; handy when debugging
    url: str | None = field(default=None, compare=False)

    def __len__(self) -> int:
        return len(self.items)


def _fold_facet_fields(facet_counts: Any) -> dict[str, dict[str, int]] | None:
    """Turn Solr's flat ``[value, count, value, count]`` lists into maps."""
    if not isinstance(facet_counts, dict):
        return None
    fields = facet_counts.get("facet_fields")
    if not isinstance(fields, dict):
        return None

    folded: dict[str, dict[str, int]] = {}
    for name, flat in fields.items():
        if isinstance(flat, dict):
            folded[name] = {str(k): int(v) for k, v in flat.items()}
            continue
        if not isinstance(flat, list) or len(flat) % 2:
            raise DecodeError(f"Malformed facet list for field {name!r}")
        folded[name] = {str(flat[i]): int(flat[i + 1]) for i in range(0, len(flat), 2)}
    return folded


def decode_page(
    body: bytes,
    doc_type: type[T] = dict,  # type: ignore[assignment]
    *,
    url: str | None = None,
    from_cache: bool = False,
) -> Page[T]:
    """Decode a select response body into a Page.

    Raises:
        DecodeError: Body is not JSON or does not match the envelope
        PermanentError: Solr reported a non-zero ``responseHeader.status``
    """
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"Malformed JSON response: {e}", url=url, cause=e) from e

    if not isinstance(data, dict):
        raise DecodeError("Response is not a JSON object", url=url)

    header = data.get("responseHeader")
    if isinstance(header, dict) and header.get("status", 0) not in (0, None):
        error = data.get("error")
        message = error.get("msg") if isinstance(error, dict) else None
        raise PermanentError(
            message or f"Search failed with status {header.get('status')}",
            kind=ErrorKind.API_ERROR,
            url=url,
        )

    try:
        envelope = {
            "responseHeader": header if isinstance(header, dict) else {},
            "response": data.get("response"),
            "facets": _fold_facet_fields(data.get("facet_counts")),
            "highlighting": data.get("highlighting"),
        }
        parsed = SearchResponse[doc_type].model_validate(envelope)  # type: ignore[valid-type]
    except (ValidationError, TypeError, ValueError) as e:
        raise DecodeError(f"Unexpected response shape: {e}", url=url, cause=e) from e

    return Page(
        items=list(parsed.response.docs),
        total=parsed.response.num_found,
        start=parsed.response.start,
        facets=parsed.facets,
        highlighting=parsed.highlighting,
        qtime_ms=parsed.response_header.qtime_ms,
        from_cache=from_cache,
        url=url,
    )
