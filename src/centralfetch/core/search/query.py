"""
Search query model and wire-parameter serialization.

A Query is an ordered list of ``field:value`` predicates (or a raw Solr
expression overriding them); a FetchRequest adds the pagination window,
sorting, facets and any extra protocol parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from urllib.parse import urlencode

SEARCH_PATH = "/solrsearch/select"

# Largest page the search API serves
SEARCH_ROWS_MAX = 200
DEFAULT_ROWS = 20

# Keyword argument -> catalog field, in serialization order
QUERY_FIELDS: tuple[tuple[str, str], ...] = (
    ("group_id", "g"),
    ("artifact_id", "a"),
    ("version", "v"),
    ("tags", "tags"),
    ("sha1", "1"),
    ("class_name", "c"),
    ("fully_qualified_class_name", "fc"),
    ("packaging", "p"),
    ("classifier", "l"),
)


@dataclass(frozen=True)
class Query:
    """Immutable search expression.

    Usage:
        Query.of(group_id="org.slf4j", artifact_id="slf4j-api")
        Query().where("tags", "logging")
        Query(raw="g:org.apache* AND p:pom")
    """

    predicates: tuple[tuple[str, str], ...] = ()
    raw: str | None = None

    @classmethod
    def of(
        cls,
        *,
        group_id: str | None = None,
        artifact_id: str | None = None,
        version: str | None = None,
        tags: str | None = None,
        sha1: str | None = None,
        class_name: str | None = None,
        fully_qualified_class_name: str | None = None,
        packaging: str | None = None,
        classifier: str | None = None,
    ) -> "Query":
        """Build a query from the catalog's well-known fields."""
        values = {
            "group_id": group_id,
            "artifact_id": artifact_id,
            "version": version,
            "tags": tags,
            "sha1": sha1,
            "class_name": class_name,
            "fully_qualified_class_name": fully_qualified_class_name,
            "packaging": packaging,
            "classifier": classifier,
        }
        predicates = tuple(
            (solr_field, values[name]) for name, solr_field in QUERY_FIELDS if values[name]
        )
        return cls(predicates=predicates)

    def where(self, field_name: str, value: str) -> "Query":
        """Return a copy with one more predicate appended."""
        return replace(self, predicates=self.predicates + ((field_name, value),))

    def with_raw(self, expression: str) -> "Query":
        return replace(self, raw=expression)

    @property
    def is_empty(self) -> bool:
        return not self.raw and not self.predicates

    def to_expression(self) -> str:
        """Solr ``q`` value; a raw override wins over all predicates."""
        if self.raw:
            return self.raw
        return " AND ".join(f"{name}:{value}" for name, value in self.predicates)

    def __str__(self) -> str:
        return self.to_expression()


@dataclass(frozen=True)
class FetchRequest:
    """One search call: query plus window, sorting and facets."""

    query: Query = field(default_factory=Query)
    start: int = 0
    rows: int = DEFAULT_ROWS
    sort_field: str | None = None
    sort_ascending: bool = True
    core: str | None = None
    facet: bool = False
    facet_fields: tuple[str, ...] = ()
    highlight: bool = False
    highlight_fields: tuple[str, ...] = ()
    extra_params: tuple[tuple[str, str], ...] = ()

    # Caller-chosen identity used by batch operations
    key: str | None = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must be >= 0")
        if not 1 <= self.rows <= SEARCH_ROWS_MAX:
            raise ValueError(f"rows must be between 1 and {SEARCH_ROWS_MAX}")
        # Accept lists/dicts from callers but store tuples
        if not isinstance(self.facet_fields, tuple):
            object.__setattr__(self, "facet_fields", tuple(self.facet_fields))
        if not isinstance(self.highlight_fields, tuple):
            object.__setattr__(self, "highlight_fields", tuple(self.highlight_fields))
        if isinstance(self.extra_params, dict):
            object.__setattr__(self, "extra_params", tuple(self.extra_params.items()))
        elif not isinstance(self.extra_params, tuple):
            object.__setattr__(self, "extra_params", tuple(self.extra_params))

    @property
    def identity(self) -> str:
        """Batch key: the caller's key, else the full query string."""
        return self.key or self.to_query_string()

    def with_start(self, start: int) -> "FetchRequest":
        return replace(self, start=start)

    def with_rows(self, rows: int) -> "FetchRequest":
        return replace(self, rows=rows)

    def to_params(self) -> list[tuple[str, str]]:
        """Ordered wire parameters."""
        params: list[tuple[str, str]] = [
            ("q", self.query.to_expression()),
            ("rows", str(self.rows)),
            ("wt", "json"),
            ("start", str(self.start)),
        ]

        if self.core:
            params.append(("core", self.core))

        if self.sort_field:
            order = "asc" if self.sort_ascending else "desc"
            params.append(("sort", f"{self.sort_field} {order}"))

        if self.facet:
            params.append(("facet", "true"))
            params.extend(("facet.field", name) for name in self.facet_fields)

        if self.highlight:
            params.append(("hl", "true"))
            if self.highlight_fields:
                params.append(("hl.fl", ",".join(self.highlight_fields)))

        params.extend((str(k), str(v)) for k, v in self.extra_params)
        return params

    def to_query_string(self) -> str:
        return urlencode(self.to_params())

    def url(self, base_url: str) -> str:
        """Fully-qualified search URL under ``base_url``."""
        return f"{base_url.rstrip('/')}{SEARCH_PATH}?{self.to_query_string()}"
