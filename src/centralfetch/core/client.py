"""
Central repository client.

Owns one HttpTransport and exposes the search and download primitives:
- ``fetch`` one bounded page, ``iterate`` lazily over a whole result set
- ``download`` repository files, optionally verified against checksums
- batch fan-out helpers for searches, downloads and artifact bundles
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, TypeVar

import httpx

from centralfetch.core.backends.base import FetchResult, RequestSpec
from centralfetch.core.backends.http_backend import HttpTransport
from centralfetch.core.config.models import AppConfig, OperationClass
from centralfetch.core.errors import ChecksumMismatchError, ErrorKind, FetchError
from centralfetch.core.fetch.caching import ResponseCache
from centralfetch.core.fetch.cancellation import CancelToken
from centralfetch.core.fetch.throttling import RateLimiter
from centralfetch.core.orchestrator.batch import BatchOutcome, run_batch
from centralfetch.core.search.iterator import PagedIterator
from centralfetch.core.search.models import Page, decode_page
from centralfetch.core.search.query import FetchRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

DOWNLOAD_CACHE_PREFIX = "download:"
CHECKSUM_ALGORITHMS = ("sha1", "md5", "sha256")


# =============================================================================
# Artifact paths
# =============================================================================


def build_artifact_path(
    group_id: str,
    artifact_id: str,
    version: str,
    extension: str = "jar",
    classifier: str | None = None,
) -> str:
    """Repository-relative path of one artifact file.

    >>> build_artifact_path("org.slf4j", "slf4j-api", "2.0.9", "jar", "sources")
    'org/slf4j/slf4j-api/2.0.9/slf4j-api-2.0.9-sources.jar'
    """
    base = f"{group_id.replace('.', '/')}/{artifact_id}/{version}"
    name = f"{artifact_id}-{version}"
    if classifier:
        name += f"-{classifier}"
    return f"{base}/{name}.{extension}"


@dataclass(frozen=True)
class ArtifactFile:
    """A file kind inside an artifact version directory."""

    type: str
    extension: str
    classifier: str | None = None

    def path_for(self, group_id: str, artifact_id: str, version: str) -> str:
        return build_artifact_path(group_id, artifact_id, version, self.extension, self.classifier)


POM_FILE = ArtifactFile("POM", "pom")
JAR_FILE = ArtifactFile("JAR", "jar")
SOURCES_FILE = ArtifactFile("SOURCES", "jar", "sources")
JAVADOC_FILE = ArtifactFile("JAVADOC", "jar", "javadoc")
TESTS_FILE = ArtifactFile("TESTS", "jar", "tests")

COMMON_ARTIFACT_FILES: tuple[ArtifactFile, ...] = (POM_FILE, JAR_FILE, SOURCES_FILE, JAVADOC_FILE)


@dataclass
class ChecksumResult:
    """Downloaded bytes plus their digest.

    ``verified`` is False when the repository publishes no checksum file.
    """

    data: bytes
    algorithm: str
    digest: str
    verified: bool


@dataclass
class ArtifactBundle:
    """Several files of one artifact version fetched together."""

    group_id: str
    artifact_id: str
    version: str
    files: dict[str, bytes] = field(default_factory=dict)
    errors: dict[str, FetchError] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.errors

    def get(self, file_type: str) -> bytes | None:
        return self.files.get(file_type)


# =============================================================================
# Client
# =============================================================================


class CentralClient:
    """Resilient client for the catalog search API and repository files.

    Usage:
        with CentralClient() as client:
            page = client.fetch(FetchRequest(query=Query.of(group_id="org.slf4j")), doc_type=Artifact)
            for doc in client.iterate(request, doc_type=Version):
                ...
            jar = client.download_artifact("org.slf4j", "slf4j-api", "2.0.9")
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            config: Application configuration (defaults when omitted)
            cache: Response cache to use; pass ``default_cache()`` to share
                one across clients
            rate_limiter: Limiter to share with other clients
            http_client: Pre-built httpx client (caller keeps ownership)
        """
        self.config = config or AppConfig()
        self.transport = HttpTransport(
            self.config,
            cache=cache,
            rate_limiter=rate_limiter,
            http_client=http_client,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_url(self, request: FetchRequest) -> str:
        return request.url(self.config.endpoints.search_base_url)

    def fetch(
        self,
        request: FetchRequest,
        doc_type: type[T] = dict,  # type: ignore[assignment]
        token: CancelToken | None = None,
    ) -> Page[T]:
        """Fetch one bounded page without iterator state.

        Raises:
            FetchError: Transport, status or decode failure
        """
        url = self.search_url(request)
        result = self.transport.fetch(
            RequestSpec(
                url=url,
                operation=OperationClass.SEARCH.value,
                headers={"Accept": "application/json"},
                cache_key=url,
            ),
            token,
        )
        return decode_page(result.content, doc_type, url=url, from_cache=result.from_cache)

    def iterate(
        self,
        request: FetchRequest,
        doc_type: type[T] = dict,  # type: ignore[assignment]
        token: CancelToken | None = None,
    ) -> PagedIterator[T]:
        """Lazy iterator over every result from ``request.start`` on."""

        def fetch_page(page_request: FetchRequest, page_token: CancelToken | None) -> Page[T]:
            return self.fetch(page_request, doc_type, page_token)

        return PagedIterator(fetch_page, request, token)

    def batch_search(
        self,
        requests: Iterable[FetchRequest],
        doc_type: type[T] = dict,  # type: ignore[assignment]
        token: CancelToken | None = None,
        max_workers: int | None = None,
    ) -> dict[str, BatchOutcome[Page[T]]]:
        """Fetch one page per request concurrently, keyed by request identity.

        Raises:
            ValueError: Two requests share an identity
        """
        tasks: dict[str, Callable[[], Page[T]]] = {}
        for request in requests:
            if request.identity in tasks:
                raise ValueError(f"Duplicate batch key: {request.identity}")
            tasks[request.identity] = lambda r=request: self.fetch(r, doc_type, token)
        return run_batch(tasks, max_workers or self.config.batch.max_workers)

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    def file_url(self, path: str) -> str:
        return f"{self.config.endpoints.file_base_url}/{path.lstrip('/')}"

    def _download_result(self, path: str, token: CancelToken | None) -> FetchResult:
        url = self.file_url(path)
        return self.transport.fetch(
            RequestSpec(
                url=url,
                operation=OperationClass.DOWNLOAD.value,
                cache_key=DOWNLOAD_CACHE_PREFIX + url,
            ),
            token,
        )

    def download(self, path: str, token: CancelToken | None = None) -> bytes:
        """Download a repository file by its relative path."""
        return self._download_result(path, token).content

    def download_artifact(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        extension: str = "jar",
        classifier: str | None = None,
        token: CancelToken | None = None,
    ) -> bytes:
        path = build_artifact_path(group_id, artifact_id, version, extension, classifier)
        return self.download(path, token)

    def download_with_checksum(
        self,
        path: str,
        algorithm: str = "sha1",
        token: CancelToken | None = None,
    ) -> ChecksumResult:
        """Download a file and verify it against its published checksum.

        Raises:
            ValueError: Unsupported algorithm
            ChecksumMismatchError: Published and computed digests differ
            FetchError: The file itself could not be downloaded
        """
        algorithm = algorithm.lower()
        if algorithm not in CHECKSUM_ALGORITHMS:
            raise ValueError(f"Unsupported checksum algorithm: {algorithm}")

        data = self.download(path, token)
        digest = hashlib.new(algorithm, data).hexdigest()

        try:
            sidecar = self.download(f"{path}.{algorithm}", token)
        except FetchError as e:
            if e.kind is not ErrorKind.NOT_FOUND:
                raise
            logger.info("No %s checksum published for %s", algorithm, path)
            return ChecksumResult(data=data, algorithm=algorithm, digest=digest, verified=False)

        # Sidecars may hold "<digest>  <filename>"
        fields = sidecar.decode("utf-8", errors="replace").split()
        expected = fields[0].lower() if fields else ""
        if expected != digest:
            raise ChecksumMismatchError(
                f"{algorithm} mismatch for {path}",
                url=self.file_url(path),
                expected=expected,
                actual=digest,
            )
        return ChecksumResult(data=data, algorithm=algorithm, digest=digest, verified=True)

    def batch_download(
        self,
        paths: Iterable[str],
        token: CancelToken | None = None,
        max_workers: int | None = None,
    ) -> dict[str, BatchOutcome[bytes]]:
        """Download several files concurrently, keyed by path."""
        tasks = {path: (lambda p=path: self.download(p, token)) for path in paths}
        return run_batch(tasks, max_workers or self.config.batch.max_workers)

    def download_bundle(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        files: Iterable[ArtifactFile] = COMMON_ARTIFACT_FILES,
        token: CancelToken | None = None,
    ) -> ArtifactBundle:
        """Fetch several files of one version concurrently."""
        tasks = {
            f.type: (lambda f=f: self.download(f.path_for(group_id, artifact_id, version), token))
            for f in files
        }
        outcomes = run_batch(tasks, self.config.batch.max_workers)

        files_by_type, errors = outcomes_by_key(outcomes)
        return ArtifactBundle(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            files=files_by_type,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Cache / rate limiting
    # ------------------------------------------------------------------

    @property
    def cache(self) -> ResponseCache:
        return self.transport.cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self.transport.rate_limiter

    @property
    def cache_enabled(self) -> bool:
        return self.transport.cache_enabled

    def enable_cache(self, ttl_seconds: float | None = None) -> None:
        self.transport.cache_enabled = True
        if ttl_seconds is not None:
            self.set_cache_ttl(ttl_seconds)

    def disable_cache(self) -> None:
        self.transport.cache_enabled = False

    @property
    def cache_ttl(self) -> float:
        return self.transport.cache_ttl

    def set_cache_ttl(self, ttl_seconds: float) -> None:
        self.transport.cache_ttl = float(ttl_seconds)

    def clear_cache(self) -> None:
        self.transport.cache.clear()

    def rate_limit_stats(self) -> dict[str, Any]:
        return self.rate_limiter.stats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "CentralClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def outcomes_by_key(outcomes: Mapping[str, BatchOutcome[T]]) -> tuple[dict[str, T], dict[str, FetchError]]:
    """Split batch outcomes into successes and failures."""
    values: dict[str, T] = {}
    errors: dict[str, FetchError] = {}
    for key, outcome in outcomes.items():
        if outcome.error is not None:
            errors[key] = outcome.error
        else:
            values[key] = outcome.value  # type: ignore[assignment]
    return values, errors
