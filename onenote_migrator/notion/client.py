"""Notion REST API client used to replicate the mapped hierarchy."""

import logging
import time
from typing import Any

import requests

from onenote_migrator.config import NotionSettings
from onenote_migrator.exceptions import (
    ConfigurationError,
    OneNoteMigratorError,
    RateLimitedError,
    RemoteStoreError,
)
from onenote_migrator.models.notion import (
    ImportMetadata,
    ImportOptions,
    ImportResult,
    MappedNode,
)
from onenote_migrator.notion.blocks import convert_property_value, rich_text, title_property
from onenote_migrator.progress import emit_progress

logger = logging.getLogger(__name__)

SKIPPED_MESSAGE = "Skipped: parent page creation failed"

# Columns of databases created for notebooks
DATABASE_PROPERTIES: dict[str, dict[str, Any]] = {
    "Name": {"title": {}},
    "Type": {"rich_text": {}},
    "Created Date": {"date": {}},
    "Last Modified": {"date": {}},
    "Author": {"rich_text": {}},
}


class NotionClient:
    """Creates pages, page trees and databases through the Notion API.

    Rate-limited calls (HTTP 429 or ``rate_limited``) are retried up to
    ``max_retries`` times. The first wait is ``rate_limit_delay``; each
    further wait grows by ``backoff_multiplier`` up to ``max_backoff``. A
    larger ``Retry-After`` header takes precedence.

    Args:
        settings: API access and throttling settings.
        session: HTTP session; a new ``requests.Session`` by default.
    """

    def __init__(
        self,
        settings: NotionSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or NotionSettings()
        self._session = session or requests.Session()
        self._started = time.monotonic()
        self._stats = {
            "requests_made": 0,
            "rate_limit_hits": 0,
            "retries": 0,
            "errors": 0,
        }

    @property
    def stats(self) -> dict[str, float]:
        """Request counters plus seconds since the client was created."""
        return {**self._stats, "uptime": time.monotonic() - self._started}

    def test_connection(self) -> bool:
        """Return True when the token is accepted by the API."""
        try:
            self._request("GET", "users/me")
        except OneNoteMigratorError as exc:
            logger.warning("Notion connection test failed: %s", exc)
            return False
        return True

    def find_or_create_database(self, title: str, parent_id: str | None = None) -> str:
        """Return the id of the database named ``title``, creating it if needed.

        Args:
            title: Database title, matched case-insensitively.
            parent_id: Page to create the database under; defaults to the
                configured parent page.

        Raises:
            ConfigurationError: A database must be created and no parent
                page is known.
            RemoteStoreError: The API rejected a request.
        """
        body, _ = self._request(
            "POST",
            "search",
            {"query": title, "filter": {"property": "object", "value": "database"}},
        )
        for result in body.get("results", []):
            name = "".join(part.get("plain_text", "") for part in result.get("title", []))
            if name.lower() == title.lower():
                logger.info("Using existing database '%s' (%s)", title, result["id"])
                return result["id"]

        parent = parent_id or self._settings.parent_page_id
        if not parent:
            raise ConfigurationError("No parent page configured for database creation")

        created, _ = self._request(
            "POST",
            "databases",
            {
                "parent": {"type": "page_id", "page_id": parent},
                "title": rich_text(title),
                "properties": DATABASE_PROPERTIES,
            },
        )
        database_id = created.get("id")
        if not database_id:
            raise RemoteStoreError("Notion API response missing database id")
        logger.info("Created database '%s' (%s)", title, database_id)
        return database_id

    def create_page(self, node: MappedNode, options: ImportOptions | None = None) -> ImportResult:
        """Create one Notion page from a mapped node.

        The first ``blocks_per_request`` blocks are sent with the page; the
        rest are appended in batches.

        Args:
            node: The descriptor to create.
            options: Destination parent and progress callback. The parent
                falls back to ``node.destination_parent_id`` and then to the
                configured parent page.

        Returns:
            An ImportResult; API failures are reported through ``error``.
        """
        opts = options or ImportOptions()
        started = time.perf_counter()
        retries = 0

        emit_progress(opts.on_progress, "page-creation", 0, f"Preparing page: {node.title}")
        parent = opts.parent_id or node.destination_parent_id or self._settings.parent_page_id
        if not parent:
            return self._failed(node, "No destination parent configured", started, 0)

        blocks = node.body_blocks
        batch = self._settings.blocks_per_request
        payload = {
            "parent": {"database_id": parent} if opts.parent_is_database else {"page_id": parent},
            "properties": self._page_properties(node, opts.parent_is_database),
            "children": blocks[:batch],
        }

        try:
            emit_progress(opts.on_progress, "page-creation", 10, f"Creating page: {node.title}")
            body, retries = self._request("POST", "pages", payload)
            page_id = body.get("id")
            if not page_id:
                raise RemoteStoreError("Notion API response missing page id")
            for start in range(batch, len(blocks), batch):
                _, attempt_retries = self._request(
                    "PATCH",
                    f"blocks/{page_id}/children",
                    {"children": blocks[start : start + batch]},
                )
                retries += attempt_retries
        except OneNoteMigratorError as exc:
            if isinstance(exc, RateLimitedError):
                retries += self._settings.max_retries
            logger.error("Failed to create page '%s': %s", node.title, exc)
            return self._failed(node, str(exc), started, retries)

        emit_progress(opts.on_progress, "page-creation", 100, "Page created successfully")
        return ImportResult(
            success=True,
            source_id=node.source_id,
            title=node.title,
            page_id=page_id,
            url=body.get("url") or f"https://notion.so/{page_id.replace('-', '')}",
            metadata=ImportMetadata(
                processing_time=time.perf_counter() - started,
                items_processed=1,
                retry_count=retries,
            ),
        )

    def create_page_hierarchy(
        self, nodes: list[MappedNode], options: ImportOptions | None = None
    ) -> list[ImportResult]:
        """Create a descriptor tree depth-first.

        Each node is created before its children, which are created under
        the new page and attached to its result. Children of a node that
        could not be created are reported as skipped failures.
        """
        opts = options or ImportOptions()
        results: list[ImportResult] = []
        emit_progress(opts.on_progress, "hierarchy-building", 10, "Building page hierarchy...")

        for index, node in enumerate(nodes):
            emit_progress(
                opts.on_progress,
                "hierarchy-building",
                round(index / len(nodes) * 80) + 10,
                f"Creating page: {node.title}",
                current_item=index + 1,
                total_items=len(nodes),
            )
            result = self.create_page(node, opts)

            if node.children and result.success:
                child_options = opts.model_copy(
                    update={"parent_id": result.page_id, "parent_is_database": False}
                )
                result.children = self.create_page_hierarchy(node.children, child_options)
            elif node.children:
                logger.warning(
                    "Skipping %d children of '%s' after failed creation",
                    len(node.children),
                    node.title,
                )
                result.children = self._skipped(node.children)
            results.append(result)

        emit_progress(opts.on_progress, "hierarchy-building", 100, "Hierarchy created successfully")
        return results

    def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> tuple[dict[str, Any], int]:
        """Send a request, retrying while rate limited.

        Returns:
            The decoded response body and the number of retries used.

        Raises:
            RateLimitedError: Still rate limited after ``max_retries``.
            RemoteStoreError: Any other API or network failure.
        """
        delay = self._settings.rate_limit_delay
        for attempt in range(self._settings.max_retries + 1):
            try:
                return self._send(method, path, payload), attempt
            except RateLimitedError as exc:
                self._stats["rate_limit_hits"] += 1
                if attempt >= self._settings.max_retries:
                    self._stats["errors"] += 1
                    raise
                wait = min(max(delay, exc.retry_after or 0.0), self._settings.max_backoff)
                logger.warning(
                    "Notion rate limited (attempt %d/%d), retrying in %.1fs",
                    attempt + 1,
                    self._settings.max_retries,
                    wait,
                )
                time.sleep(wait)
                self._stats["retries"] += 1
                delay = min(delay * self._settings.backoff_multiplier, self._settings.max_backoff)

        raise RateLimitedError("Rate limit retries exhausted")

    def _send(
        self, method: str, path: str, payload: dict[str, Any] | None
    ) -> dict[str, Any]:
        url = f"{self._settings.api_url.rstrip('/')}/{path}"
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(),
                json=payload,
                timeout=self._settings.request_timeout,
            )
        except requests.RequestException as exc:
            self._stats["errors"] += 1
            raise RemoteStoreError(f"Network error: {exc}") from exc

        self._stats["requests_made"] += 1
        body = self._decode(response)

        if response.status_code == 429 or body.get("code") == "rate_limited":
            raise RateLimitedError(
                body.get("message", "Rate limited"),
                retry_after=self._retry_after(response),
            )
        if response.status_code >= 400:
            self._stats["errors"] += 1
            message = body.get("message") or response.text[:500]
            raise RemoteStoreError(
                f"Notion API error {response.status_code}: {message}",
                status_code=response.status_code,
                code=body.get("code"),
            )
        return body

    def _headers(self) -> dict[str, str]:
        if not self._settings.token:
            raise ConfigurationError("Notion token is not configured")
        return {
            "Authorization": f"Bearer {self._settings.token}",
            "Notion-Version": self._settings.api_version,
            "Content-Type": "application/json",
        }

    def _decode(self, response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _retry_after(self, response: requests.Response) -> float | None:
        value = response.headers.get("Retry-After")
        try:
            return float(value) if value else None
        except ValueError:
            return None

    def _page_properties(self, node: MappedNode, parent_is_database: bool) -> dict[str, Any]:
        properties = {"title": title_property(node.title)}
        if parent_is_database:
            for key, value in node.properties.items():
                properties[key] = convert_property_value(value)
        return properties

    def _failed(
        self, node: MappedNode, error: str, started: float, retries: int
    ) -> ImportResult:
        return ImportResult(
            success=False,
            source_id=node.source_id,
            title=node.title,
            error=error,
            metadata=ImportMetadata(
                processing_time=time.perf_counter() - started,
                items_processed=0,
                retry_count=retries,
            ),
        )

    def _skipped(self, nodes: list[MappedNode]) -> list[ImportResult]:
        return [
            ImportResult(
                success=False,
                source_id=node.source_id,
                title=node.title,
                error=SKIPPED_MESSAGE,
                children=self._skipped(node.children),
            )
            for node in nodes
        ]
