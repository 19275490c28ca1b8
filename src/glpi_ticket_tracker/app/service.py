"""GLPI operations exposed to the HTTP API and the CLI.

Every public coroutine opens its own GLPI session and kills it before returning,
whether the operation succeeded or not.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date
from functools import partial

import httpx
import structlog
from pydantic import ValidationError

from glpi_ticket_tracker.adapters.glpi import search, subresources
from glpi_ticket_tracker.adapters.glpi.client import (
    AsyncGlpiClient,
    error_detail,
    normalize_base_url,
    response_json_or_none,
)
from glpi_ticket_tracker.adapters.glpi.errors import (
    ConfigurationError,
    GlpiError,
    GlpiRequestError,
)
from glpi_ticket_tracker.adapters.glpi.models import (
    DocumentItem,
    Followup,
    GlpiConfig,
    GlpiTicket,
    Solution,
    Task,
    Validation,
)
from glpi_ticket_tracker.adapters.glpi.search import TagFieldCache
from glpi_ticket_tracker.adapters.glpi.users import UserNameResolver
from glpi_ticket_tracker.adapters.timeline.build_timeline import build_timeline
from glpi_ticket_tracker.app.config_store import FileConfigStore, GlpiConfigStore
from glpi_ticket_tracker.config.settings import Settings
from glpi_ticket_tracker.domain.html_sanitize import strip_to_plain_text
from glpi_ticket_tracker.domain.status_map import map_priority, map_status
from glpi_ticket_tracker.domain.ticket_id import coerce_ticket_id
from glpi_ticket_tracker.domain.ticket_models import (
    AggregatedTicket,
    ConnectionTestResult,
    GroupRow,
    SearchRow,
)
from glpi_ticket_tracker.observability import metrics

log = structlog.get_logger(__name__)

UNASSIGNED = "Unassigned"

ClientFactory = Callable[[GlpiConfig], AsyncGlpiClient]


async def _constant(value: str) -> str:
    return value


class GlpiService:
    def __init__(
        self,
        store: GlpiConfigStore,
        *,
        timeout_seconds: float | None = None,
        verify_tls: bool = True,
        trust_env: bool = False,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._store = store
        self._client_factory = client_factory or partial(
            AsyncGlpiClient,
            timeout_seconds=timeout_seconds,
            verify_tls=verify_tls,
            trust_env=trust_env,
        )
        # One memo per GLPI installation, kept for the lifetime of the service.
        self._tag_fields: dict[str, TagFieldCache] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> GlpiService:
        store = FileConfigStore(settings.storage.config_path)
        glpi = settings.glpi
        if (
            glpi.base_url is not None
            and glpi.app_token is not None
            and glpi.user_token is not None
            and store.load() is None
        ):
            store.save(
                GlpiConfig(
                    base_url=glpi.base_url,
                    app_token=glpi.app_token,
                    user_token=glpi.user_token,
                )
            )
            log.info("config_store.bootstrapped", path=str(store.path))
        return cls(
            store,
            timeout_seconds=glpi.timeout_seconds,
            verify_tls=glpi.verify_tls,
            trust_env=glpi.trust_env,
        )

    @property
    def store(self) -> GlpiConfigStore:
        return self._store

    def tag_field_cache(self, config: GlpiConfig) -> TagFieldCache:
        key = normalize_base_url(config.base_url).lower()
        cache = self._tag_fields.get(key)
        if cache is None:
            cache = self._tag_fields[key] = TagFieldCache()
        return cache

    def _open_client(self, config: GlpiConfig) -> AsyncGlpiClient:
        try:
            return self._client_factory(config)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid GLPI configuration: {exc}") from exc

    def _require_config(self) -> GlpiConfig:
        config = self._store.load()
        if config is None:
            raise ConfigurationError("GLPI API configuration not found")
        return config

    async def fetch_ticket(self, ticket_id: str) -> AggregatedTicket | None:
        """
        Aggregate one ticket with its merged timeline.

        Returns ``None`` when GLPI answers 404. Sub-resource failures degrade to empty
        timeline sections; only configuration, session and ticket-level errors raise.
        """
        config = self._require_config()
        bound = log.bind(ticket_id=ticket_id)
        numeric_id = coerce_ticket_id(ticket_id)
        if numeric_id is None:
            # GLPI ids are positive integers; anything else cannot exist.
            bound.info("glpi.ticket_id_invalid")
            return None
        ticket_id = str(numeric_id)

        with metrics.ticket_fetch_seconds.time():
            async with self._open_client(config) as client, client.session() as token:
                ticket = await self._get_ticket(client, token, ticket_id)
                if ticket is None:
                    bound.info("glpi.ticket_not_found")
                    return None

                resolver = UserNameResolver(client, token)
                (
                    followups,
                    solutions,
                    tasks,
                    validations,
                    document_links,
                    assignee_id,
                ) = await asyncio.gather(
                    subresources.fetch_sub_items(
                        client, token, ticket_id, subresources.FOLLOWUPS, Followup
                    ),
                    subresources.fetch_sub_items(
                        client, token, ticket_id, subresources.SOLUTIONS, Solution
                    ),
                    subresources.fetch_sub_items(
                        client, token, ticket_id, subresources.TASKS, Task
                    ),
                    subresources.fetch_sub_items(
                        client, token, ticket_id, subresources.VALIDATIONS, Validation
                    ),
                    subresources.fetch_sub_items(
                        client, token, ticket_id, subresources.DOCUMENT_LINKS, DocumentItem
                    ),
                    subresources.fetch_assignee_id(client, token, ticket_id),
                )

                requester, assignee = await asyncio.gather(
                    resolver.resolve(ticket.users_id_recipient),
                    resolver.resolve(assignee_id) if assignee_id else _constant(UNASSIGNED),
                )

                updates = await build_timeline(
                    ticket,
                    followups=followups,
                    solutions=solutions,
                    tasks=tasks,
                    validations=validations,
                    document_links=document_links,
                    resolve_user=resolver.resolve,
                    fetch_document=partial(subresources.fetch_document, client, token),
                )

        bound.info("glpi.ticket_fetched", events=len(updates))
        return AggregatedTicket(
            id=str(ticket.id),
            title=strip_to_plain_text(ticket.name),
            status=map_status(ticket.status),
            priority=map_priority(ticket.priority),
            assignee=assignee,
            requester=requester,
            created_at=ticket.date_creation,
            updated_at=ticket.date_mod,
            has_new_updates=False,
            updates=updates,
        )

    async def _get_ticket(
        self, client: AsyncGlpiClient, token: str, ticket_id: str
    ) -> GlpiTicket | None:
        try:
            response = await client.get(f"Ticket/{ticket_id}", session_token=token)
        except httpx.HTTPError as exc:
            raise GlpiRequestError(
                f"Failed to fetch ticket: {exc.__class__.__name__}"
            ) from exc

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise GlpiRequestError(
                error_detail(response, "Failed to fetch ticket"),
                status_code=response.status_code,
            )
        try:
            return GlpiTicket.model_validate(response_json_or_none(response))
        except ValidationError as exc:
            raise GlpiRequestError(
                f"GLPI returned an unexpected payload for ticket {ticket_id}",
                status_code=response.status_code,
            ) from exc

    async def search_tickets(
        self,
        group_id: int | None,
        date_from: str | date,
        date_to: str | date,
    ) -> list[SearchRow]:
        """Search tickets opened within ``[date_from, date_to]`` (inclusive days)."""
        config = self._require_config()
        tag_fields = self.tag_field_cache(config)

        with metrics.search_seconds.time():
            async with self._open_client(config) as client, client.session() as token:
                tag_field_id = await tag_fields.discover(client, token)
                rows = await search.search_tickets(
                    client,
                    token,
                    group_id=group_id,
                    date_from=date_from,
                    date_to=date_to,
                    tag_field_id=tag_field_id,
                    resolver=UserNameResolver(client, token),
                )

        log.info("glpi.search_done", group_id=group_id, rows=len(rows))
        return rows

    async def list_groups(self) -> list[GroupRow]:
        config = self._require_config()
        async with self._open_client(config) as client, client.session() as token:
            return await search.list_groups(client, token)

    async def test_connection(
        self, config: GlpiConfig, ticket_id: str | None = None
    ) -> ConnectionTestResult:
        """Check credentials (and optionally read one ticket). Never raises."""
        snapshot: GlpiTicket | None = None
        numeric_id = coerce_ticket_id(ticket_id) if ticket_id else None
        try:
            async with self._open_client(config) as client, client.session() as token:
                if numeric_id is not None:
                    data = await client.get_json_or_none(
                        f"Ticket/{numeric_id}", session_token=token
                    )
                    try:
                        snapshot = GlpiTicket.model_validate(data) if data else None
                    except ValidationError:
                        snapshot = None
        except GlpiError as exc:
            log.info("glpi.connection_test_failed", error=str(exc))
            return ConnectionTestResult(success=False, message=str(exc) or "Connection failed")

        if snapshot is not None:
            title = strip_to_plain_text(snapshot.name)
            return ConnectionTestResult(
                success=True,
                message=f'Connection successful! Ticket "{title}" found.',
                ticket_snapshot=snapshot.model_dump(),
            )
        return ConnectionTestResult(
            success=True,
            message="Connection successful! Authentication is working.",
        )
