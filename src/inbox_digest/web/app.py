"""FastAPI web application exposing the digest pipeline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi import status as http_status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from inbox_digest.core import AppSettings, ServiceContainer, TTLCache, load_app_settings
from inbox_digest.core.interfaces import MailboxError, MailboxProvider
from inbox_digest.core.models import EnrichmentResult, RawMessage
from inbox_digest.ingestion import MessageSource
from inbox_digest.intelligence import OpenAIChatClient, build_enrichment_client
from inbox_digest.pipeline import DigestPipeline
from inbox_digest.transport import GmailClient

LOGGER = logging.getLogger(__name__)

MailboxFactory = Callable[[str], MailboxProvider]

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def build_container(settings: AppSettings) -> ServiceContainer:
    """Register the process-wide services for ``settings``."""
    container = ServiceContainer()
    container.register("settings", lambda _: settings)
    container.register("cache", lambda _: TTLCache[EnrichmentResult]())
    container.register(
        "llm_client",
        lambda _: OpenAIChatClient(settings.llm) if settings.llm.api_key else None,
    )
    container.register(
        "enrichment",
        lambda c: build_enrichment_client(
            settings, c.resolve("cache"), llm_client=c.resolve("llm_client")
        ),
    )
    container.register(
        "pipeline",
        lambda c: DigestPipeline(
            c.resolve("enrichment"),
            settings.pipeline,
            default_query=settings.gmail.default_query,
        ),
    )
    return container


def create_app(
    settings: AppSettings | None = None,
    *,
    mailbox_factory: MailboxFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    container = build_container(app_settings)

    def default_mailbox_factory(access_token: str) -> MailboxProvider:
        return GmailClient(app_settings.gmail, access_token)

    open_mailbox = mailbox_factory or default_mailbox_factory

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        cache: TTLCache[EnrichmentResult] = container.resolve("cache")
        cache.start_sweeper(app_settings.cache.sweep_interval_seconds)
        try:
            yield
        finally:
            container.close()
            LOGGER.info("Services closed")

    app = FastAPI(title="Inbox Digest", lifespan=lifespan)
    app.state.container = container

    def get_pipeline() -> DigestPipeline:
        return container.resolve("pipeline")

    def get_source(
        authorization: str | None = Header(default=None),
    ) -> MessageSource:
        token = _parse_bearer(authorization)
        if token is None:
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail="Missing mailbox access token.",
            )
        try:
            return MessageSource(open_mailbox(token))
        except MailboxError as exc:
            raise HTTPException(
                status_code=http_status.HTTP_401_UNAUTHORIZED,
                detail=f"Failed to connect to mailbox: {exc}",
            ) from exc

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "ok"

    @app.get("/api/emails")
    async def list_emails(
        query: str | None = Query(default=None),
        requester_id: str = Depends(_get_requester_id),
        source: MessageSource = Depends(get_source),  # noqa: B008
        pipeline: DigestPipeline = Depends(get_pipeline),  # noqa: B008
    ) -> JSONResponse:
        try:
            messages = await pipeline.gather_messages(
                source, query, release=source.close
            )
        except MailboxError as exc:
            LOGGER.warning("Message listing failed for %s: %s", requester_id, exc)
            raise HTTPException(
                status_code=http_status.HTTP_502_BAD_GATEWAY,
                detail="Extraction failed.",
            ) from exc
        return JSONResponse([_serialize_message(message) for message in messages])

    @app.get("/api/emails/summaries")
    async def summarize_emails(
        query: str | None = Query(default=None),
        requester_id: str = Depends(_get_requester_id),
        source: MessageSource = Depends(get_source),  # noqa: B008
        pipeline: DigestPipeline = Depends(get_pipeline),  # noqa: B008
    ) -> JSONResponse:
        try:
            results = await pipeline.gather_summaries(
                requester_id, source, query, release=source.close
            )
        except MailboxError as exc:
            LOGGER.warning("Batch digest failed for %s: %s", requester_id, exc)
            raise HTTPException(
                status_code=http_status.HTTP_502_BAD_GATEWAY,
                detail="Extraction failed.",
            ) from exc
        return JSONResponse([result.to_payload() for result in results])

    @app.get("/api/emails/stream")
    async def stream_emails(
        query: str | None = Query(default=None),
        requester_id: str = Depends(_get_requester_id),
        source: MessageSource = Depends(get_source),  # noqa: B008
        pipeline: DigestPipeline = Depends(get_pipeline),  # noqa: B008
    ) -> StreamingResponse:
        cancel = asyncio.Event()

        async def generate() -> AsyncIterator[str]:
            frames = pipeline.start_stream(
                requester_id, source, cancel, query, release=source.close
            )
            try:
                async with aclosing(frames):
                    async for frame in frames:
                        yield frame
            finally:
                cancel.set()

        return StreamingResponse(
            generate(), media_type="text/event-stream", headers=SSE_HEADERS
        )

    return app


def _get_requester_id(
    x_requester_id: str | None = Header(default=None),
) -> str:
    if not x_requester_id:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: no requester id.",
        )
    return x_requester_id


def _parse_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _serialize_message(message: RawMessage) -> dict[str, Any]:
    return {
        "id": message.ref,
        "subject": message.subject,
        "from": message.sender,
        "date": message.date,
        "body": message.body,
        "snippet": message.snippet,
    }


__all__ = ["MailboxFactory", "build_container", "create_app"]
