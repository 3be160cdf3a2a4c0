"""
Analytics API routes for Pagelink.

JSON endpoints for the workspace dashboard, the per-document analytics
page, the per-asset page, the event export and A/B test results.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, tzinfo

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, TypeAdapter, ValidationError

from ..config import AnalyticsConfig
from ..core.ab_test import (
    ABTestError,
    ab_test_status,
    apply_variant_events,
    calculate_confidence,
    declare_winner,
    is_ready_to_declare,
    rank_variants,
)
from ..core.buckets import to_local, today, window_bounds
from ..core.client import EventStoreClient, EventStoreError, NotAuthenticatedError
from ..core.composer import (
    compose_asset_analytics,
    compose_document_analytics,
    compose_workspace_analytics,
    previous_window_end,
)
from ..core.demo import (
    demo_ab_test,
    demo_asset_analytics,
    demo_document_analytics,
    demo_workspace_analytics,
)
from ..core.export import demo_export_rows, export_filename, export_rows, to_csv
from ..core.models import ABTestConfig, ABTestEvent, CamelModel, parse_events

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"

_TIMESTAMP = TypeAdapter(datetime)


class DateRangeError(ValueError):
    """Raised when the requested start/end dates do not form a valid window."""
    pass


class DeclareWinnerRequest(CamelModel):
    winner_id: str


def _parse_day(value: str, tz: tzinfo) -> date:
    """Parse a YYYY-MM-DD date or an ISO timestamp (taken in ``tz``).

    Timestamps may end in "Z", as JavaScript's ``toISOString`` writes them.
    """
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return to_local(_TIMESTAMP.validate_python(value), tz).date()
    except ValidationError:
        raise DateRangeError(
            f"Invalid date {value!r}. Use YYYY-MM-DD or an ISO timestamp."
        ) from None


def _parse_window(
    days: int,
    start: str | None,
    end: str | None,
    tz: tzinfo,
    max_days: int,
) -> tuple[int, date]:
    """Resolve query parameters into (window length, last day).

    An explicit ``start`` fixes the length; otherwise ``days`` ending on
    ``end`` (default today).

    Raises:
        DateRangeError: If the dates are invalid or the window is too long
    """
    end_date = _parse_day(end, tz) if end else today(tz)

    if not start:
        return days, end_date

    start_date = _parse_day(start, tz)
    if end_date < start_date:
        raise DateRangeError("End date must be on or after start date")

    length = (end_date - start_date).days + 1
    if length > max_days:
        raise DateRangeError(f"Date range cannot exceed {max_days} days")

    return length, end_date


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _json(model: BaseModel) -> JSONResponse:
    return JSONResponse(model.model_dump(mode="json", by_alias=True))


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_analytics_router(
    config: AnalyticsConfig,
    client: EventStoreClient | None = None,
) -> APIRouter:
    """Create the analytics API router.

    Args:
        config: Analytics configuration
        client: Event store client; built from ``config`` when omitted.
            With neither, every endpoint serves demo data.
    """
    router = APIRouter(tags=["analytics"])
    tz = config.tzinfo

    if client is None and config.is_configured:
        client = EventStoreClient(
            base_url=config.store_url,
            api_key=config.store_api_key,
            timeout=config.request_timeout,
        )

    def _session(request: Request) -> EventStoreClient | None:
        """Store client for the caller's session, or None without one."""
        if client is None:
            return None
        token = _bearer_token(request)
        return client.for_session(token) if token else None

    def _unavailable(demo: BaseModel, reason: str) -> JSONResponse:
        """Demo payload in place of data the store could not provide."""
        if not config.demo_fallback:
            logger.warning(f"Analytics unavailable: {reason}")
            return _error(503, "Analytics unavailable")
        logger.warning(f"Serving demo analytics: {reason}")
        return _json(demo)

    # -------------------------------------------------------------------------
    # Workspace
    # -------------------------------------------------------------------------

    async def _workspace_analytics(request: Request, days: int, end_date: date) -> JSONResponse:
        def demo() -> BaseModel:
            return demo_workspace_analytics(days, end_date)

        session = _session(request)
        if session is None:
            return _unavailable(demo(), "no event store session")

        try:
            user = await session.get_user()
            workspace_id = await session.get_workspace_id(user["id"])
            if workspace_id is None:
                return _unavailable(demo(), f"no workspace for user {user['id']}")

            start_at, end_at = window_bounds(days, end_date, tz)
            rows, assets, links, collections = await asyncio.gather(
                session.get_workspace_events(workspace_id, start_at, end_at),
                session.get_top_assets(workspace_id),
                session.get_top_links(workspace_id),
                session.get_top_collections(workspace_id),
            )
        except EventStoreError as e:
            return _unavailable(demo(), str(e))

        analytics = compose_workspace_analytics(
            parse_events(rows),
            days,
            end=end_date,
            tz=tz,
            top_assets=assets,
            top_links=links,
            top_collections=collections,
        )
        return _json(analytics)

    @router.get("/analytics")
    async def workspace_analytics(
        request: Request,
        days: int = Query(config.default_days, ge=1, le=config.max_days),
        start: str | None = Query(None, description="Window start (YYYY-MM-DD or ISO timestamp)"),
        end: str | None = Query(None, description="Window end (YYYY-MM-DD or ISO timestamp)"),
    ):
        """Workspace dashboard analytics."""
        try:
            window_days, end_date = _parse_window(days, start, end, tz, config.max_days)
        except DateRangeError as e:
            return _error(400, str(e))

        try:
            return await _workspace_analytics(request, window_days, end_date)
        except Exception:
            logger.exception("Workspace analytics failed")
            return _error(500, INTERNAL_ERROR)

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def _export_response(rows, start_date: date, end_date: date, export_format: str):
        filename = export_filename(start_date, end_date, export_format)
        disposition = {"Content-Disposition": f'attachment; filename="{filename}"'}

        if export_format == "json":
            return JSONResponse([r.to_dict() for r in rows], headers=disposition)

        return StreamingResponse(
            iter([to_csv(rows)]),
            media_type="text/csv",
            headers=disposition,
        )

    @router.get("/analytics/export")
    async def export_analytics(
        request: Request,
        days: int = Query(config.default_days, ge=1, le=config.max_days),
        start: str | None = None,
        end: str | None = None,
        export_format: str = Query("csv", alias="format", pattern="^(csv|json)$"),
    ):
        """Export raw workspace events as CSV or JSON."""
        try:
            window_days, end_date = _parse_window(days, start, end, tz, config.max_days)
        except DateRangeError as e:
            return _error(400, str(e))

        start_date = end_date - timedelta(days=window_days - 1)

        try:
            if client is None:
                return _export_response(demo_export_rows(window_days), start_date, end_date, export_format)

            session = _session(request)
            if session is None:
                return _error(401, "Unauthorized")

            try:
                user = await session.get_user()
                workspace_id = await session.get_workspace_id(user["id"])
                if workspace_id is None:
                    return _error(404, "Workspace not found")
                start_at, end_at = window_bounds(window_days, end_date, tz)
                rows = await session.get_workspace_events(workspace_id, start_at, end_at, with_names=True)
            except NotAuthenticatedError:
                return _error(401, "Unauthorized")
            except EventStoreError as e:
                logger.error(f"Failed to fetch analytics for export: {e}")
                return _error(500, "Failed to fetch analytics")

            return _export_response(export_rows(parse_events(rows)), start_date, end_date, export_format)
        except Exception:
            logger.exception("Analytics export failed")
            return _error(500, INTERNAL_ERROR)

    # -------------------------------------------------------------------------
    # Asset
    # -------------------------------------------------------------------------

    async def _asset_analytics(request: Request, asset_id: str, days: int) -> JSONResponse:
        end_date = today(tz)

        def demo() -> BaseModel:
            return demo_asset_analytics(asset_id, days, end_date)

        session = _session(request)
        if session is None:
            return _unavailable(demo(), "no event store session")

        try:
            user = await session.get_user()
            workspace_id = await session.get_workspace_id(user["id"])
            if workspace_id is None:
                return _error(404, "Workspace not found")

            asset = await session.get_asset(asset_id, workspace_id)
            if not asset:
                return _error(404, "Asset not found")

            rows = await session.get_asset_events(str(asset["id"]), *window_bounds(days, end_date, tz))
        except EventStoreError as e:
            return _unavailable(demo(), str(e))

        return _json(compose_asset_analytics(asset, parse_events(rows), days, end=end_date, tz=tz))

    @router.get("/analytics/assets/{asset_id}")
    async def asset_analytics(
        request: Request,
        asset_id: str,
        days: int = Query(config.default_days, ge=1, le=config.max_days),
    ):
        """Analytics for one asset of the caller's workspace."""
        try:
            return await _asset_analytics(request, asset_id, days)
        except Exception:
            logger.exception(f"Asset analytics failed for {asset_id}")
            return _error(500, INTERNAL_ERROR)

    # -------------------------------------------------------------------------
    # Document
    # -------------------------------------------------------------------------

    async def _owned_document(session: EventStoreClient, document_id: str):
        """(user, document) for the session, or an error response.

        Raises:
            EventStoreError: If the store cannot be queried
        """
        try:
            user = await session.get_user()
        except NotAuthenticatedError:
            return None, _error(401, "Unauthorized")

        document = await session.get_document(document_id)
        if not document:
            return None, _error(404, "Document not found")
        if document.get("user_id") != user["id"]:
            return None, _error(403, "Forbidden")
        return document, None

    async def _document_analytics(request: Request, document_id: str, days: int) -> JSONResponse:
        end_date = today(tz)

        def demo() -> BaseModel:
            return demo_document_analytics(document_id, days, end_date)

        if client is None:
            return _unavailable(demo(), "event store not configured")

        session = _session(request)
        if session is None:
            return _error(401, "Unauthorized")

        try:
            document, denied = await _owned_document(session, document_id)
            if denied:
                return denied

            doc_id = str(document["id"])
            current, previous = await asyncio.gather(
                session.get_document_events(doc_id, *window_bounds(days, end_date, tz)),
                session.get_document_events(doc_id, *window_bounds(days, previous_window_end(days, end_date), tz)),
            )
        except NotAuthenticatedError:
            return _error(401, "Unauthorized")
        except EventStoreError as e:
            return _unavailable(demo(), str(e))

        analytics = compose_document_analytics(
            document,
            parse_events(current),
            parse_events(previous),
            days,
            end=end_date,
            tz=tz,
        )
        return _json(analytics)

    @router.get("/documents/{document_id}/analytics")
    async def document_analytics(
        request: Request,
        document_id: str,
        days: int = Query(config.default_days, ge=1, le=config.max_days),
    ):
        """Analytics for one document (by id or slug)."""
        try:
            return await _document_analytics(request, document_id, days)
        except Exception:
            logger.exception(f"Document analytics failed for {document_id}")
            return _error(500, INTERNAL_ERROR)

    # -------------------------------------------------------------------------
    # A/B test
    # -------------------------------------------------------------------------

    def _ab_test_payload(ab_config: ABTestConfig | None, events: list[dict]) -> dict:
        leading = rank_variants(ab_config.variants)[0] if ab_config and ab_config.variants else None
        return {
            "config": ab_config.model_dump(mode="json", by_alias=True) if ab_config else None,
            "events": events,
            "status": ab_test_status(ab_config).value,
            "confidence": calculate_confidence(ab_config.variants) if ab_config else 0,
            "leadingVariantId": leading.id if leading else None,
            "readyToDeclare": is_ready_to_declare(ab_config) if ab_config else False,
        }

    async def _ab_test_results(request: Request, document_id: str) -> JSONResponse:
        if client is None:
            return JSONResponse(_ab_test_payload(demo_ab_test(), []))

        session = _session(request)
        if session is None:
            return _error(401, "Unauthorized")

        try:
            document, denied = await _owned_document(session, document_id)
            if denied:
                return denied
            rows = await session.get_ab_test_events(str(document["id"]))
        except NotAuthenticatedError:
            return _error(401, "Unauthorized")
        except EventStoreError as e:
            logger.warning(f"Serving demo A/B test results: {e}")
            return JSONResponse(_ab_test_payload(demo_ab_test(), []))

        raw_config = document.get("ab_test_config")
        ab_config = ABTestConfig.model_validate(raw_config) if raw_config else None
        if ab_config:
            ab_config = apply_variant_events(ab_config, [ABTestEvent.model_validate(r) for r in rows])

        return JSONResponse(_ab_test_payload(ab_config, rows))

    @router.get("/documents/{document_id}/ab-test")
    async def ab_test_results(request: Request, document_id: str):
        """A/B test config with per-variant stats and the confidence score."""
        try:
            return await _ab_test_results(request, document_id)
        except Exception:
            logger.exception(f"A/B test results failed for {document_id}")
            return _error(500, INTERNAL_ERROR)

    async def _declare_winner(request: Request, document_id: str, winner_id: str) -> JSONResponse:
        if client is None:
            return JSONResponse({"success": True})

        session = _session(request)
        if session is None:
            return _error(401, "Unauthorized")

        try:
            document, denied = await _owned_document(session, document_id)
            if denied:
                return denied

            raw_config = document.get("ab_test_config")
            ab_config = ABTestConfig.model_validate(raw_config) if raw_config else None
            try:
                updated, winner = declare_winner(ab_config, winner_id)
            except ABTestError as e:
                return _error(400, str(e))

            await session.update_document(str(document["id"]), {
                "html": winner.html,
                "ab_test_config": updated.model_dump(mode="json", by_alias=True),
            })
        except NotAuthenticatedError:
            return _error(401, "Unauthorized")
        except EventStoreError as e:
            logger.error(f"Winner declaration failed for {document_id}: {e}")
            return _error(500, "Failed to declare winner")

        logger.info(f"Document {document_id}: declared variant {winner_id} the winner")
        return JSONResponse({"success": True, "winner": winner.model_dump(mode="json", by_alias=True)})

    @router.patch("/documents/{document_id}/ab-test")
    async def ab_test_declare_winner(request: Request, document_id: str, body: DeclareWinnerRequest):
        """Conclude the A/B test with the given winning variant."""
        try:
            return await _declare_winner(request, document_id, body.winner_id)
        except Exception:
            logger.exception(f"Winner declaration failed for {document_id}")
            return _error(500, INTERNAL_ERROR)

    return router
