"""relsync – Localization Sync Middleware.

Watches create/update requests on configured content types. Once the
response is produced, the saved entry's relation fields are propagated to
its sibling localizations in a background task, so the client never waits
on (or sees failures from) the sync.
"""

from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from starlette.background import BackgroundTask

from relsync.core.content_types import ContentTypeConfig, SyncConfig
from relsync.gateway.schemas import SavedEntry
from relsync.i18n.propagator import LocalizationPropagator
from relsync.integrations.normalizer import EntryNormalizer

logger = structlog.get_logger()

ACCEPTED_METHODS = {"POST", "PUT"}

_normalizer = EntryNormalizer()


def is_accepted_method(request: Request) -> bool:
    return request.method.upper() in ACCEPTED_METHODS


async def _propagate_in_background(
    propagator: LocalizationPropagator,
    content_type: ContentTypeConfig,
    saved: SavedEntry,
) -> None:
    try:
        await propagator.propagate(content_type, saved)
    except Exception as e:
        logger.error(
            "i18n.middleware.propagation_failed",
            api=content_type.api,
            id=saved.id,
            locale=saved.locale,
            error=str(e),
        )


def install_localization_sync(
    app: FastAPI,
    sync_config: SyncConfig,
    get_propagator: Callable[[], LocalizationPropagator],
) -> None:
    """Attach the localization sync middleware to `app`.

    Args:
        app: Application serving (or proxying) the content API.
        sync_config: Handled content types and default locale.
        get_propagator: Provider called per request, so the propagator can be
            created lazily and replaced in tests.
    """

    @app.middleware("http")
    async def localization_sync_middleware(request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        content_type = sync_config.match(request.url.path)
        if content_type is None or not is_accepted_method(request):
            return response
        if not 200 <= response.status_code < 300:
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        saved = _normalizer.saved_entry(body)

        task = None
        if saved is not None and saved.localizations:
            logger.info(
                "i18n.middleware.scheduled",
                api=content_type.api,
                id=saved.id,
                locale=saved.locale,
                localizations=saved.sibling_ids,
            )
            task = BackgroundTask(_propagate_in_background, get_propagator(), content_type, saved)

        # The body iterator is consumed, so the response is re-emitted from the buffer
        return Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
            background=task,
        )
