"""Shared route dependencies: the runtime on app.state and error-to-HTTP conversion."""
import logging
from typing import NoReturn

from fastapi import Request

from dropsniper.core.errors import SniperError, sniper_error_to_http
from dropsniper.runtime import SniperRuntime

logger = logging.getLogger(__name__)


def get_runtime(request: Request) -> SniperRuntime:
    return request.app.state.runtime


def handle_service_error(exc: Exception) -> NoReturn:
    """Raise the HTTPException for a service failure. Unexpected errors are logged with traceback."""
    if not isinstance(exc, (SniperError, ValueError)):
        logger.exception("Unexpected error in route: %s", exc)
    raise sniper_error_to_http(exc) from exc
