from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.dependencies import get_channel_repository, get_keyword_monitor_service
from backend.app.models.analysis_contracts import (
    AggregateResponse,
    AnalyzeChannelRequest,
    AnalyzeMultiRequest,
    ErrorResponse,
    SingleChannelResponse,
    StoredChannelResponse,
)
from backend.app.repositories.channel_repository import ChannelRepository
from backend.app.services.errors import (
    ChannelNotFoundError,
    InvalidKeywordError,
    InvalidRequestError,
    MissingCredentialError,
    UpstreamError,
)
from backend.app.services.keyword_monitor_service import KeywordMonitorService

LOGGER = logging.getLogger("keyword_monitor.api")

router = APIRouter(prefix="/api")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def error_response(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@router.post(
    "/analyze-multi",
    response_model=AggregateResponse,
    responses=_ERROR_RESPONSES,
    tags=["analysis"],
    operation_id="analyze_multi",
)
async def analyze_multi(
    request: AnalyzeMultiRequest,
    service: Annotated[KeywordMonitorService, Depends(get_keyword_monitor_service)],
) -> Any:
    context_tokens = bind_contextvars(keyword=request.keyword)
    try:
        result = await service.analyze_channels(
            request.channel_references or [],
            request.keyword or "",
        )
    except MissingCredentialError as exc:
        return error_response(500, str(exc))
    except (InvalidRequestError, InvalidKeywordError) as exc:
        return error_response(400, str(exc))
    except Exception as exc:
        LOGGER.warning("multi-channel analysis failed", exc_info=True)
        return error_response(500, "Failed to analyze channels", details=str(exc))
    finally:
        reset_contextvars(**context_tokens)
    return AggregateResponse.from_result(result)


@router.post(
    "/analyze-channel",
    response_model=SingleChannelResponse,
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse}},
    tags=["analysis"],
    operation_id="analyze_channel",
)
async def analyze_channel(
    request: AnalyzeChannelRequest,
    service: Annotated[KeywordMonitorService, Depends(get_keyword_monitor_service)],
) -> Any:
    context_tokens = bind_contextvars(keyword=request.keyword)
    try:
        result = await service.analyze_single_channel(
            request.channel_reference or "",
            request.keyword or "",
        )
    except MissingCredentialError as exc:
        return error_response(500, str(exc))
    except (InvalidRequestError, InvalidKeywordError) as exc:
        return error_response(400, str(exc))
    except ChannelNotFoundError as exc:
        return error_response(404, str(exc))
    except UpstreamError as exc:
        return error_response(500, "Failed to analyze channel", details=str(exc))
    except Exception as exc:
        LOGGER.warning("single-channel analysis failed", exc_info=True)
        return error_response(500, "Failed to analyze channel", details=str(exc))
    finally:
        reset_contextvars(**context_tokens)
    return SingleChannelResponse.from_result(result)


@router.get(
    "/channels",
    response_model=list[StoredChannelResponse],
    tags=["channels"],
    operation_id="list_stored_channels",
)
def list_stored_channels(
    repository: Annotated[ChannelRepository | None, Depends(get_channel_repository)],
) -> list[StoredChannelResponse]:
    if repository is None:
        return []
    return [StoredChannelResponse.from_stored(channel) for channel in repository.list_channels()]
