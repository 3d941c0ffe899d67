import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import get_push_service, require_service_key
from app.schemas.push import PushErrorResponse, PushNotificationRequest, PushSendResponse, PushStatusResponse
from app.services.push import PushService
from app.services.push_types import CredentialError, InvalidPushRequest, ResolutionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/push", tags=["push"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=PushErrorResponse(error=message).model_dump())


@router.post(
    "/send",
    response_model=PushSendResponse,
    responses={400: {"model": PushErrorResponse}, 502: {"model": PushErrorResponse}, 503: {"model": PushErrorResponse}},
)
def send_push(
    payload: PushNotificationRequest,
    push_service: PushService = Depends(get_push_service),
    _: None = Depends(require_service_key),
):
    try:
        return push_service.send(payload)
    except InvalidPushRequest as exc:
        return _error(400, str(exc))
    except CredentialError as exc:
        logger.error("Push aborted, credential failure: %s", exc)
        return _error(502, str(exc))
    except ResolutionError as exc:
        logger.error("Push aborted, recipient resolution failure: %s", exc)
        return _error(503, str(exc))


@router.get("/status", response_model=PushStatusResponse)
def push_status(
    push_service: PushService = Depends(get_push_service),
    _: None = Depends(require_service_key),
):
    return push_service.status()
