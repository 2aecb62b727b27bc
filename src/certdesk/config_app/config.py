import logging
from http import HTTPStatus

from fastapi import APIRouter, Request

from certdesk.schema.certificate import ConfigResponse
from certdesk.schema.uri import ConfigUri

logger = logging.getLogger(__name__)

router = APIRouter()

API_URL_ATTR = "api_url"


@router.get(ConfigUri, status_code=HTTPStatus.OK, response_model=ConfigResponse)
async def get_config(request: Request) -> ConfigResponse:
    """Reports the configured CA api url. A null apiUrl instructs the caller to use its own origin instead.

    Returns:
        ConfigResponse
    """
    api_url = getattr(request.app.state, API_URL_ATTR, None)
    return ConfigResponse(api_url=api_url if api_url else None)
