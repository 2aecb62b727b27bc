import logging

import uvicorn
from fastapi import FastAPI

from certdesk.config_app.config import API_URL_ATTR, router
from certdesk.config_app.settings import AppSettings, settings

# Setup logs
logging.basicConfig(style="{", level=logging.INFO)
logger = logging.getLogger(__name__)


def generate_app(new_settings: AppSettings) -> FastAPI:
    """Generates a new app instance utilising the specific settings instance"""
    new_app = FastAPI(**new_settings.fastapi_kwargs)
    new_app.include_router(router)

    # Manually inject the configured api url into app state
    setattr(new_app.state, API_URL_ATTR, new_settings.api_url)
    if new_settings.api_url:
        logger.info(f"Serving configured CA api url {new_settings.api_url}")
    else:
        logger.info("No CA api url configured. Clients will fall back to their own origin")

    return new_app


# Setup app
app = generate_app(settings)

if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=3000)
