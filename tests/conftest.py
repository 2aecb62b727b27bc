import os

import pytest
from assertical.fixtures.environment import environment_snapshot

SETTINGS_ENV_VARS = ["API_URL", "CONFIG_URL", "CLIENT_ORIGIN", "REQUEST_TIMEOUT_SECONDS", "DEFAULT_LIST_LIMIT"]


@pytest.fixture
def preserved_environment():
    with environment_snapshot():
        # Tests start from the certdesk defaults
        for key in SETTINGS_ENV_VARS:
            os.environ.pop(key, None)
        yield


@pytest.fixture
def anyio_backend():
    # The async tests use asyncio primitives directly (asyncio.Event, ensure_future, gather)
    return "asyncio"
