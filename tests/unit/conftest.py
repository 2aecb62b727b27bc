from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from certdesk.schema.certificate import Certificate

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_certificate() -> Callable[..., Certificate]:
    def func(
        id: str = "cert-1",
        cn: str = "example.com",
        sans: Optional[list[str]] = None,
        days: float = 90,
        status: str = "active",
        key_strategy: str = "server",
    ) -> Certificate:
        """Creates a Certificate whose not_after is days after FIXED_NOW"""
        return Certificate(
            id=id,
            cn=cn,
            sans=[] if sans is None else sans,
            not_after=FIXED_NOW + timedelta(days=days),
            status=status,
            key_strategy=key_strategy,
            created_at=FIXED_NOW - timedelta(days=1),
            updated_at=FIXED_NOW - timedelta(days=1),
        )

    return func
