import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from certdesk.schema.certificate import Certificate, CertificateStatus, ExpiryClassification

# Policy constants. A certificate within CRITICAL_THRESHOLD_DAYS of expiry is "critical" on a per item basis while
# EXPIRING_SOON_THRESHOLD_DAYS drives both the "warning" classification and the aggregate "expiring soon" count
CRITICAL_THRESHOLD_DAYS = 7
EXPIRING_SOON_THRESHOLD_DAYS = 30

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CertificateSummary:
    """Aggregate counts over a snapshot of certificates"""

    total: int
    expiring: int  # 0 < days_until_expiry <= EXPIRING_SOON_THRESHOLD_DAYS
    expired: int  # days_until_expiry <= 0
    active: int  # stored status is active (regardless of expiry)


def days_until_expiry(cert: Certificate, now: datetime) -> int:
    """Whole days remaining until cert.not_after (rounded down). Negative values indicate an expired cert"""
    return math.floor((cert.not_after - now) / _ONE_DAY)


def expiry_classification(cert: Certificate, now: datetime) -> ExpiryClassification:
    days = days_until_expiry(cert, now)
    if days <= 0:
        return ExpiryClassification.EXPIRED
    elif days <= CRITICAL_THRESHOLD_DAYS:
        return ExpiryClassification.CRITICAL
    elif days <= EXPIRING_SOON_THRESHOLD_DAYS:
        return ExpiryClassification.WARNING
    else:
        return ExpiryClassification.HEALTHY


def display_status(cert: Certificate, now: datetime) -> str:
    """The status that should be shown to an operator. A revocation always wins, otherwise a cert past its
    not_after is shown as expired even if the CA still reports it as active"""
    if cert.status == CertificateStatus.REVOKED:
        return CertificateStatus.REVOKED.value
    if days_until_expiry(cert, now) <= 0:
        return CertificateStatus.EXPIRED.value
    return cert.status


def is_actionable(cert: Certificate) -> bool:
    """Renew/revoke are only offered for certificates whose stored status is active"""
    return cert.status == CertificateStatus.ACTIVE


def summarise(certs: Iterable[Certificate], now: datetime) -> CertificateSummary:
    total = 0
    expiring = 0
    expired = 0
    active = 0
    for cert in certs:
        total += 1
        days = days_until_expiry(cert, now)
        if days <= 0:
            expired += 1
        elif days <= EXPIRING_SOON_THRESHOLD_DAYS:
            expiring += 1

        if cert.status == CertificateStatus.ACTIVE:
            active += 1

    return CertificateSummary(total=total, expiring=expiring, expired=expired, active=active)
