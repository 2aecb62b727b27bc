import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar, Union

from certdesk.client.ca import DEFAULT_NOT_AFTER_DAYS, CAClient, create_client
from certdesk.exception import LifecycleConflict, RevocationNotConfirmed, ValidationFailed
from certdesk.manager import expiry, inventory
from certdesk.manager.time import utc_now
from certdesk.schema.certificate import (
    CertBundle,
    Certificate,
    CertificateFormat,
    IssueResponse,
    SignedCertificate,
)
from certdesk.settings import DEFAULT_LIST_LIMIT, CommonSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

VALIDITY_PRESET_DAYS = (30, 90, 180, 365)
DEFAULT_VALIDITY_DAYS = DEFAULT_NOT_AFTER_DAYS

SIGNED_CERT_FILENAME = "certificate.pem"
SIGNED_CHAIN_FILENAME = "chain.pem"

# Receives a human readable prompt and returns True only if the operator explicitly confirmed the action
ConfirmFn = Callable[[str], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class CertificateSnapshot:
    """A materialised (and possibly stale) copy of the CA's certificate inventory"""

    certificates: list[Certificate]
    fetched_at: datetime  # tz aware time the snapshot was fetched

    def find(self, certificate_id: str) -> Optional[Certificate]:
        for cert in self.certificates:
            if cert.id == certificate_id:
                return cert
        return None


class LifecycleManager:
    """Orchestrates issue/sign/renew/revoke against a CAClient.

    The CA is the source of truth - this only ever holds a snapshot that is discarded and refetched after every
    mutating operation (it is never patched in place). A second renew/revoke for a certificate id whose previous
    action hasn't completed is rejected before anything is sent."""

    snapshot: Optional[CertificateSnapshot]
    _client: CAClient
    _list_limit: int
    _in_flight: set[str]

    def __init__(self, client: CAClient, list_limit: int = DEFAULT_LIST_LIMIT) -> None:
        self.snapshot = None
        self._client = client
        self._list_limit = list_limit
        self._in_flight = set()

    async def refresh(self) -> CertificateSnapshot:
        """Fetches a brand new snapshot from the CA (replacing the current snapshot)"""
        certificates = await self._client.list_certificates(limit=self._list_limit)
        self.snapshot = CertificateSnapshot(certificates=certificates, fetched_at=utc_now())
        logger.debug(f"Refreshed snapshot with {len(certificates)} certificates")
        return self.snapshot

    async def refresh_after(self, mutation: Callable[[], Awaitable[T]]) -> tuple[T, CertificateSnapshot]:
        """Runs mutation, invalidates the current snapshot and then refetches it.

        If mutation raises, the current snapshot is left untouched and the error propagates. If the refetch fails
        the snapshot is left invalidated (None) and that error propagates"""
        result = await mutation()
        self.snapshot = None
        return (result, await self.refresh())

    def _check_not_in_flight(self, certificate_id: str) -> None:
        if certificate_id in self._in_flight:
            raise LifecycleConflict(f"A lifecycle action for certificate {certificate_id} is already in progress")

    async def _fenced(self, certificate_id: str, mutation: Callable[[], Awaitable[T]]) -> tuple[T, CertificateSnapshot]:
        self._check_not_in_flight(certificate_id)

        self._in_flight.add(certificate_id)
        try:
            return await self.refresh_after(mutation)
        finally:
            self._in_flight.discard(certificate_id)

    async def issue(
        self,
        cn: str,
        sans: Optional[list[str]] = None,
        not_after_days: int = DEFAULT_VALIDITY_DAYS,
        format: Union[str, CertificateFormat] = CertificateFormat.PEM,
        pfx_password: Optional[str] = None,
    ) -> tuple[IssueResponse, CertificateSnapshot]:
        logger.info(f"Issuing certificate for CN '{cn}' with {len(sans or [])} SANs valid for {not_after_days} days")
        return await self.refresh_after(
            lambda: self._client.issue_certificate(cn, sans, not_after_days, format, pfx_password)
        )

    async def sign_csr(
        self, csr_pem: str, not_after_days: int = DEFAULT_VALIDITY_DAYS
    ) -> tuple[SignedCertificate, CertificateSnapshot]:
        logger.info(f"Signing CSR valid for {not_after_days} days")
        return await self.refresh_after(lambda: self._client.sign_csr(csr_pem, not_after_days))

    async def renew(self, certificate_id: str) -> tuple[Certificate, CertificateSnapshot]:
        """Renews an active certificate. raises LifecycleConflict/NotFound as reported by the CA"""
        logger.info(f"Renewing certificate {certificate_id}")
        return await self._fenced(certificate_id, lambda: self._client.renew(certificate_id))

    async def revoke(self, certificate_id: str, confirm: ConfirmFn) -> CertificateSnapshot:
        """Revokes a certificate once confirm has returned True. Revocation is irreversible and will never be retried.

        raises RevocationNotConfirmed (without sending anything) if confirm doesn't return True
        raises LifecycleConflict (without prompting) if another action on certificate_id is still in progress"""
        self._check_not_in_flight(certificate_id)

        known = self.snapshot.find(certificate_id) if self.snapshot else None
        subject = known.cn if known else certificate_id

        confirmed = confirm(f"Are you sure you want to revoke certificate for {subject}?")
        if inspect.isawaitable(confirmed):
            confirmed = await confirmed
        if confirmed is not True:
            logger.info(f"Revocation of certificate {certificate_id} was not confirmed")
            raise RevocationNotConfirmed(f"Revocation of certificate for {subject} was not confirmed")

        logger.info(f"Revoking certificate {certificate_id}")
        (_, snapshot) = await self._fenced(certificate_id, lambda: self._client.revoke(certificate_id))
        return snapshot

    def search(self, search_term: Optional[str] = None, status_filter: Optional[str] = None) -> list[Certificate]:
        """Filters the current snapshot (an empty list if there is no snapshot). Never fetches"""
        if self.snapshot is None:
            return []
        return inventory.filter_certificates(self.snapshot.certificates, search_term, status_filter)

    def summary(self, now: Optional[datetime] = None) -> expiry.CertificateSummary:
        certificates = self.snapshot.certificates if self.snapshot else []
        return expiry.summarise(certificates, utc_now() if now is None else now)

    def actionable(self) -> list[Certificate]:
        """The certificates in the current snapshot that can still be renewed/revoked"""
        if self.snapshot is None:
            return []
        return [c for c in self.snapshot.certificates if expiry.is_actionable(c)]


def create_manager(source_settings: CommonSettings, client: Optional[CAClient] = None) -> LifecycleManager:
    """Creates a new LifecycleManager whose snapshot size is taken from source_settings. If client isn't specified, a
    new one is created from source_settings"""
    if client is None:
        client = create_client(source_settings)
    return LifecycleManager(client, list_limit=source_settings.default_list_limit)


def save_bundle(bundle: CertBundle, directory: Union[str, Path]) -> Path:
    """Decodes an issued bundle and writes it into directory using the CA supplied filename.

    raises ValidationFailed if the filename doesn't name a file"""
    name = Path(bundle.filename).name
    if name in ("", ".", ".."):
        raise ValidationFailed(f"CA supplied bundle filename '{bundle.filename}' is not a valid file name")

    target = Path(directory) / name
    target.write_bytes(bundle.decoded())
    logger.info(f"Wrote {bundle.mime_type} bundle to {target}")
    return target


def save_signed(signed: SignedCertificate, directory: Union[str, Path]) -> tuple[Path, Path]:
    """Writes the signed certificate and its chain as PEM files into directory"""
    cert_path = Path(directory) / SIGNED_CERT_FILENAME
    chain_path = Path(directory) / SIGNED_CHAIN_FILENAME
    cert_path.write_text(signed.cert_pem)
    chain_path.write_text(signed.chain_pem)
    logger.info(f"Wrote signed certificate to {cert_path} and chain to {chain_path}")
    return (cert_path, chain_path)
