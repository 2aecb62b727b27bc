import logging
from enum import Enum
from typing import Any, Optional, Type, TypeVar, Union
from urllib.parse import quote

from httpx import AsyncBaseTransport, AsyncClient, Response
from pydantic import BaseModel

from certdesk.client.endpoint import REQUEST_TIMEOUT_SECONDS, EndpointResolver, create_resolver
from certdesk.exception import (
    IssuanceRejected,
    LifecycleConflict,
    NotFound,
    RejectedByServer,
    Unreachable,
    ValidationFailed,
)
from certdesk.schema import uri
from certdesk.schema.certificate import (
    CASettings,
    CertBundle,
    Certificate,
    CertificateEnvelope,
    CertificateFormat,
    CertificateListResponse,
    CertificateStatus,
    HealthStatus,
    IssueRequest,
    IssueResponse,
    SignCSRRequest,
    SignedCertificate,
)
from certdesk.settings import CommonSettings

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)

PEM_ARMOUR_PREFIX = "-----BEGIN"
DEFAULT_NOT_AFTER_DAYS = 90


class Operation(str, Enum):
    """The CA operations - used for selecting how a rejection is refined and for log/error messages"""

    ISSUE = "issue"
    SIGN_CSR = "sign-csr"
    LIST = "list"
    GET = "get"
    RENEW = "renew"
    REVOKE = "revoke"
    GET_SETTINGS = "get-settings"
    HEALTH = "health"


ISSUANCE_OPERATIONS = {Operation.ISSUE, Operation.SIGN_CSR}
LIFECYCLE_OPERATIONS = {Operation.RENEW, Operation.REVOKE}


def validate_issue_request(
    cn: str,
    sans: Optional[list[str]],
    not_after_days: int,
    format: Union[str, CertificateFormat],
    pfx_password: Optional[str],
) -> IssueRequest:
    """Enforces the client side issuance preconditions and builds the request body.

    raises ValidationFailed if any precondition is violated"""
    if not cn or not cn.strip():
        raise ValidationFailed("Common Name is required")

    if not_after_days <= 0:
        raise ValidationFailed(f"Validity period must be a positive number of days. Got {not_after_days}")

    try:
        cert_format = CertificateFormat(format)
    except ValueError:
        raise ValidationFailed(f"Unsupported output format '{format}'")

    if cert_format == CertificateFormat.PFX and not pfx_password:
        raise ValidationFailed("PFX password is required")

    return IssueRequest(
        cn=cn.strip(),
        sans=[] if sans is None else list(sans),
        not_after_days=not_after_days,
        format=cert_format,
        pfx_password=pfx_password if cert_format == CertificateFormat.PFX else None,
    )


def validate_sign_csr_request(csr_pem: str, not_after_days: int) -> SignCSRRequest:
    """Performs a cheap shape check on csr_pem - the actual parsing/validation of the CSR is left to the CA.

    raises ValidationFailed if any precondition is violated"""
    if not csr_pem or not csr_pem.strip():
        raise ValidationFailed("CSR is required")

    if PEM_ARMOUR_PREFIX not in csr_pem:
        raise ValidationFailed("CSR must be PEM encoded")

    if not_after_days <= 0:
        raise ValidationFailed(f"Validity period must be a positive number of days. Got {not_after_days}")

    return SignCSRRequest(csr_pem=csr_pem, not_after_days=not_after_days)


def validate_certificate_id(certificate_id: str) -> str:
    if not certificate_id or not certificate_id.strip():
        raise ValidationFailed("Certificate id is required")
    return certificate_id.strip()


def extract_error_message(response: Response) -> Optional[str]:
    """Pulls the structured error message out of a CA error response (if one is present)"""
    try:
        body = response.json()
    except ValueError:
        return None

    if isinstance(body, dict):
        for key in ("error", "message"):
            value = body.get(key, None)
            if isinstance(value, str) and value:
                return value
    return None


def map_rejection(operation: Operation, response: Response) -> RejectedByServer:
    """Converts a non 2XX response into the most specific RejectedByServer variant"""
    status_code = response.status_code
    message = extract_error_message(response)
    if not message:
        message = f"CA rejected {operation.value} request with HTTP {status_code}"

    if status_code == 404:
        return NotFound(message, status_code=status_code)

    if operation in ISSUANCE_OPERATIONS:
        return IssuanceRejected(message, status_code=status_code)

    if status_code == 409 or (operation in LIFECYCLE_OPERATIONS and status_code in (400, 422)):
        return LifecycleConflict(message, status_code=status_code)

    return RejectedByServer(message, status_code=status_code)


def parse_model(model_type: Type[TModel], operation: Operation, response: Response) -> TModel:
    """Parses a 2XX response into model_type. raises RejectedByServer if the body isn't what we expect"""
    try:
        return model_type.model_validate(response.json())
    except ValueError as ex:
        logger.error(f"Unable to parse {operation.value} response (HTTP {response.status_code}) as {model_type}: {ex}")
        raise RejectedByServer(
            f"CA returned an unexpected response to {operation.value}", status_code=response.status_code
        )


def parse_certificate(operation: Operation, response: Response) -> Certificate:
    """The CA may return a bare certificate or one wrapped in {"certificate": {...}} - both are accepted"""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("certificate", None), dict):
        return parse_model(CertificateEnvelope, operation, response).certificate
    return parse_model(Certificate, operation, response)


class CAClient:
    """Typed async access to the CA HTTP API. Every operation resolves the CA endpoint first (see EndpointResolver)
    and surfaces failures exclusively through the certdesk.exception taxonomy:

    ConfigUnavailable: the endpoint couldn't be resolved
    ValidationFailed: a client side precondition failed (no request was sent)
    Unreachable: transport failure talking to the CA
    RejectedByServer (or NotFound/LifecycleConflict/IssuanceRejected): non 2XX or unparseable response

    No operation is ever retried."""

    _resolver: EndpointResolver
    _timeout_seconds: float
    _transport: Optional[AsyncBaseTransport]

    def __init__(
        self,
        resolver: EndpointResolver,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[AsyncBaseTransport] = None,
    ) -> None:
        self._resolver = resolver
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def _request(
        self,
        operation: Operation,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Response:
        base_url = await self._resolver.resolve()

        async with AsyncClient(base_url=base_url, timeout=self._timeout_seconds, transport=self._transport) as client:
            logger.debug(f"Sending {operation.value} request {method} {path} to {base_url}")
            try:
                response = await client.request(method, path, json=json, params=params)
            except Exception as ex:
                logger.error(f"Exception {ex} sending {operation.value} request {method} {path} to {base_url}")
                raise Unreachable(f"Unable to reach CA at {base_url}: {ex}")

        if not response.is_success:
            rejection = map_rejection(operation, response)
            logger.error(
                f"Received HTTP {response.status_code} for {operation.value} request {method} {path}: "
                f"{rejection.message}"
            )
            raise rejection

        return response

    async def issue_certificate(
        self,
        cn: str,
        sans: Optional[list[str]] = None,
        not_after_days: int = DEFAULT_NOT_AFTER_DAYS,
        format: Union[str, CertificateFormat] = CertificateFormat.PEM,
        pfx_password: Optional[str] = None,
    ) -> IssueResponse:
        """Issues a new certificate with a CA generated key and returns the full response (download bundle and the
        issued certificate if the CA reports it)"""
        request = validate_issue_request(cn, sans, not_after_days, format, pfx_password)
        response = await self._request(
            Operation.ISSUE, "POST", uri.CertificateIssueUri, json=request.model_dump(mode="json", exclude_none=True)
        )
        return parse_model(IssueResponse, Operation.ISSUE, response)

    async def issue(
        self,
        cn: str,
        sans: Optional[list[str]] = None,
        not_after_days: int = DEFAULT_NOT_AFTER_DAYS,
        format: Union[str, CertificateFormat] = CertificateFormat.PEM,
        pfx_password: Optional[str] = None,
    ) -> CertBundle:
        """Issues a new certificate and returns the downloadable bundle"""
        return (await self.issue_certificate(cn, sans, not_after_days, format, pfx_password)).download

    async def sign_csr(self, csr_pem: str, not_after_days: int = DEFAULT_NOT_AFTER_DAYS) -> SignedCertificate:
        """Has the CA sign an externally generated CSR. No private key is ever handled on this path"""
        request = validate_sign_csr_request(csr_pem, not_after_days)
        response = await self._request(
            Operation.SIGN_CSR, "POST", uri.CertificateSignCsrUri, json=request.model_dump(mode="json")
        )
        return parse_model(SignedCertificate, Operation.SIGN_CSR, response)

    async def list_certificates(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        status: Optional[Union[str, CertificateStatus]] = None,
    ) -> list[Certificate]:
        """Fetches a snapshot of certificates. This is NOT a live view"""
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        if status:
            params["status"] = status.value if isinstance(status, CertificateStatus) else status

        response = await self._request(Operation.LIST, "GET", uri.CertificateListUri, params=params)
        certificates = parse_model(CertificateListResponse, Operation.LIST, response).certificates
        return [] if certificates is None else certificates

    async def get_certificate(self, certificate_id: str) -> Certificate:
        """raises NotFound if the CA doesn't know certificate_id"""
        path = uri.CertificateUri.format(certificate_id=quote(validate_certificate_id(certificate_id), safe=""))
        response = await self._request(Operation.GET, "GET", path)
        return parse_certificate(Operation.GET, response)

    async def renew(self, certificate_id: str) -> Certificate:
        """Renews an active certificate - returning the certificate with its new validity window.

        raises NotFound if the CA doesn't know certificate_id
        raises LifecycleConflict if the certificate isn't active"""
        path = uri.CertificateRenewUri.format(certificate_id=quote(validate_certificate_id(certificate_id), safe=""))
        response = await self._request(Operation.RENEW, "POST", path)
        return parse_certificate(Operation.RENEW, response)

    async def revoke(self, certificate_id: str) -> None:
        """Revokes a certificate. This is irreversible - callers are responsible for obtaining confirmation first
        (see LifecycleManager.revoke).

        raises NotFound if the CA doesn't know certificate_id
        raises LifecycleConflict if the certificate isn't active"""
        path = uri.CertificateRevokeUri.format(certificate_id=quote(validate_certificate_id(certificate_id), safe=""))
        await self._request(Operation.REVOKE, "POST", path)

    async def get_settings(self) -> CASettings:
        response = await self._request(Operation.GET_SETTINGS, "GET", uri.CASettingsUri)
        return parse_model(CASettings, Operation.GET_SETTINGS, response)

    async def health(self) -> HealthStatus:
        response = await self._request(Operation.HEALTH, "GET", uri.HealthUri)
        return parse_model(HealthStatus, Operation.HEALTH, response)


def create_client(
    source_settings: CommonSettings,
    resolver: Optional[EndpointResolver] = None,
    transport: Optional[AsyncBaseTransport] = None,
) -> CAClient:
    """Creates a new CAClient whose timeout is taken from source_settings. If resolver isn't specified, a new one is
    created from source_settings"""
    if resolver is None:
        resolver = create_resolver(source_settings, transport=transport)
    return CAClient(resolver, timeout_seconds=source_settings.request_timeout_seconds, transport=transport)
