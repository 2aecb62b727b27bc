import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator


class CertificateStatus(str, Enum):
    """The stored status vocabulary for a certificate. Expired is normally observed (not_after has passed) rather
    than being explicitly set by the CA"""

    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class KeyStrategy(str, Enum):
    SERVER = "server"  # The CA generated (and bundled) the private key
    CSR = "csr"  # The key was generated externally and only a CSR was supplied


class CertificateFormat(str, Enum):
    PEM = "pem"
    PFX = "pfx"


class ExpiryClassification(str, Enum):
    EXPIRED = "expired"
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "healthy"


def parse_timestamp(value: Any) -> Any:
    """Timestamps from the CA are RFC3339 and can carry nanosecond precision - dateutil will truncate these to
    microseconds. Naive values are assumed to be UTC"""
    if isinstance(value, str):
        value = isoparse(value)
    if isinstance(value, datetime) and value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class Certificate(BaseModel):
    """A single certificate as reported by the CA. The CA is the source of truth - instances are snapshots"""

    model_config = ConfigDict(frozen=True)

    id: str
    cn: str
    sans: list[str] = Field(default_factory=list)
    not_after: datetime
    status: str  # Raw stored status - normally one of CertificateStatus but unknown values are preserved
    key_strategy: str = ""  # Normally one of KeyStrategy
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("not_after", "created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @field_validator("sans", mode="before")
    @classmethod
    def _null_sans(cls, value: Any) -> Any:
        return [] if value is None else value


class CertificateListResponse(BaseModel):
    certificates: Optional[list[Certificate]] = None


class CertificateEnvelope(BaseModel):
    """Some CA responses wrap a single certificate as {"certificate": {...}}"""

    certificate: Certificate


class IssueRequest(BaseModel):
    cn: str
    sans: list[str] = Field(default_factory=list)
    not_after_days: int
    format: CertificateFormat = CertificateFormat.PEM
    pfx_password: Optional[str] = None


class CertBundle(BaseModel):
    """A downloadable artefact produced by issuance. data is base64 encoded"""

    data: str
    filename: str
    mime_type: str

    def decoded(self) -> bytes:
        return base64.b64decode(self.data)


class IssueResponse(BaseModel):
    download: CertBundle
    certificate: Optional[Certificate] = None


class SignCSRRequest(BaseModel):
    csr_pem: str
    not_after_days: int


class SignedCertificate(BaseModel):
    cert_pem: str
    chain_pem: str
    certificate: Optional[Certificate] = None


class CASettings(BaseModel):
    """CA wide reference data - read only from the perspective of this client"""

    ca_url: str
    root_fingerprint: str
    acme_directories: list[str] = Field(default_factory=list)


class HealthStatus(BaseModel):
    status: str


class ConfigResponse(BaseModel):
    """Payload of the config discovery endpoint. A null apiUrl means "use your own origin" """

    model_config = ConfigDict(populate_by_name=True)

    api_url: Optional[str] = Field(default=None, alias="apiUrl")
