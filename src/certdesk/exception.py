from typing import Optional


class CertDeskError(Exception):
    """Base type for all deliberately raised errors in certdesk. Every instance carries a human readable message"""

    message: str

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigUnavailable(CertDeskError):
    """Raised when the CA endpoint cannot be resolved because the configuration source failed. This is a
    precondition failure - no CA operation can proceed until resolution succeeds"""

    pass


class Unreachable(CertDeskError):
    """Raised when the CA cannot be reached at the transport level (DNS failure, connection refused, timeout)"""

    pass


class RejectedByServer(CertDeskError):
    """Raised whenever the CA responds with a non 2XX status (or a 2XX body that can't be understood)"""

    status_code: Optional[int]

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFound(RejectedByServer):
    """Raised when the CA does not know the requested certificate id"""

    pass


class LifecycleConflict(RejectedByServer):
    """Raised when a lifecycle action (renew/revoke) is not permitted for the certificate's current state"""

    pass


class IssuanceRejected(RejectedByServer):
    """Raised when the CA refuses to issue a certificate / sign a CSR (eg - a malformed CSR)"""

    pass


class ValidationFailed(CertDeskError):
    """Raised when a client side precondition is violated. These are always raised before any request is sent"""

    pass


class RevocationNotConfirmed(ValidationFailed):
    """Raised when a revocation was requested but the operator did not confirm it"""

    pass
