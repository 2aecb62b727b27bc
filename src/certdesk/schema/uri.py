"""Paths (relative to the CA API base URL) for the CA HTTP API"""

CertificateListUri = "/api/certs"
CertificateIssueUri = "/api/certs/issue"
CertificateSignCsrUri = "/api/certs/sign-csr"
CertificateUri = "/api/certs/{certificate_id}"
CertificateRenewUri = "/api/certs/{certificate_id}/renew"
CertificateRevokeUri = "/api/certs/{certificate_id}/revoke"
CASettingsUri = "/api/settings/ca"
HealthUri = "/health"

# Served by the client's own origin - not the CA
ConfigUri = "/config"
