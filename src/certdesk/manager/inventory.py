from typing import Iterable, Optional

from certdesk.schema.certificate import Certificate


def matches(cert: Certificate, search_term: Optional[str], status_filter: Optional[str]) -> bool:
    """True if cert satisfies both filters. The search term is a case insensitive substring of the CN or any SAN and
    the status filter is compared against the raw stored status (not the derived display status)"""
    if search_term:
        needle = search_term.lower()
        if needle not in cert.cn.lower() and not any(needle in san.lower() for san in cert.sans):
            return False

    if status_filter and cert.status != status_filter:
        return False

    return True


def filter_certificates(
    snapshot: Iterable[Certificate], search_term: Optional[str] = None, status_filter: Optional[str] = None
) -> list[Certificate]:
    """Filters a materialised snapshot of certificates. Order is preserved and no remote fetch is ever made"""
    return [c for c in snapshot if matches(c, search_term, status_filter)]


def parse_sans(raw: Optional[str]) -> list[str]:
    """Parses a comma separated list of SANs (eg "www.example.com, *.example.com"). Blank entries are dropped"""
    if not raw:
        return []
    return [san.strip() for san in raw.split(",") if san.strip()]
