import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

LISTING_ID_RE = re.compile(r"--id(\d+)\.htm", re.IGNORECASE)
ID_MARKER = "--id"
DETAIL_SUFFIX = ".htm"


def extract_listing_id(url: str | None) -> str | None:
    """Canonical listing id from a detail URL; query strings and fragments are ignored."""
    if not url:
        return None
    match = LISTING_ID_RE.search(url)
    return match.group(1) if match else None


def is_listing_href(href: str | None) -> bool:
    if not href:
        return False
    path = urlparse(href).path
    return ID_MARKER in path.lower() and path.lower().endswith(DETAIL_SUFFIX)


def absolute_url(href: str, base: str) -> str:
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(base, href)


def with_params(url: str, **params: object) -> str:
    """Set query parameters on ``url`` while keeping the rest of its query intact."""
    parts = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend((k, str(v)) for k, v in params.items())
    return urlunparse(parts._replace(query=urlencode(query)))


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.replace("\u00a0", " ").replace("\u202f", " ")).strip()
