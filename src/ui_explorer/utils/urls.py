"""
URL helpers shared by coverage accounting, scoring and the explorers.
"""

from urllib.parse import urljoin, urlparse


def normalize_url(url: str) -> str:
    """
    Reduce a URL to origin plus path, lowercased, without trailing slash.

    Query strings and fragments are dropped so that
    ``https://A.com/x/?q=1`` and ``https://a.com/x`` count as one page.
    Unparsable input is lowercased with one trailing slash removed.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return _strip_slash(url.lower())

    if not parsed.scheme or not parsed.netloc:
        return _strip_slash(url.lower())

    return f"{parsed.scheme}://{parsed.netloc}{_strip_slash(parsed.path)}".lower()


def _strip_slash(value: str) -> str:
    return value[:-1] if value.endswith("/") else value


def get_hostname(url: str) -> str | None:
    """Lowercased host of ``url`` or None when it has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def is_same_domain(url: str, base_domain: str) -> bool:
    """
    Check that ``url`` is on ``base_domain`` or one of its subdomains.

    Relative URLs (no host) are considered same-domain.
    """
    host = get_hostname(url)
    if host is None:
        return True
    base = base_domain.lower()
    return host == base or host.endswith(f".{base}")


def resolve_url(href: str, current_url: str) -> str | None:
    """Resolve ``href`` against ``current_url``; None if that fails."""
    try:
        resolved = urljoin(current_url, href)
    except ValueError:
        return None
    parsed = urlparse(resolved)
    if not parsed.scheme or not parsed.netloc:
        return None
    return resolved
