from __future__ import annotations

import urllib.parse


def domain_from_url(url: str | None) -> str | None:
    """Hostname of an absolute URL, or None when it does not resolve to one."""
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parsed = urllib.parse.urlparse(url.strip())
        host = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not host:
        return None
    return host.lower().rstrip(".")


def host_matches_domain(host: str | None, domain: str | None) -> bool:
    """True when `host` is `domain` or one of its subdomains."""
    host = (host or "").strip().lower().rstrip(".")
    wanted = (domain or "").strip().lower().lstrip(".").rstrip(".")
    if not host or not wanted:
        return False
    if host == wanted:
        return True
    return host.endswith("." + wanted)
