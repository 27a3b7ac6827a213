"""
core/security.py
----------------
Tenant credential utilities.

Design decisions:
  - A tenant authenticates with two values: a public key (sent as
    X-Public-Key, stored in clear, used for lookup) and an API token
    (sent as a Bearer token, stored only as a hash).
  - Token hashes use pbkdf2_sha256 through passlib; verification is
    constant-time.
  - Origin checks compare the request host against the tenant's
    registered domain and its allowed subdomains.
"""

import ipaddress
import secrets
import string
from typing import Iterable, Optional
from urllib.parse import urlparse

from passlib.context import CryptContext

from slime_talks.core.config import settings

token_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_ALPHABET = string.ascii_letters + string.digits


# ── Credential generation ─────────────────────────────────────────────────────

def generate_public_key() -> str:
    """Return a new public key such as ``pk_3fQ...`` (32 random characters)."""
    body = "".join(secrets.choice(_ALPHABET) for _ in range(32))
    return f"{settings.PUBLIC_KEY_PREFIX}{body}"


def generate_api_token() -> str:
    """Return a new URL-safe API token. Shown to the operator exactly once."""
    return secrets.token_urlsafe(settings.API_TOKEN_BYTES)


def hash_api_token(token: str) -> str:
    return token_context.hash(token)


def verify_api_token(token: str, hashed: str) -> bool:
    """Constant-time comparison of a presented token against its stored hash."""
    try:
        return token_context.verify(token, hashed)
    except (ValueError, TypeError):
        return False


# ── Origin / IP checks ────────────────────────────────────────────────────────

def extract_host(origin: Optional[str]) -> Optional[str]:
    """
    Return the lower-cased host of an Origin/Referer header value.

    Accepts full URLs (``https://app.example.com:8443/path``) as well as
    bare hosts (``app.example.com``).
    """
    if not origin:
        return None
    value = origin.strip()
    if "://" not in value:
        value = f"//{value}"
    host = urlparse(value).hostname
    return host.lower() if host else None


def origin_allowed(
    host: Optional[str],
    domain: str,
    allowed_subdomains: Optional[Iterable[str]] = None,
) -> bool:
    if host is None:
        return False
    domain = domain.lower().strip()
    if host == domain:
        return True
    for sub in allowed_subdomains or ():
        sub = sub.lower().strip()
        if host == sub or host == f"{sub}.{domain}":
            return True
    return False


def ip_allowed(client_ip: Optional[str], allowed_ips: Optional[Iterable[str]]) -> bool:
    """An empty or missing allow-list admits every address."""
    allowed = list(allowed_ips or [])
    if not allowed:
        return True
    if client_ip is None:
        return False
    try:
        address = ipaddress.ip_address(client_ip)
    except ValueError:
        return False
    for entry in allowed:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False
