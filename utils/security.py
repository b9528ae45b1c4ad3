"""Security helpers for headers, redirects, and credential form checks."""
from urllib.parse import urljoin, urlparse

from flask import request


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers while still allowing photo capture and voice notes."""
    csp = (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "font-src 'self' https://cdn.jsdelivr.net; "
        "img-src 'self' data: blob:; "
        "media-src 'self' data: blob:; "
        "connect-src 'self';"
    )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    # Residents record voice notes and photograph issues from the browser.
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(self), camera=(self)")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
    return response


def is_safe_redirect_url(target: str) -> bool:
    """Validate redirect targets to prevent open redirect attacks."""
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ("http", "https") and ref_url.netloc == test_url.netloc


def normalize_house_number(value: str | None) -> str:
    return (value or "").strip().upper()


def pin_meets_policy(pin: str | None, min_length: int = 3) -> tuple[bool, str | None]:
    if not pin or len(pin) < min_length:
        return False, f"PIN must be at least {min_length} characters."
    return True, None


def phone_is_valid(phone: str | None, digits: int = 11) -> tuple[bool, str | None]:
    value = (phone or "").strip()
    if len(value) != digits or not value.isdigit():
        return False, f"Phone number must be {digits} digits."
    return True, None
