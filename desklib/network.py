"""Origin and URL helpers shared by the dashboard server and its client."""
from __future__ import annotations

LOCAL_HOSTS = ("localhost", "127.0.0.1")


def canonical_origin(host: str, port: int, scheme: str) -> str:
    """Return a canonical origin string (scheme://host[:port])."""

    host = (host or "").strip()
    if not host:
        raise ValueError("host is required")

    scheme = (scheme or "").strip().lower()
    if scheme not in {"http", "https"}:
        raise ValueError("scheme must be http or https")

    if port <= 0 or port > 65535:
        raise ValueError("port must be between 1 and 65535")

    default_port = 443 if scheme == "https" else 80
    suffix = "" if port == default_port else f":{port}"
    return f"{scheme}://{host}{suffix}"


def allowed_origins(configured: str, port: int, scheme: str) -> list[str]:
    """Return CORS origins: the explicit list, or the local dashboard origins."""

    explicit = (configured or "").strip()
    if explicit:
        return [origin.strip() for origin in explicit.split(",") if origin.strip()]

    origins: list[str] = []
    schemes = (scheme,) if scheme == "http" else (scheme, "http")
    for local_scheme in schemes:
        for host in LOCAL_HOSTS:
            origin = canonical_origin(host, port, local_scheme)
            if origin not in origins:
                origins.append(origin)
    return origins


def build_api_url(base: str, path: str = "/") -> str:
    """Combine a base URL with a path while avoiding double slashes."""

    base = (base or "").rstrip("/")
    if not path:
        return base
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"
