import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from src.bizdesk.retry import RetryPolicy

# Load .env for local development (no-op if the file doesn't exist or in prod
# where vars are injected directly into the environment by the platform).
load_dotenv()

# Runtime environment: "development" | "production"
APP_ENV: str = os.getenv("APP_ENV", "development")

# Signs the dev backend's session and XSRF cookies. Must be set to a strong
# random value anywhere the dev backend is reachable by others.
SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")

IS_PROD: bool = APP_ENV == "production"

# Backend origin the client talks to (Sanctum-style API).
API_BASE_URL: str = os.getenv("BIZDESK_API_URL", "http://localhost:8000")

REQUEST_TIMEOUT: float = float(os.getenv("BIZDESK_REQUEST_TIMEOUT", "10"))

XSRF_COOKIE = "XSRF-TOKEN"
XSRF_HEADER = "X-XSRF-TOKEN"
CSRF_COOKIE_PATH = "/sanctum/csrf-cookie"
LOGIN_ROUTE = "/login"

# Browser paths that require a session; a 401 seen while on one of these
# sends the user back to LOGIN_ROUTE.
PROTECTED_ROUTE_PREFIXES: tuple[str, ...] = tuple(
    p.strip()
    for p in os.getenv(
        "BIZDESK_PROTECTED_ROUTES",
        "/dashboard,/wallet,/analytics,/products,/collaborators,"
        "/notifications,/settings,/onboarding",
    ).split(",")
    if p.strip()
)


@dataclass(frozen=True)
class ClientSettings:
    """Per-client knobs. Defaults come from the environment above."""

    base_url: str = API_BASE_URL
    timeout: float = REQUEST_TIMEOUT
    xsrf_cookie: str = XSRF_COOKIE
    xsrf_header: str = XSRF_HEADER
    csrf_cookie_path: str = CSRF_COOKIE_PATH
    login_route: str = LOGIN_ROUTE
    protected_prefixes: tuple[str, ...] = PROTECTED_ROUTE_PREFIXES
    # Cookie store polling after the priming request (10 x 50 ms).
    acquire_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(10, 0.05))
    # Re-reads after an acquisition in the request path (first read + 2 x 100 ms).
    attach_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy(3, 0.1))
    # Pause between re-acquiring after a 419 and replaying the request.
    retry_settle_delay: float = 0.2
    # Gives sibling requests time to see the redirect flag before navigating.
    redirect_delay: float = 0.05
    # How long the logout flag outlives the logout call itself.
    logout_grace: float = 1.0

    def is_protected(self, path: str) -> bool:
        """
        True when *path* sits under one of the protected prefixes.

        Prefixes match whole path segments: "/dashboard" covers "/dashboard"
        and "/dashboard/products" but not "/dashboards-public", which a bare
        ``startswith`` would also catch.
        """
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.protected_prefixes
        )
