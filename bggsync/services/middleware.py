"""Request hooks applied to every outgoing upstream request.

Each hook is an async callable receiving the `httpx.Request` about to be sent
and mutating it in place. Hooks are registered on the client through
`event_hooks={"request": [...]}` so retry logic never has to know about them.
"""

from collections.abc import Awaitable, Callable

import httpx
import structlog

from .. import __version__
from ..models import AppConfig

log = structlog.stdlib.get_logger()

RequestHook = Callable[[httpx.Request], Awaitable[None]]

DEFAULT_USER_AGENT = f"bggsync/{__version__}"


def user_agent_hook(user_agent: str = DEFAULT_USER_AGENT) -> RequestHook:
    """Build a hook that stamps the User-Agent header."""

    async def add_user_agent(request: httpx.Request) -> None:
        request.headers["User-Agent"] = user_agent

    return add_user_agent


def bearer_token_hook(token: str | None) -> RequestHook:
    """Build a hook that adds a bearer Authorization header.

    The header is left out entirely when no token is configured.
    """

    async def add_bearer_token(request: httpx.Request) -> None:
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    return add_bearer_token


async def log_request_hook(request: httpx.Request) -> None:
    """Log each outgoing request at debug level."""
    log.debug("Sending request", method=request.method, url=str(request.url))


def build_request_hooks(config: AppConfig, user_agent: str = DEFAULT_USER_AGENT) -> list[RequestHook]:
    """Compose the standard hook chain for the given configuration.

    Args:
        config: Application configuration providing the API token
        user_agent: User-Agent string to send

    Returns:
        Hooks in the order they should run
    """
    return [
        user_agent_hook(user_agent),
        bearer_token_hook(config.api_token),
        log_request_hook,
    ]
