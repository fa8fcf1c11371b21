"""
Account token verification against the remote API.
"""

from dataclasses import dataclass
from typing import List, Optional

import requests

from ..models.config import CredentialContext
from ..utils.error_handling import InternalError, map_api_error
from ..utils.logging import get_logger

logger = get_logger("credentials")


@dataclass
class TokenInfo:
    """What the remote API reports about a token."""

    login: str
    name: Optional[str]
    scopes: List[str]
    rate_limit_remaining: Optional[int] = None


def verify_token(ctx: CredentialContext, timeout: int = 10) -> TokenInfo:
    """
    Check that a credential context's token is accepted.

    Args:
        ctx: Credentials to check
        timeout: Request timeout in seconds

    Returns:
        TokenInfo for the authenticated user

    Raises:
        AuthError: If the token is rejected
        InternalError: On network failure or an unexpected response
    """
    url = f"{ctx.api_url}/user"
    try:
        response = requests.get(
            url,
            headers={
                "Authorization": f"Bearer {ctx.token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise InternalError(f"Network error: {e}", operation="verify_token") from e

    if response.status_code != 200:
        try:
            message = response.json().get("message", response.text)
        except ValueError:
            message = response.text
        raise map_api_error(response.status_code, message, "verify_token")

    user = response.json()
    scopes_header = response.headers.get("X-OAuth-Scopes", "")
    remaining = response.headers.get("X-RateLimit-Remaining")

    info = TokenInfo(
        login=user.get("login", ""),
        name=user.get("name"),
        scopes=[scope.strip() for scope in scopes_header.split(",") if scope.strip()],
        rate_limit_remaining=int(remaining) if remaining is not None else None,
    )

    if info.login != ctx.owner:
        logger.warning(
            f"Token authenticates as {info.login}, not {ctx.owner}",
            extra={"owner": ctx.owner},
        )
    return info
