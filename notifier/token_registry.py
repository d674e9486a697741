"""
Classification of per-token delivery failures.

After a multicast send, each failed token is either permanently dead (the
provider says it is malformed or no longer bound to any app instance) or
failed for a transient reason. Only dead tokens are removed from the
registry; a token is never pruned on a transient failure.
"""

import logging

from shared.channels import (
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    MulticastResult,
)

logger = logging.getLogger("token_registry")

PERMANENT_FAILURE_CODES = frozenset({
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
})


def is_permanent_failure(error_code) -> bool:
    return error_code in PERMANENT_FAILURE_CODES


def collect_dead_tokens(result: MulticastResult) -> list[str]:
    """
    Tokens from `result` that should be removed from the registry.

    Transient failures are logged and kept. The returned list has no
    duplicates and preserves send order.
    """
    dead: list[str] = []
    for response in result.failed():
        if is_permanent_failure(response.error_code):
            if response.token not in dead:
                dead.append(response.token)
            logger.info(f"Token {response.token[:12]} is dead ({response.error_code})")
        else:
            logger.warning(
                f"Transient failure for token {response.token[:12]}: "
                f"{response.error_code} {response.error or ''}".rstrip()
            )
    return dead
