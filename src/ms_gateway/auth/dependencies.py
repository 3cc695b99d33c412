"""FastAPI dependency: get_guest_id.

Guests are not authenticated. The client generates an opaque id, caches
it, and sends it on every request:

    from src.ms_gateway.auth.dependencies import get_guest_id

    @router.get("/account")
    async def get_account(guest_id: str = Depends(get_guest_id)):
        ...
"""

from typing import Annotated

from fastapi import Header

from src.ms_account.domain.models import DEFAULT_GUEST_ID
from src.ms_account.domain.store import validate_guest_id


async def get_guest_id(
    x_guest_id: Annotated[str | None, Header()] = None,
) -> str:
    """Return the caller's guest id; requests without the header share the default guest.

    Raises InvalidGuestIdError (1002) if the header is present but malformed.
    """
    if x_guest_id is None:
        return DEFAULT_GUEST_ID
    return validate_guest_id(x_guest_id.strip())
