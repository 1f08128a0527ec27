"""Ownership gate — the only surface resource modules (notes, todos,
short URLs) use to ask "does this caller own that thing?".

Learn: an unknown email is simply "not the owner". check_ownership never
raises for a vanished account, so a caller's control flow is not aborted
by an identity that stopped resolving. get_user_id is the stricter
primitive for callers that need an id to write with.
"""

import uuid
from typing import Union

from tokenvault.errors import AuthorizationError, NotFoundError
from tokenvault.services.credential_store import CredentialStore


async def get_user_id(store: CredentialStore, email: str) -> uuid.UUID:
    """Resolve the caller's user id. Raises NotFoundError for unknown email."""
    return await store.get_user_id(email)


async def check_ownership(
    store: CredentialStore,
    email: str,
    resource_owner_id: Union[uuid.UUID, str],
) -> bool:
    """True when the account behind email owns the resource."""
    try:
        user_id = await store.get_user_id(email)
    except NotFoundError:
        return False
    return str(user_id) == str(resource_owner_id)


async def require_ownership(
    store: CredentialStore,
    email: str,
    resource_owner_id: Union[uuid.UUID, str],
) -> None:
    """Raise AuthorizationError (403) unless the caller owns the resource."""
    if not await check_ownership(store, email, resource_owner_id):
        raise AuthorizationError("You do not own this resource")
