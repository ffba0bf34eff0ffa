"""
Compare identity-provider accounts with local user rows.

Used by the administrative scripts to find local users the provider no longer
knows about (and the reverse). A local row and a provider account match when
they share an id or an email.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from swimtrain.services.identity_provider import IdentityProvider, ProviderUser
from swimtrain.utils.constants import PROVIDER_PAGE_SIZE, PROVIDER_MAX_PAGES

logger = logging.getLogger(__name__)


@dataclass
class UserSetDiff:
    local_only: List[Dict] = field(default_factory=list)
    provider_only: List[ProviderUser] = field(default_factory=list)
    id_mismatches: List[Dict] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.local_only or self.provider_only or self.id_mismatches)


def diff_users(provider_users: List[ProviderUser], local_users: List[Dict]) -> UserSetDiff:
    """
    Diff provider accounts against local user rows.

    Args:
        provider_users: All provider accounts
        local_users: All local user dictionaries (need id and email)

    Returns:
        UserSetDiff. id_mismatches lists local rows matched only by email,
        i.e. rows whose id is not the provider subject id.
    """
    provider_by_id = {u.id: u for u in provider_users}
    provider_by_email = {u.email.lower(): u for u in provider_users if u.email}

    diff = UserSetDiff()
    matched_provider_ids = set()

    for user in local_users:
        email = (user.get("email") or "").lower()
        if user["id"] in provider_by_id:
            matched_provider_ids.add(user["id"])
        elif email in provider_by_email:
            provider_user = provider_by_email[email]
            matched_provider_ids.add(provider_user.id)
            diff.id_mismatches.append(
                {"local_id": user["id"], "provider_id": provider_user.id, "email": email}
            )
        else:
            diff.local_only.append(user)

    diff.provider_only = [u for u in provider_users if u.id not in matched_provider_ids]
    return diff


async def fetch_all_provider_users(
    provider: IdentityProvider, per_page: int = PROVIDER_PAGE_SIZE
) -> List[ProviderUser]:
    """Page through the provider's account list until a short page comes back."""
    users: List[ProviderUser] = []
    for page in range(1, PROVIDER_MAX_PAGES + 1):
        batch = await provider.list_users(page=page, per_page=per_page)
        users.extend(batch)
        if len(batch) < per_page:
            break
    else:
        logger.warning(f"Stopped listing provider users after {PROVIDER_MAX_PAGES} pages")
    logger.info(f"Fetched {len(users)} provider users")
    return users
