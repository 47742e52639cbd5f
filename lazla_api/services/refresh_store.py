"""
Refresh Token Store - persists the digest of the single live refresh token.

SECURITY: raw refresh tokens are never stored, only their SHA-256 digest.
Rotation is a compare-and-swap on the stored digest so that, of two requests
presenting the same token, exactly one wins.
"""

import hashlib

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lazla_api.db.models import utc_now
from lazla_api.models.api import PrincipalType
from lazla_api.models.domain import AccountData
from lazla_api.observability.logging import get_logger, token_fingerprint
from lazla_api.services.accounts import ACCOUNT_MODELS, to_account_data

logger = get_logger(__name__)


def hash_token(token: str) -> str:
    """Create SHA-256 hash of a token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RefreshTokenStore:
    """Stored refresh-token digest per account, for one principal type."""

    def __init__(self, session: AsyncSession, principal: PrincipalType) -> None:
        self.session = session
        self.principal = principal
        self.model = ACCOUNT_MODELS[principal]

    async def get_account_by_id(self, account_id: int) -> AccountData | None:
        row = await self.session.get(self.model, account_id, populate_existing=True)
        return to_account_data(row) if row is not None else None

    async def save_refresh_hash(self, account_id: int, token_hash: str | None) -> None:
        """Unconditionally set (or with None, clear) the stored digest."""
        stmt = (
            update(self.model)
            .where(self.model.id == account_id)
            .values(refresh_token_hash=token_hash, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        logger.debug(
            "refresh_hash_saved",
            principal=self.principal.value,
            account_id=account_id,
            token=token_fingerprint(token_hash),
        )

    async def clear_refresh_hash(self, account_id: int) -> None:
        await self.save_refresh_hash(account_id, None)

    async def rotate_refresh_hash(self, account_id: int, expected_hash: str, new_hash: str) -> bool:
        """
        Replace the stored digest only if it still equals expected_hash.

        Returns:
            True if this call performed the swap, False if another request
            rotated or cleared the token first.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == account_id,
                self.model.refresh_token_hash == expected_hash,
            )
            .values(refresh_token_hash=new_hash, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
