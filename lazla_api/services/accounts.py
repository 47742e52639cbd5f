"""
Account Repository - customer and staff rows behind one interface.

Methods flush but never commit; the calling service owns the transaction.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lazla_api.db.models import Customer, Staff, utc_now
from lazla_api.exceptions import ConflictError, WriteVerificationError
from lazla_api.models.api import PrincipalType
from lazla_api.models.domain import AccountData, NewAccount
from lazla_api.observability.logging import get_logger

logger = get_logger(__name__)

AccountRow = Customer | Staff

ACCOUNT_MODELS: dict[PrincipalType, type[Customer] | type[Staff]] = {
    PrincipalType.CUSTOMER: Customer,
    PrincipalType.STAFF: Staff,
}


def to_account_data(row: AccountRow) -> AccountData:
    """Convert ORM account row to domain model."""
    if isinstance(row, Customer):
        return AccountData(
            account_id=row.id,
            principal=PrincipalType.CUSTOMER,
            username=row.username,
            email=row.email,
            hashed_password=row.hashed_password,
            refresh_token_hash=row.refresh_token_hash,
            created_at=row.created_at,
            email_verified=row.email_verified,
            otp_hash=row.otp_hash,
            otp_expires_at=row.otp_expires_at,
        )
    return AccountData(
        account_id=row.id,
        principal=PrincipalType.STAFF,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        refresh_token_hash=row.refresh_token_hash,
        created_at=row.created_at,
        role=row.role,
    )


class AccountRepository:
    """Reads and writes account rows for one principal type."""

    def __init__(self, session: AsyncSession, principal: PrincipalType) -> None:
        self.session = session
        self.principal = principal
        self.model = ACCOUNT_MODELS[principal]

    async def get_by_id(self, account_id: int) -> AccountData | None:
        row = await self.session.get(self.model, account_id)
        return to_account_data(row) if row is not None else None

    async def get_by_email(self, email: str) -> AccountData | None:
        """Case-insensitive lookup; stored emails are already lowercase."""
        stmt = select(self.model).where(func.lower(self.model.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return to_account_data(row) if row is not None else None

    async def get_by_username(self, username: str) -> AccountData | None:
        stmt = select(self.model).where(
            func.lower(self.model.username) == username.strip().lower()
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return to_account_data(row) if row is not None else None

    async def verified_email_exists(self, email: str) -> bool:
        """Whether a customer with this email has already completed verification."""
        stmt = select(Customer.id).where(
            Customer.email == email.strip().lower(),
            Customer.email_verified.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def create_customer(self, new_account: NewAccount) -> AccountData:
        """
        Insert a customer with its OTP challenge populated.

        Raises:
            ConflictError: A concurrent signup claimed the email or username
            WriteVerificationError: Row missing after flush
        """
        customer = Customer(
            username=new_account.username,
            email=new_account.email,
            hashed_password=new_account.hashed_password,
            email_verified=False,
            otp_hash=new_account.otp_hash,
            otp_expires_at=new_account.otp_expires_at,
        )
        self.session.add(customer)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("customer_insert_conflict", email=new_account.email)
            if "username" in str(e.orig):
                raise ConflictError("username", "username already taken") from e
            raise ConflictError("email", "email already registered") from e

        verified = await self.session.get(Customer, customer.id)
        if verified is None:
            raise WriteVerificationError(f"Customer {customer.id} not found after insert")
        return to_account_data(verified)

    async def set_otp(self, account_id: int, otp_hash: str, expires_at: datetime) -> None:
        """Overwrite any pending challenge with a new one."""
        await self._update(account_id, otp_hash=otp_hash, otp_expires_at=expires_at)

    async def mark_email_verified(self, account_id: int) -> None:
        """Set email_verified and consume the challenge."""
        await self._update(account_id, email_verified=True, otp_hash=None, otp_expires_at=None)

    async def replace_password(self, account_id: int, hashed_password: str) -> None:
        """Store a new password hash and drop the live refresh token with it."""
        await self._update(account_id, hashed_password=hashed_password, refresh_token_hash=None)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _update(self, account_id: int, **values: object) -> None:
        stmt = (
            update(self.model)
            .where(self.model.id == account_id)
            .values(updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise WriteVerificationError(
                f"{self.principal.value} {account_id} not updated (rowcount={result.rowcount})"
            )
