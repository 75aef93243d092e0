import uuid

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.address import PincodeLookup, SavedAddress


class AddressRepository:
    """
    Data access layer for saved_addresses and pincode_lookup.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    # ---- Saved addresses ----

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[SavedAddress]:
        stmt = (
            select(SavedAddress)
            .where(SavedAddress.user_id == user_id)
            .order_by(SavedAddress.is_default.desc(), SavedAddress.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def get_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> SavedAddress | None:
        stmt = select(SavedAddress).where(
            SavedAddress.id == address_id,
            SavedAddress.user_id == user_id,
        )
        return session.exec(stmt).first()

    def find_duplicate(
        self,
        session: Session,
        user_id: uuid.UUID,
        address: str,
        pincode: str,
        exclude_id: uuid.UUID | None = None,
    ) -> SavedAddress | None:
        stmt = select(SavedAddress).where(
            SavedAddress.user_id == user_id,
            SavedAddress.address == address,
            SavedAddress.pincode == pincode,
        )
        if exclude_id is not None:
            stmt = stmt.where(SavedAddress.id != exclude_id)
        return session.exec(stmt.limit(1)).first()

    def create(self, session: Session, address: SavedAddress) -> SavedAddress:
        session.add(address)
        session.commit()
        session.refresh(address)
        return address

    def update(self, session: Session, address: SavedAddress) -> SavedAddress:
        session.add(address)
        session.commit()
        session.refresh(address)
        return address

    def delete(self, session: Session, address: SavedAddress) -> None:
        session.delete(address)
        session.commit()

    def set_default(
        self,
        session: Session,
        user_id: uuid.UUID,
        address_id: uuid.UUID,
    ) -> None:
        """
        Single statement:
            UPDATE saved_addresses SET is_default = (id = :target)
            WHERE user_id = :user
        """
        stmt = (
            update(SavedAddress)
            .where(SavedAddress.user_id == user_id)
            .values(is_default=(SavedAddress.id == address_id))
            .execution_options(synchronize_session="fetch")
        )
        session.exec(stmt)
        session.commit()

    # ---- Pincode reference ----

    def get_pincode(self, session: Session, pincode: str) -> PincodeLookup | None:
        stmt = select(PincodeLookup).where(PincodeLookup.pincode == pincode)
        return session.exec(stmt).first()
