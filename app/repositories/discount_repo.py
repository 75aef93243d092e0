import uuid
from datetime import datetime

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from app.models.discount import Discount


class DiscountRepository:
    """
    Data access for discounts.

    Discounts are authored in the admin panel; the storefront only reads
    them and increments usage_count.
    """

    def list_active(
        self,
        session: Session,
        now: datetime,
        newest_first: bool = False,
    ) -> list[Discount]:
        """
        Active discounts whose validity window contains `now`.
        Unset start/end bounds are open.
        """
        order = Discount.created_at.desc() if newest_first else Discount.created_at
        stmt = (
            select(Discount)
            .where(
                Discount.is_active == True,  # noqa: E712
                or_(Discount.start_date == None, Discount.start_date <= now),  # noqa: E711
                or_(Discount.end_date == None, Discount.end_date >= now),  # noqa: E711
            )
            .order_by(order)
        )
        return list(session.exec(stmt).all())

    def get_active_by_code(self, session: Session, code: str) -> Discount | None:
        stmt = select(Discount).where(
            func.lower(Discount.code) == code.strip().lower(),
            Discount.is_active == True,  # noqa: E712
        )
        return session.exec(stmt).first()

    def get_by_id(self, session: Session, discount_id: uuid.UUID) -> Discount | None:
        return session.get(Discount, discount_id)

    def increment_usage(self, session: Session, discount_id: uuid.UUID) -> None:
        """
        usage_count + 1 evaluated by the database, so concurrent
        redemptions do not overwrite each other. No commit here.
        """
        stmt = (
            update(Discount)
            .where(Discount.id == discount_id)
            .values(usage_count=Discount.usage_count + 1)
        )
        session.exec(stmt)
