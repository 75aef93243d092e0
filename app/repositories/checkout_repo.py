import uuid

from sqlmodel import Session

from app.models.checkout import CheckoutSession


class CheckoutSessionRepository:

    def get_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        checkout_id: uuid.UUID,
    ) -> CheckoutSession | None:
        checkout = session.get(CheckoutSession, checkout_id)
        if checkout is None or checkout.user_id != user_id:
            return None
        return checkout

    def save(self, session: Session, checkout: CheckoutSession) -> CheckoutSession:
        session.add(checkout)
        session.commit()
        session.refresh(checkout)
        return checkout
