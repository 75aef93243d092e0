import asyncio
import logging
import smtplib
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote

import httpx
from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.email_client import send_email
from app.database import SessionFactory, new_session
from app.models.order import Order
from app.repositories.cart_repo import CartRepository
from app.repositories.discount_repo import DiscountRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.order import PaymentArtifact, PaymentStatusRead

logger = logging.getLogger(__name__)

settings = get_settings()

ORDERS_PAGE = "/orders"


@dataclass(frozen=True)
class PendingVerification:
    """What the webhook needs, read before the DB session is released."""

    order_id: uuid.UUID
    transaction_id: str
    total: float
    created_at: datetime


def generate_transaction_id() -> str:
    """
    "TXN" + 12 hex digits of a UUID4, e.g. TXN3F9A0C12B7E4.
    """
    return f"TXN{uuid.uuid4().hex[:12].upper()}"


def _encode(value: str) -> str:
    # Same character set as JavaScript's encodeURIComponent
    return quote(value, safe="!~*'()")


def build_upi_link(payee_vpa: str, payee_name: str, amount: float, note: str) -> str:
    """
    upi://pay?pa=<payee>&pn=<name>&am=<amount>&tn=<note>&cu=INR

    Wallet apps parse this literally; keep parameter order and encoding.
    """
    return (
        f"upi://pay?pa={_encode(payee_vpa)}"
        f"&pn={_encode(payee_name)}"
        f"&am={amount:.2f}"
        f"&tn={_encode(note)}"
        "&cu=INR"
    )


def build_payment_artifact(transaction_id: str, amount: float) -> PaymentArtifact:
    note = f"Order {transaction_id}"
    link = build_upi_link(settings.UPI_PAYEE_VPA, settings.UPI_PAYEE_NAME, amount, note)
    return PaymentArtifact(
        transaction_id=transaction_id,
        amount=round(amount, 2),
        payee_vpa=settings.UPI_PAYEE_VPA,
        payee_name=settings.UPI_PAYEE_NAME,
        note=note,
        upi_link=link,
        qr_payload=link,
    )


class PaymentService:
    """
    UPI hand-off and payment confirmation.

    Stage machine stored on the order (payment_stage):

      idle --"Payment Done"--> processing --delay--> verifying
      verifying --webhook verified--> confirmed  (cart cleared, usage counted)
      verifying --anything else-----> pending    (left for manual review)

    One webhook call per order, no retries.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        discount_repo: DiscountRepository,
        session_factory: SessionFactory = new_session,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.discount_repo = discount_repo
        self.session_factory = session_factory
        self.transport = transport
        self.delay_seconds = settings.PAYMENT_VERIFY_DELAY_SECONDS
        self.webhook_url = settings.PAYMENT_WEBHOOK_URL
        self.webhook_secret = settings.PAYMENT_WEBHOOK_SECRET
        self.webhook_timeout = settings.PAYMENT_WEBHOOK_TIMEOUT_SECONDS

    # ---- helpers ----

    def _get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    @staticmethod
    def status_for(order: Order) -> PaymentStatusRead:
        return PaymentStatusRead(
            order_id=order.id,
            transaction_id=order.transaction_id,
            payment_stage=order.payment_stage,
            status=order.status,
            payment_verified=order.payment_verified,
            redirect_to=ORDERS_PAGE if order.payment_stage == "pending" else None,
        )

    # ---- user-facing ----

    def artifact_for(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> PaymentArtifact:
        order = self._get_user_order(session, user_id, order_id)
        return build_payment_artifact(order.transaction_id, order.total)

    def confirm_payment(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> PaymentStatusRead:
        """
        Customer says the UPI payment is done: idle -> processing.
        The caller schedules verify_payment() afterwards.
        """
        order = self._get_user_order(session, user_id, order_id)
        if order.payment_stage != "idle":
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Payment already {order.payment_stage}",
            )

        order.payment_confirmed = True
        order.payment_confirmed_at = datetime.now(timezone.utc)
        order.payment_stage = "processing"
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        return self.status_for(order)

    def payment_status(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> PaymentStatusRead:
        return self.status_for(self._get_user_order(session, user_id, order_id))

    def send_payment_link(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        email: str,
    ) -> PaymentArtifact:
        """
        Email the UPI link so the customer can pay from their phone.

        Raises:
            HTTPException(503): if SMTP is not configured or sending fails.
        """
        order = self._get_user_order(session, user_id, order_id)
        artifact = build_payment_artifact(order.transaction_id, order.total)

        text_body = (
            f"Complete your payment of ₹{artifact.amount:.2f} for order "
            f"{artifact.transaction_id}.\n\n"
            f"Open this link on a phone with a UPI app:\n{artifact.upi_link}\n\n"
            f"Or pay {artifact.payee_vpa} ({artifact.payee_name}) and add the note "
            f"\"{artifact.note}\"."
        )
        html_body = (
            f"<p>Complete your payment of <b>₹{artifact.amount:.2f}</b> for order "
            f"<b>{artifact.transaction_id}</b>.</p>"
            f'<p><a href="{artifact.upi_link}">Pay with UPI</a></p>'
            f"<p>UPI ID: {artifact.payee_vpa}</p>"
        )

        try:
            send_email(
                to_email=email,
                subject=f"[{artifact.payee_name}] Payment link for {artifact.transaction_id}",
                text_body=text_body,
                html_body=html_body,
            )
        except (RuntimeError, smtplib.SMTPException, OSError):
            logger.exception("Failed to send payment link for %s", order.transaction_id)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Could not send payment link",
            )

        order.payment_link_email = email
        self.order_repo.update_order(session, order)
        session.commit()
        return artifact

    # ---- background verification ----

    async def _webhook_verified(self, pending: PendingVerification) -> bool:
        """
        Ask the payment-email webhook once whether the payment arrived.
        Any failure counts as "not verified".
        """
        body = {
            "orderId": pending.transaction_id,
            "transactionId": pending.transaction_id,
            "amount": pending.total,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "orderCreatedAt": pending.created_at.isoformat(),
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.webhook_timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    self.webhook_url,
                    json=body,
                    headers={"Authorization": f"Bearer {self.webhook_secret}"},
                )
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "Payment verification call failed for %s", pending.transaction_id, exc_info=True
            )
            return False

        return bool(isinstance(result, dict) and result.get("verified"))

    def _set_stage(self, session: Session, order_id: uuid.UUID, stage: str) -> Order | None:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            logger.error("Order %s vanished during payment verification", order_id)
            return None
        order.payment_stage = stage
        self.order_repo.update_order(session, order)
        session.commit()
        return order

    def _begin_verification(self, order_id: uuid.UUID) -> PendingVerification | None:
        # The session is closed again before the webhook call
        with self.session_factory() as session:
            order = self._set_stage(session, order_id, "verifying")
            if order is None:
                return None
            return PendingVerification(
                order_id=order.id,
                transaction_id=order.transaction_id,
                total=order.total,
                created_at=order.created_at,
            )

    def _record_outcome(self, session: Session, order_id: uuid.UUID, verified: bool) -> str | None:
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            logger.error("Order %s vanished during payment verification", order_id)
            return None

        if not verified:
            logger.info("Auto-verification failed for %s, order left pending", order.transaction_id)
            order.payment_stage = "pending"
            self.order_repo.update_order(session, order)
            session.commit()
            return "pending"

        order.payment_stage = "confirmed"
        order.payment_verified = "YES"
        order.status = "processing"
        self.order_repo.update_order(session, order)

        for item in self.cart_repo.list_for_user(session, order.user_id):
            session.delete(item)

        if order.discount_id is not None:
            self.discount_repo.increment_usage(session, order.discount_id)

        session.commit()
        logger.info("Payment verified for %s", order.transaction_id)
        return "confirmed"

    def _finish_verification(self, order_id: uuid.UUID, verified: bool) -> str | None:
        with self.session_factory() as session:
            try:
                return self._record_outcome(session, order_id, verified)
            except SQLAlchemyError:
                session.rollback()
                logger.exception(
                    "Could not record payment outcome for order %s, leaving it pending", order_id
                )

            if self._set_stage(session, order_id, "pending") is None:
                return None
            return "pending"

    async def verify_payment(self, order_id: uuid.UUID) -> str | None:
        """
        processing -> (wait) -> verifying -> confirmed | pending.

        Runs outside the request. Each DB step opens its own session in the
        threadpool; no connection is held while the webhook is awaited.

        Returns:
            The terminal stage, or None if the order no longer exists.
        """
        await asyncio.sleep(self.delay_seconds)

        pending = await run_in_threadpool(self._begin_verification, order_id)
        if pending is None:
            return None

        verified = await self._webhook_verified(pending)

        return await run_in_threadpool(self._finish_verification, pending.order_id, verified)
