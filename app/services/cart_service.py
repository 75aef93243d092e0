import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.models.cart import CartItem
from app.repositories.cart_repo import CartRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartSummary,
)


def cart_subtotal(items: list[CartItem]) -> float:
    """Σ(effective unit price × quantity), rounded to paise."""
    return round(sum(it.unit_price * it.quantity for it in items), 2)


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - validate product / variant / combo existence and active flags
      - snapshot prices when a line is added
      - compute line totals and cart totals
    """

    def __init__(self, cart_repo: CartRepository, product_repo: ProductRepository):
        self.cart_repo = cart_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _build_line(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartItem:
        product = self.product_repo.get_by_id(session, payload.product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        if not product.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Product is inactive",
            )

        item = CartItem(
            user_id=user_id,
            product_id=product.id,
            quantity=payload.quantity,
            price=product.price,
            product_name=product.name,
            product_brand=product.brand,
            product_image_url=product.image_url,
        )

        if payload.variant_id is not None:
            variant = self.product_repo.get_variant(session, payload.variant_id)
            if not variant or variant.product_id != product.id or not variant.is_active:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Variant not found",
                )
            item.variant_id = variant.id
            item.variant_price = variant.variant_price
            item.variant_name = variant.variant_name

        if payload.combo_id is not None:
            combo = self.product_repo.get_combo(session, payload.combo_id)
            if not combo or not combo.is_active:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Combo not found",
                )
            item.combo_id = combo.id
            item.combo_price = combo.combo_price
            item.combo_name = combo.name

        return item

    def _get_line(self, session: Session, user_id: uuid.UUID, item_id: uuid.UUID) -> CartItem:
        item = self.cart_repo.get_for_user(session, user_id, item_id)
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not in cart",
            )
        return item

    # ---- public operations ----

    def list_items(self, session: Session, user_id: uuid.UUID) -> list[CartItem]:
        return self.cart_repo.list_for_user(session, user_id)

    def get_cart_summary(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        items = self.cart_repo.list_for_user(session, user_id)

        item_reads = [
            CartItemRead(
                id=it.id,
                product_id=it.product_id,
                variant_id=it.variant_id,
                combo_id=it.combo_id,
                quantity=it.quantity,
                price=it.price,
                variant_price=it.variant_price,
                combo_price=it.combo_price,
                unit_price=it.unit_price,
                line_total=round(it.unit_price * it.quantity, 2),
                product_name=it.product_name,
                variant_name=it.variant_name,
                combo_name=it.combo_name,
                created_at=it.created_at,
            )
            for it in items
        ]

        return CartSummary(
            items=item_reads,
            total_quantity=sum(it.quantity for it in items),
            total_price=cart_subtotal(items),
        )

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product (optionally a variant or combo) to the cart.
        Adding an existing line increases its quantity.
        """
        existing = self.cart_repo.get_line(
            session,
            user_id,
            payload.product_id,
            payload.variant_id,
            payload.combo_id,
        )

        if existing:
            existing.quantity += payload.quantity
            self.cart_repo.update(session, existing)
        else:
            self.cart_repo.create(session, self._build_line(session, user_id, payload))

        return self.get_cart_summary(session, user_id)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        item = self._get_line(session, user_id, item_id)
        item.quantity = payload.quantity
        self.cart_repo.update(session, item)
        return self.get_cart_summary(session, user_id)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_id: uuid.UUID,
    ) -> CartSummary:
        item = self._get_line(session, user_id, item_id)
        self.cart_repo.delete(session, item)
        return self.get_cart_summary(session, user_id)

    def clear_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
    ) -> CartSummary:
        self.cart_repo.clear_user_cart(session, user_id)
        return CartSummary(items=[], total_quantity=0, total_price=0.0)
