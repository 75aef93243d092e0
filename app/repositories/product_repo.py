import uuid

from sqlmodel import Session

from app.models.product import Combo, Product, ProductVariant


class ProductRepository:
    """
    Read-only access to the catalog rows the cart needs.

    - Pure DB operations.
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_variant(
        self,
        session: Session,
        variant_id: uuid.UUID,
    ) -> ProductVariant | None:
        return session.get(ProductVariant, variant_id)

    def get_combo(self, session: Session, combo_id: uuid.UUID) -> Combo | None:
        return session.get(Combo, combo_id)
