import logging
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.common.exceptions import ResourceNotFound, AccessDenied, ResourceConflict
from app.modules.points_of_sale.models import PointOfSale
from app.modules.points_of_sale.schemas import PointOfSaleCreate, PointOfSaleUpdate
from app.modules.invoices.sequencer import InvoiceSequencer

logger = logging.getLogger(__name__)


def format_invoice_number(point_of_sale_number: int, number: int) -> str:
    """Formato de comprobante: 4 dígitos de punto de venta y 8 de número."""
    return f"{point_of_sale_number:04d}-{number:08d}"


class PointOfSaleService:

    def __init__(self, db: Session):
        self.db = db

    def create_point_of_sale(self, user_id: UUID, data: PointOfSaleCreate) -> PointOfSale:
        existing = self.db.query(PointOfSale).filter(
            PointOfSale.user_id == user_id,
            PointOfSale.number == data.number
        ).first()
        if existing:
            raise ResourceConflict(f"Ya existe el punto de venta número {data.number}")

        pos = PointOfSale(
            user_id=user_id,
            number=data.number,
            name=data.name,
            is_production=data.is_production,
            extra_data=data.metadata,
        )
        self.db.add(pos)
        self.db.commit()
        self.db.refresh(pos)
        logger.info(f"Point of sale {pos.number} created for user {user_id}")
        return pos

    def list_points_of_sale(self, user_id: UUID, is_production: Optional[bool] = None,
                            active_only: bool = False) -> List[PointOfSale]:
        query = self.db.query(PointOfSale).filter(PointOfSale.user_id == user_id)
        if is_production is not None:
            query = query.filter(PointOfSale.is_production == is_production)
        if active_only:
            query = query.filter(PointOfSale.is_active == True)
        return query.order_by(PointOfSale.number.asc()).all()

    def get_default_point_of_sale(self, user_id: UUID) -> Optional[PointOfSale]:
        """Punto de venta activo con el número más bajo."""
        return self.db.query(PointOfSale).filter(
            PointOfSale.user_id == user_id,
            PointOfSale.is_active == True
        ).order_by(PointOfSale.number.asc()).first()

    def get_point_of_sale(self, user_id: UUID, pos_id: UUID) -> PointOfSale:
        pos = self.db.query(PointOfSale).filter(PointOfSale.id == pos_id).first()
        if not pos:
            raise ResourceNotFound("Punto de venta no encontrado")
        if pos.user_id != user_id:
            raise AccessDenied("El punto de venta pertenece a otro usuario")
        return pos

    def get_next_invoice_number(self, user_id: UUID, pos_id: UUID, invoice_type: int) -> dict:
        """Vista previa del próximo número; la asignación real ocurre al emitir."""
        pos = self.get_point_of_sale(user_id, pos_id)
        next_number = InvoiceSequencer(self.db).next_number(pos.id, invoice_type)
        return {
            "point_of_sale_id": pos.id,
            "point_of_sale_number": pos.number,
            "invoice_type": invoice_type,
            "next_number": next_number,
            "formatted": format_invoice_number(pos.number, next_number),
        }

    def update_point_of_sale(self, user_id: UUID, pos_id: UUID, data: PointOfSaleUpdate) -> PointOfSale:
        pos = self.get_point_of_sale(user_id, pos_id)
        update_data = data.model_dump(exclude_unset=True)
        if "metadata" in update_data:
            pos.extra_data = update_data.pop("metadata")
        for field, value in update_data.items():
            if value is not None:
                setattr(pos, field, value)
        self.db.commit()
        self.db.refresh(pos)
        return pos

    def deactivate_point_of_sale(self, user_id: UUID, pos_id: UUID) -> PointOfSale:
        pos = self.get_point_of_sale(user_id, pos_id)
        pos.soft_delete()
        self.db.commit()
        logger.info(f"Point of sale {pos.number} deactivated by user {user_id}")
        return pos
