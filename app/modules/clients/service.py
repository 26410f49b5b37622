"""
Servicio de clientes

CRUD de receptores de facturas, siempre acotado al usuario autenticado.
"""
import logging
from typing import Optional, Tuple, List
from uuid import UUID
from sqlalchemy.orm import Session

from app.common.exceptions import ResourceNotFound, AccessDenied, ResourceConflict
from app.modules.clients.models import Client
from app.modules.clients.schemas import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:

    def __init__(self, db: Session):
        self.db = db

    def create_client(self, user_id: UUID, data: ClientCreate) -> Client:
        existing = self.db.query(Client).filter(
            Client.user_id == user_id,
            Client.tax_id == data.tax_id
        ).first()
        if existing:
            raise ResourceConflict(f"Ya existe un cliente con el documento {data.tax_id}")

        client = Client(
            user_id=user_id,
            tax_id=data.tax_id,
            tax_id_type=data.tax_id_type,
            name=data.name,
            email=data.email,
            phone=data.phone,
            address=data.address,
            city=data.city,
            province=data.province,
            postal_code=data.postal_code,
            iva_condition=data.iva_condition,
            extra_data=data.metadata,
        )
        self.db.add(client)
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Client {client.id} created for user {user_id} (tax_id {client.tax_id})")
        return client

    def get_client(self, user_id: UUID, client_id: UUID) -> Client:
        """Cliente por ID; 404 si no existe, 403 si pertenece a otro usuario."""
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise ResourceNotFound("Cliente no encontrado")
        if client.user_id != user_id:
            raise AccessDenied("El cliente pertenece a otro usuario")
        return client

    def list_clients(
        self,
        user_id: UUID,
        tax_id: Optional[str] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        iva_condition: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Client], int]:
        query = self.db.query(Client).filter(Client.user_id == user_id)
        if tax_id:
            query = query.filter(Client.tax_id.ilike(f"%{tax_id}%"))
        if name:
            query = query.filter(Client.name.ilike(f"%{name}%"))
        if email:
            query = query.filter(Client.email.ilike(f"%{email}%"))
        if iva_condition:
            query = query.filter(Client.iva_condition == iva_condition.upper())
        if is_active is not None:
            query = query.filter(Client.is_active == is_active)

        total = query.count()
        clients = query.order_by(Client.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return clients, total

    def update_client(self, user_id: UUID, client_id: UUID, data: ClientUpdate) -> Client:
        client = self.get_client(user_id, client_id)
        update_data = data.model_dump(exclude_unset=True)
        for required in ("name", "iva_condition"):
            if update_data.get(required) is None:
                update_data.pop(required, None)
        if "metadata" in update_data:
            client.extra_data = update_data.pop("metadata")
        for field, value in update_data.items():
            setattr(client, field, value)
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Client {client.id} updated by user {user_id}")
        return client

    def delete_client(self, user_id: UUID, client_id: UUID) -> Client:
        """Baja lógica: las facturas emitidas siguen referenciando al cliente."""
        client = self.get_client(user_id, client_id)
        client.soft_delete()
        self.db.commit()
        logger.info(f"Client {client.id} deactivated by user {user_id}")
        return client
