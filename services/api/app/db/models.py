from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class ProductRow(Base):
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String, primary_key=True)
    nombre: Mapped[str] = mapped_column(String, nullable=False)
    categoria: Mapped[str] = mapped_column(String, nullable=False, default="")
    descripcion: Mapped[str | None] = mapped_column(String, nullable=True)
    precio_unitario: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    costo_unitario: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    cantidad_en_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imagen_url: Mapped[str | None] = mapped_column(String, nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class ClienteRow(Base):
    __tablename__ = "clientes"

    cliente_id: Mapped[str] = mapped_column(String, primary_key=True)
    nombre: Mapped[str] = mapped_column(String, nullable=False)
    telefono_whatsapp: Mapped[str] = mapped_column(String, nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class LiveRow(Base):
    __tablename__ = "lives"

    live_id: Mapped[str] = mapped_column(String, primary_key=True)
    titulo: Mapped[str | None] = mapped_column(String, nullable=True)
    fecha_hora: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    estado: Mapped[str] = mapped_column(String, nullable=False, default="programado")
    notas: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class BasketRow(Base):
    __tablename__ = "baskets"
    # At most one open basket per customer per live.
    __table_args__ = (
        Index(
            "uq_baskets_open_per_customer",
            "live_id",
            "cliente_id",
            unique=True,
            sqlite_where=text("estado = 'abierta'"),
            postgresql_where=text("estado = 'abierta'"),
        ),
    )

    basket_id: Mapped[str] = mapped_column(String, primary_key=True)
    live_id: Mapped[str] = mapped_column(ForeignKey("lives.live_id"), nullable=False)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.cliente_id"), nullable=False)
    estado: Mapped[str] = mapped_column(String, nullable=False, default="abierta")
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class BasketItemRow(Base):
    __tablename__ = "basket_items"

    basket_item_id: Mapped[str] = mapped_column(String, primary_key=True)
    basket_id: Mapped[str] = mapped_column(ForeignKey("baskets.basket_id"), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.product_id"), nullable=False)

    cantidad: Mapped[int] = mapped_column(Integer, nullable=False)
    precio_unitario_snapshot: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    costo_unitario_snapshot: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_item: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class PedidoRow(Base):
    __tablename__ = "pedidos"

    pedido_id: Mapped[str] = mapped_column(String, primary_key=True)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.cliente_id"), nullable=False)
    live_id: Mapped[str | None] = mapped_column(ForeignKey("lives.live_id"), nullable=True)

    estado: Mapped[str] = mapped_column(String, nullable=False, default="Pendiente")
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    impuestos: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    empleado: Mapped[str] = mapped_column(String, nullable=False)
    notas: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class PedidoItemRow(Base):
    __tablename__ = "pedido_items"

    pedido_item_id: Mapped[str] = mapped_column(String, primary_key=True)
    pedido_id: Mapped[str] = mapped_column(ForeignKey("pedidos.pedido_id"), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.product_id"), nullable=False)

    cantidad: Mapped[int] = mapped_column(Integer, nullable=False)
    precio_unitario_snapshot: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    costo_unitario_snapshot: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_item: Mapped[Decimal] = mapped_column(MONEY, nullable=False)


class EventLog(Base):
    __tablename__ = "event_log"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    live_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    event_payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
