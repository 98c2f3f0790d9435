from __future__ import annotations

import argparse
from datetime import datetime
from decimal import Decimal

from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import ClienteRow, LiveRow, ProductRow

PRODUCTS = (
    ("p-aretes-perla", "Aretes de perla", "Aretes", Decimal("180.00"), Decimal("65.00"), 12),
    ("p-collar-dorado", "Collar dorado", "Collares", Decimal("320.00"), Decimal("120.00"), 6),
    ("p-pulsera-plata", "Pulsera de plata", "Pulseras", Decimal("250.00"), Decimal("90.00"), 8),
    ("p-anillo-zirconia", "Anillo zirconia", "Anillos", Decimal("150.00"), Decimal("45.00"), 3),
)

CUSTOMERS = (
    ("c-ana", "Ana López", "+5215512345678"),
    ("c-maria", "María Hernández", "+5215587654321"),
    ("c-sofia", "Sofía Ramírez", "+5215511223344"),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a demo catalog, customers and an active live")
    parser.add_argument("--live-id", default="live-demo")
    parser.add_argument("--live-title", default="Live de joyería")
    parser.add_argument("--scheduled", action="store_true", help="Leave the live scheduled instead of active")
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        for product_id, name, category, price, cost, stock in PRODUCTS:
            if db.get(ProductRow, product_id) is None:
                db.add(
                    ProductRow(
                        product_id=product_id,
                        nombre=name,
                        categoria=category,
                        precio_unitario=price,
                        costo_unitario=cost,
                        cantidad_en_stock=stock,
                        activo=True,
                    )
                )

        for customer_id, name, phone in CUSTOMERS:
            if db.get(ClienteRow, customer_id) is None:
                db.add(ClienteRow(cliente_id=customer_id, nombre=name, telefono_whatsapp=phone))

        if db.get(LiveRow, args.live_id) is None:
            db.add(
                LiveRow(
                    live_id=args.live_id,
                    titulo=args.live_title,
                    fecha_hora=datetime.utcnow(),
                    estado="programado" if args.scheduled else "activo",
                )
            )

        db.commit()
        print(f"Seeded live={args.live_id} products={len(PRODUCTS)} customers={len(CUSTOMERS)}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
