"""
Seed a Sweet Shop database with demo accounts, catalog and one order.

- Upserts 'admin' (ADMIN) and 'staff' (STAFF) accounts
- Upserts the sample sweets by name (price/stock/description refreshed)
- Places a sample order through the normal order transaction, only when
  the database has no orders yet

Usage:
  python -m sweetshop.seed --db sqlite:///./sweetshop.db
"""
import argparse
import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .db import Base, make_engine, make_sessionmaker

logger = logging.getLogger(__name__)

USERS = [
    ("admin", "admin123", schemas.Role.ADMIN),
    ("staff", "staff123", schemas.Role.STAFF),
]

SWEETS = [
    {"name": "Gulab Jamun", "price": 25, "stock": 100, "description": "Traditional milk solid dumplings soaked in sugar syrup"},
    {"name": "Rasgulla", "price": 20, "stock": 80, "description": "Soft spongy cottage cheese balls in light sugar syrup"},
    {"name": "Kaju Katli", "price": 50, "stock": 50, "description": "Diamond-shaped cashew fudge with silver foil"},
    {"name": "Jalebi", "price": 30, "stock": 75, "description": "Crispy orange spirals soaked in sugar syrup"},
    {"name": "Laddu", "price": 15, "stock": 120, "description": "Traditional round sweet made from gram flour"},
    {"name": "Barfi", "price": 35, "stock": 60, "description": "Dense milk-based confection in various flavors"},
    {"name": "Mysore Pak", "price": 40, "stock": 45, "description": "Rich ghee-based sweet from Karnataka"},
    {"name": "Sandesh", "price": 25, "stock": 70, "description": "Bengali cottage cheese sweet delicacy"},
]


def seed(db: Session) -> dict:
    """Populate ``db``; safe to run repeatedly. Returns a small summary."""
    for username, password, role in USERS:
        if crud.get_user_by_username(db, username) is None:
            crud.create_user(db, username, password, role.value)

    for data in SWEETS:
        existing = crud.get_sweet_by_name(db, data["name"])
        if existing is None:
            crud.create_sweet(db, schemas.SweetCreate(**data))
        else:
            existing.price = crud.round_amount(Decimal(data["price"]))
            existing.stock = data["stock"]
            existing.description = data["description"]
            db.commit()

    order_count = db.execute(select(func.count(models.Order.id))).scalar_one()
    sample_order = None
    if order_count == 0:
        gulab = crud.get_sweet_by_name(db, "Gulab Jamun")
        kaju = crud.get_sweet_by_name(db, "Kaju Katli")
        sample_order = crud.create_order(db, schemas.OrderCreate(
            customer_name="John Doe",
            items=[
                schemas.OrderItemCreate(sweet_id=gulab.id, quantity=2),
                schemas.OrderItemCreate(sweet_id=kaju.id, quantity=1),
            ],
        ))
        logger.info("sample order created: %s", sample_order.id)

    return {
        "users": len(USERS),
        "sweets": len(SWEETS),
        "sample_order_id": sample_order.id if sample_order else None,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the Sweet Shop database")
    parser.add_argument("--db", default=None, help="SQLAlchemy database URL (defaults to DATABASE_URL)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.get_settings().log_level)
    url = args.db or config.get_settings().database_url
    engine = make_engine(url)
    Base.metadata.create_all(bind=engine)
    session = make_sessionmaker(engine)()
    try:
        summary = seed(session)
    finally:
        session.close()
        engine.dispose()
    logger.info("database seeded: %s", summary)
    return summary


if __name__ == "__main__":
    main()
