import logging
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import (
    AuthError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Business rule: money stored rounded to 2 decimals

def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _commit(db: Session, conflict_message: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # The unique constraints are the authoritative guard when two
        # requests pass the lookup check at the same time.
        raise ConflictError(conflict_message) from e


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.execute(
        select(models.User).where(models.User.username == username)
    ).scalar_one_or_none()


def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()


def create_user(db: Session, username: str, password: str, role: str = schemas.Role.STAFF.value) -> models.User:
    if get_user_by_username(db, username):
        raise ConflictError("Username already exists")
    db_user = models.User(username=username, password_hash=hash_password(password), role=role)
    db.add(db_user)
    _commit(db, "Username already exists")
    db.refresh(db_user)
    logger.info("created user %s with role %s", db_user.username, db_user.role)
    return db_user


def authenticate_user(db: Session, username: str, password: str) -> models.User:
    user = get_user_by_username(db, username)
    if not user or not verify_password(password, user.password_hash):
        logger.warning("failed login attempt for user: %s", username)
        raise AuthError("Invalid credentials")
    return user


def update_user(db: Session, user_id: int, changes: schemas.UserUpdate) -> models.User:
    user = get_user(db, user_id)
    data = changes.model_dump(exclude_unset=True)

    # username uniqueness is re-checked only when it actually changes
    new_username = data.get("username")
    if new_username and new_username != user.username:
        if get_user_by_username(db, new_username):
            raise ConflictError("Username already exists")
        user.username = new_username
    if "password" in data:
        user.password_hash = hash_password(data["password"])
    if "role" in data:
        user.role = data["role"].value
    db.add(user)
    _commit(db, "Username already exists")
    db.refresh(user)
    logger.info("updated user %s (%s)", user.id, ", ".join(sorted(data)) or "no fields")
    return user


def delete_user(db: Session, user_id: int, acting_user_id: int) -> None:
    if user_id == acting_user_id:
        raise ConflictError("Cannot delete your own account")
    user = get_user(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("deleted user %s", user_id)


# -------------------- Sweets --------------------

def get_sweet(db: Session, sweet_id: int) -> models.Sweet:
    sweet = db.get(models.Sweet, sweet_id)
    if not sweet:
        raise NotFoundError("Sweet not found")
    return sweet


def get_sweet_by_name(db: Session, name: str) -> Optional[models.Sweet]:
    return db.execute(select(models.Sweet).where(models.Sweet.name == name)).scalar_one_or_none()


def list_sweets(db: Session) -> List[models.Sweet]:
    return db.query(models.Sweet).order_by(models.Sweet.created_at.desc(), models.Sweet.id.desc()).all()


def create_sweet(db: Session, sweet: schemas.SweetCreate) -> models.Sweet:
    if get_sweet_by_name(db, sweet.name):
        raise ConflictError("Sweet with this name already exists")
    db_sweet = models.Sweet(
        name=sweet.name,
        price=round_amount(sweet.price),
        stock=sweet.stock,
        description=sweet.description,
        image_url=sweet.image_url,
    )
    db.add(db_sweet)
    _commit(db, "Sweet with this name already exists")
    db.refresh(db_sweet)
    return db_sweet


def update_sweet(db: Session, sweet_id: int, changes: schemas.SweetUpdate) -> models.Sweet:
    sweet = get_sweet(db, sweet_id)
    data = changes.model_dump(exclude_unset=True)

    if "name" in data and data["name"] != sweet.name and get_sweet_by_name(db, data["name"]):
        raise ConflictError("Sweet with this name already exists")
    if "price" in data:
        data["price"] = round_amount(data["price"])
    for field, value in data.items():
        setattr(sweet, field, value)
    db.add(sweet)
    _commit(db, "Sweet with this name already exists")
    db.refresh(sweet)
    return sweet


def delete_sweet(db: Session, sweet_id: int) -> None:
    # Historical order lines keep their name/price snapshot; the FK is set to NULL
    sweet = get_sweet(db, sweet_id)
    db.delete(sweet)
    db.commit()


# -------------------- Orders --------------------

def create_order(db: Session, order: schemas.OrderCreate) -> models.Order:
    """Place an order and take its quantities out of stock in one transaction.

    The referenced sweets are read in one ``SELECT ... FOR UPDATE`` ordered
    by id, so concurrent orders take row locks (on backends that have them)
    in the same order whatever their line order. Lines are then validated in
    the order given, against the cumulative quantity requested per sweet.
    Stock is then decremented with a guarded UPDATE that only matches
    while enough stock remains, so a concurrent order that got
    there first makes this one fail instead of driving stock negative. Any
    failure rolls back everything: no order row, no line items, no
    decrement.
    """
    if not order.items:
        raise ValidationError("Order must contain at least one item")
    customer_name = (order.customer_name or "").strip()
    if not customer_name:
        raise ValidationError("customerName must not be blank")

    try:
        sweet_ids = sorted({item.sweet_id for item in order.items})
        sweets = {
            s.id: s
            for s in db.execute(
                select(models.Sweet)
                .where(models.Sweet.id.in_(sweet_ids))
                .order_by(models.Sweet.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        }

        requested = defaultdict(int)
        lines = []
        total = Decimal("0")
        for item in order.items:
            sweet = sweets.get(item.sweet_id)
            if not sweet:
                raise NotFoundError(f"Sweet with ID {item.sweet_id} not found")
            requested[sweet.id] += item.quantity
            if requested[sweet.id] > sweet.stock:
                raise InsufficientStockError(sweet.id, sweet.name, sweet.stock, requested[sweet.id])

            unit_price = round_amount(sweet.price)
            line_price = round_amount(unit_price * item.quantity)
            total += line_price
            lines.append(models.OrderItem(
                sweet_id=sweet.id,
                sweet_name=sweet.name,
                unit_price=unit_price,
                quantity=item.quantity,
                price=line_price,
            ))

        db_order = models.Order(
            customer_name=customer_name,
            total_price=round_amount(total),
            status=schemas.OrderStatus.PLACED.value,
            items=lines,
        )
        db.add(db_order)

        for line in lines:
            result = db.execute(
                update(models.Sweet)
                .where(models.Sweet.id == line.sweet_id, models.Sweet.stock >= line.quantity)
                .values(stock=models.Sweet.stock - line.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current = db.execute(
                    select(models.Sweet.stock).where(models.Sweet.id == line.sweet_id)
                ).scalar_one_or_none()
                raise InsufficientStockError(line.sweet_id, line.sweet_name, current or 0, line.quantity)

        db.commit()
    except (InsufficientStockError, NotFoundError) as e:
        db.rollback()
        logger.info("order rejected for %s: %s", customer_name, e.message)
        raise
    except IntegrityError as e:
        db.rollback()
        # stock CHECK constraint tripped by a racing order
        raise ConflictError("Order could not be placed, stock changed concurrently") from e
    except OperationalError as e:
        db.rollback()
        # lock timeout or deadlock victim; nothing was applied
        logger.warning("order for %s aborted by the database: %s", customer_name, e.orig)
        raise ConflictError("Order could not be placed, please retry") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(db_order)
    logger.info("order %s placed for %s, total %s", db_order.id, db_order.customer_name, db_order.total_price)
    return db_order


def get_order(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(db: Session) -> List[models.Order]:
    return db.query(models.Order).order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()


# PLACED -> FULFILLED is the only lifecycle step; cancellation is not modelled
_ALLOWED_TRANSITIONS = {
    schemas.OrderStatus.PLACED: {schemas.OrderStatus.FULFILLED},
    schemas.OrderStatus.FULFILLED: set(),
}


def update_order_status(db: Session, order_id: int, status: Optional[schemas.OrderStatus] = None) -> models.Order:
    order = get_order(db, order_id)
    if status is not None and status.value != order.status:
        current = schemas.OrderStatus(order.status)
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise ValidationError(f"Cannot change order status from {current.value} to {status.value}")
        order.status = status.value
    # onupdate only fires when a column changes, so touch it explicitly
    order.updated_at = models.utcnow()
    db.add(order)
    db.commit()
    db.refresh(order)
    return order
