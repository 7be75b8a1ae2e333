import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import config, crud, schemas
from .auth import Principal, create_access_token, principal_from_token
from .db import Base, SessionLocal, engine
from .errors import AppError, AuthError, AuthorizationError
from .schemas import OrderRead, Role, SweetRead, UserRead, dump

logging.basicConfig(level=config.get_settings().log_level)
logger = logging.getLogger(__name__)

# Create tables if not existing. In production, use Alembic.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Sweet Shop")


# -------------------- Errors --------------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        # drop the 'body' / 'query' / 'path' prefix
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        details.append({"path": ".".join(str(p) for p in loc), "message": err.get("msg", "")})
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Validation failed", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def ok(data: Optional[dict] = None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


# -------------------- Dependencies --------------------

# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_settings() -> config.Settings:
    return config.get_settings()


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(None, 1)[1].strip()
        return token or None
    return None


def get_current_principal(
    authorization: Optional[str] = Header(default=None),
    settings: config.Settings = Depends(get_settings),
) -> Principal:
    token = bearer_token(authorization)
    if token is None:
        raise AuthError("Access token required")
    return principal_from_token(token, settings)


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if principal.role != Role.ADMIN.value:
        raise AuthorizationError("Admin access required")
    return principal


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

@app.post("/auth/register", status_code=201)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    settings: config.Settings = Depends(get_settings),
    authorization: Optional[str] = Header(default=None),
):
    # Self-registration is always STAFF; ADMIN needs an admin's token
    role = Role.STAFF
    if payload.role == Role.ADMIN:
        token = bearer_token(authorization)
        acting = principal_from_token(token, settings) if token else None
        if acting is None or acting.role != Role.ADMIN.value:
            raise AuthorizationError("Only an administrator can grant the ADMIN role")
        role = Role.ADMIN

    user = crud.create_user(db, payload.username, payload.password, role.value)
    token = create_access_token(user, settings)
    return ok({"user": dump(UserRead, user), "token": token}, "User registered successfully")


@app.post("/auth/login")
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: config.Settings = Depends(get_settings),
):
    user = crud.authenticate_user(db, payload.username, payload.password)
    token = create_access_token(user, settings)
    return ok({"user": dump(UserRead, user), "token": token}, "Login successful")


@app.get("/auth/profile")
def profile(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    # The account may have been deleted after the token was issued
    user = crud.get_user(db, principal.user_id)
    return ok({"user": dump(UserRead, user)})


# -------------------- Sweets --------------------

@app.get("/sweets")
def get_sweets(db: Session = Depends(get_db)):
    return ok({"sweets": [dump(SweetRead, s) for s in crud.list_sweets(db)]})


@app.get("/sweets/{sweet_id}")
def get_sweet(sweet_id: int, db: Session = Depends(get_db)):
    return ok({"sweet": dump(SweetRead, crud.get_sweet(db, sweet_id))})


@app.post("/sweets", status_code=201)
def create_sweet(
    payload: schemas.SweetCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    sweet = crud.create_sweet(db, payload)
    logger.info("sweet %s created by %s", sweet.id, admin.username)
    return ok({"sweet": dump(SweetRead, sweet)}, "Sweet created successfully")


@app.put("/sweets/{sweet_id}")
def update_sweet(
    sweet_id: int,
    payload: schemas.SweetUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    sweet = crud.update_sweet(db, sweet_id, payload)
    return ok({"sweet": dump(SweetRead, sweet)}, "Sweet updated successfully")


@app.delete("/sweets/{sweet_id}")
def delete_sweet(sweet_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    crud.delete_sweet(db, sweet_id)
    logger.info("sweet %s deleted by %s", sweet_id, admin.username)
    return ok(message="Sweet deleted successfully")


# -------------------- Orders --------------------

@app.post("/orders", status_code=201)
def create_order(
    payload: schemas.OrderCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    order = crud.create_order(db, payload)
    return ok({"order": dump(OrderRead, order)}, "Order placed successfully")


@app.get("/orders")
def get_orders(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return ok({"orders": [dump(OrderRead, o) for o in crud.list_orders(db)]})


@app.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return ok({"order": dump(OrderRead, crud.get_order(db, order_id))})


@app.put("/orders/{order_id}")
def update_order(
    order_id: int,
    payload: Optional[schemas.OrderUpdate] = None,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    status = payload.status if payload else None
    order = crud.update_order_status(db, order_id, status)
    return ok({"order": dump(OrderRead, order)}, "Order updated successfully")


# -------------------- Users (admin) --------------------

@app.get("/users")
def get_users(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return ok({"users": [dump(UserRead, u) for u in crud.list_users(db)]})


@app.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return ok({"user": dump(UserRead, crud.get_user(db, user_id))})


@app.post("/users", status_code=201)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    user = crud.create_user(db, payload.username, payload.password, payload.role.value)
    return ok({"user": dump(UserRead, user)}, "User created successfully")


@app.put("/users/{user_id}")
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    user = crud.update_user(db, user_id, payload)
    return ok({"user": dump(UserRead, user)}, "User updated successfully")


@app.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    crud.delete_user(db, user_id, acting_user_id=admin.user_id)
    return ok(message="User deleted successfully")
