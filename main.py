import logging
import os

from bson.errors import InvalidId
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import orders
import products
from advanced_results import advanced_results
from auth import Principal, authorize, check_password, create_token, hash_password, protect
from database import create_document, get_db
from errors import BadRequest, ErrorResponse, Unauthorized
from schemas import LoginRequest, OrderPayload, ProductPayload, SignupRequest, StatusUpdate, User

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

app = FastAPI(title="storefront-api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error boundary
def error_envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(ErrorResponse)
def handle_error_response(request: Request, exc: ErrorResponse):
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_envelope(exc.status_code, exc.message)


@app.exception_handler(InvalidId)
def handle_invalid_id(request: Request, exc: InvalidId):
    return error_envelope(404, "Resource not found")


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg", "Invalid value"))
    return error_envelope(400, ", ".join(messages) or "Invalid request")


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_envelope(500, "Server Error")


@app.get("/")
def root():
    return {"status": "ok", "service": "storefront-api"}


router = APIRouter()


# Auth Endpoints
@router.post("/auth/signup", status_code=201)
def signup(payload: SignupRequest, db=Depends(get_db)):
    if db["user"].find_one({"email": payload.email}):
        raise BadRequest("Email already registered")
    user = User(name=payload.name, email=payload.email, password_hash=hash_password(payload.password))
    user_doc = create_document(db, "user", user)
    return {"success": True, "token": create_token(user_doc)}


@router.post("/auth/login")
def login(payload: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not check_password(payload.password, user["password_hash"]):
        raise Unauthorized("Invalid credentials")
    return {"success": True, "token": create_token(user)}


@router.get("/auth/me")
def me(user: Principal = Depends(protect)):
    return {"success": True, "data": user.model_dump()}


# Product Endpoints
@router.get("/products")
def list_products(request: Request, db=Depends(get_db)):
    return advanced_results(db, products.COLLECTION, dict(request.query_params), numeric_fields=("price", "stock"))


@router.get("/categories/{category_id}/products")
def list_category_products(category_id: str, db=Depends(get_db)):
    return products.list_products(db, category_id)


@router.get("/products/{product_id}")
def get_product(product_id: str, db=Depends(get_db)):
    return products.get_product(db, product_id)


@router.post("/products", status_code=201)
def create_product(payload: ProductPayload, user: Principal = Depends(authorize("user", "admin")), db=Depends(get_db)):
    return products.create_product(db, payload, user)


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductPayload, user: Principal = Depends(authorize("user", "admin")), db=Depends(get_db)):
    return products.update_product(db, product_id, payload, user)


@router.delete("/products/{product_id}")
def delete_product(product_id: str, user: Principal = Depends(authorize("user", "admin")), db=Depends(get_db)):
    return products.delete_product(db, product_id, user)


# Orders
@router.post("/orders", status_code=201)
def create_order(payload: OrderPayload, user: Principal = Depends(protect), db=Depends(get_db)):
    return orders.create_order(db, payload, user)


@router.get("/orders/me")
def my_orders(user: Principal = Depends(protect), db=Depends(get_db)):
    return orders.list_my_orders(db, user)


@router.get("/orders", dependencies=[Depends(authorize("admin"))])
def all_orders(db=Depends(get_db)):
    return orders.list_orders(db)


@router.get("/orders/{order_id}")
def get_order(order_id: str, user: Principal = Depends(protect), db=Depends(get_db)):
    return orders.get_order(db, order_id, user)


@router.put("/orders/{order_id}", dependencies=[Depends(authorize("admin"))])
def update_order(order_id: str, payload: StatusUpdate, db=Depends(get_db)):
    return orders.update_order_status(db, order_id, payload.status)


@router.delete("/orders/{order_id}", dependencies=[Depends(authorize("admin"))])
def delete_order(order_id: str, db=Depends(get_db)):
    return orders.delete_order(db, order_id)


app.include_router(router)
app.include_router(router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
