import logging
from datetime import datetime, timezone

from pymongo import ReturnDocument

from auth import Principal
from database import create_document, get_documents, populate, serialize, to_object_id
from errors import Forbidden, NotFound
from schemas import Product, ProductPayload

logger = logging.getLogger(__name__)

COLLECTION = "product"


def _find(db, product_id: str) -> dict:
    doc = db[COLLECTION].find_one({"_id": to_object_id(product_id)})
    if not doc:
        raise NotFound(f"Product not found with id of {product_id}")
    return doc


def _check_owner(doc: dict, user: Principal, action: str):
    if doc.get("user") != user.id and not user.is_admin:
        raise Forbidden(f"User {user.id} is not authorized to {action} this product")


def list_products(db, category_id: str) -> dict:
    products = get_documents(db, COLLECTION, {"category": category_id})
    return {"success": True, "count": len(products), "data": products}


def get_product(db, product_id: str) -> dict:
    product = serialize(_find(db, product_id))
    populate(db, product, "user", "user", ["name", "email"])
    return {"success": True, "data": product}


def create_product(db, payload: ProductPayload, user: Principal) -> dict:
    product = Product(**payload.model_dump(), user=user.id)
    return {"success": True, "data": create_document(db, COLLECTION, product)}


def update_product(db, product_id: str, payload: ProductPayload, user: Principal) -> dict:
    doc = _find(db, product_id)
    _check_owner(doc, user, "update")

    updated = db[COLLECTION].find_one_and_update(
        {"_id": doc["_id"]},
        {"$set": {**payload.model_dump(), "updated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound(f"Product not found with id of {product_id}")
    logger.info("Product %s updated by %s", product_id, user.id)
    return {"success": True, "data": serialize(updated)}


def delete_product(db, product_id: str, user: Principal) -> dict:
    doc = _find(db, product_id)
    _check_owner(doc, user, "delete")

    db[COLLECTION].delete_one({"_id": doc["_id"]})
    logger.info("Product %s deleted by %s", product_id, user.id)
    return {"success": True, "data": {}}
