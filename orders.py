import logging
from datetime import datetime, timezone
from typing import List, Optional

from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from auth import Principal
from database import create_document, get_documents, populate, serialize, to_object_id
from errors import BadRequest, ErrorResponse, NotFound, Unauthorized
from schemas import TERMINAL_STATUS, Order, OrderPayload

logger = logging.getLogger(__name__)

COLLECTION = "order"
PRODUCTS = "product"


def _find(db, order_id: str) -> dict:
    doc = db[COLLECTION].find_one({"_id": to_object_id(order_id)})
    if not doc:
        raise NotFound(f"Order not found with id of {order_id}")
    return doc


def create_order(db, payload: OrderPayload, user: Principal) -> dict:
    order = Order(**payload.model_dump(), user=user.id)
    return {"success": True, "data": create_document(db, COLLECTION, order)}


def get_order(db, order_id: str, user: Principal) -> dict:
    doc = _find(db, order_id)
    if doc.get("user") != user.id and not user.is_admin:
        raise Unauthorized(f"User {user.id} is not authorized to view this order")

    order = serialize(doc)
    populate(db, order, "user", "user", ["name", "email"])
    return {"success": True, "data": order}


def list_my_orders(db, user: Principal) -> dict:
    orders = get_documents(db, COLLECTION, {"user": user.id})
    return {"success": True, "count": len(orders), "data": orders}


def list_orders(db) -> dict:
    orders = [populate(db, order, "user", "user", ["name"]) for order in get_documents(db, COLLECTION)]
    return {"success": True, "count": len(orders), "data": orders}


def _decrement_stock(db, product_id: str, quantity: int):
    try:
        oid = to_object_id(product_id)
    except InvalidId:
        raise NotFound(f"Product not found with id of {product_id}")

    # Conditional $inc so concurrent decrements never take stock below zero.
    updated = db[PRODUCTS].find_one_and_update(
        {"_id": oid, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        if db[PRODUCTS].count_documents({"_id": oid}) == 0:
            raise NotFound(f"Product not found with id of {product_id}")
        raise BadRequest(f"Insufficient stock for product {product_id}")
    logger.info("Stock of product %s decremented by %d to %d", product_id, quantity, updated["stock"])


def _restore_stock(db, items: List[dict]):
    for item in reversed(items):
        db[PRODUCTS].update_one({"_id": to_object_id(item["product"])}, {"$inc": {"stock": item["quantity"]}})
        logger.warning("Restored %d units of product %s", item["quantity"], item["product"])


def update_order_status(db, order_id: str, status: Optional[str] = None) -> dict:
    """Apply a status transition and take the ordered items out of stock.

    Every item is decremented, in order, before the order itself is written.
    If any decrement or the order write fails, the decrements already applied
    are reverted and the order is left as it was.
    """
    order = _find(db, order_id)
    if order.get("order_status") == TERMINAL_STATUS:
        raise BadRequest("You have already delivered this order")

    applied = []
    try:
        for item in order.get("order_items", []):
            _decrement_stock(db, item["product"], item["quantity"])
            applied.append(item)

        now = datetime.now(timezone.utc)
        changes = {"delivered_at": now, "updated_at": now}
        if status:
            changes["order_status"] = status
        updated = db[COLLECTION].find_one_and_update(
            {"_id": order["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFound(f"Order not found with id of {order_id}")
    except (ErrorResponse, PyMongoError):
        _restore_stock(db, applied)
        raise

    logger.info(
        "Order %s moved from %s to %s",
        order_id,
        order.get("order_status"),
        updated.get("order_status"),
    )
    return {"success": True, "data": serialize(updated)}


def delete_order(db, order_id: str) -> dict:
    doc = _find(db, order_id)
    db[COLLECTION].delete_one({"_id": doc["_id"]})
    logger.info("Order %s deleted", order_id)
    return {"success": True, "data": {}}
