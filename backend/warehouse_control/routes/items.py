# backend/warehouse_control/routes/items.py
"""
Item management routes.

SECURITY: All routes require authentication.
- Read operations: admin, manager, viewer
- Create and update: admin, manager
- Delete: admin

Every mutation is attributed to the token's username and recorded in
items_history.
"""
from flask import Blueprint, jsonify, request

from ..decorators import ADMIN_ONLY, ALL_ROLES, EDITOR_ROLES, require_auth, require_role
from ..errors import InvalidInput
from ..models import Item
from ..services import items_service
from ..validation import ModelValidationPolicy, validate_payload


items_bp = Blueprint("items", __name__, url_prefix="/api/items")

ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "sku", "quantity", "price", "category", "location"}),
    required_on_create=frozenset({"name", "sku"}),
)


@items_bp.get("")
@require_auth
@require_role(*ALL_ROLES)
def list_items_route(claims):
    items = items_service.list_items()
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@items_bp.get("/<int:item_id>")
@require_auth
@require_role(*ALL_ROLES)
def get_item_route(item_id: int, claims):
    return jsonify(items_service.get_item(item_id).to_dict()), 200


@items_bp.post("")
@require_auth
@require_role(*EDITOR_ROLES)
def create_item_route(claims):
    """
    Create a new item.

    Required: name, sku. Optional: quantity (default 0), price (default 0),
    category, location.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        raise InvalidInput("JSON body required")
    values = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    item = items_service.create_item(values, actor=claims.username)
    return jsonify({"id": item.id, "item": item.to_dict()}), 201


@items_bp.route("/<int:item_id>", methods=["PUT", "PATCH"])
@require_auth
@require_role(*EDITOR_ROLES)
def update_item_route(item_id: int, claims):
    """
    Partially update an item.

    Only fields present in the body with a non-empty value are changed;
    omitted, null or empty-string fields keep their stored value.
    """
    payload = request.get_json(silent=True)
    if payload is None:
        raise InvalidInput("JSON body required")
    values = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    patch = items_service.ItemPatch.from_mapping(values)
    item = items_service.update_item(item_id, patch, actor=claims.username)
    return jsonify(item.to_dict()), 200


@items_bp.delete("/<int:item_id>")
@require_auth
@require_role(*ADMIN_ONLY)
def delete_item_route(item_id: int, claims):
    items_service.delete_item(item_id, actor=claims.username)
    return "", 204
