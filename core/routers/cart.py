"""
Cart Router

Authenticated endpoints for the caller's own cart.
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from core.auth import AuthUser, verify_user
from core.services.domains import CartService

from .deps import get_cart_service
from .models import CartItemRequest, DeleteCartItemsRequest, SyncCartRequest, UpdateCartItemRequest

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    """Cart with hydrated items. Items already bought are dropped first."""
    return await service.get_user_cart(user.id)


@router.post("/items")
async def add_to_cart(
    request: CartItemRequest,
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.add_item(
        user.id, str(request.variant_id), request.quantity, request.assembly_required
    )


@router.post("/sync")
async def sync_cart(
    request: SyncCartRequest,
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    """Replace server-side quantities with the client's cart."""
    items = [
        {
            "variant_id": str(item.variant_id),
            "quantity": item.quantity,
            "assembly_required": item.assembly_required,
        }
        for item in request.items
    ]
    return await service.sync_cart(user.id, items)


@router.patch("/items/{item_id}")
async def update_cart_item(
    item_id: UUID,
    request: UpdateCartItemRequest,
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.update_item(
        user.id, str(item_id), request.quantity, request.assembly_required
    )


@router.delete("/items/{item_id}")
async def remove_cart_item(
    item_id: UUID,
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.remove_item(user.id, str(item_id))


@router.delete("/items")
async def remove_cart_items(
    request: DeleteCartItemsRequest,
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.remove_items(user.id, [str(item_id) for item_id in request.item_ids])


@router.delete("")
async def clear_cart(
    user: AuthUser = Depends(verify_user),
    service: CartService = Depends(get_cart_service),
):
    return await service.clear_cart(user.id)
