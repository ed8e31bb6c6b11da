"""Items Handlers — sample business resource exercising every pipeline tier.

Invariants:
    - Handlers read coerced values from ctx.params only (validation already happened)
    - Domain violations raise DomainRuleError subclasses; nothing here builds responses
    - Single-item reads go through the ephemeral cache; every write invalidates the key
    - A name clash is ITEM_NAME_TAKEN (409) even when two writers race past the pre-check

Design Decisions:
    - Cached value is the serialized dict, not the ORM object (no detached-instance access)
    - lookup_item_state feeds the reject_if_pending_record gatekeeper
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from mernapp.core.cache import MISS
from mernapp.core.errors import DomainRuleError, ResourceNotFoundError
from mernapp.models.item import Item
from mernapp.pipeline.context import RequestContext
from mernapp.pipeline.dispatch import HandlerRegistry

logger = logging.getLogger(__name__)

PENDING = "pending"
ACTIVE = "active"
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def item_cache_key(item_id: int) -> str:
    return f"item:{item_id}"


def _check_price(price: float) -> None:
    if price <= 0:
        raise DomainRuleError(
            "PRICE_NOT_POSITIVE", "Item price must be greater than zero", 422,
            {"price": price},
        )


async def _get_or_404(db, item_id: int) -> Item:
    item = await db.get(Item, item_id)
    if item is None:
        raise ResourceNotFoundError("Item", item_id)
    return item


def _name_taken(name: str) -> DomainRuleError:
    return DomainRuleError(
        "ITEM_NAME_TAKEN", f"An item named '{name}' already exists", 409,
        {"name": name},
    )


async def _ensure_name_free(db, name: str, exclude_id: int | None = None) -> None:
    query = select(Item.id).where(Item.name == name)
    if exclude_id is not None:
        query = query.where(Item.id != exclude_id)
    result = await db.execute(query)
    if result.scalar_one_or_none() is not None:
        raise _name_taken(name)


async def _commit_unique_name(db, name: str) -> None:
    """Commit; a concurrent writer that claimed the name first is a domain error."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise _name_taken(name) from e


async def list_items(ctx: RequestContext) -> dict:
    limit = min(ctx.params.get("limit", DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    offset = ctx.params.get("offset", 0)
    if limit < 1 or offset < 0:
        raise DomainRuleError(
            "INVALID_PAGINATION", "limit must be >= 1 and offset >= 0", 400,
            {"limit": limit, "offset": offset},
        )
    query = select(Item).order_by(Item.id).limit(limit).offset(offset)
    if ctx.params.get("status"):
        query = query.where(Item.status == ctx.params["status"])

    async with ctx.bag["datastore"].session() as db:
        result = await db.execute(query)
        items = result.scalars().all()
    return {
        "items": [item.to_dict() for item in items],
        "pagination": {"limit": limit, "offset": offset},
    }


async def get_item(ctx: RequestContext) -> dict:
    item_id = ctx.params["id"]
    cache = ctx.bag["cache"]
    data = cache.get(item_cache_key(item_id))
    if data is MISS:
        async with ctx.bag["datastore"].session() as db:
            data = (await _get_or_404(db, item_id)).to_dict()
        cache.set(
            item_cache_key(item_id), data,
            ttl=ctx.bag["settings"].item_cache_ttl_seconds,
        )
    ctx.bag["session"]["last_viewed_item"] = item_id
    return data


async def create_item(ctx: RequestContext) -> dict:
    name = ctx.params["name"].strip()
    price = ctx.params["price"]
    _check_price(price)
    async with ctx.bag["datastore"].session() as db:
        await _ensure_name_free(db, name)
        item = Item(name=name, price=price, status=PENDING)
        db.add(item)
        await _commit_unique_name(db, name)
        await db.refresh(item)
        logger.info(f"Item {item.id} created", extra={"request_id": ctx.request_id})
        return item.to_dict()


async def update_item(ctx: RequestContext) -> dict:
    item_id = ctx.params["id"]
    async with ctx.bag["datastore"].session() as db:
        item = await _get_or_404(db, item_id)
        if "name" in ctx.params:
            name = ctx.params["name"].strip()
            await _ensure_name_free(db, name, exclude_id=item_id)
            item.name = name
        if "price" in ctx.params:
            _check_price(ctx.params["price"])
            item.price = ctx.params["price"]
        await _commit_unique_name(db, item.name)
        await db.refresh(item)
        data = item.to_dict()
    ctx.bag["cache"].delete(item_cache_key(item_id))
    return data


async def activate_item(ctx: RequestContext) -> dict:
    item_id = ctx.params["id"]
    async with ctx.bag["datastore"].session() as db:
        item = await _get_or_404(db, item_id)
        if item.status == ACTIVE:
            raise DomainRuleError(
                "ALREADY_ACTIVE", f"Item '{item_id}' is already active", 409,
                {"id": item_id},
            )
        item.status = ACTIVE
        await db.commit()
        await db.refresh(item)
        data = item.to_dict()
    ctx.bag["cache"].delete(item_cache_key(item_id))
    return data


async def delete_item(ctx: RequestContext) -> None:
    item_id = ctx.params["id"]
    async with ctx.bag["datastore"].session() as db:
        item = await _get_or_404(db, item_id)
        await db.delete(item)
        await db.commit()
    ctx.bag["cache"].delete(item_cache_key(item_id))


async def lookup_item_state(ctx: RequestContext) -> str | None:
    """Current status of the addressed item, None when it does not exist."""
    item_id = ctx.params.get("id")
    if item_id is None:
        return None
    cached = ctx.bag["cache"].get(item_cache_key(item_id))
    if cached is not MISS:
        return cached["status"]
    async with ctx.bag["datastore"].session() as db:
        item = await db.get(Item, item_id)
    return item.status if item else None


def build_registry() -> HandlerRegistry:
    return HandlerRegistry({
        "listItems": list_items,
        "getItem": get_item,
        "createItem": create_item,
        "updateItem": update_item,
        "activateItem": activate_item,
        "deleteItem": delete_item,
    })
