"""Catalog reads, served through the Redis cache when available."""
import json
import logging
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, or_

from betterbeing.models import Product
from betterbeing.exceptions import NotFoundError
from betterbeing.services.cache_service import get_cache, CATALOG_SCOPE

logger = logging.getLogger(__name__)

SORT_ORDERS = {
    'name': (Product.name.asc(), Product.id.asc()),
    'price-low': (Product.price.asc(), Product.id.asc()),
    'price-high': (Product.price.desc(), Product.id.asc()),
    'newest': (Product.created_at.desc(), Product.id.desc()),
}


def _load_products(session, category, search, sort, limit, offset) -> Dict[str, Any]:
    query = session.query(Product)
    if category:
        query = query.filter(func.lower(Product.category) == category.lower())
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))

    total = query.count()
    products = query.order_by(*SORT_ORDERS[sort]).limit(limit).offset(offset).all()
    return {
        'products': [p.to_dict() for p in products],
        'total': total,
        'limit': limit,
        'offset': offset,
    }


def list_products(session, category: Optional[str] = None, search: Optional[str] = None,
                  sort: str = 'name', limit: int = 20, offset: int = 0) -> Dict[str, Any]:
    """
    One page of products matching the filters.

    Each filter set is cached under its own key; checkout and cancel drop
    them all together.
    """
    if sort not in SORT_ORDERS:
        sort = 'name'
    filters = {'category': category, 'search': search, 'sort': sort, 'limit': limit, 'offset': offset}
    key = json.dumps(filters, sort_keys=True)

    cache = get_cache()
    ttl = current_app.config.get('CACHE_PRODUCTS_TTL', 60)
    return cache.memoize(
        CATALOG_SCOPE, 'products', key,
        lambda: _load_products(session, **filters),
        ttl
    )


def list_categories(session) -> List[Dict[str, Any]]:
    """Distinct product categories with how many products each holds."""
    rows = (
        session.query(Product.category, func.count(Product.id))
        .filter(Product.category.isnot(None))
        .group_by(Product.category)
        .order_by(Product.category)
        .all()
    )
    return [{'name': name, 'product_count': count} for name, count in rows]


def get_product(session, product_id: int) -> Product:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')
    return product
