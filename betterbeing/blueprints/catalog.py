"""Catalog blueprint - public product reads."""
from flask import Blueprint, jsonify

from betterbeing.database import get_session
from betterbeing.schemas import ProductQuery, parse_query
from betterbeing.services import catalog_service

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api/products')


@catalog_bp.route('', methods=['GET'])
def list_products():
    """Products filtered by ?category=&search=&sort=&limit=&offset=."""
    query = parse_query(ProductQuery)
    session = get_session()
    return jsonify(catalog_service.list_products(
        session,
        category=query.category,
        search=query.search,
        sort=query.sort,
        limit=query.limit,
        offset=query.offset
    ))


@catalog_bp.route('/categories/all', methods=['GET'])
def categories():
    session = get_session()
    return jsonify(catalog_service.list_categories(session))


@catalog_bp.route('/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    session = get_session()
    return jsonify(catalog_service.get_product(session, product_id).to_dict())
