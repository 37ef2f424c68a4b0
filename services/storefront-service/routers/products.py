"""Products API router."""
import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query
from opentelemetry import trace
from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import MAX_PRODUCT_PAGE_SIZE, PRODUCT_PAGE_SIZE
from database import get_db
from exceptions import NotFound
from models import Category, Product
from schemas import ProductPageResponse, ProductResponse

router = APIRouter(prefix="/products", tags=["products"])

# Columns the catalog may be sorted by
SORTABLE_COLUMNS = {
    "created_at": Product.created_at,
    "price": Product.price,
    "name": Product.name,
    "stock": Product.stock,
}


@router.get("", response_model=ProductPageResponse)
async def get_products(
    keyword: Optional[str] = Query(None, description="Matches product name or description"),
    category: Optional[str] = Query(None, description="Category slug (e.g. electronics, books)"),
    sort_by: Literal["created_at", "price", "name", "stock"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    page_size: int = Query(PRODUCT_PAGE_SIZE, ge=1, le=MAX_PRODUCT_PAGE_SIZE),
    db: Session = Depends(get_db)
):
    """
    Search the products that are for sale.

    Examples:
    - GET /products - newest first, first page
    - GET /products?keyword=desk&sort_by=price&sort_order=asc
    - GET /products?category=books&page=2
    """
    query = db.query(Product).filter(Product.is_active.is_(True))

    keyword = (keyword or "").strip()
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.description.ilike(pattern)
        ))
    if category:
        query = query.join(Category, Product.category_id == Category.id).filter(Category.slug == category)

    column = SORTABLE_COLUMNS[sort_by]
    if sort_order == "asc":
        ordering = (column.asc(), Product.id.asc())
    else:
        ordering = (column.desc(), Product.id.desc())

    with trace.get_tracer(__name__).start_as_current_span("db.query.search_products") as db_span:
        db_span.set_attribute("db.operation", "SELECT")
        db_span.set_attribute("db.table", "products")

        total = query.count()
        products = (
            query.order_by(*ordering)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        categories = db.query(Category).order_by(Category.name.asc()).all()

        db_span.set_attribute("db.rows_returned", len(products))

    span = trace.get_current_span()
    span.set_attribute("product.count", total)
    if keyword:
        span.set_attribute("product.keyword", keyword)
    if category:
        span.set_attribute("product.category", category)

    return {
        "products": products,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
        "categories": categories
    }


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int = Path(..., description="Product ID"),
    db: Session = Depends(get_db)
):
    """Get product details; inactive products are hidden."""
    product = db.query(Product).filter(
        Product.id == product_id,
        Product.is_active.is_(True)
    ).first()
    if product is None:
        raise NotFound("Product")

    trace.get_current_span().set_attribute("product.id", product_id)

    return product
