"""
Dashboard service.
Provides aggregated sales metrics and AI insights for the admin dashboard.
"""
from collections import OrderedDict
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from vitrine.models import Sale, SaleItem, Product, Customer
from vitrine.services.cart import to_money

TOP_LIMIT = 5
REVENUE_DAYS = 14


def resolve_date_range(start_date: Optional[date] = None, end_date: Optional[date] = None,
                       default_days: int = 30):
    """Fill a missing bound so the range defaults to the last ``default_days``."""
    end_date = end_date or date.today()
    start_date = start_date or end_date - timedelta(days=default_days)
    return start_date, end_date


def get_dashboard_data(session, start_date: Optional[date] = None, end_date: Optional[date] = None,
                       default_days: int = 30) -> dict:
    """
    Get all dashboard data for a date range (inclusive days).

    Returns:
        dict with keys:
            - start_date / end_date: ISO dates actually used
            - total_revenue: Decimal
            - total_sales: int
            - total_products: int
            - total_customers: int
            - best_selling_products: top 5 ``{name, quantity}`` by snapshot name
            - top_customers: top 5 ``{name, total}``
            - revenue_by_day: last 14 days with sales, ``{date, revenue}``
    """
    start_date, end_date = resolve_date_range(start_date, end_date, default_days)
    start_dt = datetime.combine(start_date, time.min)
    end_dt = datetime.combine(end_date, time.max)
    in_range = (Sale.created_at >= start_dt, Sale.created_at <= end_dt)

    # 1. Revenue and sale count
    totals = session.query(
        func.coalesce(func.sum(Sale.total), 0).label('revenue'),
        func.count(Sale.id).label('count')
    ).filter(*in_range).first()
    total_revenue = to_money(totals.revenue if totals else 0)
    total_sales = int(totals.count or 0) if totals else 0

    # 2. Catalog and customer counts (not range bound)
    total_products = session.query(func.count(Product.id)).scalar() or 0
    total_customers = session.query(func.count(Customer.id)).scalar() or 0

    # 3. Best sellers, grouped by the name captured on the sale item
    best_rows = session.query(
        SaleItem.product_name,
        func.sum(SaleItem.quantity).label('quantity')
    ).join(Sale, SaleItem.sale_id == Sale.id).filter(
        *in_range
    ).group_by(SaleItem.product_name).order_by(
        func.sum(SaleItem.quantity).desc(), SaleItem.product_name.asc()
    ).limit(TOP_LIMIT).all()
    best_selling_products = [
        {'name': row.product_name, 'quantity': int(row.quantity or 0)}
        for row in best_rows
    ]

    # 4. Top customers by spent total
    customer_rows = session.query(
        Customer.id,
        Customer.name,
        func.sum(Sale.total).label('total')
    ).join(Sale, Sale.customer_id == Customer.id).filter(
        *in_range
    ).group_by(Customer.id, Customer.name).order_by(
        func.sum(Sale.total).desc()
    ).limit(TOP_LIMIT).all()
    top_customers = [
        {'id': row.id, 'name': row.name, 'total': to_money(row.total)}
        for row in customer_rows
    ]

    # 5. Revenue per calendar day, bucketed in Python to stay backend agnostic
    revenue_by_day = OrderedDict()
    sale_rows = session.query(Sale.created_at, Sale.total).filter(
        *in_range
    ).order_by(Sale.created_at.asc()).all()
    for created_at, total in sale_rows:
        key = created_at.date().isoformat()
        revenue_by_day[key] = revenue_by_day.get(key, Decimal('0')) + to_money(total)
    revenue_data = [
        {'date': day, 'revenue': to_money(revenue)}
        for day, revenue in revenue_by_day.items()
    ][-REVENUE_DAYS:]

    return {
        'start_date': start_date.isoformat(),
        'end_date': end_date.isoformat(),
        'total_revenue': total_revenue,
        'total_sales': total_sales,
        'total_products': int(total_products),
        'total_customers': int(total_customers),
        'best_selling_products': best_selling_products,
        'top_customers': top_customers,
        'revenue_by_day': revenue_data,
    }


def inventory_snapshot(session) -> list:
    """Products as sent to the insights model."""
    rows = session.query(Product.name, Product.stock, Product.price).order_by(Product.name.asc()).all()
    return [
        {'name': row.name, 'stock': row.stock, 'price': str(to_money(row.price))}
        for row in rows
    ]


def get_insights(session, stats: dict, client=None) -> list:
    """AI insights for the given stats; never raises on gateway failures."""
    if client is None:
        from vitrine.services.ai_service import get_ai_client
        client = get_ai_client()
    return client.generate_insights(stats, inventory_snapshot(session))
