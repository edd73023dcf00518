"""Service for deleting sales with stock reversal."""
import logging

from vitrine.models import Sale, SaleItem, Product
from vitrine.exceptions import NotFoundError
from vitrine.services.cache_service import invalidate_catalog

logger = logging.getLogger(__name__)


def delete_sale_with_reversal(sale_id: int, session) -> dict:
    """
    Delete a sale and give its quantities back to stock.
    
    Steps:
    1. Validate sale exists
    2. For each item whose product still exists and tracks stock,
       re-read the product (locked) and add the quantity back
    3. Delete sale items
    4. Delete sale
    5. Commit
    
    Coupon usage is not decremented: a used coupon stays used.
    
    Args:
        sale_id: Sale ID to delete
        session: SQLAlchemy session
    
    Returns:
        dict with success message and restored products
    
    Raises:
        NotFoundError: sale does not exist
        Exception: For other errors
    """
    try:
        # Step 1: Get sale
        sale = session.query(Sale).filter(Sale.id == sale_id).first()
        if not sale:
            raise NotFoundError(f'Venda #{sale_id} não encontrada')
        
        sale_items = session.query(SaleItem).filter(SaleItem.sale_id == sale_id).all()
        
        # Step 2: Restore stock
        restored_products = []
        for item in sale_items:
            if item.product_id is None:
                continue
            
            product = session.query(Product).filter(
                Product.id == item.product_id
            ).with_for_update().first()
            
            if not product:
                logger.warning(f"[SALES] Product {item.product_id} of sale {sale_id} no longer exists, skipping")
                continue
            
            if product.stock is None:
                continue  # untracked stock
            
            old_stock = product.stock
            product.stock = old_stock + item.quantity
            restored_products.append({
                'product_id': product.id,
                'product_name': product.name,
                'qty': item.quantity,
                'old_stock': old_stock,
                'new_stock': product.stock
            })
        
        # Step 3: Delete sale items
        for item in sale_items:
            session.delete(item)
        
        # Step 4: Delete sale
        session.delete(sale)
        
        # Step 5: Commit
        session.commit()
        invalidate_catalog()
        logger.info(f"[SALES] Sale {sale_id} deleted, {len(restored_products)} products restocked")
        
        return {
            'success': True,
            'message': f'Venda #{sale_id} excluída e estoque restaurado',
            'sale_id': sale_id,
            'restored_products': restored_products
        }
    
    except NotFoundError:
        session.rollback()
        raise
    
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir venda: {str(e)}')
