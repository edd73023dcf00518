"""Customers blueprint: CRUD, autocomplete search and coupon links."""
from flask import Blueprint, request, jsonify, current_app

from vitrine.database import get_session
from vitrine.middleware import require_admin
from vitrine.services import customer_service, coupon_service
from vitrine.utils.request_data import get_payload, require_int

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


@customers_bp.route('', methods=['GET'])
@require_admin
def list_customers():
    """Customer list; ?q= filters by name, phone or address."""
    customers = customer_service.list_customers(get_session(), request.args.get('q'))
    return jsonify({'customers': [customer_service.customer_to_dict(c) for c in customers]})


@customers_bp.route('/search', methods=['GET'])
@require_admin
def search_customers():
    """Search customers for autocomplete (JSON)."""
    customers = customer_service.search_customers(get_session(), request.args.get('q'))
    return jsonify({
        'results': [
            {'id': c.id, 'name': c.name, 'phone': c.phone}
            for c in customers
        ]
    })


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_admin
def get_customer(customer_id):
    customer = customer_service.get_customer(get_session(), customer_id)
    return jsonify(customer_service.customer_to_dict(customer))


@customers_bp.route('', methods=['POST'])
@require_admin
def create_customer():
    customer = customer_service.save_customer(get_session(), get_payload())
    current_app.logger.info(f"Customer created: {customer.id}")
    return jsonify(customer_service.customer_to_dict(customer)), 201


@customers_bp.route('/<int:customer_id>', methods=['PUT'])
@require_admin
def update_customer(customer_id):
    customer = customer_service.save_customer(get_session(), get_payload(), customer_id)
    return jsonify(customer_service.customer_to_dict(customer))


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_admin
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), customer_id)
    return jsonify({'status': 'success', 'message': 'Cliente excluído'})


@customers_bp.route('/<int:customer_id>/coupons', methods=['GET'])
@require_admin
def customer_coupons(customer_id):
    """Linked coupons plus the ones still available to link."""
    db_session = get_session()
    linked = coupon_service.list_customer_coupons(db_session, customer_id)
    available = coupon_service.available_coupons_for_customer(db_session, customer_id)
    return jsonify({
        'coupons': [coupon_service.coupon_to_dict(c) for c in linked],
        'available': [coupon_service.coupon_to_dict(c) for c in available],
    })


@customers_bp.route('/<int:customer_id>/coupons', methods=['POST'])
@require_admin
def link_coupon(customer_id):
    coupon_id = require_int(get_payload(), 'coupon_id', 'Cupom')
    coupon_service.link_coupon(get_session(), customer_id, coupon_id)
    return jsonify({'status': 'success', 'message': 'Cupom vinculado ao cliente'}), 201


@customers_bp.route('/<int:customer_id>/coupons/<int:coupon_id>', methods=['DELETE'])
@require_admin
def unlink_coupon(customer_id, coupon_id):
    coupon_service.unlink_coupon(get_session(), customer_id, coupon_id)
    return jsonify({'status': 'success', 'message': 'Cupom desvinculado'})
