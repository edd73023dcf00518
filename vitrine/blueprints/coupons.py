"""Coupons blueprint: admin CRUD and activation toggle."""
from flask import Blueprint, jsonify, current_app

from vitrine.database import get_session
from vitrine.middleware import require_admin
from vitrine.services import coupon_service
from vitrine.utils.request_data import get_payload

coupons_bp = Blueprint('coupons', __name__, url_prefix='/coupons')


@coupons_bp.route('', methods=['GET'])
@require_admin
def list_coupons():
    coupons = coupon_service.list_coupons(get_session())
    return jsonify({'coupons': [coupon_service.coupon_to_dict(c) for c in coupons]})


@coupons_bp.route('/<int:coupon_id>', methods=['GET'])
@require_admin
def get_coupon(coupon_id):
    return jsonify(coupon_service.coupon_to_dict(coupon_service.get_coupon(get_session(), coupon_id)))


@coupons_bp.route('', methods=['POST'])
@require_admin
def create_coupon():
    coupon = coupon_service.save_coupon(get_session(), get_payload())
    current_app.logger.info(f"Coupon created: {coupon.code}")
    return jsonify(coupon_service.coupon_to_dict(coupon)), 201


@coupons_bp.route('/<int:coupon_id>', methods=['PUT'])
@require_admin
def update_coupon(coupon_id):
    coupon = coupon_service.save_coupon(get_session(), get_payload(), coupon_id)
    return jsonify(coupon_service.coupon_to_dict(coupon))


@coupons_bp.route('/<int:coupon_id>/toggle', methods=['POST'])
@require_admin
def toggle_coupon(coupon_id):
    coupon = coupon_service.toggle_coupon(get_session(), coupon_id)
    return jsonify(coupon_service.coupon_to_dict(coupon))


@coupons_bp.route('/<int:coupon_id>', methods=['DELETE'])
@require_admin
def delete_coupon(coupon_id):
    coupon_service.delete_coupon(get_session(), coupon_id)
    return jsonify({'status': 'success', 'message': 'Cupom excluído'})
