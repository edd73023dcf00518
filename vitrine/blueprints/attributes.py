"""Attributes blueprint: attribute/option management and product variants."""
from flask import Blueprint, jsonify

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError
from vitrine.middleware import require_admin
from vitrine.services import variant_service
from vitrine.utils.request_data import get_payload, get_int_arg

attributes_bp = Blueprint('attributes', __name__)

VARIANT_FIELDS = ('sku', 'price_adjustment', 'stock', 'is_active')


@attributes_bp.route('/attributes', methods=['GET'])
@require_admin
def list_attributes():
    attributes = variant_service.list_attributes(get_session())
    return jsonify({'attributes': [variant_service.attribute_to_dict(a) for a in attributes]})


@attributes_bp.route('/attributes', methods=['POST'])
@attributes_bp.route('/attributes/<int:attribute_id>', methods=['PUT'])
@require_admin
def save_attribute(attribute_id=None):
    payload = get_payload()
    attribute = variant_service.save_attribute(
        get_session(),
        payload.get('name'),
        sort_order=get_int_arg('sort_order', payload) or 0,
        is_active=payload.get('is_active', True),
        attribute_id=attribute_id,
    )
    return jsonify(variant_service.attribute_to_dict(attribute)), 200 if attribute_id else 201


@attributes_bp.route('/attributes/<int:attribute_id>', methods=['DELETE'])
@require_admin
def delete_attribute(attribute_id):
    variant_service.delete_attribute(get_session(), attribute_id)
    return jsonify({'status': 'success', 'message': 'Atributo excluído'})


@attributes_bp.route('/attributes/<int:attribute_id>/options', methods=['POST'])
@attributes_bp.route('/attributes/<int:attribute_id>/options/<int:option_id>', methods=['PUT'])
@require_admin
def save_option(attribute_id, option_id=None):
    payload = get_payload()
    option = variant_service.save_option(
        get_session(),
        attribute_id,
        payload.get('label'),
        image_url=payload.get('image_url'),
        sort_order=get_int_arg('sort_order', payload) or 0,
        option_id=option_id,
    )
    return jsonify(variant_service.option_to_dict(option)), 200 if option_id else 201


@attributes_bp.route('/attributes/options/<int:option_id>', methods=['DELETE'])
@require_admin
def delete_option(option_id):
    variant_service.delete_option(get_session(), option_id)
    return jsonify({'status': 'success', 'message': 'Opção excluída'})


@attributes_bp.route('/products/<int:product_id>/variants', methods=['GET'])
@require_admin
def list_variants(product_id):
    return jsonify({'variants': variant_service.load_variants(get_session(), product_id)})


@attributes_bp.route('/products/<int:product_id>/variants', methods=['POST'])
@require_admin
def add_variant(product_id):
    payload = get_payload()
    option_ids = payload.get('option_ids')
    if not isinstance(option_ids, list):
        raise BusinessLogicError('Selecione pelo menos uma opção de atributo')
    try:
        option_ids = [int(oid) for oid in option_ids]
    except (TypeError, ValueError):
        raise BusinessLogicError('Opção de atributo inválida')

    variant = variant_service.add_variant(
        get_session(),
        product_id,
        option_ids,
        sku=payload.get('sku'),
        price_adjustment=payload.get('price_adjustment'),
        stock=payload.get('stock'),
    )
    return jsonify(variant_service.variant_to_dict(variant)), 201


@attributes_bp.route('/variants/<int:variant_id>', methods=['PUT'])
@require_admin
def update_variant(variant_id):
    payload = get_payload()
    fields = {key: payload[key] for key in VARIANT_FIELDS if key in payload}
    variant = variant_service.update_variant(get_session(), variant_id, **fields)
    return jsonify(variant_service.variant_to_dict(variant))


@attributes_bp.route('/variants/<int:variant_id>', methods=['DELETE'])
@require_admin
def delete_variant(variant_id):
    variant_service.delete_variant(get_session(), variant_id)
    return jsonify({'status': 'success', 'message': 'Variante excluída'})
