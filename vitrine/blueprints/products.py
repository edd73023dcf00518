"""Products blueprint: admin CRUD, images and import from photo."""
from flask import Blueprint, request, jsonify, current_app

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError, AIServiceError
from vitrine.middleware import require_admin
from vitrine.services import product_service
from vitrine.utils.request_data import get_payload, get_int_arg

products_bp = Blueprint('products', __name__, url_prefix='/products')


@products_bp.route('', methods=['GET'])
@require_admin
def list_products():
    """Product list with optional ?q= and ?category_id=."""
    db_session = get_session()
    products = product_service.list_products(
        db_session,
        search=request.args.get('q'),
        category_id=get_int_arg('category_id'),
    )
    return jsonify({'products': [product_service.product_to_dict(p) for p in products]})


@products_bp.route('/<int:product_id>', methods=['GET'])
@require_admin
def get_product(product_id):
    product = product_service.get_product(get_session(), product_id)
    return jsonify(product_service.product_to_dict(product))


@products_bp.route('', methods=['POST'])
@require_admin
def create_product():
    product = product_service.save_product(get_session(), get_payload())
    current_app.logger.info(f"Product created: {product.id}")
    return jsonify(product_service.product_to_dict(product)), 201


@products_bp.route('/<int:product_id>', methods=['PUT'])
@require_admin
def update_product(product_id):
    product = product_service.save_product(get_session(), get_payload(), product_id)
    return jsonify(product_service.product_to_dict(product))


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@require_admin
def delete_product(product_id):
    product_service.delete_product(get_session(), product_id)
    return jsonify({'status': 'success', 'message': 'Produto excluído'})


@products_bp.route('/<int:product_id>/duplicate', methods=['POST'])
@require_admin
def duplicate_product(product_id):
    copy = product_service.duplicate_product(get_session(), product_id)
    return jsonify(product_service.product_to_dict(copy)), 201


@products_bp.route('/<int:product_id>/images', methods=['POST'])
@require_admin
def upload_image(product_id):
    """Multipart upload, field name 'image'."""
    file = request.files.get('image')
    if not file or not file.filename:
        raise BusinessLogicError('Selecione uma imagem')
    product = product_service.add_product_image(get_session(), product_id, file)
    return jsonify(product_service.product_to_dict(product)), 201


@products_bp.route('/<int:product_id>/images', methods=['DELETE'])
@require_admin
def remove_image(product_id):
    url = (get_payload().get('url') or '').strip()
    if not url:
        raise BusinessLogicError('URL da imagem é obrigatória')
    product = product_service.remove_product_image(get_session(), product_id, url)
    return jsonify(product_service.product_to_dict(product))


@products_bp.route('/import-photo', methods=['POST'])
@require_admin
def import_photo():
    """
    Extract product rows from an invoice photo.

    Accepts a multipart 'image' file or a JSON 'image' data URL.
    """
    from vitrine.blueprints.metrics import record_ai_request

    image = request.files.get('image') or get_payload().get('image')
    if not image:
        raise BusinessLogicError('Envie uma imagem')
    try:
        rows = product_service.extract_products_from_photo(get_session(), image)
    except AIServiceError:
        record_ai_request('import_photo', False)
        raise
    record_ai_request('import_photo', True)
    return jsonify({'products': rows})


@products_bp.route('/import-apply', methods=['POST'])
@require_admin
def import_apply():
    """Persist the reviewed rows of an import."""
    payload = get_payload()
    rows = payload.get('products')
    if not isinstance(rows, list) or not rows:
        raise BusinessLogicError('Nenhum produto para importar')
    result = product_service.apply_import(
        get_session(),
        rows,
        profit_margin=payload.get('profit_margin', 0),
        default_category_id=get_int_arg('category_id', payload),
    )
    return jsonify(dict(result, status='success'))
