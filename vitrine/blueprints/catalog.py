"""Public storefront blueprint: listing, product page, variant selection and try-on."""
from flask import Blueprint, request, jsonify, current_app

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError, AIServiceError
from vitrine.services import catalog_service
from vitrine.utils.request_data import get_payload, get_int_arg

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalogo')


@catalog_bp.route('', methods=['GET'])
def catalog():
    """Active products; ?q= search, ?category= filter (with subcategories), ?sort= order."""
    data = catalog_service.get_catalog(
        get_session(),
        search=request.args.get('q'),
        category_id=get_int_arg('category'),
        sort=request.args.get('sort'),
    )
    return jsonify(data)


@catalog_bp.route('/produto/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    return jsonify(catalog_service.get_product_detail(get_session(), product_id))


@catalog_bp.route('/produto/<int:product_id>/variante', methods=['POST'])
def select_variant(product_id):
    """Resolve a {attribute_id: option_id} selection (null clears an axis)."""
    selection = get_payload().get('selection') or {}
    return jsonify(catalog_service.resolve_selection(get_session(), product_id, selection))


@catalog_bp.route('/produto/<int:product_id>/provador', methods=['POST'])
def virtual_try_on(product_id):
    """
    Virtual try-on.

    Accepts a multipart 'photo' file or a JSON 'photo' data URL, plus an
    optional 'image_index' choosing which product image to use.
    """
    from vitrine.blueprints.metrics import record_ai_request

    payload = get_payload()
    photo = request.files.get('photo') or payload.get('photo')
    if not photo:
        raise BusinessLogicError('Envie uma foto para o provador virtual')

    try:
        image = catalog_service.virtual_try_on(
            get_session(), product_id, photo,
            image_index=get_int_arg('image_index', payload) or 0,
        )
    except AIServiceError as e:
        record_ai_request('try_on', False)
        current_app.logger.warning(f"[AI] Try-on failed for product {product_id}: {e.message}")
        raise
    record_ai_request('try_on', True)
    return jsonify({'image': image})
