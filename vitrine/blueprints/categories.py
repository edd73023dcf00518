"""Categories blueprint: flat list, tree view and CRUD."""
from flask import Blueprint, request, jsonify

from vitrine.database import get_session
from vitrine.middleware import require_admin
from vitrine.services import category_service
from vitrine.utils.request_data import get_payload, get_int_arg

categories_bp = Blueprint('categories', __name__, url_prefix='/categories')


def _category_to_dict(category) -> dict:
    return {
        'id': category.id,
        'name': category.name,
        'parent_id': category.parent_id,
        'sort_order': category.sort_order,
    }


def _form_values(payload: dict):
    name = payload.get('name')
    parent_id = get_int_arg('parent_id', payload)
    sort_order = get_int_arg('sort_order', payload) or 0
    return name, parent_id, sort_order


@categories_bp.route('', methods=['GET'])
@require_admin
def list_categories():
    categories = category_service.list_categories(get_session())
    return jsonify({'categories': [_category_to_dict(c) for c in categories]})


@categories_bp.route('/tree', methods=['GET'])
@require_admin
def category_tree():
    """Nested tree; ?expanded=1,2 marks nodes as expanded."""
    expanded = [
        int(value) for value in (request.args.get('expanded') or '').split(',')
        if value.strip().isdigit()
    ]
    index = category_service.get_category_index(get_session())
    return jsonify({'tree': index.build_tree(expanded_ids=expanded)})


@categories_bp.route('/parent-options', methods=['GET'])
@require_admin
def parent_options():
    """Valid parents for ?exclude_id= (itself and its descendants left out)."""
    index = category_service.get_category_index(get_session())
    options = index.get_parent_options(get_int_arg('exclude_id'))
    return jsonify({'categories': [_category_to_dict(c) for c in options]})


@categories_bp.route('', methods=['POST'])
@require_admin
def create_category():
    name, parent_id, sort_order = _form_values(get_payload())
    category = category_service.create_category(get_session(), name, parent_id, sort_order)
    return jsonify(_category_to_dict(category)), 201


@categories_bp.route('/<int:category_id>', methods=['PUT'])
@require_admin
def update_category(category_id):
    name, parent_id, sort_order = _form_values(get_payload())
    category = category_service.update_category(get_session(), category_id, name, parent_id, sort_order)
    return jsonify(_category_to_dict(category))


@categories_bp.route('/<int:category_id>', methods=['DELETE'])
@require_admin
def delete_category(category_id):
    result = category_service.delete_category(get_session(), category_id)
    return jsonify(dict(result, status='success'))
