"""Settings blueprint: store branding, logo and catalog banners."""
from flask import Blueprint, request, jsonify, current_app

from vitrine.database import get_session
from vitrine.exceptions import BusinessLogicError
from vitrine.middleware import require_admin
from vitrine.services import settings_service
from vitrine.utils.request_data import get_payload

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')


def _settings_payload(settings) -> dict:
    return settings_service.settings_to_dict(settings, current_app.config.get('STORE_DEFAULT_NAME'))


def _uploaded_image(field: str = 'image'):
    file = request.files.get(field)
    if not file or not file.filename:
        raise BusinessLogicError('Selecione uma imagem')
    return file


@settings_bp.route('', methods=['GET'])
@require_admin
def get_settings():
    settings = settings_service.get_or_create_settings(get_session())
    return jsonify(_settings_payload(settings))


@settings_bp.route('', methods=['PUT'])
@require_admin
def update_settings():
    settings = settings_service.update_settings(get_session(), get_payload())
    current_app.logger.info("Store settings updated")
    return jsonify(_settings_payload(settings))


@settings_bp.route('/logo', methods=['POST'])
@require_admin
def upload_logo():
    """Multipart upload, field name 'image'."""
    settings = settings_service.update_logo(get_session(), _uploaded_image())
    return jsonify(_settings_payload(settings))


@settings_bp.route('/banners', methods=['GET'])
@require_admin
def list_banners():
    banners = settings_service.list_banners(get_session())
    return jsonify({'banners': [settings_service.banner_to_dict(b) for b in banners]})


@settings_bp.route('/banners/upload', methods=['POST'])
@require_admin
def upload_banner_image():
    """Store a banner image and return its URL for a following save."""
    url = settings_service.upload_store_image(_uploaded_image(), 'banners')
    return jsonify({'image_url': url}), 201


@settings_bp.route('/banners', methods=['POST'])
@require_admin
def create_banner():
    banner = settings_service.save_banner(get_session(), get_payload())
    return jsonify(settings_service.banner_to_dict(banner)), 201


@settings_bp.route('/banners/<int:banner_id>', methods=['PUT'])
@require_admin
def update_banner(banner_id):
    banner = settings_service.save_banner(get_session(), get_payload(), banner_id)
    return jsonify(settings_service.banner_to_dict(banner))


@settings_bp.route('/banners/<int:banner_id>', methods=['DELETE'])
@require_admin
def delete_banner(banner_id):
    settings_service.delete_banner(get_session(), banner_id)
    return jsonify({'status': 'success', 'message': 'Banner excluído'})
