"""Store settings (single row) and catalog banners."""
import logging
import re
from typing import Optional

from flask import current_app

from vitrine.models import StoreSettings, Banner
from vitrine.exceptions import BusinessLogicError, NotFoundError
from vitrine.services.cache_service import invalidate_catalog

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}){1,2}$')


def get_settings(session) -> Optional[StoreSettings]:
    return session.query(StoreSettings).order_by(StoreSettings.id).first()


def get_or_create_settings(session) -> StoreSettings:
    """The settings row, created with defaults on first access."""
    settings = get_settings(session)
    if settings:
        return settings
    try:
        settings = StoreSettings(store_name=current_app.config.get('STORE_DEFAULT_NAME', 'Minha Loja'))
        session.add(settings)
        session.commit()
        return settings
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao criar configurações: {str(e)}')


def get_store_name(session) -> str:
    settings = get_settings(session)
    if settings and settings.store_name:
        return settings.store_name
    return current_app.config.get('STORE_DEFAULT_NAME', 'Minha Loja')


def settings_to_dict(settings: Optional[StoreSettings], default_name: Optional[str] = None) -> dict:
    """Settings payload; a missing row yields defaults."""
    if settings is None:
        return {
            'store_name': default_name,
            'logo_url': None,
            'primary_color': None,
            'secondary_color': None,
            'whatsapp_number': None,
        }
    return {
        'store_name': settings.store_name or default_name,
        'logo_url': settings.logo_url,
        'primary_color': settings.primary_color,
        'secondary_color': settings.secondary_color,
        'whatsapp_number': settings.whatsapp_number,
    }


def _clean_color(value, label: str) -> Optional[str]:
    value = (value or '').strip()
    if not value:
        return None
    if not HEX_COLOR_RE.match(value):
        raise BusinessLogicError(f'{label} inválida, use o formato #RRGGBB')
    return value


def update_settings(session, data: dict) -> StoreSettings:
    """
    Update store branding.

    Raises:
        BusinessLogicError: missing store name or malformed color
    """
    store_name = (data.get('store_name') or '').strip()
    if not store_name:
        raise BusinessLogicError('O nome da loja é obrigatório')

    settings = get_or_create_settings(session)
    settings.store_name = store_name
    if 'logo_url' in data:
        settings.logo_url = (data.get('logo_url') or '').strip() or None
    if 'primary_color' in data:
        settings.primary_color = _clean_color(data.get('primary_color'), 'Cor primária')
    if 'secondary_color' in data:
        settings.secondary_color = _clean_color(data.get('secondary_color'), 'Cor secundária')
    if 'whatsapp_number' in data:
        settings.whatsapp_number = (data.get('whatsapp_number') or '').strip() or None

    try:
        session.commit()
        invalidate_catalog()
        return settings
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar configurações: {str(e)}')


def upload_store_image(file, folder: str) -> str:
    """Upload a branding image (logo or banner) and return its public URL."""
    from vitrine.services.storage_service import get_storage_service

    storage = get_storage_service()
    try:
        return storage.upload_file(file, storage.build_object_name(folder, file.filename))
    except ValueError as e:
        raise BusinessLogicError(str(e))


def update_logo(session, file) -> StoreSettings:
    """Replace the store logo with an uploaded image."""
    url = upload_store_image(file, 'logos')
    settings = get_or_create_settings(session)
    try:
        settings.logo_url = url
        session.commit()
        invalidate_catalog()
        logger.info(f"[STORAGE] Store logo updated: {url}")
        return settings
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar logo: {str(e)}')


# ---------------------------------------------------------------------------
# Banners
# ---------------------------------------------------------------------------

def list_banners(session, active_only: bool = False) -> list:
    query = session.query(Banner)
    if active_only:
        query = query.filter(Banner.is_active == True)
    return query.order_by(Banner.sort_order, Banner.id).all()


def banner_to_dict(banner: Banner) -> dict:
    return {
        'id': banner.id,
        'image_url': banner.image_url,
        'title': banner.title,
        'link': banner.link,
        'sort_order': banner.sort_order,
        'is_active': banner.is_active,
    }


def _get_banner(session, banner_id: int) -> Banner:
    banner = session.query(Banner).filter(Banner.id == banner_id).first()
    if not banner:
        raise NotFoundError(f'Banner #{banner_id} não encontrado')
    return banner


def save_banner(session, data: dict, banner_id: Optional[int] = None) -> Banner:
    """Create (banner_id=None) or update a banner. New banners go last."""
    if banner_id:
        banner = _get_banner(session, banner_id)
    else:
        banner = Banner(sort_order=session.query(Banner).count())

    image_url = (data.get('image_url', banner.image_url) or '').strip()
    if not image_url:
        raise BusinessLogicError('A imagem do banner é obrigatória')

    banner.image_url = image_url
    if 'title' in data:
        banner.title = (data.get('title') or '').strip() or None
    if 'link' in data:
        banner.link = (data.get('link') or '').strip() or None
    if data.get('sort_order') not in (None, ''):
        try:
            banner.sort_order = int(data['sort_order'])
        except (TypeError, ValueError):
            raise BusinessLogicError('Ordem inválida')
    if 'is_active' in data:
        banner.is_active = bool(data['is_active'])

    try:
        session.add(banner)
        session.commit()
        invalidate_catalog()
        return banner
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao salvar banner: {str(e)}')


def delete_banner(session, banner_id: int) -> None:
    banner = _get_banner(session, banner_id)
    try:
        session.delete(banner)
        session.commit()
        invalidate_catalog()
    except Exception as e:
        session.rollback()
        raise Exception(f'Erro ao excluir banner: {str(e)}')