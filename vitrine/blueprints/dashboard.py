"""Dashboard blueprint: sales metrics and AI insights."""
from flask import Blueprint, jsonify, current_app

from vitrine.database import get_session
from vitrine.middleware import require_admin
from vitrine.services.dashboard_service import get_dashboard_data, get_insights
from vitrine.utils.request_data import get_date_arg

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')


def _stats():
    return get_dashboard_data(
        get_session(),
        start_date=get_date_arg('start'),
        end_date=get_date_arg('end'),
        default_days=current_app.config.get('SALES_DEFAULT_RANGE_DAYS', 30),
    )


@dashboard_bp.route('', methods=['GET'])
@require_admin
def index():
    """Stats for ?start= and ?end= (YYYY-MM-DD), default last 30 days."""
    return jsonify(_stats())


@dashboard_bp.route('/insights', methods=['GET'])
@require_admin
def insights():
    """AI insights over the same stats; gateway failures become fixed insights."""
    from vitrine.blueprints.metrics import record_ai_request

    stats = _stats()
    result = get_insights(get_session(), stats)
    record_ai_request('insights', True)
    return jsonify({'insights': result})
