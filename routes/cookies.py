import logging
from flask import Blueprint, jsonify
from services import cookie_service
from utils.config import resolve_cookie_file
from utils.exceptions import NotFoundError

bp = Blueprint('cookies', __name__)
logger = logging.getLogger(__name__)


@bp.route('/cookie-expiry')
def cookie_expiry():
    path = resolve_cookie_file() or 'youtube.com_cookies.txt'
    try:
        result = cookie_service.inspect(path)
    except NotFoundError as e:
        return jsonify({'valid': False, 'error': str(e)}), 404

    return jsonify({
        'expiry': result.expires_at.isoformat() if result.expires_at else None,
        'expiresAt': result.epoch,
        'valid': result.is_valid(),
        'cookies': result.cookie_count,
    })
