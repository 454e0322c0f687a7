import logging
from flask import Blueprint, request, jsonify
from pydantic import ValidationError
from schemas.upload import UploadRequest
from services.pipeline_service import UploadPipeline
from utils.exceptions import DownloadFailedError, ServiceError
from utils.url_utils import is_soundcloud_url, is_youtube_url, normalize_supported_url

bp = Blueprint('upload', __name__)
logger = logging.getLogger(__name__)

pipeline = UploadPipeline()


def _handle_upload(source_check, source_name):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({'success': False, 'error': 'Invalid JSON'}), 400

    try:
        dto = UploadRequest(**payload)
    except ValidationError as e:
        return jsonify({'success': False, 'error': 'Missing required fields',
                        'errors': e.errors(include_url=False, include_context=False)}), 400

    url = normalize_supported_url(str(dto.url))
    if not source_check(url):
        return jsonify({'success': False, 'error': f'Not a {source_name} URL'}), 400

    logger.info('Data received url=%s title=%s playlist=%s new_playlist=%s',
                url, dto.title, dto.playlist_id, dto.new_playlist_name)
    try:
        result = pipeline.run(url, dto.title, artist=dto.artist, playlist_id=dto.playlist_id,
                              new_playlist_name=dto.new_playlist_name)
        return jsonify(result)
    except DownloadFailedError as e:
        logger.error('%s download error: %s', source_name, e.last_error)
        return jsonify({'success': False, 'error': 'Download failed', 'details': e.last_error}), 500
    except ServiceError as e:
        logger.error('%s upload pipeline error: %s', source_name, e)
        return jsonify({'success': False, 'error': str(e), 'details': str(e)}), 500
    except Exception as e:
        logger.exception('Unexpected error while processing %s', url)
        return jsonify({'success': False, 'error': 'Server error', 'details': str(e)}), 500


@bp.route('/yt-upload', methods=['POST'])
def yt_upload():
    return _handle_upload(is_youtube_url, 'YouTube')


@bp.route('/sc-upload', methods=['POST'])
def sc_upload():
    return _handle_upload(is_soundcloud_url, 'SoundCloud')
