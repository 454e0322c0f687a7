from flask import Blueprint, jsonify
from routes import upload
from services.library_service import serialize_document
from utils.exceptions import StorageError

bp = Blueprint('library', __name__)


@bp.route('/playlists')
def list_playlists():
    # same LibraryService (and Mongo client) the upload pipeline writes through
    try:
        playlists = upload.pipeline.library.list_playlists()
    except StorageError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify([serialize_document(p) for p in playlists])
