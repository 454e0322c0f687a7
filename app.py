import os
import logging
from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

load_dotenv()

# --- Configuration ---
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

from routes.health import bp as health_bp  # noqa: E402
from routes.upload import bp as upload_bp, pipeline  # noqa: E402
from routes.cookies import bp as cookies_bp  # noqa: E402
from routes.library import bp as library_bp  # noqa: E402
from services.capability_service import capability_probe  # noqa: E402


def create_app(probe_on_start: bool = True) -> Flask:
    app = Flask(__name__)
    CORS(app)

    app.register_blueprint(health_bp)
    app.register_blueprint(upload_bp)
    app.register_blueprint(cookies_bp)
    app.register_blueprint(library_bp)

    if probe_on_start:
        # requests arriving before this finishes probe synchronously
        capability_probe.start_background_probe()
        removed = pipeline.storage.cleanup_old()
        if removed:
            logger.info('Removed %d stale temp files from %s', removed, pipeline.storage.base_dir)
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=int(os.environ.get("PORT", 4000)), threaded=True)
