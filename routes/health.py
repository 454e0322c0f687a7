from flask import Blueprint, jsonify
from services.capability_service import capability_probe

bp = Blueprint('health', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'awake'})


@bp.route('/capabilities')
def capabilities():
    snapshot = capability_probe.snapshot
    return jsonify({'resolved': capability_probe.resolved, **snapshot.as_dict()})
