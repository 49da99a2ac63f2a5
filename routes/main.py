from flask import Blueprint, jsonify

from utils.helpers import utcnow

main_bp = Blueprint('main', __name__)


@main_bp.route('/health', methods=['GET'])
def health():
    """Liveness probe for the load balancer."""
    return jsonify({'status': 'ok', 'timestamp': utcnow().isoformat() + 'Z'})
