from flask import Blueprint, jsonify, request
from flask_security.decorators import auth_required

from kioskinstall.extensions import get_services

store_bp = Blueprint('store', __name__)


@store_bp.route('/districts', methods=['GET'])
@auth_required()
def list_districts():
    return jsonify({'districts': list(get_services().store_directory.districts())}), 200


@store_bp.route('/stores', methods=['GET'])
@auth_required()
def list_stores():
    """Stores, optionally narrowed to one district with ?district=."""
    district = request.args.get('district') or None
    stores = get_services().store_directory.stores(district)
    return jsonify({'stores': [store.model_dump() for store in stores]}), 200
