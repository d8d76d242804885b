import logging
from flask import Blueprint, current_app, send_from_directory
from flask_security.decorators import auth_required, roles_accepted

logger = logging.getLogger(__name__)

report_bp = Blueprint('report', __name__)


@report_bp.route('/reports/<path:filename>', methods=['GET'])
@auth_required()
@roles_accepted('admin', 'field_user')
def download_report(filename):
    logger.info(f"Report download: {filename}")
    return send_from_directory(
        current_app.config['REPORT_OUTPUT_DIR'],
        filename,
        as_attachment=True,
        mimetype='application/pdf',
    )
