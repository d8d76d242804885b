import logging
from flask import Blueprint, current_app, jsonify, request, send_file
from flask_security import roles_required
from flask_security.decorators import auth_required

from kioskinstall.extensions import get_services, limiter
from kioskinstall.services.admin_service import AdminError, AdminOverview
from kioskinstall.services.project_store import ProjectStoreError, get_project_store
from kioskinstall.services.report_service import ReportExportError

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

SAVE_WARNING = "Audit result could not be saved. Storage might be full."


def _overview():
    services = get_services()
    return AdminOverview(
        get_project_store(),
        services.store_directory,
        services.audit_requester,
        services.audit_guard,
    )


@admin_bp.route('/stats', methods=['GET'])
@auth_required()
@roles_required('admin')
def dashboard_stats():
    """Totals plus the completed/pending chart series."""
    try:
        overview = _overview()
        return jsonify({
            'stats': overview.stats().model_dump(),
            'chart': overview.chart_data(),
        }), 200
    except ProjectStoreError as e:
        logging.error(f"Error in dashboard_stats: {e.message}", exc_info=True)
        return jsonify({'error': e.message}), 500


@admin_bp.route('/projects', methods=['GET'])
@auth_required()
@roles_required('admin')
def list_projects():
    try:
        overview = _overview()
        projects = overview.filter_projects(request.args.get('q', ''))
        return jsonify({'projects': [overview.row(p) for p in projects]}), 200
    except ProjectStoreError as e:
        logging.error(f"Error in list_projects: {e.message}", exc_info=True)
        return jsonify({'error': e.message}), 500


@admin_bp.route('/projects/<project_id>', methods=['GET'])
@auth_required()
@roles_required('admin')
def project_detail(project_id):
    try:
        overview = _overview()
        project = overview.get_project(project_id)
        detail = overview.row(project)
        detail['images'] = project.images.model_dump(mode='json')
        return jsonify({'project': detail}), 200
    except AdminError as e:
        return jsonify({'error': e.message}), e.status_code
    except ProjectStoreError as e:
        logging.error(f"Error in project_detail: {e.message}", exc_info=True)
        return jsonify({'error': e.message}), 500


@admin_bp.route('/projects/<project_id>/audit', methods=['POST'])
@auth_required()
@roles_required('admin')
@limiter.limit(lambda: current_app.config.get('AUDIT_RATE_LIMIT', '20 per hour'))
def audit_project(project_id):
    """Run the AI audit over the project's after photos and store the verdict."""
    try:
        outcome = _overview().request_audit(project_id)
    except AdminError as e:
        logger.warning(f"Audit rejected for {project_id}: {e.message}")
        return jsonify({'error': e.message}), e.status_code
    except ProjectStoreError as e:
        logging.error(f"Error in audit_project: {e.message}", exc_info=True)
        return jsonify({'error': e.message}), 500

    return jsonify({
        'project_id': outcome.project.id,
        'audit_result': outcome.project.audit_result,
        'saved': outcome.saved,
        'warning': None if outcome.saved else SAVE_WARNING,
    }), 200


@admin_bp.route('/projects/<project_id>/report', methods=['GET'])
@auth_required()
@roles_required('admin')
def project_report(project_id):
    services = get_services()
    try:
        project = _overview().get_project(project_id)
        store = services.store_directory.get(project.store_id)
        if store is None:
            return jsonify({'error': f"Store {project.store_id} not found"}), 404
        result = services.report_exporter.export(project, store)
    except AdminError as e:
        return jsonify({'error': e.message}), e.status_code
    except (ProjectStoreError, ReportExportError) as e:
        return jsonify({'error': e.message}), 500

    return send_file(result.path, mimetype='application/pdf', as_attachment=True, download_name=result.filename)
