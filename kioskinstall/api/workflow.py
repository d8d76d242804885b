import logging
from flask import Blueprint, current_app, jsonify, request, url_for
from flask_security.decorators import auth_required, roles_accepted
from flask_security.utils import current_user
from marshmallow import ValidationError
from werkzeug.utils import secure_filename

from kioskinstall.domain.project import ImageCategory
from kioskinstall.extensions import get_services
from kioskinstall.schemas.workflow_schema import CaptureFormSchema, LocationReadingSchema, SiteSelectionSchema
from kioskinstall.services.capture_service import CaptureError
from kioskinstall.services.geolocation_service import DeviceLocationProvider, GeolocationAcquirer, GeolocationError
from kioskinstall.services.report_service import ReportExportError
from kioskinstall.services.workflow_service import WorkflowError

logger = logging.getLogger(__name__)

workflow_bp = Blueprint('workflow', __name__)

site_schema = SiteSelectionSchema()
location_schema = LocationReadingSchema()
capture_schema = CaptureFormSchema()

SAVE_WARNING = "Project could not be saved. Storage might be full."


def _user_workflow():
    return get_services().workflows.get(current_user.account_id)


def _error(e):
    return jsonify({'error': e.message}), e.status_code


@workflow_bp.route('', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def start_workflow():
    """Start a new installation; any unfinished one for this user is discarded."""
    workflow = get_services().workflows.start(current_user.account_id)
    logger.info(f"Workflow started for {current_user.account_id}")
    return jsonify({'workflow': workflow.summary()}), 201


@workflow_bp.route('', methods=['GET'])
@auth_required()
@roles_accepted('admin', 'field_user')
def get_workflow():
    try:
        return jsonify({'workflow': _user_workflow().summary()}), 200
    except WorkflowError as e:
        return _error(e)


@workflow_bp.route('/site', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def select_site():
    """
    Select the district and, optionally, the store.

    Changing the district clears a previously selected store.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'No data provided'}), 400
    try:
        data = site_schema.load(data)
    except ValidationError as ve:
        return jsonify({'error': 'Validation failed', 'details': ve.messages}), 400

    try:
        workflow = _user_workflow()
        workflow.select_district(data['district'])
        if data.get('store_id'):
            workflow.select_store(data['store_id'])
        return jsonify({'workflow': workflow.summary()}), 200
    except WorkflowError as e:
        logger.warning(f"Site selection rejected: {e.message}")
        return _error(e)


@workflow_bp.route('/next', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def next_step():
    try:
        workflow = _user_workflow()
        workflow.advance()
        return jsonify({'workflow': workflow.summary()}), 200
    except WorkflowError as e:
        return _error(e)


@workflow_bp.route('/back', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def previous_step():
    try:
        workflow = _user_workflow()
        workflow.go_back()
        return jsonify({'workflow': workflow.summary()}), 200
    except WorkflowError as e:
        return _error(e)


@workflow_bp.route('/location', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def report_location():
    """
    Feed the device location reading to the current step's capture session.

    Body: {"latitude": .., "longitude": ..} or {"error": "PERMISSION_DENIED"}
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'No data provided'}), 400
    try:
        data = location_schema.load(data)
    except ValidationError as ve:
        return jsonify({'error': 'Validation failed', 'details': ve.messages}), 400

    try:
        workflow = _user_workflow()
        category = workflow.current_category
        if category is None:
            return jsonify({'error': 'No capture at this step'}), 400
        session = workflow.capture_session(category)
        acquirer = GeolocationAcquirer(DeviceLocationProvider.from_payload(data))
        location = session.locate(acquirer)
        return jsonify({'location': location.model_dump(), 'workflow': workflow.summary()}), 200
    except GeolocationError as e:
        return jsonify({'error': e.message, 'kind': e.kind.value}), e.status_code
    except (WorkflowError, CaptureError) as e:
        return _error(e)


@workflow_bp.route('/capture', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def capture_photo():
    """
    Capture one photo for the current step.

    Multipart form: file (the raw camera frame) and category.
    """
    if 'file' not in request.files:
        return jsonify({'error': 'No file part in request'}), 400
    file = request.files['file']
    if not file or file.filename == '':
        return jsonify({'error': 'No selected file'}), 400

    filename = secure_filename(file.filename)
    if '.' not in filename:
        return jsonify({'error': 'Invalid file name'}), 400
    ext = filename.rsplit('.', 1)[1].lower()
    allowed = current_app.config.get('ALLOWED_IMAGE_EXTENSIONS', {'jpg', 'jpeg', 'png'})
    if ext not in allowed:
        return jsonify({'error': f"Format not allowed. Allowed: {', '.join(sorted(allowed))}"}), 400

    try:
        form = capture_schema.load(request.form)
    except ValidationError as ve:
        return jsonify({'error': 'Validation failed', 'details': ve.messages}), 400

    try:
        workflow = _user_workflow()
        session = workflow.capture_session(ImageCategory(form['category']))
        image = session.trigger(file.read)
        return jsonify({'image': image.model_dump(mode='json'), 'workflow': workflow.summary()}), 201
    except (WorkflowError, CaptureError) as e:
        logger.warning(f"Capture rejected for {current_user.account_id}: {e.message}")
        return _error(e)


@workflow_bp.route('/finish', methods=['POST'])
@auth_required()
@roles_accepted('admin', 'field_user')
def finish_workflow():
    """Submit the project from the review step and export its report."""
    try:
        result = _user_workflow().finish_project()
    except WorkflowError as e:
        return _error(e)
    except ReportExportError as e:
        return jsonify({'error': e.message}), 500

    project = result.project
    return jsonify({
        'project': {
            'id': project.id,
            'store_id': project.store_id,
            'user_id': project.user_id,
            'status': project.status.value,
            'started_at': project.started_at.isoformat(),
            'completed_at': project.completed_at.isoformat(),
        },
        'report': {
            'filename': result.report.filename,
            'download_url': url_for('report.download_report', filename=result.report.filename),
        },
        'saved': result.saved,
        'warning': None if result.saved else SAVE_WARNING,
    }), 201
