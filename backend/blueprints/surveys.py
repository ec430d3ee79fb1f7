"""Surveys blueprint for Flask API."""
import logging
from flask import Blueprint, current_app, request, jsonify, g
from pydantic import ValidationError as PydanticValidationError
from ..models import db
from ..hydration import hydrate_survey, request_base_url
from ..services.cloud_storage import get_cloud_storage, StorageNotConfiguredError
from ..utils import api_error, field_errors, handle_api_exception, get_json_data
from .auth import admin_required, citizen_required
from shared.enums import SurveyStatus, UploadCategory
from shared.models import Survey, now
from shared.owner_details import (
    parse_owner_details, validate_owner_identifiers, mask_owner_details,
    serialize_owner_slots, too_many_owners, clears_owners,
)
from shared.schemas import SurveyCreate, SurveyUpload, SurveyUpdate
from shared.utils import verify_image, CorruptedImageError
from shared.validation import ValidationError, format_pydantic_errors

logger = logging.getLogger(__name__)

bp = Blueprint('surveys', __name__, url_prefix='/api')

# Form fields clients have used for the owner details payload, in priority order
OWNER_DETAILS_FIELDS = ('ownerDetails', 'ownerDetailsRaw', 'owner_details')

# Where each upload category lands; property images go to the comma separated column
SLOT_COLUMNS = {
    UploadCategory.DOCUMENTS: Survey.document_columns(),
    UploadCategory.OWNER_IMAGES: Survey.owner_columns('image'),
    UploadCategory.OWNER_AADHAAR_DOCS: Survey.owner_columns('aadhaar_doc'),
    UploadCategory.OWNER_PAN_DOCS: Survey.owner_columns('pan_doc'),
    UploadCategory.OWNER_OTHER_DOCS: Survey.owner_columns('other_doc'),
}


def _owner_details_from_form():
    for field in OWNER_DETAILS_FIELDS:
        values = request.form.getlist(field)
        if values:
            return values[0] if len(values) == 1 else values
    return None


def _collect_files():
    """Read uploaded files per category and enforce the upload limits.

    Returns:
        dict: UploadCategory -> list of (filename, content_type, bytes)

    Raises:
        ValidationError: On unexpected fields, too many files or oversized files
    """
    known = {category.value for category in UploadCategory}
    unexpected = sorted(set(request.files.keys()) - known)
    if unexpected:
        raise ValidationError(f"Unexpected file field: {unexpected[0]}")

    max_files = current_app.config['UPLOAD_MAX_FILES']
    max_size = current_app.config['UPLOAD_MAX_FILE_SIZE']
    collected = {}
    total = 0
    for category in UploadCategory:
        items = [f for f in request.files.getlist(category.value) if f and f.filename]
        if len(items) > category.max_count:
            raise ValidationError(f"Too many files for {category.value} (max {category.max_count})")
        files = []
        for storage in items:
            data = storage.read()
            if len(data) > max_size:
                raise ValidationError(f"File too large: {storage.filename}")
            files.append((storage.filename, storage.mimetype, data))
        collected[category] = files
        total += len(files)

    if total > max_files:
        raise ValidationError(f"Too many files (max {max_files})")
    return collected


def _upload_all(collected):
    """Upload every collected file; returns UploadCategory -> list of URLs."""
    storage = get_cloud_storage()
    urls = {}
    for category, files in collected.items():
        urls[category] = [
            storage.upload_file(data, filename, content_type, folder=category.folder)
            for filename, content_type, data in files
        ]
    return urls


def _get_survey(survey_id):
    return db.session.get(Survey, survey_id)


@bp.route('/surveys', methods=['POST'])
def create_survey():
    """Create a survey from JSON (legacy clients; images are already hosted)."""
    try:
        data = get_json_data()
        payload = SurveyCreate(**data)
    except ValidationError as e:
        return api_error(str(e), 400)
    except PydanticValidationError as e:
        return field_errors(format_pydantic_errors(e))

    try:
        fields = payload.model_dump(exclude_none=True, exclude={'email', 'images'})
        survey = Survey(citizen_email=payload.email, images=payload.images_text(), **fields)
        db.session.add(survey)
        db.session.commit()
        logger.info(f"Created survey {survey.id} (JSON) for ward {survey.ward}")
        return jsonify({'success': True, 'id': survey.id})
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, "create survey")


@bp.route('/surveys/upload', methods=['POST'])
def upload_survey():
    """Create a survey from a multipart form with photos and documents."""
    owners = parse_owner_details(_owner_details_from_form())
    identifier_errors = validate_owner_identifiers(owners)
    if identifier_errors:
        return api_error('Validation failed', 400, details=identifier_errors)
    if too_many_owners(owners):
        return api_error('At most 10 owners are allowed', 400)

    form = {key: value for key, value in request.form.to_dict().items()
            if key not in OWNER_DETAILS_FIELDS}
    if not form.get('email') or not form.get('name'):
        return api_error('Missing required fields', 400)
    try:
        payload = SurveyUpload(**form)
    except PydanticValidationError as e:
        return field_errors(format_pydantic_errors(e))

    try:
        collected = _collect_files()
    except ValidationError as e:
        return api_error(str(e), 400)

    if len(collected[UploadCategory.IMAGES]) < 2:
        return api_error('At least 2 property images required', 400)

    try:
        for category in UploadCategory:
            if category.is_image:
                for filename, _, data in collected[category]:
                    verify_image(data, filename)
    except CorruptedImageError as e:
        return api_error(str(e), 400)

    masked_owners = mask_owner_details(owners)

    try:
        urls = _upload_all(collected)
    except StorageNotConfiguredError as e:
        logger.error(f"Upload rejected: {e}")
        return api_error('File storage is not configured', 500, 'error')
    except Exception as e:
        return handle_api_exception(e, "upload files")

    try:
        fields = payload.model_dump(exclude_none=True, exclude={'email'})
        survey = Survey(
            citizen_email=payload.email,
            images=','.join(urls[UploadCategory.IMAGES]),
            **fields,
        )
        for category, columns in SLOT_COLUMNS.items():
            survey.fill_slots(columns, urls[category])
        survey.fill_slots(Survey.owner_columns('details'), serialize_owner_slots(masked_owners))
        db.session.add(survey)
        db.session.commit()
        logger.info(f"Created survey {survey.id} with {sum(len(u) for u in urls.values())} files "
                    f"and {len(masked_owners)} owners")
        return jsonify({'success': True, 'id': survey.id})
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, "create survey")


def _set_status(survey_id, status):
    survey = _get_survey(survey_id)
    if survey is None:
        return api_error('Not found', 404)
    try:
        survey.status = status
        db.session.commit()
        logger.info(f"Survey {survey_id} marked {status.value} by {g.user.get('email')}")
        return jsonify({'success': True})
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, f"mark survey {status.value.lower()}")


@bp.route('/surveys/<int:survey_id>/approve', methods=['POST'])
@admin_required
def approve_survey(survey_id):
    """Approve a pending survey."""
    return _set_status(survey_id, SurveyStatus.APPROVED)


@bp.route('/surveys/<int:survey_id>/reject', methods=['POST'])
@admin_required
def reject_survey(survey_id):
    """Reject a survey."""
    return _set_status(survey_id, SurveyStatus.REJECTED)


@bp.route('/surveys', methods=['GET'])
def get_surveys():
    """List all surveys newest first, or only those of ?email=."""
    try:
        query = Survey.query
        email = request.args.get('email')
        if email:
            query = query.filter_by(citizen_email=email)
        surveys = query.order_by(Survey.created_at.desc(), Survey.id.desc()).all()
        base_url = request_base_url()
        return jsonify({'success': True, 'surveys': [hydrate_survey(s, base_url) for s in surveys]})
    except Exception as e:
        return handle_api_exception(e, "list surveys")


@bp.route('/surveys/<int:survey_id>', methods=['GET'])
def get_survey(survey_id):
    """Get a single survey with resolved file URLs."""
    survey = _get_survey(survey_id)
    if survey is None:
        return jsonify({'error': 'Not found'}), 404
    return jsonify({'success': True, 'survey': hydrate_survey(survey, request_base_url())})


@bp.route('/surveys/<int:survey_id>', methods=['PUT'])
@citizen_required
def update_survey(survey_id):
    """Edit a survey's details; allowed for admins and the submitting citizen."""
    survey = _get_survey(survey_id)
    if survey is None:
        return jsonify({'error': 'Not found'}), 404
    if not g.user.get('isAdmin') and g.user.get('email') != survey.citizen_email:
        return api_error('Not allowed to edit this survey', 403)

    try:
        payload = SurveyUpdate(**get_json_data())
    except ValidationError as e:
        return api_error(str(e), 400)
    except PydanticValidationError as e:
        return field_errors(format_pydantic_errors(e))

    owners = None
    if 'owner_details' in payload.model_fields_set:
        owners = parse_owner_details(payload.owner_details)
        # Stored owners are only replaced by readable owners or cleared on request
        unreadable = not owners and not clears_owners(payload.owner_details)
        if unreadable or not all(isinstance(owner, dict) for owner in owners):
            return api_error('Owner details could not be parsed', 400)
        identifier_errors = validate_owner_identifiers(owners)
        if identifier_errors:
            return api_error('Validation failed', 400, details=identifier_errors)
        if too_many_owners(owners):
            return api_error('At most 10 owners are allowed', 400)

    try:
        changes = payload.model_dump(exclude_unset=True, exclude={'owner_details'})
        for key, value in changes.items():
            if key == 'name' and value is None:
                continue
            setattr(survey, key, value)
        if owners is not None:
            survey.fill_slots(Survey.owner_columns('details'),
                              serialize_owner_slots(mask_owner_details(owners)))
        survey.is_edited = True
        survey.edited_at = now()
        db.session.commit()
        logger.info(f"Survey {survey_id} edited by {g.user.get('email')}: {sorted(changes)}")
        return jsonify({'success': True, 'survey': hydrate_survey(survey, request_base_url())})
    except Exception as e:
        db.session.rollback()
        return handle_api_exception(e, "update survey")
