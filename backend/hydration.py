"""Turn stored survey rows into the JSON documents served by the API."""
import logging
import re
from urllib.parse import quote
from flask import request
from shared.models import Survey
from shared.owner_details import load_stored_owner
from shared.schemas import SurveyRecord
from shared.utils import split_csv

logger = logging.getLogger(__name__)

# An early URL rewrite prefixed full bucket URLs with the bucket's uploads/ path.
DOUBLED_BUCKET_URL = re.compile(
    r'https://storage\.googleapis\.com/[^/]+/uploads/https://storage\.googleapis\.com/')
BUCKET_HOST = 'https://storage.googleapis.com/'

# (response key for stored values, response key for URLs, slot columns)
SLOT_GROUPS = (
    ('documents', 'documentUrls', Survey.document_columns()),
    ('ownerImages', 'ownerImageUrls', Survey.owner_columns('image')),
    ('ownerAadhaarDocs', 'ownerAadhaarDocUrls', Survey.owner_columns('aadhaar_doc')),
    ('ownerPanDocs', 'ownerPanDocUrls', Survey.owner_columns('pan_doc')),
    ('ownerOtherDocs', 'ownerOtherDocUrls', Survey.owner_columns('other_doc')),
)

RAW_SLOT_COLUMNS = (Survey.document_columns() + Survey.owner_columns('image')
                    + Survey.owner_columns('details') + Survey.owner_columns('aadhaar_doc')
                    + Survey.owner_columns('pan_doc') + Survey.owner_columns('other_doc'))


def normalize_url(url):
    """Collapse a doubled bucket URL into a single one."""
    if not url or not isinstance(url, str):
        return url
    match = DOUBLED_BUCKET_URL.search(url)
    if match:
        corrected = BUCKET_HOST + url[match.end():]
        logger.debug(f"Normalized double URL: {url} -> {corrected}")
        return corrected
    return url


def file_url(value, base_url):
    """Public URL for a stored file reference.

    Values that are already URLs are normalized; bare filenames from
    rows predating cloud storage resolve under ``<base_url>/uploads/``.
    """
    if not value:
        return value
    trimmed = str(value).strip()
    if trimmed.startswith('http'):
        return normalize_url(trimmed)
    return f"{base_url}/uploads/{quote(trimmed, safe='')}"


def request_base_url():
    """Scheme and host the client used, honouring X-Forwarded-Proto."""
    proto = request.headers.get('X-Forwarded-Proto') or request.scheme
    proto = proto.split(',')[0].strip()
    return f"{proto}://{request.host}"


def decode_owner_details(survey):
    owners = []
    for column in Survey.owner_columns('details'):
        owner = load_stored_owner(getattr(survey, column))
        if owner is not None:
            owners.append(owner)
    return owners


def hydrate_survey(survey, base_url):
    """Serialize a survey with decoded owners and resolved file URLs.

    Args:
        survey: Survey model instance
        base_url: Scheme and host used to resolve legacy filenames

    Returns:
        dict: JSON-ready survey document
    """
    result = SurveyRecord.model_validate(survey).model_dump(mode='json', by_alias=True)
    for column in RAW_SLOT_COLUMNS:
        result[column] = getattr(survey, column) or ''

    images = split_csv(survey.images)
    result['images'] = images
    result['imageUrls'] = [file_url(image, base_url) for image in images]

    for key, url_key, columns in SLOT_GROUPS:
        values = survey.slot_values(columns)
        result[key] = values
        result[url_key] = [file_url(value, base_url) for value in values]

    result['ownerDetails'] = decode_owner_details(survey)
    return result
