"""Owner details normalization, identifier checks and masking.

Owner details reach the backend in several shapes depending on the
client: a JSON array, a JSON array encoded twice, an object keyed by
"0", "1", ..., or (from some multipart encoders) an array of string
fragments that only form valid JSON once joined back together. Rows
written by older releases may also hold one owner array spread across
the ten ``owner{N}_details`` columns.

Everything here is pure so it can be shared by the request handlers and
the maintenance commands.
"""
import copy
import json
import logging
import re

from shared.models import MAX_OWNERS

logger = logging.getLogger(__name__)

AADHAAR_PATTERN = re.compile(r'^[0-9]{12}$')
PAN_PATTERN = re.compile(r'^[A-Z]{5}[0-9]{4}[A-Z]$', re.IGNORECASE)
MASKED_AADHAAR_PATTERN = re.compile(r'^\*{8}[0-9]{4}$')
MASKED_PAN_PATTERN = re.compile(r'^[A-Z]{3}\*{6}[A-Z]$', re.IGNORECASE)

AADHAAR_ERROR = 'Aadhaar must be 12 digits'
PAN_ERROR = 'PAN must be in format AAAAA9999A'


def _try_json(value):
    try:
        return True, json.loads(value)
    except (TypeError, ValueError):
        return False, None


def unwrap_fragment(text):
    """Strip wrapping double quotes and undo one level of backslash escaping."""
    cleaned = text
    while len(cleaned) >= 2 and cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    cleaned = cleaned.replace('\\"', '"').replace('\\\\', '\\')
    return cleaned.strip()


def _join_fragments(fragments):
    """Rebuild JSON from a list of string fragments, or return None."""
    ok, parsed = _try_json(unwrap_fragment(''.join(fragments)))
    if ok:
        logger.info("Normalized owner details from joined fragments")
        return parsed
    ok, parsed = _try_json(','.join(fragments))
    if ok:
        logger.info("Normalized owner details by joining fragments with commas")
        return parsed
    return None


def _dict_to_owners(value):
    if value and all(str(key).isdigit() for key in value):
        return [value[key] for key in sorted(value, key=int)]
    return [value]


def parse_owner_details(raw):
    """Coerce any accepted owner-details encoding into a list of owners.

    Args:
        raw: Form string, decoded JSON list/dict, or None

    Returns:
        list: Owners in submission order; empty when nothing usable was sent
    """
    owners = []
    if isinstance(raw, str):
        if raw.strip():
            ok, parsed = _try_json(raw)
            owners = parsed if ok else []
    elif isinstance(raw, list):
        owners = raw
    elif isinstance(raw, dict):
        owners = _dict_to_owners(raw)

    # Double-encoded JSON
    if isinstance(owners, str):
        ok, parsed = _try_json(owners)
        if ok:
            owners = parsed

    if isinstance(owners, list) and owners and all(isinstance(item, str) for item in owners):
        joined = _join_fragments(owners)
        if joined is not None:
            owners = joined
        else:
            logger.warning("Failed to normalize owner details fragments; keeping raw list")

    if isinstance(owners, dict):
        owners = _dict_to_owners(owners)
    if not isinstance(owners, list):
        return []
    return owners


def clears_owners(raw):
    """True when the payload explicitly asks for no owners: null or an empty array."""
    if raw is None or raw == []:
        return True
    if isinstance(raw, str):
        ok, parsed = _try_json(raw.strip())
        return ok and (parsed is None or parsed == [])
    return False


def _identifier(owner, key):
    value = owner.get(key)
    if value is None:
        return ''
    return str(value).strip()


def validate_owner_identifiers(owners):
    """Check Aadhaar and PAN formats for every owner that supplies them.

    Already-masked values (as returned by the read endpoints) are accepted
    so that edited surveys can be resubmitted unchanged.

    Returns:
        list: ``{'owner': n, 'field': ..., 'error': ...}`` dicts, 1-based
    """
    errors = []
    for index, owner in enumerate(owners, start=1):
        if not isinstance(owner, dict):
            continue
        aadhar = _identifier(owner, 'aadhar')
        pan = _identifier(owner, 'pan')
        if aadhar and not (AADHAAR_PATTERN.match(aadhar) or MASKED_AADHAAR_PATTERN.match(aadhar)):
            errors.append({'owner': index, 'field': 'aadhar', 'error': AADHAAR_ERROR})
        if pan and not (PAN_PATTERN.match(pan) or MASKED_PAN_PATTERN.match(pan)):
            errors.append({'owner': index, 'field': 'pan', 'error': PAN_ERROR})
    return errors


def mask_aadhaar(value):
    """Keep only the last four digits of an Aadhaar number."""
    text = str(value or '')
    if len(text) <= 4:
        return '*' * len(text)
    return '*' * (len(text) - 4) + text[-4:]


def mask_pan(value):
    """Keep the first three and the last character of a PAN."""
    text = str(value or '').upper()
    if len(text) <= 4:
        return '*' * len(text)
    return text[:3] + '*' * (len(text) - 4) + text[-1]


def mask_owner_details(owners):
    """Return copies of the owners with identifiers masked for storage."""
    masked = []
    for owner in owners:
        if isinstance(owner, dict):
            owner = copy.copy(owner)
            if owner.get('aadhar'):
                owner['aadhar'] = mask_aadhaar(str(owner['aadhar']).strip())
            if owner.get('pan'):
                owner['pan'] = mask_pan(str(owner['pan']).strip())
        masked.append(owner)
    return masked


def too_many_owners(owners):
    return len(owners) > MAX_OWNERS


def serialize_owner_slots(owners):
    """JSON text for each owner slot; falsy owners leave their slot empty."""
    return [json.dumps(owner) if owner else '' for owner in owners[:MAX_OWNERS]]


def load_stored_owner(value):
    """Decode one stored ``owner{N}_details`` value for the read path.

    Returns:
        The decoded owner, or None when the slot is empty or unreadable
    """
    if not value or not str(value).strip():
        return None
    ok, parsed = _try_json(value)
    if ok:
        if isinstance(parsed, str):
            # Stored twice-encoded
            inner_ok, inner = _try_json(parsed)
            return inner if inner_ok else parsed
        return parsed
    ok, parsed = _try_json(unwrap_fragment(str(value).strip()))
    if ok:
        return parsed
    logger.warning("Skipping unreadable stored owner details (%d chars)", len(str(value)))
    return None


def slots_are_healthy(fragments):
    """True when every non-empty slot already holds one JSON object."""
    for fragment in fragments:
        ok, parsed = _try_json(fragment)
        if not ok or not isinstance(parsed, dict):
            return False
    return True


def repair_fragmented_details(fragments):
    """Rebuild owners from legacy slots that hold pieces of one JSON value.

    Args:
        fragments: Values of ``owner1_details`` .. ``owner10_details``

    Returns:
        list | None: Owners, or None if the pieces do not form valid JSON
    """
    pieces = [str(fragment) for fragment in fragments if fragment]
    if not pieces:
        return None
    ok, parsed = _try_json(unwrap_fragment(''.join(pieces).strip()))
    if not ok:
        return None
    if isinstance(parsed, str):
        ok, parsed = _try_json(parsed)
        if not ok:
            return None
    if isinstance(parsed, dict):
        return _dict_to_owners(parsed)
    if isinstance(parsed, list):
        return parsed
    return None
