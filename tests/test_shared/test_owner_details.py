"""Tests for owner details normalization and masking."""
import json
import pytest
from shared.owner_details import (
    parse_owner_details, validate_owner_identifiers, mask_aadhaar, mask_pan,
    mask_owner_details, too_many_owners, serialize_owner_slots, load_stored_owner,
    slots_are_healthy, repair_fragmented_details, unwrap_fragment, clears_owners,
    AADHAAR_ERROR, PAN_ERROR,
)

OWNERS = [
    {'name': 'Asha Patil', 'aadhar': '123456789012', 'pan': 'ABCDE1234F'},
    {'name': 'Ravi Patil', 'aadhar': '', 'pan': ''},
]


class TestParseOwnerDetails:

    def test_json_array(self):
        assert parse_owner_details(json.dumps(OWNERS)) == OWNERS

    def test_double_encoded_json(self):
        assert parse_owner_details(json.dumps(json.dumps(OWNERS))) == OWNERS

    def test_index_keyed_object_is_ordered_by_index(self):
        raw = json.dumps({'1': OWNERS[1], '0': OWNERS[0]})
        assert parse_owner_details(raw) == OWNERS

    def test_index_keyed_object_sorts_numerically(self):
        keyed = {str(i): {'name': f'Owner {i}'} for i in range(11)}
        names = [owner['name'] for owner in parse_owner_details(keyed)]
        assert names == [f'Owner {i}' for i in range(11)]

    def test_single_owner_object(self):
        assert parse_owner_details({'name': 'Asha Patil'}) == [{'name': 'Asha Patil'}]

    def test_already_decoded_list(self):
        assert parse_owner_details(OWNERS) == OWNERS

    def test_fragments_joined_directly(self):
        text = json.dumps(OWNERS)
        fragments = [text[:17], text[17:40], text[40:]]
        assert parse_owner_details(fragments) == OWNERS

    def test_fragments_split_on_commas(self):
        # Multipart encoders that split the value on commas drop them
        fragments = json.dumps(OWNERS).split(',')
        assert parse_owner_details(fragments) == OWNERS

    @pytest.mark.parametrize('raw', [None, '', '   ', 'not json', '42', 17])
    def test_unusable_input_gives_no_owners(self, raw):
        assert parse_owner_details(raw) == []

    def test_unjoinable_fragments_are_kept(self):
        assert parse_owner_details(['abc', 'def']) == ['abc', 'def']


@pytest.mark.parametrize('raw, expected', [
    (None, True),
    ([], True),
    ('[]', True),
    (' null ', True),
    ('{broken', False),
    ('', False),
    ([{'name': 'Asha'}], False),
    ('[{"name": "Asha"}]', False),
])
def test_clears_owners(raw, expected):
    assert clears_owners(raw) is expected


def test_unwrap_fragment():
    assert unwrap_fragment('""[{\\"name\\": \\"A\\"}]""') == '[{"name": "A"}]'
    assert unwrap_fragment('  plain ') == 'plain'


class TestValidateOwnerIdentifiers:

    def test_valid_and_empty_identifiers_pass(self):
        assert validate_owner_identifiers(OWNERS) == []

    def test_lowercase_pan_passes(self):
        assert validate_owner_identifiers([{'pan': 'abcde1234f'}]) == []

    def test_masked_identifiers_pass(self):
        assert validate_owner_identifiers([{'aadhar': '********9012', 'pan': 'ABC******F'}]) == []

    def test_errors_name_owner_and_field(self):
        owners = [
            {'name': 'A', 'aadhar': '123456789012'},
            {'name': 'B', 'aadhar': '1234', 'pan': 'ABCDE12345'},
        ]
        assert validate_owner_identifiers(owners) == [
            {'owner': 2, 'field': 'aadhar', 'error': AADHAAR_ERROR},
            {'owner': 2, 'field': 'pan', 'error': PAN_ERROR},
        ]

    def test_numeric_aadhaar_is_checked_as_text(self):
        assert validate_owner_identifiers([{'aadhar': 123456789012}]) == []

    def test_non_dict_owners_are_ignored(self):
        assert validate_owner_identifiers(['garbage', None]) == []


class TestMasking:

    def test_mask_aadhaar(self):
        assert mask_aadhaar('123456789012') == '********9012'
        assert mask_aadhaar('1234') == '****'
        assert mask_aadhaar('') == ''

    def test_mask_pan(self):
        assert mask_pan('abcde1234f') == 'ABC******F'
        assert mask_pan('ABC') == '***'

    def test_masking_is_idempotent(self):
        once = mask_owner_details(OWNERS)
        assert mask_owner_details(once) == once

    def test_mask_owner_details_copies(self):
        masked = mask_owner_details(OWNERS)
        assert masked[0] == {'name': 'Asha Patil', 'aadhar': '********9012', 'pan': 'ABC******F'}
        assert masked[1] == OWNERS[1]
        assert OWNERS[0]['aadhar'] == '123456789012'

    def test_non_dict_owners_pass_through(self):
        assert mask_owner_details(['x', None]) == ['x', None]


def test_too_many_owners():
    assert not too_many_owners([{}] * 10)
    assert too_many_owners([{}] * 11)


def test_serialize_owner_slots():
    slots = serialize_owner_slots([{'name': 'A'}, None, {}])
    assert slots == [json.dumps({'name': 'A'}), '', '']
    assert len(serialize_owner_slots([{'name': 'X'}] * 12)) == 10


class TestLoadStoredOwner:

    def test_plain_json(self):
        assert load_stored_owner(json.dumps(OWNERS[0])) == OWNERS[0]

    def test_twice_encoded(self):
        assert load_stored_owner(json.dumps(json.dumps(OWNERS[0]))) == OWNERS[0]

    def test_empty_slot(self):
        assert load_stored_owner('') is None
        assert load_stored_owner(None) is None
        assert load_stored_owner('   ') is None

    def test_unreadable_slot(self):
        assert load_stored_owner('[{"name": "Asha"') is None


class TestRepair:

    def test_healthy_slots(self):
        assert slots_are_healthy([json.dumps(owner) for owner in OWNERS])
        assert slots_are_healthy([])

    def test_fragmented_slots_are_not_healthy(self):
        text = json.dumps(OWNERS)
        assert not slots_are_healthy([text[:20], text[20:]])
        assert not slots_are_healthy([text])

    def test_repair_fragmented_details(self):
        text = json.dumps(OWNERS)
        assert repair_fragmented_details([text[:20], text[20:], '']) == OWNERS

    def test_repair_index_keyed_object(self):
        text = json.dumps({'0': OWNERS[0], '1': OWNERS[1]})
        assert repair_fragmented_details([text[:30], text[30:]]) == OWNERS

    def test_repair_failures(self):
        assert repair_fragmented_details([]) is None
        assert repair_fragmented_details(['', None]) is None
        assert repair_fragmented_details(['[{"name"', ': oops']) is None
        assert repair_fragmented_details(['42']) is None
