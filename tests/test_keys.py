import base58
import pytest

from didledger.exceptions import MalformedInputError
from didledger.keys import (
    create_did_document,
    did_from_public_key,
    generate_key_pair,
    get_verify_key_from_multibase,
    hash_document,
    load_signing_key,
    public_key_of,
    validate_did_document,
)
from didledger.utils import calculate_age, canonical_json, content_hash, isoformat_z, parse_datetime_utc


def test_generate_key_pair_formats():
    key_pair = generate_key_pair()

    assert key_pair.public_key_multibase.startswith("z")
    assert base58.b58decode(key_pair.public_key_multibase[1:])[:2] == bytes([0xed, 0x01])
    assert len(base58.b58decode(key_pair.private_key)) == 32
    assert key_pair.did == did_from_public_key(key_pair.public_key_multibase)
    assert key_pair.did.startswith("did:key:z")


def test_generated_dids_are_unique():
    dids = {generate_key_pair().did for _ in range(20)}
    assert len(dids) == 20


def test_signing_key_round_trip():
    key_pair = generate_key_pair()
    signing_key = load_signing_key(key_pair.private_key)
    verify_key = get_verify_key_from_multibase(key_pair.public_key_multibase)

    signed = signing_key.sign(b"hello")
    assert verify_key.verify(signed) == b"hello"


@pytest.mark.parametrize("bad_key", ["", "0OIl", base58.b58encode(b"short").decode()])
def test_load_signing_key_rejects_malformed(bad_key):
    with pytest.raises(MalformedInputError):
        load_signing_key(bad_key)


@pytest.mark.parametrize("bad_multibase", ["", "abc", "z0OIl", "z" + base58.b58encode(b"x" * 10).decode()])
def test_get_verify_key_rejects_malformed(bad_multibase):
    with pytest.raises(MalformedInputError):
        get_verify_key_from_multibase(bad_multibase)


def test_create_did_document_structure():
    key_pair = generate_key_pair()
    document = create_did_document(key_pair)
    data = document.to_dict()

    assert data["@context"][0] == "https://www.w3.org/ns/did/v1"
    assert data["id"] == key_pair.did
    assert data["verificationMethod"][0]["type"] == "Ed25519VerificationKey2020"
    assert data["authentication"] == [key_pair.key_id]
    assert data["capabilityDelegation"] == [key_pair.key_id]
    assert validate_did_document(document)
    assert public_key_of(document) == key_pair.public_key_multibase


def test_validate_did_document_detects_dangling_reference():
    document = create_did_document(generate_key_pair())
    document.assertionMethod = ["did:key:zUnknown#key-9"]
    assert not validate_did_document(document)


def test_hash_document_is_stable():
    document = create_did_document(generate_key_pair())
    assert hash_document(document) == hash_document(document.model_copy(deep=True))
    assert hash_document(document).startswith("0x")
    assert len(hash_document(document)) == 66


def test_canonical_json_ignores_key_order():
    assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
    assert content_hash({"b": 1, "a": 2}) == content_hash({"a": 2, "b": 1})
    assert content_hash('{"a":2,"b":1}') == content_hash({"b": 1, "a": 2})


def test_isoformat_z_and_parse():
    parsed = parse_datetime_utc("2024-02-29T12:30:00Z")
    assert isoformat_z(parsed) == "2024-02-29T12:30:00.000Z"
    assert parse_datetime_utc("2024-02-29T12:30:00") == parsed
    with pytest.raises(ValueError):
        parse_datetime_utc("not a date")


def test_calculate_age_counts_birthday():
    from datetime import date

    assert calculate_age(date(1990, 5, 17), today=date(2023, 5, 16)) == 32
    assert calculate_age(date(1990, 5, 17), today=date(2023, 5, 17)) == 33
