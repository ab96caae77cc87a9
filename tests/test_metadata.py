from __future__ import annotations

import datetime as dt
import hashlib

import pytest

from poap_ledger.errors import InvalidArgument
from poap_ledger.metadata import (
    PoapMetadata,
    build_poap_metadata,
    from_data_uri,
    ipfs_to_http,
    padded_project_id,
    project_hash,
    to_data_uri,
)


def test_project_hash_is_blake2b_256():
    h = project_hash("my-project")
    assert len(h) == 32
    assert h == hashlib.blake2b(b"my-project", digest_size=32).digest()
    assert project_hash("my-project") != project_hash("my-project2")


def test_padded_project_id_matches_legacy_mapping():
    assert padded_project_id("abc") == b"abc" + b"0" * 29
    long_key = "x" * 40
    assert padded_project_id(long_key) == b"x" * 32
    with pytest.raises(InvalidArgument):
        padded_project_id("")


def test_build_metadata_fills_standard_attributes():
    when = dt.datetime(2024, 5, 1, 12, 30, tzinfo=dt.timezone.utc)
    doc = build_poap_metadata("Tower", "", "ipfs://img", "Residential", project_id="p-1", minted_at=when)
    assert doc.name == "GitArch POAP - Tower"
    assert doc.description  # default text when empty
    assert [a.trait_type for a in doc.attributes] == [
        "Category",
        "University",
        "Platform",
        "Network",
        "Project ID",
        "Minted At",
    ]
    assert doc.attribute("University") == "N/A"
    assert doc.attribute("Minted At") == "2024-05-01T12:30:00.000Z"


def test_project_id_attribute_is_optional():
    doc = build_poap_metadata("T", "d", "i", "c", university="MIT", minted_at=0)
    assert doc.attribute("Project ID") is None
    assert doc.attribute("University") == "MIT"
    assert doc.attribute("Minted At") == "1970-01-01T00:00:00.000Z"


def test_data_uri_roundtrip_and_errors():
    doc = build_poap_metadata("T", "d", "ipfs://i", "c", minted_at=1)
    uri = to_data_uri(doc)
    assert uri.startswith("data:application/json;base64,")
    assert from_data_uri(uri) == doc
    with pytest.raises(InvalidArgument):
        from_data_uri("ipfs://abc")
    with pytest.raises(InvalidArgument):
        from_data_uri("data:application/json;base64,!!!")
    with pytest.raises(InvalidArgument):
        from_data_uri(to_data_uri({"name": "x", "attributes": [{"value": 1}]}))


def test_from_dict_tolerates_missing_optional_fields():
    doc = PoapMetadata.from_dict({"name": "n"})
    assert doc.description == "" and doc.attributes == []


def test_ipfs_to_http():
    assert ipfs_to_http("ipfs://bafy/meta.json") == "https://gateway.pinata.cloud/ipfs/bafy/meta.json"
    assert ipfs_to_http("ipfs://cid", "https://ipfs.io/ipfs") == "https://ipfs.io/ipfs/cid"
    assert ipfs_to_http("https://example.org/x") == "https://example.org/x"
