from __future__ import annotations

import orjson
import pytest

from centralfetch.core.errors import DecodeError, ErrorKind, PermanentError
from centralfetch.core.search import Artifact, Version, decode_page
from conftest import artifact_doc, solr_payload


def body(payload) -> bytes:
    return orjson.dumps(payload)


def test_decode_dict_documents():
    page = decode_page(body(solr_payload([artifact_doc(1), artifact_doc(2)], num_found=10, start=4)))
    assert page.total == 10
    assert page.start == 4
    assert len(page) == 2
    assert page.items[0]["a"] == "lib1"
    assert page.qtime_ms == 3
    assert page.facets is None
    assert not page.from_cache


def test_decode_artifacts_by_alias():
    page = decode_page(body(solr_payload([artifact_doc(3)])), Artifact)
    doc = page.items[0]
    assert isinstance(doc, Artifact)
    assert doc.group_id == "org.example"
    assert doc.artifact_id == "lib3"
    assert doc.latest_version == "1.3.0"
    assert doc.version_count == 4
    assert doc.ec == [".jar", ".pom"]


def test_decode_versions_keeps_unknown_fields():
    raw = {"id": "g:a:1.0", "g": "g", "a": "a", "v": "1.0", "p": "jar", "timestamp": 1, "extra": "kept"}
    doc = decode_page(body(solr_payload([raw])), Version).items[0]
    assert doc.version == "1.0"
    assert doc.tags == []
    assert doc.model_dump()["extra"] == "kept"


def test_facet_lists_fold_into_maps():
    payload = solr_payload([], facet_fields={"p": ["jar", 10, "pom", 3], "g": []})
    page = decode_page(body(payload))
    assert page.facets == {"p": {"jar": 10, "pom": 3}, "g": {}}


def test_highlighting_is_passed_through():
    payload = solr_payload([artifact_doc(1)], highlighting={"org.example:lib1": {"text": ["<em>lib1</em>"]}})
    page = decode_page(body(payload))
    assert page.highlighting == {"org.example:lib1": {"text": ["<em>lib1</em>"]}}


def test_malformed_json_is_decode_error():
    with pytest.raises(DecodeError) as excinfo:
        decode_page(b"{not json", url="https://search.test/x")
    assert excinfo.value.kind is ErrorKind.DECODE
    assert excinfo.value.url == "https://search.test/x"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"responseHeader": {"status": 0}},
        {"response": {"numFound": "many", "docs": []}},
        {"response": {"numFound": 1, "docs": "nope"}},
    ],
)
def test_schema_mismatch_is_decode_error(payload):
    with pytest.raises(DecodeError):
        decode_page(body(payload))


def test_odd_facet_list_is_decode_error():
    with pytest.raises(DecodeError):
        decode_page(body(solr_payload([], facet_fields={"p": ["jar", 10, "pom"]})))


def test_solr_status_is_api_error():
    payload = solr_payload([], status=400)
    payload["error"] = {"msg": "undefined field foo", "code": 400}
    with pytest.raises(PermanentError) as excinfo:
        decode_page(body(payload))
    assert excinfo.value.kind is ErrorKind.API_ERROR
    assert "undefined field foo" in str(excinfo.value)
