"""
Unit tests for the deterministic Postman collection builder.

Tests docgen/collection/postman_builder.py.
"""

from docgen.collection.curl_parser import ParsedRequest
from docgen.collection.postman_builder import (
    POSTMAN_SCHEMA,
    build_postman_collection,
    clean_markdown_heading,
    request_name,
)

SITE = "https://docs.example.com"


def doc(curl=None, description="", tags="A"):
    return {"curl": curl, "description": description, "tags": tags, "parameters": []}


def all_items(collection):
    return [item for folder in collection["item"] for item in folder["item"]]


class TestNames:
    def test_clean_heading(self):
        assert clean_markdown_heading("### Create a charge") == "Create a charge"
        assert clean_markdown_heading("No heading") == "No heading"
        assert clean_markdown_heading(None) == ""

    def test_request_name_uses_first_line(self):
        assert request_name("# List users\nReturns all users", 0) == "List users"

    def test_request_name_fallback(self):
        assert request_name("", 2) == "Request 3"
        assert request_name("#   \nbody", 0) == "Request 1"


class TestBuild:
    def test_collection_info(self):
        result = build_postman_collection([], SITE)
        info = result.collection["info"]
        assert info["name"] == "API Documentation - docs.example.com"
        assert info["schema"] == POSTMAN_SCHEMA
        assert result.collection["item"] == []
        assert result.conversion_report == {
            "total": 0, "successful": 0, "failed": 0, "duplicates": 0, "errors": [],
        }

    def test_duplicate_scenario(self):
        docs = [
            doc("curl https://api.x.com/a", "# Get A"),
            doc("curl https://api.x.com/a", "# Get A again"),
        ]
        result = build_postman_collection(docs, SITE)

        folders = result.collection["item"]
        assert [f["name"] for f in folders] == ["A"]
        assert [i["name"] for i in folders[0]["item"]] == ["Get A"]
        report = result.conversion_report
        assert (report["total"], report["successful"], report["duplicates"], report["failed"]) == (2, 1, 1, 0)

    def test_duplicate_description_carries_to_next_item(self):
        docs = [
            doc("curl https://api.x.com/a", "# Get A"),
            doc("curl https://api.x.com/a", "# Get A again"),
            doc("curl https://api.x.com/b", "# Get B"),
        ]
        items = all_items(build_postman_collection(docs, SITE).collection)
        assert items[1]["request"]["description"] == "# Get A again\n\n# Get B"

    def test_duplicate_description_joins_existing_annotations(self):
        docs = [
            doc("curl https://api.x.com/a", "# Get A"),
            doc(None, "Intro to B"),
            doc("curl https://api.x.com/a", "# Get A\nExtra detail about A"),
            doc("curl https://api.x.com/b", "# Get B"),
        ]
        items = all_items(build_postman_collection(docs, SITE).collection)
        assert items[1]["request"]["description"] == (
            "Intro to B\n\n# Get A\nExtra detail about A\n\n# Get B"
        )

    def test_same_method_and_name_is_duplicate(self):
        docs = [
            doc("curl https://api.x.com/v1/a", "# Get A"),
            doc("curl https://api.x.com/v2/a", "# Get A"),
        ]
        result = build_postman_collection(docs, SITE)
        assert result.conversion_report["duplicates"] == 1
        assert len(all_items(result.collection)) == 1

    def test_different_bodies_are_distinct(self):
        docs = [
            doc("curl https://api.x.com/a -d '{\"x\": 1}'", "# Create A one"),
            doc("curl https://api.x.com/a -d '{\"x\": 2}'", "# Create A two"),
        ]
        result = build_postman_collection(docs, SITE)
        assert result.conversion_report["successful"] == 2

    def test_reordered_json_body_is_duplicate(self):
        docs = [
            doc("curl https://api.x.com/a -d '{\"x\": 1, \"y\": 2}'", "# First"),
            doc("curl https://api.x.com/a -d '{\"y\": 2, \"x\": 1}'", "# Second"),
        ]
        assert build_postman_collection(docs, SITE).conversion_report["duplicates"] == 1

    def test_annotation_prefixes_next_item(self):
        docs = [
            doc(None, "annotation"),
            doc("curl https://api.x.com/a", "own description"),
        ]
        [item] = all_items(build_postman_collection(docs, SITE).collection)
        assert item["request"]["description"] == "annotation\n\nown description"
        assert item["name"] == "own description"

    def test_trailing_annotation_merges_into_last_item(self):
        docs = [
            doc("curl https://api.x.com/a", "# Get A"),
            doc("curl https://api.x.com/b", "# Get B"),
            doc(None, "Rate limits apply"),
        ]
        items = all_items(build_postman_collection(docs, SITE).collection)
        assert items[-1]["request"]["description"] == "# Get B\n\nRate limits apply"
        assert items[0]["request"]["description"] == "# Get A"

    def test_only_annotations(self):
        result = build_postman_collection([doc(None, "Intro"), doc(None, "More")], SITE)
        assert result.collection["item"] == []
        assert result.conversion_report["successful"] == 0

    def test_failed_conversion_is_reported(self):
        docs = [
            doc("wget https://api.x.com/a", "# Broken", tags="Files"),
            doc("curl https://api.x.com/b", "# Get B"),
        ]
        result = build_postman_collection(docs, SITE)
        report = result.conversion_report

        assert report["failed"] == 1
        assert report["successful"] == 1
        [error] = report["errors"]
        assert error["index"] == 1
        assert error["tags"] == "Files"
        assert error["description"] == "# Broken"
        assert error["curlPreview"] == "wget https://api.x.com/a"
        # The failed doc's text is kept on the next request
        [item] = all_items(result.collection)
        assert item["request"]["description"] == "# Broken\n\n# Get B"

    def test_placeholder_port_does_not_abort_build(self):
        docs = [
            doc("curl https://api.x.com/a", "# Get A"),
            doc("curl http://localhost:<port>/v1/users", "# List users"),
        ]
        result = build_postman_collection(docs, SITE)
        assert result.conversion_report["successful"] == 2
        assert all_items(result.collection)[1]["request"]["url"] == {"raw": "http://localhost:<port>/v1/users"}

    def test_request_conversion_error_is_reported(self, monkeypatch):
        original = ParsedRequest.to_postman

        def to_postman(self):
            if "broken" in self.url:
                raise ValueError("cannot convert")
            return original(self)

        monkeypatch.setattr(ParsedRequest, "to_postman", to_postman)
        docs = [
            doc("curl https://api.x.com/broken", "# Broken"),
            doc("curl https://api.x.com/b", "# Get B"),
        ]
        result = build_postman_collection(docs, SITE)
        report = result.conversion_report
        assert (report["successful"], report["failed"]) == (1, 1)
        assert report["errors"][0]["error"] == "cannot convert"
        [item] = all_items(result.collection)
        assert item["request"]["description"] == "# Broken\n\n# Get B"

    def test_folders_in_first_seen_order(self):
        docs = [
            doc("curl https://api.x.com/users", "# Users", tags="Users"),
            doc("curl https://api.x.com/orders", "# Orders", tags="Orders"),
            doc("curl https://api.x.com/users/1", "# User", tags="Users"),
            doc("curl https://api.x.com/ping", "# Ping", tags=None),
        ]
        folders = build_postman_collection(docs, SITE).collection["item"]
        assert [f["name"] for f in folders] == ["Users", "Orders", "Uncategorized"]
        assert [i["name"] for i in folders[0]["item"]] == ["Users", "User"]

    def test_report_invariants(self):
        docs = [
            doc("curl https://api.x.com/a", "# A"),
            doc("curl https://api.x.com/a", "# A dup"),
            doc(None, "note"),
            doc("not a curl", "# Bad"),
            doc("curl -X POST https://api.x.com/b -d x=1", "# B"),
        ]
        result = build_postman_collection(docs, SITE)
        report = result.conversion_report
        assert len(all_items(result.collection)) == report["successful"]
        assert report["successful"] + report["failed"] + report["duplicates"] <= report["total"]

    def test_request_shape(self):
        docs = [doc("curl -X POST https://api.x.com/a -H 'Content-Type: application/json' -d '{\"k\": 1}'", "# Make A")]
        [item] = all_items(build_postman_collection(docs, SITE).collection)
        request = item["request"]
        assert request["method"] == "POST"
        assert request["url"]["raw"] == "https://api.x.com/a"
        assert request["header"] == [{"key": "Content-Type", "value": "application/json"}]
        assert request["body"]["raw"] == '{"k": 1}'
        assert request["description"] == "# Make A"
