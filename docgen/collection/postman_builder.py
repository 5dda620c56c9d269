"""
Postman Collection Builder

Deterministic, order-preserving merge of curl documents into a Postman v2.1
collection. LLM extraction produces repeats and fragments; this pass:

- folds documents without a curl command (page prose, notes) into the
  description of the next emitted request, or the last one at the end
- drops duplicates by (method, url, normalized body) or (method, display name),
  whichever matches first
- records conversion failures without aborting
- groups requests into one folder per tag, in first-seen order
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from docgen.collection.curl_parser import parse_curl
from docgen.core.validation import hostname_of

logger = logging.getLogger(__name__)

POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
DEFAULT_FOLDER = "Uncategorized"

_HEADING_MARKER = re.compile(r"^#{1,6}\s+")


@dataclass
class BuildResult:
    collection: Dict[str, Any]
    conversion_report: Dict[str, Any]


def clean_markdown_heading(text: Optional[str]) -> str:
    """Strip one leading Markdown heading marker."""
    if not text:
        return ""
    return _HEADING_MARKER.sub("", text).strip()


def request_name(description: Optional[str], index: int) -> str:
    """First description line without heading markers, or `Request N` (1-based)."""
    first_line = (description or "").split("\n")[0]
    return clean_markdown_heading(first_line) or f"Request {index + 1}"


def _curl_of(doc: Dict[str, Any]) -> Optional[str]:
    return doc.get("curl") or doc.get("curl_command") or doc.get("curlCommand")


def build_postman_collection(structured_docs: Sequence[Dict[str, Any]], site_url: str) -> BuildResult:
    """
    Build a Postman v2.1 collection from curl documents.

    Args:
        structured_docs: dicts with curl, description, tags, parameters
        site_url: documentation site the docs came from

    Returns:
        BuildResult with the collection and a report
        {total, successful, failed, duplicates, errors}
    """
    logger.info(f"[PostmanBuilder] Building collection from {len(structured_docs)} docs")

    collection: Dict[str, Any] = {
        "info": {
            "name": f"API Documentation - {hostname_of(site_url)}",
            "description": f"Generated from {site_url}",
            "schema": POSTMAN_SCHEMA,
        },
        "item": [],
    }
    report: Dict[str, Any] = {
        "total": len(structured_docs),
        "successful": 0,
        "failed": 0,
        "duplicates": 0,
        "errors": [],
    }

    folders: Dict[str, List[Dict[str, Any]]] = {}
    seen_requests: set[str] = set()
    seen_method_names: set[str] = set()
    pending: List[str] = []
    last_item: Optional[Dict[str, Any]] = None

    for i, doc in enumerate(structured_docs):
        description = doc.get("description") or ""
        curl = _curl_of(doc)

        if not curl:
            logger.debug(f"[PostmanBuilder] Doc {i + 1} has no curl command, holding its description")
            if description:
                pending.append(description)
            continue

        try:
            parsed = parse_curl(curl)
            request = parsed.to_postman()
        except Exception as e:
            report["failed"] += 1
            error = {
                "index": i + 1,
                "tags": doc.get("tags"),
                "description": description[:100],
                "error": str(e),
                "curlPreview": curl[:100],
            }
            report["errors"].append(error)
            logger.error(f"[PostmanBuilder] Failed to convert doc {i + 1}: {e}")
            if description:
                pending.append(description)
            continue

        request_key = f"{parsed.method}::{parsed.url}::{parsed.normalized_body()}"
        name = request_name(description, i)
        method_name_key = f"{parsed.method}::{name}"

        if request_key in seen_requests or method_name_key in seen_method_names:
            report["duplicates"] += 1
            logger.debug(f"[PostmanBuilder] Skipping duplicate doc {i + 1}: {method_name_key}")
            if description:
                pending.append(description)
            continue

        seen_requests.add(request_key)
        seen_method_names.add(method_name_key)

        final_description = description
        if pending:
            final_description = "\n\n".join(pending) + "\n\n" + description
            pending = []

        item = {
            "name": name,
            "request": {**request, "description": final_description},
        }
        folders.setdefault(doc.get("tags") or DEFAULT_FOLDER, []).append(item)
        last_item = item
        report["successful"] += 1

    if pending:
        if last_item is not None:
            request = last_item["request"]
            request["description"] = "\n\n".join([request["description"], *pending])
            logger.debug(f"[PostmanBuilder] Merged {len(pending)} trailing description(s) into '{last_item['name']}'")
        else:
            logger.warning(
                f"[PostmanBuilder] {len(pending)} description(s) had no request to attach to"
            )

    collection["item"] = [{"name": tag, "item": items} for tag, items in folders.items()]

    logger.info(
        f"[PostmanBuilder] Built {len(collection['item'])} folders: "
        f"successful={report['successful']} duplicates={report['duplicates']} failed={report['failed']}"
    )
    return BuildResult(collection=collection, conversion_report=report)
