"""Collection building: curl parsing, Postman merge, AI generators, chat."""

from docgen.collection.curl_parser import CurlParseError, ParsedRequest, parse_curl
from docgen.collection.postman_builder import BuildResult, build_postman_collection

__all__ = [
    "BuildResult",
    "CurlParseError",
    "ParsedRequest",
    "build_postman_collection",
    "parse_curl",
]
