"""
curl command parser.

Turns a curl command line, as written in API documentation, into a request
description that maps directly onto a Postman v2.1 request object.

Supported options: -X/--request, -H/--header, -d/--data and its variants,
--data-urlencode, -F/--form, -u/--user, --oauth2-bearer, -G/--get, -I/--head, --url,
-A, -e, -b.
Transport-only options (-s, -L, -k, -o FILE, ...) are accepted and ignored.
"""

import base64
import json
import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlsplit


class CurlParseError(ValueError):
    """The command is not a curl invocation we can convert."""


_DATA_OPTIONS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii", "--json"}
_VALUE_OPTIONS_IGNORED = {
    "-o", "--output", "-m", "--max-time", "--connect-timeout", "--retry", "-w",
    "--write-out", "-x", "--proxy", "--cacert", "--cert", "-E", "--key", "-c",
    "--cookie-jar", "--resolve", "--limit-rate", "-T", "--upload-file", "-r", "--range",
    "--aws-sigv4", "--variable", "--expand-url", "--netrc-file",
    "--proxy-user", "-U", "--interface", "--dns-servers", "--max-redirs", "-K", "--config",
    "--trace", "--trace-ascii", "--stderr", "-D", "--dump-header", "-z", "--time-cond",
    "--request-target", "--unix-socket", "--abstract-unix-socket", "--capath", "--ciphers",
    "--pinnedpubkey", "--retry-delay", "--retry-max-time", "--keepalive-time",
    "--noproxy", "--proxy-header", "--preproxy",
}
_FLAGS_IGNORED = {
    "-s", "--silent", "-S", "--show-error", "-L", "--location", "-k", "--insecure",
    "-v", "--verbose", "-i", "--include", "--compressed", "-f", "--fail", "-g",
    "--globoff", "-N", "--no-buffer", "--http1.1", "--http2", "-sS", "-sL", "-Ls",
}
_LINE_CONTINUATION = re.compile(r"(\\|\^)\r?\n")
_FORM_PAIR = re.compile(r"^[^=&\s]+=[^&]*(&[^=&\s]+=[^&]*)*$")

Body = Union[str, List[Dict[str, str]], None]


@dataclass
class ParsedRequest:
    """One HTTP request extracted from a curl command."""

    method: str
    url: str
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: Body = None
    body_mode: Optional[str] = None  # raw, urlencoded, formdata

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def normalized_body(self) -> str:
        """Body text with JSON keys sorted and form fields ordered by key."""
        if self.body is None:
            return ""
        if self.body_mode == "raw":
            try:
                parsed = json.loads(self.body)
            except (TypeError, ValueError):
                return self.body
            if isinstance(parsed, (dict, list)):
                return json.dumps(parsed, sort_keys=True, separators=(",", ":"))
            return self.body
        entries = sorted(self.body, key=lambda entry: entry["key"])
        return json.dumps(entries, sort_keys=True, separators=(",", ":"))

    def url_object(self) -> Dict[str, Any]:
        url: Dict[str, Any] = {"raw": self.url}
        parts = urlsplit(self.url)
        if parts.scheme and parts.netloc:
            try:
                port = parts.port
            except ValueError:
                # Placeholder ports such as <port>
                return url
            url["protocol"] = parts.scheme
            url["host"] = (parts.hostname or "").split(".")
            if port:
                url["port"] = str(port)
            url["path"] = [segment for segment in parts.path.split("/") if segment]
            if parts.query:
                url["query"] = [
                    {"key": key, "value": value}
                    for key, value in parse_qsl(parts.query, keep_blank_values=True)
                ]
        return url

    def to_postman(self) -> Dict[str, Any]:
        """Postman v2.1 request object (without description)."""
        request: Dict[str, Any] = {
            "method": self.method,
            "header": [{"key": key, "value": value} for key, value in self.headers],
            "url": self.url_object(),
        }
        if self.body_mode == "raw":
            request["body"] = {"mode": "raw", "raw": self.body}
            content_type = (self.header("Content-Type") or "").lower()
            if "json" in content_type or _looks_like_json(self.body):
                request["body"]["options"] = {"raw": {"language": "json"}}
        elif self.body_mode in ("urlencoded", "formdata"):
            request["body"] = {
                "mode": self.body_mode,
                self.body_mode: [{**entry, "type": "text"} for entry in self.body],
            }
        return request


def _looks_like_json(text: Any) -> bool:
    if not isinstance(text, str):
        return False
    try:
        return isinstance(json.loads(text), (dict, list))
    except ValueError:
        return False


def _split_pair(value: str, sep: str) -> Tuple[str, str]:
    key, _, rest = value.partition(sep)
    return key.strip(), rest.strip() if sep == ":" else rest


def _tokenize(command: str) -> List[str]:
    text = _LINE_CONTINUATION.sub(" ", command.strip())
    try:
        tokens = shlex.split(text, posix=True)
    except ValueError as e:
        raise CurlParseError(f"Invalid curl command: {e}") from e
    if tokens and tokens[0] == "$":
        tokens = tokens[1:]
    if not tokens or tokens[0] != "curl":
        raise CurlParseError("Invalid curl command")
    return tokens[1:]


def parse_curl(command: str) -> ParsedRequest:
    """
    Parse a curl command line.

    Raises:
        CurlParseError: not a curl command, unbalanced quoting, or no URL
    """
    if not command or not command.strip():
        raise CurlParseError("Empty curl command")

    tokens = _tokenize(command)
    method: Optional[str] = None
    url: Optional[str] = None
    headers: List[Tuple[str, str]] = []
    data: List[str] = []
    urlencoded: List[Dict[str, str]] = []
    form: List[Dict[str, str]] = []
    force_get = False
    json_shortcut = False

    i = 0
    while i < len(tokens):
        token = tokens[i]

        def value() -> str:
            nonlocal i
            i += 1
            if i >= len(tokens):
                raise CurlParseError(f"Option {token} requires a value")
            return tokens[i]

        if token in ("-X", "--request"):
            method = value().upper()
        elif token.startswith("-X") and len(token) > 2:
            method = token[2:].upper()
        elif token in ("-H", "--header"):
            key, header_value = _split_pair(value(), ":")
            headers.append((key, header_value))
        elif token in _DATA_OPTIONS:
            json_shortcut = json_shortcut or token == "--json"
            data.append(value())
        elif token == "--data-urlencode":
            key, field_value = _split_pair(value(), "=")
            urlencoded.append({"key": key, "value": field_value})
        elif token in ("-F", "--form"):
            key, field_value = _split_pair(value(), "=")
            form.append({"key": key, "value": field_value})
        elif token in ("-u", "--user"):
            credentials = base64.b64encode(value().encode()).decode("ascii")
            headers.append(("Authorization", f"Basic {credentials}"))
        elif token in ("-A", "--user-agent"):
            headers.append(("User-Agent", value()))
        elif token in ("-e", "--referer"):
            headers.append(("Referer", value()))
        elif token in ("-b", "--cookie"):
            headers.append(("Cookie", value()))
        elif token == "--oauth2-bearer":
            headers.append(("Authorization", f"Bearer {value()}"))
        elif token in ("-G", "--get"):
            force_get = True
        elif token in ("-I", "--head"):
            method = "HEAD"
        elif token == "--url":
            url = value()
        elif token in _VALUE_OPTIONS_IGNORED:
            value()
        elif token.startswith("-") and len(token) > 1:
            # Unknown or transport-only flag
            pass
        elif url is None:
            url = token
        i += 1

    if not url:
        raise CurlParseError("No URL found in curl command")

    if json_shortcut and not any(k.lower() == "content-type" for k, _ in headers):
        headers.append(("Content-Type", "application/json"))

    body: Body = None
    body_mode: Optional[str] = None
    if force_get and data:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{'&'.join(data)}"
        data = []
    if data:
        joined = "&".join(data)
        content_type = next((v.lower() for k, v in headers if k.lower() == "content-type"), "")
        if "json" not in content_type and not _looks_like_json(joined) and _FORM_PAIR.match(joined):
            body_mode = "urlencoded"
            body = [{"key": k, "value": v} for k, v in parse_qsl(joined, keep_blank_values=True)]
        else:
            body_mode = "raw"
            body = joined
    if urlencoded:
        body_mode = "urlencoded"
        body = (body if isinstance(body, list) else []) + urlencoded
    if form:
        body_mode = "formdata"
        body = form

    if method is None:
        method = "POST" if body_mode and not force_get else "GET"

    return ParsedRequest(method=method, url=url, headers=headers, body=body, body_mode=body_mode)
