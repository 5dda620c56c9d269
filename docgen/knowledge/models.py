"""Knowledge base records and write inputs."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from docgen.core.validation import is_valid_url


class ParameterSpec(BaseModel):
    """One documented request parameter."""

    name: str
    type: str = "string"
    required: bool = False
    description: str = ""


class ResourceInput(BaseModel):
    """Validated input for one resource write."""

    content: str
    url: str
    tags: Optional[str] = None
    description: Optional[str] = None
    curl_command: Optional[str] = None
    parameters: List[ParameterSpec] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def _content_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("content must not be empty")
        return value

    @field_validator("url")
    @classmethod
    def _url_is_http(cls, value: str) -> str:
        if not is_valid_url(value):
            raise ValueError(f"invalid URL: {value}")
        return value


@dataclass
class Site:
    """A crawled documentation website."""
    id: str
    url: str
    name: str
    created_at: float


@dataclass
class Resource:
    """One persisted documentation unit."""
    id: str
    site_id: str
    content: str
    tags: Optional[str] = None
    description: Optional[str] = None
    curl_command: Optional[str] = None
    parameters: List[ParameterSpec] = field(default_factory=list)
    created_at: float = 0.0

    def to_doc(self) -> Dict[str, Any]:
        """Curl-document view used by the collection and OpenAPI builders."""
        return {
            "curl": self.curl_command or "",
            "description": self.description or "",
            "tags": self.tags or "",
            "parameters": [p.model_dump() for p in self.parameters],
        }


@dataclass
class SearchResult:
    """One similarity search hit, joined with its resource and site."""
    resource_id: str
    content: str
    tags: Optional[str]
    description: Optional[str]
    curl_command: Optional[str]
    parameters: List[ParameterSpec]
    similarity: float
    url: str
    website_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "tags": self.tags,
            "description": self.description,
            "curlCommand": self.curl_command,
            "parameters": [p.model_dump() for p in self.parameters],
            "similarity": self.similarity,
            "url": self.url,
            "websiteName": self.website_name,
        }
