"""Structured output schemas sent with extraction requests."""

CURL_DOCS_SCHEMA = {
    "name": "curl_docs_gen",
    "type": "json_schema",
    "schema": {
        "type": "object",
        "properties": {
            "curl_docs": {
                "type": "array",
                "description": "An array of curl documentation objects extracted from the API documentation page.",
                "items": {
                    "type": "object",
                    "properties": {
                        "curl": {
                            "type": "string",
                            "description": "The extracted curl command string for the API request.",
                        },
                        "parameters": {
                            "type": "array",
                            "description": "The parameters of the API request.",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "name": {"type": "string", "description": "Parameter name."},
                                    "type": {"type": "string", "description": "Parameter type."},
                                    "required": {"type": "boolean", "description": "Whether the parameter is required."},
                                    "description": {"type": "string", "description": "Parameter description."},
                                },
                                "required": ["name", "type", "required", "description"],
                                "additionalProperties": False,
                            },
                        },
                        "description": {
                            "type": "string",
                            "description": "Markdown description of the request with all relevant details from the page.",
                        },
                        "tags": {
                            "type": "string",
                            "description": "Title of the current documentation page or section.",
                        },
                    },
                    "required": ["curl", "parameters", "description", "tags"],
                    "additionalProperties": False,
                },
                "minItems": 1,
            }
        },
        "required": ["curl_docs"],
        "additionalProperties": False,
    },
}


def computer_use_tool(display_width: int, display_height: int) -> dict:
    """Tool definition that lets the planner drive the browser."""
    return {
        "type": "computer_use_preview",
        "display_width": display_width,
        "display_height": display_height,
        "environment": "browser",
    }
