"""Pydantic models for the K8s MCP Tools API."""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorDetails(BaseModel):
    """Structured error details."""

    message: str = Field(..., description="A human-readable error message.")
    code: str = Field(..., description="A machine-readable error code (e.g., 'COMMAND_FAILED').")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional details about the error.")


class ToolResult(BaseModel):
    """Represents the outward result of one tool call."""

    text: str = Field(..., description="The command output, or a rendered error message.")
    is_error: bool = Field(False, description="Whether the tool call failed.")
    error: Optional[ErrorDetails] = Field(None, description="Structured error information, present if is_error is set.")


def text_result(text: str) -> ToolResult:
    return ToolResult(text=text)


def json_result(payload: Any) -> ToolResult:
    """Encode a structured payload as indented JSON text.

    Raises:
        MarshalError: If the payload cannot be encoded.
    """
    # Import here to avoid circular imports
    from k8s_mcp_tools.errors import MarshalError

    try:
        return ToolResult(text=json.dumps(payload, indent=2, sort_keys=True))
    except (TypeError, ValueError) as e:
        raise MarshalError(f"failed to encode result: {e}") from e
