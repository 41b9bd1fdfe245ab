"""
Tool parameter schemas.

A ToolSchema is the part of a tool the model sees: name, description and
keyword-style typed parameters. It converts to the OpenAI function-calling
format that LiteLLM accepts for every provider, and validates incoming
arguments before a tool is invoked.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ParameterType = Literal["string", "integer", "number", "boolean", "object", "array"]

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "object": dict,
    "array": (list, tuple),
}


class ParameterSpec(BaseModel):
    """Schema for a single tool parameter definition."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Parameter name")
    type: ParameterType = Field(default="string", description="JSON schema type")
    description: str = Field(default="", description="Parameter description for the model")
    required: bool = Field(default=True, description="Whether parameter is required")
    enum: Optional[List[Any]] = Field(default=None, description="Allowed values if enumerated")

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


class ToolSchema(BaseModel):
    """
    Schema describing a tool to the model.

    Example:
        ToolSchema(
            name="search_database",
            description="Search the product database for relevant items",
            parameters=[ParameterSpec(name="query", type="string", description="Search query")],
        )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique tool identifier")
    description: str = Field(default="", description="Purpose and usage, shown to the model")
    parameters: tuple[ParameterSpec, ...] = Field(default_factory=tuple)

    def to_openai(self) -> dict[str, Any]:
        """Convert to the OpenAI/LiteLLM ``tools`` entry format."""
        properties = {param.name: param.to_json_schema() for param in self.parameters}
        required = [param.name for param in self.parameters if param.required]

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> str | None:
        """
        Validate arguments against the parameter definitions.

        Args:
            arguments: Keyword arguments supplied by the model

        Returns:
            None when valid, otherwise a message describing the first problem
        """
        known = {param.name for param in self.parameters}

        for param in self.parameters:
            if param.name not in arguments:
                if param.required:
                    return f"Missing required parameter: {param.name}"
                continue

            value = arguments[param.name]
            expected = _TYPE_MAP.get(param.type)
            # bool is an int subclass; reject it for numeric parameters
            if expected and (
                not isinstance(value, expected)
                or (param.type in ("integer", "number") and isinstance(value, bool))
            ):
                return f"Parameter '{param.name}' must be of type {param.type}"

            if param.enum and value not in param.enum:
                return f"Parameter '{param.name}' must be one of {list(param.enum)}"

        unexpected = sorted(set(arguments) - known)
        if unexpected:
            return f"Unexpected parameter(s): {', '.join(unexpected)}"

        return None
