"""Base classes for AgentHub tools.

A tool is a named capability the model may ask the engine to invoke. Each
tool declares typed parameters (rendered as OpenAI function-calling JSON
Schema) and returns a ``ToolResult`` whose text becomes the tool turn.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolParameterType(str, Enum):
    """JSON Schema parameter types."""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"


@dataclass
class ToolParameter:
    """Definition of a tool parameter.

    Attributes:
        name: Parameter name
        type: JSON Schema type
        description: Shown to the model
        required: Whether this parameter is required
        default: Default value if not provided
        enum: Allowed values
        min_value: Inclusive lower bound for numeric types
        max_value: Inclusive upper bound for numeric types

    Example:
        ToolParameter(
            name="month",
            type=ToolParameterType.INTEGER,
            description="月份(1-12)",
            min_value=1,
            max_value=12,
        )
    """
    name: str
    type: ToolParameterType = ToolParameterType.STRING
    description: str = ""
    required: bool = True
    default: Any = None
    enum: list[Any] | None = None
    min_value: float | int | None = None
    max_value: float | int | None = None

    def to_json_schema(self) -> dict:
        schema: dict[str, Any] = {
            "type": self.type.value,
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = self.enum
        if self.default is not None:
            schema["default"] = self.default
        if self.type in (ToolParameterType.NUMBER, ToolParameterType.INTEGER):
            if self.min_value is not None:
                schema["minimum"] = self.min_value
            if self.max_value is not None:
                schema["maximum"] = self.max_value
        return schema

    def coerce(self, value: Any) -> Any:
        """Convert numeric strings the model sometimes sends ("1990")."""
        if isinstance(value, str):
            text = value.strip()
            try:
                if self.type == ToolParameterType.INTEGER:
                    return int(text)
                if self.type == ToolParameterType.NUMBER:
                    return float(text)
            except ValueError:
                return value
            if self.type == ToolParameterType.BOOLEAN and text.lower() in ("true", "false"):
                return text.lower() == "true"
        return value

    def validate(self, value: Any) -> tuple[bool, str | None]:
        """Validate a parameter value.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.type == ToolParameterType.STRING and not isinstance(value, str):
            return False, f"Parameter '{self.name}' must be a string"
        if self.type == ToolParameterType.BOOLEAN and not isinstance(value, bool):
            return False, f"Parameter '{self.name}' must be a boolean"
        if self.type == ToolParameterType.INTEGER and (
            isinstance(value, bool) or not isinstance(value, int)
        ):
            return False, f"Parameter '{self.name}' must be an integer"
        if self.type == ToolParameterType.NUMBER and (
            isinstance(value, bool) or not isinstance(value, (int, float))
        ):
            return False, f"Parameter '{self.name}' must be a number"

        if self.enum and value not in self.enum:
            return False, f"Parameter '{self.name}' must be one of: {self.enum}"

        if self.type in (ToolParameterType.NUMBER, ToolParameterType.INTEGER):
            if self.min_value is not None and value < self.min_value:
                return False, f"Parameter '{self.name}' must be at least {self.min_value}"
            if self.max_value is not None and value > self.max_value:
                return False, f"Parameter '{self.name}' must be at most {self.max_value}"

        return True, None


@dataclass
class ToolResult:
    """Result of a tool execution.

    Attributes:
        success: Whether the execution was successful
        output: Text handed back to the model
        error: Error message if execution failed
        metadata: Additional metadata about the execution
    """
    success: bool
    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: str, **metadata: Any) -> "ToolResult":
        return cls(success=True, output=output, metadata=metadata)

    @classmethod
    def error_result(cls, error: str, **metadata: Any) -> "ToolResult":
        return cls(success=False, error=error, metadata=metadata)

    def to_content(self) -> str:
        """Text for the tool turn; failures read ``Error: ...``."""
        if self.success:
            return self.output
        return f"Error: {self.error or 'unknown error'}"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "metadata": self.metadata,
        }


class BaseTool(ABC):
    """Abstract base class for all AgentHub tools.

    Subclasses define ``name``, ``description`` and ``parameters`` and
    implement ``execute``. Set ``guarded = True`` on search-class tools so
    the engine routes their ``query`` through the tool-call guard.

    Example:
        class ChineseZodiacTool(BaseTool):
            @property
            def name(self) -> str:
                return "get_chinese_zodiac"

            @property
            def parameters(self) -> list[ToolParameter]:
                return [ToolParameter(name="year", type=ToolParameterType.INTEGER)]

            async def execute(self, year: int) -> ToolResult:
                return ToolResult.ok(f"{year}年出生的人属{zodiac_of(year)}")
    """

    guarded: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique snake_case name used in function calling."""

    @property
    def description(self) -> str:
        return ""

    @property
    def parameters(self) -> list[ToolParameter]:
        return []

    @abstractmethod
    async def execute(self, **params: Any) -> ToolResult:
        """Execute the tool with the given keyword parameters."""

    def get_parameter_schema(self) -> dict:
        properties = {}
        required = []
        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def to_openai_tool(self) -> dict:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.get_parameter_schema(),
            }
        }

    def prepare_params(self, params: dict[str, Any]) -> dict[str, Any]:
        """Coerce known parameters and drop ones the tool does not declare."""
        declared = {p.name: p for p in self.parameters}
        return {
            name: declared[name].coerce(value)
            for name, value in params.items()
            if name in declared
        }

    def validate_params(self, params: dict) -> tuple[bool, str | None]:
        """Validate parameters against the declared schema.

        Returns:
            Tuple of (is_valid, error_message)
        """
        for param in self.parameters:
            if param.name not in params:
                if param.required:
                    return False, f"Missing required parameter: {param.name}"
                continue
            is_valid, error_msg = param.validate(params[param.name])
            if not is_valid:
                return False, error_msg
        return True, None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
