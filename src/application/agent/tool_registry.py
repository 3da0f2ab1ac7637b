"""Tool registry - closed set of tool definitions, shape validation, prompt text."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

ParamType = Literal["string", "number", "boolean", "array", "object"]

_PY_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


@dataclass(frozen=True)
class ToolParameter:
    """Single named tool argument."""

    type: ParamType
    description: str = ""
    required: bool = False
    enum: tuple[Any, ...] | None = None
    default: Any = None


@dataclass(frozen=True)
class ToolDefinition:
    """Tool shape and reliability settings (None = use configured defaults)."""

    name: str
    description: str
    parameters: dict[str, ToolParameter] = field(default_factory=dict)
    timeout: float | None = None
    max_attempts: int | None = None


@dataclass(frozen=True)
class ToolReliability:
    """Resolved timeout and attempt budget for one tool."""

    timeout: float
    max_attempts: int


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class ToolRegistry:
    """Known tools. Names are matched case-insensitively and stored lower-case."""

    def __init__(
        self,
        definitions: Iterable[ToolDefinition] = (),
        default_timeout: float = 30.0,
        default_max_attempts: int = 2,
    ) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._default_timeout = default_timeout
        self._default_max_attempts = default_max_attempts
        for definition in definitions:
            self.register(definition)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ToolRegistry":
        """Registry of parameterless definitions (no shape checks beyond the name)."""
        return cls(ToolDefinition(name=n, description="") for n in names)

    def register(self, definition: ToolDefinition) -> None:
        self._tools[definition.name.lower()] = definition

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name.lower())

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def reliability(self, name: str) -> ToolReliability:
        definition = self.get(name)
        timeout = definition.timeout if definition and definition.timeout else self._default_timeout
        attempts = (
            definition.max_attempts
            if definition and definition.max_attempts
            else self._default_max_attempts
        )
        return ToolReliability(timeout=timeout, max_attempts=attempts)

    def validate(self, name: str, arguments: dict[str, Any]) -> list[str]:
        """Check arguments against the tool's parameters. Returns problems, empty if valid."""
        definition = self.get(name)
        if definition is None:
            return [f"Unknown tool: {name}"]

        errors: list[str] = []
        for param_name, param in definition.parameters.items():
            value = arguments.get(param_name)
            if value is None:
                if param.required:
                    errors.append(f"Missing required parameter: {param_name}")
                continue
            if param.enum is not None and value not in param.enum:
                allowed = ", ".join(str(v) for v in param.enum)
                errors.append(f"Invalid value for {param_name}: {value}. Must be one of: {allowed}")
            expected = _PY_TYPES[param.type]
            if not isinstance(value, expected) or (param.type == "number" and isinstance(value, bool)):
                errors.append(
                    f"Invalid type for {param_name}: expected {param.type}, got {_type_name(value)}"
                )
        return errors

    def render_prompt(self) -> str:
        """Tool catalogue for the system prompt."""
        sections: list[str] = []
        for definition in self._tools.values():
            lines = [f"### {definition.name}", definition.description.strip()]
            required = [n for n, p in definition.parameters.items() if p.required]
            optional = [n for n, p in definition.parameters.items() if not p.required]
            if required:
                lines.append(f"Required: {', '.join(required)}")
            if optional:
                lines.append(f"Optional: {', '.join(optional)}")
            for param_name, param in definition.parameters.items():
                lines.append(f"- {param_name} ({param.type}): {param.description}")
            sections.append("\n".join(line for line in lines if line))
        return "\n\n".join(sections)


DEFAULT_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="edit_document",
        description="Edit the active document with a set of changes.",
        parameters={
            "documentId": ToolParameter("number", "Document to edit", required=True),
            "instruction": ToolParameter("string", "What to change and why", required=True),
            "content": ToolParameter("string", "Replacement content, when known"),
        },
        timeout=60.0,
        max_attempts=2,
    ),
    ToolDefinition(
        name="create_artifact",
        description="Create a runnable artifact (project, snippet, page).",
        parameters={
            "type": ToolParameter(
                "string", "Artifact kind", required=True, enum=("react", "html", "python", "svg", "mermaid", "markdown", "project")
            ),
            "title": ToolParameter("string", "Short title", required=True),
            "code": ToolParameter("string", "Source for single-file artifacts"),
            "files": ToolParameter("array", "Files for project artifacts"),
        },
        timeout=15.0,
    ),
    ToolDefinition(
        name="update_artifact",
        description="Replace the code of an existing artifact.",
        parameters={
            "artifactId": ToolParameter("string", "Artifact to update", required=True),
            "code": ToolParameter("string", "New source"),
        },
        timeout=15.0,
    ),
    ToolDefinition(
        name="update_artifact_file",
        description="Replace one file inside a project artifact.",
        parameters={
            "artifactId": ToolParameter("string", "Artifact to update", required=True),
            "path": ToolParameter("string", "File path inside the artifact", required=True),
            "content": ToolParameter("string", "New file content", required=True),
        },
        timeout=15.0,
    ),
    ToolDefinition(
        name="add_artifact_file",
        description="Add a file to a project artifact.",
        parameters={
            "artifactId": ToolParameter("string", "Artifact to extend", required=True),
            "path": ToolParameter("string", "New file path", required=True),
            "content": ToolParameter("string", "File content", required=True),
        },
        timeout=10.0,
    ),
    ToolDefinition(
        name="delete_artifact_file",
        description="Remove a file from a project artifact.",
        parameters={
            "artifactId": ToolParameter("string", "Artifact to change", required=True),
            "path": ToolParameter("string", "File to remove", required=True),
        },
        timeout=5.0,
    ),
    ToolDefinition(
        name="web_search",
        description="Search the web for current, real-time information.",
        parameters={
            "query": ToolParameter("string", "Specific search query with relevant keywords", required=True),
        },
        timeout=30.0,
        max_attempts=3,
    ),
    ToolDefinition(
        name="x_search",
        description="Search X (Twitter) for posts, discussions, and social sentiment.",
        parameters={
            "query": ToolParameter("string", "Keywords, hashtags or mentions", required=True),
            "maxResults": ToolParameter("number", "Number of posts to return", default=10),
        },
        timeout=30.0,
        max_attempts=3,
    ),
    ToolDefinition(
        name="run_python",
        description="Execute Python code in a sandbox and return its output.",
        parameters={
            "code": ToolParameter("string", "Code to run; print() what you want to see", required=True),
            "showOutput": ToolParameter("boolean", "Show output to the user", default=True),
        },
        timeout=30.0,
        max_attempts=1,  # Code execution is not auto-retried
    ),
    ToolDefinition(
        name="browse_url",
        description="Visit a URL and extract its content.",
        parameters={
            "url": ToolParameter("string", "Full URL including https://", required=True),
            "extractContent": ToolParameter("boolean", "Return page text", default=True),
            "screenshot": ToolParameter("boolean", "Capture a screenshot", default=False),
        },
        timeout=45.0,
    ),
)


def default_registry(default_timeout: float = 30.0, default_max_attempts: int = 2) -> ToolRegistry:
    """Registry with the built-in tool catalogue."""
    return ToolRegistry(DEFAULT_TOOLS, default_timeout=default_timeout, default_max_attempts=default_max_attempts)
