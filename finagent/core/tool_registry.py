"""
Tool registry — turns plain callables into model-invocable tools.

Each tool is a named function with a declared parameter schema (a pydantic
model). The registry validates arguments against that schema before calling
the function exactly once; it never retries.

Usage
-----
    registry = ToolRegistry()
    registry.register(
        "get_stock_price",
        {"symbol": str},
        lambda symbol: fetch_price(symbol),
        description="Get the latest daily OHLC for a ticker symbol.",
    )
    registry.add_tool(search_web)           # LangChain @tool function
    registry.invoke("get_stock_price", {"symbol": "MSFT"})
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Type, Union

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from .errors import (
    DuplicateToolNameError,
    SchemaMismatchError,
    ToolInvocationError,
    UnknownToolError,
)
from finagent.utils.logging import get_logger

logger = get_logger(__name__)

ParameterSchema = Union[Type[BaseModel], Mapping[str, Any], None]


# ── schema helpers ────────────────────────────────────────────────────────────

def _strict(schema: Type[BaseModel], name: str) -> Type[BaseModel]:
    """Derive a copy of *schema* that rejects unexpected arguments."""
    if schema.model_config.get("extra") == "forbid":
        return schema
    return type(
        f"{name}_args",
        (schema,),
        {"model_config": ConfigDict(extra="forbid"), "__module__": schema.__module__},
    )


def build_args_schema(name: str, parameter_schema: ParameterSchema) -> Type[BaseModel]:
    """
    Normalise a parameter schema into a strict pydantic model.

    *parameter_schema* may be a pydantic model class, ``None`` (no
    parameters) or an ordered mapping of ``{param: type}`` /
    ``{param: (type, default)}``.
    """
    if parameter_schema is None:
        parameter_schema = {}
    if isinstance(parameter_schema, type) and issubclass(parameter_schema, BaseModel):
        return _strict(parameter_schema, name)
    if not isinstance(parameter_schema, Mapping):
        raise TypeError(
            f"Parameter schema for tool '{name}' must be a pydantic model or a mapping, "
            f"got {type(parameter_schema).__name__}"
        )
    fields: Dict[str, Any] = {}
    for param, spec in parameter_schema.items():
        if isinstance(spec, tuple):
            fields[param] = spec
        else:
            fields[param] = (spec, ...)
    return create_model(f"{name}_args", __config__=ConfigDict(extra="forbid"), **fields)


# ── descriptor ────────────────────────────────────────────────────────────────

class ToolDescriptor(BaseModel):
    """
    A named, schema-declared tool the model can be offered.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: Type[BaseModel]
    func: Callable[..., Any]

    @property
    def parameters(self) -> Tuple[str, ...]:
        return tuple(self.args_schema.model_fields)

    def validate_arguments(self, arguments: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        try:
            parsed = self.args_schema.model_validate(dict(arguments or {}))
        except ValidationError as exc:
            raise SchemaMismatchError(
                f"Invalid arguments for tool '{self.name}': {exc}", tool_name=self.name
            ) from exc
        # keep typed values (dates, enums) rather than model_dump()'s plain form
        return {field: getattr(parsed, field) for field in self.args_schema.model_fields}

    def invoke(self, arguments: Optional[Mapping[str, Any]] = None) -> Any:
        """Validate *arguments* and call the tool once."""
        kwargs = self.validate_arguments(arguments)
        logger.info("Invoking tool %s with %s", self.name, kwargs)
        try:
            return self.func(**kwargs)
        except Exception as exc:
            raise ToolInvocationError(
                f"Tool '{self.name}' failed: {exc}", tool_name=self.name
            ) from exc

    def to_langchain_tool(self) -> StructuredTool:
        """Expose this descriptor to ``BaseChatModel.bind_tools``."""
        return StructuredTool.from_function(
            func=self.func,
            name=self.name,
            description=self.description,
            args_schema=self.args_schema,
        )

    @classmethod
    def from_langchain_tool(cls, tool: BaseTool) -> "ToolDescriptor":
        """Wrap a LangChain ``@tool`` function."""
        return cls(
            name=tool.name,
            description=tool.description or tool.name,
            args_schema=build_args_schema(tool.name, tool.get_input_schema()),
            func=lambda **kwargs: tool.invoke(kwargs),
        )


# ── registry ──────────────────────────────────────────────────────────────────

class ToolRegistry:
    """Ordered set of uniquely named tools."""

    def __init__(self, tools: Optional[Iterable[Union[ToolDescriptor, BaseTool]]] = None) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        for tool in tools or ():
            if isinstance(tool, BaseTool):
                self.add_tool(tool)
            else:
                self.add(tool)

    def register(
        self,
        name: str,
        parameter_schema: ParameterSchema,
        implementation: Callable[..., Any],
        description: Optional[str] = None,
    ) -> ToolDescriptor:
        """
        Register *implementation* under *name* and return its descriptor.

        Raises
        ------
        DuplicateToolNameError
            If *name* is already registered.
        """
        if not name or not name.strip():
            raise ValueError("Tool name must be a non-empty string.")
        descriptor = ToolDescriptor(
            name=name,
            description=description or (implementation.__doc__ or name).strip(),
            args_schema=build_args_schema(name, parameter_schema),
            func=implementation,
        )
        return self.add(descriptor)

    def add(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        if descriptor.name in self._tools:
            raise DuplicateToolNameError(
                f"A tool named '{descriptor.name}' is already registered", tool_name=descriptor.name
            )
        self._tools[descriptor.name] = descriptor
        return descriptor

    def add_tool(self, tool: BaseTool) -> ToolDescriptor:
        return self.add(ToolDescriptor.from_langchain_tool(tool))

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(f"Unknown tool: {name}", tool_name=name) from None

    def invoke(
        self,
        tool: Union[str, ToolDescriptor],
        arguments: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Look up (if given a name), validate and invoke a tool."""
        descriptor = self.get(tool) if isinstance(tool, str) else tool
        return descriptor.invoke(arguments)

    def merged(self, other: Optional[Iterable[ToolDescriptor]]) -> "ToolRegistry":
        """Return a new registry holding these tools followed by *other*'s."""
        combined = ToolRegistry(self._tools.values())
        for descriptor in other or ():
            combined.add(descriptor)
        return combined

    def names(self) -> Tuple[str, ...]:
        return tuple(self._tools)

    def descriptors(self) -> Tuple[ToolDescriptor, ...]:
        return tuple(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self.descriptors())

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"ToolRegistry({list(self._tools)})"
