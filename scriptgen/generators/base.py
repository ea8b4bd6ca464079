from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union
from urllib.parse import urlparse

from scriptgen.errors import UnrecognizedCommandTypeError
from scriptgen.models import CapturedExchange, Command, CommandType, DataPool

DEFAULT_PORT = "80"


@dataclass(frozen=True)
class CorrelationHint:
    """A value to extract from a response and reuse later in the script."""
    ref_name: str
    regex: str
    template: str = "$1$"
    match_number: str = "1"
    default: str = ""


Annotator = Callable[[CapturedExchange, Any], List[CorrelationHint]]


@dataclass
class ScriptContext:
    server_name: str
    web_app_name: str
    annotator: Optional[Annotator] = None


@dataclass
class RequestDescriptor:
    label: str
    method: str
    path: str
    query: List[Tuple[str, str]] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    hints: List[CorrelationHint] = field(default_factory=list)

    @classmethod
    def from_exchange(cls, exchange: CapturedExchange, hints: Sequence[CorrelationHint] = ()) -> "RequestDescriptor":
        request = exchange.request
        parsed = urlparse(request.url)
        query = []
        for param in parsed.query.split("&") if parsed.query else []:
            name, _, value = param.partition("=")
            query.append((name, value))
        path = parsed.path or "/"
        return cls(label=f"{request.method} {path}", method=request.method.upper(), path=path, query=query,
                   headers=dict(request.headers), body=request.body or None, hints=list(hints))


@dataclass
class ValidationDescriptor:
    name: str
    test_strings: List[str] = field(default_factory=list)

    @classmethod
    def from_command(cls, command: Command) -> "ValidationDescriptor":
        strings = list(command.parameters) or [command.description or command.name]
        return cls(name=command.name, test_strings=strings)


@dataclass
class Step:
    name: str
    type: CommandType
    description: str
    server_host: str
    server_port: str
    web_app: str
    index: int
    requests: List[RequestDescriptor] = field(default_factory=list)
    validations: List[ValidationDescriptor] = field(default_factory=list)
    annotator: Optional[Annotator] = field(default=None, repr=False, compare=False)

    def add_request(self, exchange: CapturedExchange, comparison_result: Any = None) -> RequestDescriptor:
        hints = self.annotator(exchange, comparison_result) if self.annotator else []
        descriptor = RequestDescriptor.from_exchange(exchange, hints)
        self.requests.append(descriptor)
        return descriptor

    def add_validation(self, command: Command) -> ValidationDescriptor:
        descriptor = ValidationDescriptor.from_command(command)
        self.validations.append(descriptor)
        return descriptor


class ScriptGenerator(Protocol):
    """Contract shared by every backend."""

    def initialize(self, output_path: str, script_name: str, server_name: str, web_app_name: str,
                   is_abbreviated: bool) -> None: ...

    def add_data_pools(self, data_pools: Sequence[DataPool], source_directory: Optional[str]) -> None: ...

    def add_step(self, name: str, type: Union[str, CommandType], description: str, context: ScriptContext,
                 index: int) -> Step: ...

    def get_last_step(self) -> Optional[Step]: ...

    def save(self) -> str: ...


def split_server(server_name: str, default_port: str = DEFAULT_PORT) -> Tuple[str, str]:
    """Split ``host:port``; a bare host gets the default port."""
    parts = server_name.split(":")
    if len(parts) == 1:
        return server_name, default_port
    return parts[0], parts[1]


def parse_step_type(step_type: Union[str, CommandType]) -> CommandType:
    if isinstance(step_type, CommandType):
        return step_type
    try:
        return CommandType(step_type)
    except ValueError:
        raise UnrecognizedCommandTypeError(f"Unrecognized command type: '{step_type}'")


def new_step(name: str, step_type: Union[str, CommandType], description: str, context: ScriptContext,
             index: int, default_port: str = DEFAULT_PORT) -> Step:
    host, port = split_server(context.server_name, default_port)
    return Step(name=name, type=parse_step_type(step_type), description=description, server_host=host,
                server_port=port, web_app=context.web_app_name, index=index, annotator=context.annotator)


def step_display_name(total_steps: int, index: int, step_type: CommandType, name: str) -> str:
    """Final step label; the index padding depends on how many steps the script has."""
    width = 1 if total_steps <= 9 else (2 if total_steps <= 99 else 3)
    return f"Step {str(index).zfill(width)} - {step_type} {name}"


def finalize_step_names(steps: Sequence[Step]) -> List[Tuple[str, Step]]:
    """Second phase of naming: run once every step is known, sorted by index."""
    ordered = sorted(steps, key=lambda s: s.index)
    return [(step_display_name(len(ordered), s.index, s.type, s.name), s) for s in ordered]
