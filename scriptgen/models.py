from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class HttpResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class CapturedExchange:
    """One recorded request/response pair and the comment it was tagged with."""
    index: int
    comment: str
    request: HttpRequest
    response: Optional[HttpResponse] = None


class CommandType(str, Enum):
    ACTION = "Action"
    EVENT = "Event"
    VALIDATION = "Validation"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Command:
    name: str
    type: CommandType
    description: str
    request_ids: Tuple[int, ...] = ()
    # validation text for Validation commands
    parameters: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "request_ids": list(self.request_ids),
            "parameters": list(self.parameters),
        }


@dataclass
class IncludedTestCase:
    """Wrapper nesting the login commands inside the outline root."""
    name: str
    commands: List[Command] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"included_test_case": self.name, "commands": [c.to_dict() for c in self.commands]}


@dataclass
class DataPool:
    name: str
    file_name: str
    columns: List[str] = field(default_factory=list)

    def columns_joined(self, separator: str = ",") -> str:
        return separator.join(self.columns)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "file": self.file_name, "columns": list(self.columns)}


OutlineEntry = Union[Command, IncludedTestCase]


@dataclass
class Outline:
    script_name: str
    entries: List[OutlineEntry] = field(default_factory=list)
    data_pools: List[DataPool] = field(default_factory=list)

    def commands(self) -> Iterator[Command]:
        """Yield every command in document order, flattening the login test case in place."""
        for entry in self.entries:
            if isinstance(entry, IncludedTestCase):
                yield from entry.commands
            else:
                yield entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "script_name": self.script_name,
            "data_pools": [dp.to_dict() for dp in self.data_pools],
            "entries": [entry.to_dict() for entry in self.entries],
        }
