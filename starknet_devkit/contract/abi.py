"""
Contract ABI loading and type resolution

This module turns a Cairo contract ABI (a JSON array of entries) into an
immutable index of entries by name, and resolves the textual types of
function parameters into a closed set of type descriptors that the
encoder and decoder walk.

Design Notes:
- Entry structure is validated with a JSON schema at load time
- A ``T*`` parameter must be immediately preceded by ``<name>_len : felt``;
  the pair collapses into a single ArrayType parameter
- Struct types are resolved by name on first use and memoized per index
- AbiCache shares loaded indexes between handles of the same contract
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import jsonschema

from ..utils.exceptions import AbiNotFound, MalformedAbi

LOG = logging.getLogger(__name__)

LEN_SUFFIX = "_len"
FUNCTION_KINDS = ("function", "constructor", "l1_handler")

ABI_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": {
        "type": "object",
        "required": ["name"],
        "properties": {
            "name": {"type": "string", "minLength": 1},
            "type": {"type": "string"},
            "inputs": {"$ref": "#/definitions/params"},
            "outputs": {"$ref": "#/definitions/params"},
            "members": {"$ref": "#/definitions/params"},
        },
    },
    "definitions": {
        "params": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "type"],
                "properties": {
                    "name": {"type": "string"},
                    "type": {"type": "string"},
                },
            },
        },
    },
}


# Type descriptors

@dataclass(frozen=True)
class FeltType:
    """A single field element"""

    def __str__(self) -> str:
        return "felt"


@dataclass(frozen=True)
class ArrayType:
    """Dynamic array; its length is sent right before its elements"""
    element: "AbiType"

    def __str__(self) -> str:
        return f"{self.element}*"


@dataclass(frozen=True)
class StructType:
    name: str
    members: Tuple["Member", ...]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TupleType:
    members: Tuple["Member", ...]

    @property
    def is_named(self) -> bool:
        return bool(self.members) and all(m.name for m in self.members)

    def __str__(self) -> str:
        parts = [f"{m.name} : {m.type}" if m.name else str(m.type) for m in self.members]
        return f"({', '.join(parts)})"


AbiType = Union[FeltType, ArrayType, StructType, TupleType]

FELT = FeltType()


@dataclass(frozen=True)
class Member:
    """A named, typed slot: a function parameter, struct member or tuple member"""
    name: Optional[str]
    type: AbiType
    # Name of the implicit length parameter of an array argument
    length_name: Optional[str] = None


# ABI entries

@dataclass(frozen=True)
class Parameter:
    name: str
    type: str


@dataclass(frozen=True)
class FunctionEntry:
    """A function, constructor or l1_handler entry"""
    name: str
    kind: str
    inputs: Tuple[Parameter, ...] = ()
    outputs: Tuple[Parameter, ...] = ()

    @property
    def is_constructor(self) -> bool:
        return self.kind == "constructor"


@dataclass(frozen=True)
class StructEntry:
    name: str
    members: Tuple[Parameter, ...] = ()
    size: Optional[int] = None


@dataclass(frozen=True)
class EventEntry:
    name: str
    data: Tuple[Parameter, ...] = ()
    keys: Tuple[Parameter, ...] = ()


@dataclass(frozen=True)
class RawEntry:
    """Any entry kind the devkit does not interpret"""
    name: str
    kind: Optional[str]
    data: Mapping[str, Any] = field(default_factory=dict)


AbiEntry = Union[FunctionEntry, StructEntry, EventEntry, RawEntry]


def _params(raw: Optional[Sequence[Mapping[str, Any]]]) -> Tuple[Parameter, ...]:
    return tuple(Parameter(name=p["name"], type=p["type"]) for p in raw or ())


def _build_entry(raw: Mapping[str, Any]) -> AbiEntry:
    kind = raw.get("type")
    name = raw["name"]
    if kind in FUNCTION_KINDS:
        return FunctionEntry(
            name=name,
            kind=kind,
            inputs=_params(raw.get("inputs")),
            outputs=_params(raw.get("outputs")),
        )
    if kind == "struct":
        return StructEntry(name=name, members=_params(raw.get("members")), size=raw.get("size"))
    if kind == "event":
        return EventEntry(name=name, data=_params(raw.get("data")), keys=_params(raw.get("keys")))
    return RawEntry(name=name, kind=kind, data=dict(raw))


def _split_top_level(text: str, separator: str) -> List[str]:
    """Split on separator occurrences that are not nested inside parentheses"""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise MalformedAbi(f"Unbalanced parentheses in type: {text}")
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise MalformedAbi(f"Unbalanced parentheses in type: {text}")
    parts.append("".join(current))
    return parts


class AbiIndex(Mapping[str, AbiEntry]):
    """Read-only mapping of ABI entry name to entry"""

    def __init__(self, entries: Mapping[str, AbiEntry], path: Optional[str] = None):
        self._entries = dict(entries)
        self.path = path
        self._struct_cache: Dict[str, StructType] = {}
        self._resolving: set = set()

    @classmethod
    def from_list(cls, raw_entries: Any, path: Optional[str] = None) -> "AbiIndex":
        """
        Build an index from a decoded ABI document.

        Raises:
            MalformedAbi: If the document is not an array of named entries
        """
        validator = jsonschema.Draft7Validator(ABI_SCHEMA)
        errors = sorted(validator.iter_errors(raw_entries), key=lambda e: [str(p) for p in e.path])
        if errors:
            messages = []
            for error in errors:
                location = "/".join(str(p) for p in error.path) or "<root>"
                messages.append(f"'{location}' {error.message}")
            raise MalformedAbi(
                "Abi entry is invalid:\n" + "\n".join(f"  - {m}" for m in messages),
                config_file=path,
                details={"errors": messages}
            )

        entries: Dict[str, AbiEntry] = {}
        for raw in raw_entries:
            if raw["name"] in entries:
                LOG.debug(f"Duplicate ABI entry {raw['name']!r}, keeping the last one")
            entries[raw["name"]] = _build_entry(raw)
        return cls(entries, path=path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AbiIndex":
        """
        Read an ABI file from disk.

        Raises:
            AbiNotFound: If the file cannot be read or is not JSON
            MalformedAbi: If an entry has no name
        """
        abi_file = Path(path)
        try:
            with open(abi_file, 'r') as f:
                raw_entries = json.load(f)
        except OSError as e:
            raise AbiNotFound(
                f"Could not read ABI file {abi_file}: {e}",
                config_file=str(abi_file),
                cause=e
            )
        except json.JSONDecodeError as e:
            raise AbiNotFound(
                f"Invalid JSON in ABI file {abi_file}: {e}",
                config_file=str(abi_file),
                cause=e
            )

        index = cls.from_list(raw_entries, path=str(abi_file))
        LOG.debug(f"Loaded {len(index)} ABI entries from {abi_file}")
        return index

    def __getitem__(self, name: str) -> AbiEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, name: str) -> Optional[AbiEntry]:
        """Return the entry called name, or None when it is absent"""
        return self._entries.get(name)

    def get_function(self, name: str) -> Optional[FunctionEntry]:
        entry = self._entries.get(name)
        if isinstance(entry, FunctionEntry):
            return entry
        return None

    @property
    def constructor(self) -> Optional[FunctionEntry]:
        for entry in self._entries.values():
            if isinstance(entry, FunctionEntry) and entry.is_constructor:
                return entry
        return None

    def resolve_params(self, params: Sequence[Parameter]) -> Tuple[Member, ...]:
        """
        Resolve a function's declared parameters in declaration order.

        Each ``<name>_len : felt`` / ``<name> : T*`` pair becomes a single
        Member of ArrayType; the length parameter itself is not returned.
        """
        resolved: List[Member] = []
        for i, param in enumerate(params):
            raw_type = param.type.strip()
            if raw_type.endswith("*"):
                length_name = f"{param.name}{LEN_SUFFIX}"
                previous = params[i - 1] if i > 0 else None
                if previous is None or previous.name != length_name or previous.type.strip() != "felt":
                    raise MalformedAbi(
                        f"Array size argument {length_name} (felt) must appear right before "
                        f"{param.name} ({param.type})."
                    )
                # The length parameter was already appended as a felt
                resolved.pop()
                element = self.resolve_type(raw_type[:-1])
                resolved.append(Member(param.name, ArrayType(element), length_name=length_name))
            else:
                resolved.append(Member(param.name, self.resolve_type(raw_type)))
        return tuple(resolved)

    def resolve_type(self, type_name: str) -> AbiType:
        """
        Resolve a textual Cairo type to a type descriptor.

        Raises:
            MalformedAbi: For pointers outside a top level argument, unknown
                struct names or recursive struct definitions
        """
        text = type_name.strip()
        if text == "felt":
            return FELT
        if text.endswith("*"):
            raise MalformedAbi(f"Pointer type {text} is only supported as a top level argument")
        if text.startswith("(") and text.endswith(")"):
            return self._resolve_tuple(text[1:-1])
        return self._resolve_struct(text)

    def _resolve_tuple(self, body: str) -> TupleType:
        if not body.strip():
            return TupleType(())
        members = []
        for part in _split_top_level(body, ","):
            name = None
            head, sep, tail = part.partition(":")
            if sep and "(" not in head:
                name = head.strip()
                part = tail
            members.append(Member(name, self.resolve_type(part)))
        return TupleType(tuple(members))

    def _resolve_struct(self, name: str) -> StructType:
        if name in self._struct_cache:
            return self._struct_cache[name]

        entry = self._entries.get(name)
        if not isinstance(entry, StructEntry):
            raise MalformedAbi(f"Type {name} not present in ABI.")
        if name in self._resolving:
            raise MalformedAbi(f"Struct {name} is defined recursively")

        self._resolving.add(name)
        try:
            members = tuple(Member(m.name, self.resolve_type(m.type)) for m in entry.members)
        finally:
            self._resolving.discard(name)

        struct = StructType(name, members)
        self._struct_cache[name] = struct
        return struct


class AbiCache:
    """
    ABI indexes keyed by resolved file path.

    Handles created from the same runtime share one index per ABI file
    until the caller invalidates it, e.g. after recompiling.
    """

    def __init__(self):
        self._indexes: Dict[Path, AbiIndex] = {}

    def load(self, path: Union[str, Path]) -> AbiIndex:
        key = Path(path).resolve()
        if key not in self._indexes:
            self._indexes[key] = AbiIndex.load(path)
        return self._indexes[key]

    def invalidate(self, path: Optional[Union[str, Path]] = None) -> None:
        """Forget one cached ABI, or all of them when path is None"""
        if path is None:
            self._indexes.clear()
        else:
            self._indexes.pop(Path(path).resolve(), None)

    def __contains__(self, path: Union[str, Path]) -> bool:
        return Path(path).resolve() in self._indexes

    def __len__(self) -> int:
        return len(self._indexes)
