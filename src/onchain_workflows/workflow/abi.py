"""Human-readable ABI signatures and argument coercion.

Workflows describe contract calls with signatures such as
``transfer(address to, uint256 amount)`` or
``latestRoundData() view returns (uint80, int256, uint256, uint256, uint80)``.

This module understands just enough of that grammar to type arguments:

- parse function and event signatures into their parameter types
- coerce raw (often textual) values into host values for a given ABI type
- render host values back to text for the wire format

Bytecode encoding is not done here; it belongs to the execution backend.
Coercion never raises: a value that cannot be coerced is returned unchanged
and it is up to validation to reject it.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
ZERO_ADDRESS = "0x" + "0" * 40

_HEX_PATTERN = re.compile(r"^0x[0-9a-fA-F]*$")
_DECIMAL_PATTERN = re.compile(r"^-?\d+$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_INTEGER_TYPE_PATTERN = re.compile(r"^u?int(\d*)$")
_BYTES_TYPE_PATTERN = re.compile(r"^bytes(\d*)$")
_ARRAY_SUFFIX_PATTERN = re.compile(r"\[(\d*)\]$")
_ARRAY_SUFFIXES_PATTERN = re.compile(r"^(\[\d*\])*$")
_ELEMENTARY_PATTERN = re.compile(r"^([A-Za-z]+\d*)((?:\[\d*\])*)$")

_ELEMENTARY_NAMES = {"address", "bool", "string", "function"}
_PARAMETER_MODIFIERS = {"indexed", "memory", "calldata", "storage", "payable"}
_STATE_MUTABILITY = {"view", "pure", "payable", "nonpayable"}
_VISIBILITY = {"external", "public"}


class AbiParseError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class AbiParameter:
    type: str
    name: str = ""
    indexed: bool = False

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"name": self.name, "type": self.type}
        if self.indexed:
            out["indexed"] = True
        return out


@dataclass(frozen=True, slots=True)
class AbiFunction:
    name: str
    inputs: tuple[AbiParameter, ...] = ()
    outputs: tuple[AbiParameter, ...] = ()
    state_mutability: str = "nonpayable"

    @property
    def input_types(self) -> tuple[str, ...]:
        return tuple(p.type for p in self.inputs)

    @property
    def output_types(self) -> tuple[str, ...]:
        return tuple(p.type for p in self.outputs)

    def to_json(self) -> dict[str, object]:
        return {
            "type": "function",
            "name": self.name,
            "inputs": [p.to_json() for p in self.inputs],
            "outputs": [p.to_json() for p in self.outputs],
            "stateMutability": self.state_mutability,
        }


@dataclass(frozen=True, slots=True)
class AbiEvent:
    name: str
    inputs: tuple[AbiParameter, ...] = ()
    anonymous: bool = False


def is_address(value: object) -> bool:
    """Return True if `value` is a `0x`-prefixed 20-byte hex string."""

    return isinstance(value, str) and ADDRESS_PATTERN.match(value) is not None


def _matching_paren(text: str, start: int) -> int:
    if text[start] != "(":
        raise AbiParseError(f"Expected '(' at position {start} in {text!r}")
    depth = 0
    for idx in range(start, len(text)):
        char = text[idx]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return idx
    raise AbiParseError(f"Unbalanced parentheses in {text!r}")


def _split_top_level(text: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise AbiParseError(f"Unbalanced parentheses in {text!r}")
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if depth != 0:
        raise AbiParseError(f"Unbalanced parentheses in {text!r}")
    parts.append("".join(current))
    return parts


def normalize_type(abi_type: str) -> str:
    """Validate an ABI type and return its canonical spelling.

    Bare ``uint``/``int`` become ``uint256``/``int256`` and ``tuple(...)`` is
    written as ``(...)``.

    Raises:
        AbiParseError: If the type is not a valid ABI type.
    """

    text = abi_type.strip()
    if text.startswith("tuple("):
        text = text[len("tuple") :]

    if text.startswith("("):
        end = _matching_paren(text, 0)
        inner = text[1:end]
        suffix = text[end + 1 :]
        if not _ARRAY_SUFFIXES_PATTERN.match(suffix):
            raise AbiParseError(f"Invalid array suffix in type {abi_type!r}")
        components = []
        if inner.strip():
            # Components may carry names: tuple(address token, uint24 fee).
            components = [
                _parse_parameter(part, allow_indexed=False).type
                for part in _split_top_level(inner)
            ]
        return "(" + ",".join(components) + ")" + suffix

    match = _ELEMENTARY_PATTERN.match(text)
    if match is None:
        raise AbiParseError(f"Invalid ABI type: {abi_type!r}")
    base, suffix = match.group(1), match.group(2)

    if base in _ELEMENTARY_NAMES:
        return base + suffix

    int_match = _INTEGER_TYPE_PATTERN.match(base)
    if int_match is not None:
        bits = int_match.group(1)
        if not bits:
            return base + "256" + suffix
        size = int(bits)
        if size < 8 or size > 256 or size % 8 != 0:
            raise AbiParseError(f"Invalid integer size in type {abi_type!r}")
        return base + suffix

    bytes_match = _BYTES_TYPE_PATTERN.match(base)
    if bytes_match is not None:
        size_text = bytes_match.group(1)
        if size_text and not 1 <= int(size_text) <= 32:
            raise AbiParseError(f"Invalid bytes size in type {abi_type!r}")
        return base + suffix

    raise AbiParseError(f"Invalid ABI type: {abi_type!r}")


def _parse_parameter(text: str, *, allow_indexed: bool) -> AbiParameter:
    text = text.strip()
    if not text:
        raise AbiParseError("Empty parameter in signature")

    if text.startswith("(") or text.startswith("tuple("):
        open_idx = text.index("(")
        end = _matching_paren(text, open_idx) + 1
        while end < len(text) and text[end] == "[":
            close = text.find("]", end)
            if close == -1:
                raise AbiParseError(f"Unterminated array suffix in {text!r}")
            end = close + 1
        type_text, rest = text[:end], text[end:].split()
    else:
        tokens = text.split()
        type_text, rest = tokens[0], tokens[1:]

    indexed = False
    name = ""
    for token in rest:
        if token in _PARAMETER_MODIFIERS:
            if token == "indexed":
                if not allow_indexed:
                    raise AbiParseError("'indexed' is only valid on event parameters")
                indexed = True
            continue
        if name or not _IDENTIFIER_PATTERN.match(token):
            raise AbiParseError(f"Unexpected token {token!r} in parameter {text!r}")
        name = token

    return AbiParameter(type=normalize_type(type_text), name=name, indexed=indexed)


def _parse_parameters(text: str, *, allow_indexed: bool = False) -> tuple[AbiParameter, ...]:
    if not text.strip():
        return ()
    return tuple(
        _parse_parameter(part, allow_indexed=allow_indexed) for part in _split_top_level(text)
    )


def _parse_head(signature: str, keyword: str) -> tuple[str, str, str]:
    text = signature.strip()
    if text.startswith(keyword + " "):
        text = text[len(keyword) + 1 :].lstrip()

    open_idx = text.find("(")
    if open_idx <= 0:
        raise AbiParseError(f"Invalid {keyword} signature: {signature!r}")
    name = text[:open_idx].strip()
    if not _IDENTIFIER_PATTERN.match(name):
        raise AbiParseError(f"Invalid {keyword} name in signature: {signature!r}")
    close_idx = _matching_paren(text, open_idx)
    return name, text[open_idx + 1 : close_idx], text[close_idx + 1 :].strip()


@lru_cache(maxsize=512)
def parse_function(signature: str) -> AbiFunction:
    """Parse a function signature, with or without the leading ``function`` keyword.

    Raises:
        AbiParseError: If the signature is malformed.
    """

    name, params, tail = _parse_head(signature, "function")
    inputs = _parse_parameters(params)
    outputs: tuple[AbiParameter, ...] = ()
    mutability = "nonpayable"

    while tail:
        if tail.startswith("returns"):
            rest = tail[len("returns") :].lstrip()
            if not rest.startswith("("):
                raise AbiParseError(f"Expected '(' after 'returns' in {signature!r}")
            close = _matching_paren(rest, 0)
            outputs = _parse_parameters(rest[1:close])
            tail = rest[close + 1 :].strip()
            continue
        word, _, remainder = tail.partition(" ")
        if word in _STATE_MUTABILITY:
            mutability = word
        elif word not in _VISIBILITY:
            raise AbiParseError(f"Unexpected token {word!r} in signature {signature!r}")
        tail = remainder.strip()

    return AbiFunction(name=name, inputs=inputs, outputs=outputs, state_mutability=mutability)


@lru_cache(maxsize=256)
def parse_event(signature: str) -> AbiEvent:
    """Parse an event signature such as ``Transfer(address indexed from, address to, uint256)``.

    Raises:
        AbiParseError: If the signature is malformed.
    """

    name, params, tail = _parse_head(signature, "event")
    inputs = _parse_parameters(params, allow_indexed=True)
    if tail and tail != "anonymous":
        raise AbiParseError(f"Unexpected trailing text in event signature {signature!r}")
    return AbiEvent(name=name, inputs=inputs, anonymous=tail == "anonymous")


def extract_input_types(signature: str) -> list[str]:
    """Return the declared input types of a function signature, in order."""

    if not signature.strip():
        return []
    return list(parse_function(signature).input_types)


def extract_output_types(signature: str) -> list[str]:
    if not signature.strip():
        return []
    return list(parse_function(signature).output_types)


def count_inputs(signature: str) -> int:
    return len(extract_input_types(signature))


def function_name(signature: str) -> str:
    if not signature.strip():
        return ""
    return parse_function(signature).name


def is_integer_type(abi_type: str) -> bool:
    return _INTEGER_TYPE_PATTERN.match(abi_type.strip()) is not None


def array_element_type(abi_type: str) -> str | None:
    """Return the element type of an array type (``uint256[]`` -> ``uint256``), else None."""

    text = abi_type.strip()
    match = _ARRAY_SUFFIX_PATTERN.search(text)
    if match is None:
        return None
    return text[: match.start()]


def tuple_component_types(abi_type: str) -> list[str] | None:
    text = abi_type.strip()
    if text.startswith("tuple("):
        text = text[len("tuple") :]
    if not text.startswith("(") or not text.endswith(")"):
        return None
    try:
        if _matching_paren(text, 0) != len(text) - 1:
            return None
        inner = text[1:-1]
        return [part.strip() for part in _split_top_level(inner)] if inner.strip() else []
    except AbiParseError:
        return None


def _load_list(raw: Any) -> list[Any] | None:
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return None
        if isinstance(parsed, list):
            return parsed
    return None


def _coerce_bool(raw: Any) -> Any:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return raw


def _coerce_int(raw: Any) -> Any:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and _DECIMAL_PATTERN.match(raw.strip()):
        return int(raw.strip(), 10)
    return raw


def coerce(raw: Any, abi_type: str) -> Any:
    """Coerce a raw value to the host representation of `abi_type`.

    - ``bool``: "true"/"false" (any case) become booleans
    - ``uint*``/``int*``: base-10 strings and integral numbers become ``int``
    - ``T[]``/``T[k]``: lists or JSON array text become a ``list`` of coerced elements
    - tuples: lists or JSON array text become a ``tuple`` of coerced components
    - everything else (address, string, bytes) passes through

    Unparseable input is returned unchanged.
    """

    element = array_element_type(abi_type)
    if element is not None:
        items = _load_list(raw)
        if items is None:
            return raw
        return [coerce(item, element) for item in items]

    components = tuple_component_types(abi_type)
    if components is not None:
        items = _load_list(raw)
        if items is None or len(items) != len(components):
            return raw
        return tuple(coerce(item, t) for item, t in zip(items, components, strict=True))

    if abi_type.strip() == "bool":
        return _coerce_bool(raw)
    if is_integer_type(abi_type):
        return _coerce_int(raw)
    return raw


def coerce_args(args: list[Any] | tuple[Any, ...], types: list[str]) -> tuple[Any, ...]:
    """Coerce `args` position-wise; extra arguments without a declared type pass through."""

    return tuple(
        coerce(arg, types[idx]) if idx < len(types) else arg for idx, arg in enumerate(args)
    )


def coerce_one_of(raw: Any, abi_type: str) -> Any:
    """Coerce the operand of a ONE_OF comparison into a list of `abi_type` values.

    Accepts an existing list, JSON array text, or a comma-separated string.
    """

    items = _load_list(raw)
    if items is None:
        if not isinstance(raw, str):
            return raw
        items = [part.strip() for part in raw.split(",") if part.strip()]
    return [coerce(item, abi_type) for item in items]


def to_jsonable(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        # Large integers travel as strings so non-Python consumers keep full precision.
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    return value


def stringify(value: Any) -> str:
    """Render a host value as wire text that `coerce` turns back into the same value."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(to_jsonable(value), separators=(",", ":"), ensure_ascii=False)
    return str(value)


def is_plausible(value: Any, abi_type: str) -> bool:
    """Return True if `value` could be encoded as `abi_type`."""

    element = array_element_type(abi_type)
    if element is not None:
        items = _load_list(value)
        return items is not None and all(is_plausible(item, element) for item in items)

    components = tuple_component_types(abi_type)
    if components is not None:
        items = _load_list(value)
        return (
            items is not None
            and len(items) == len(components)
            and all(is_plausible(item, t) for item, t in zip(items, components, strict=True))
        )

    abi_type = abi_type.strip()
    if abi_type == "address":
        return is_address(value)
    if is_integer_type(abi_type):
        unsigned = abi_type.startswith("uint")
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return not (unsigned and value < 0)
        if isinstance(value, str):
            text = value.strip()
            return _DECIMAL_PATTERN.match(text) is not None and not (
                unsigned and text.startswith("-")
            )
        return False
    if abi_type == "bool":
        return isinstance(value, bool) or (
            isinstance(value, str) and value.strip().lower() in {"true", "false"}
        )
    if abi_type.startswith("bytes"):
        return isinstance(value, str) and _HEX_PATTERN.match(value) is not None
    if abi_type == "string":
        return isinstance(value, str)
    return True
