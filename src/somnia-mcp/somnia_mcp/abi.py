"""
ABI helpers on top of eth_abi / eth_utils.

Contract arguments arrive as loosely typed JSON (strings for big numbers,
dicts or lists for tuples); they are coerced to the declared ABI types here,
once, before encoding.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import is_address, keccak, to_checksum_address

from .errors import PreconditionError, ValidationError

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"
TRANSFER_TOPIC = "0x" + keccak(text=TRANSFER_EVENT_SIGNATURE).hex()

_JS_SAFE_INT = 2**53


def parse_abi(abi: Any) -> List[Dict[str, Any]]:
    if abi is None:
        return []
    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except json.JSONDecodeError as exc:
            raise ValidationError("abi must be a JSON array.") from exc
    if isinstance(abi, dict):
        abi = [abi]
    if not isinstance(abi, list):
        raise ValidationError("abi must be a JSON array.")
    return [entry for entry in abi if isinstance(entry, dict)]


def hex_to_bytes(value: str, field: str = "data") -> bytes:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a hex string.")
    body = value.strip()
    if body.startswith(("0x", "0X")):
        body = body[2:]
    if len(body) % 2:
        body = "0" + body
    try:
        return bytes.fromhex(body)
    except ValueError as exc:
        raise ValidationError(f"{field} must be a hex string.") from exc


def bytes_to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def canonical_type(param: Dict[str, Any]) -> str:
    typ = str(param.get("type", ""))
    if not typ.startswith("tuple"):
        return typ
    suffix = typ[len("tuple"):]
    inner = ",".join(canonical_type(c) for c in param.get("components") or [])
    return f"({inner}){suffix}"


def signature(entry: Dict[str, Any]) -> str:
    types = ",".join(canonical_type(p) for p in entry.get("inputs") or [])
    return f"{entry.get('name', '')}({types})"


def selector(entry: Dict[str, Any]) -> bytes:
    return keccak(text=signature(entry))[:4]


def event_topic(entry: Dict[str, Any]) -> str:
    return bytes_to_hex(keccak(text=signature(entry)))


def find_function(abi: Sequence[Dict[str, Any]], name: str, args: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    candidates = [
        entry
        for entry in abi
        if entry.get("type", "function") == "function" and entry.get("name") == name
    ]
    if not candidates:
        raise PreconditionError(f"Function '{name}' not found in ABI.")
    if args is None:
        return candidates[0]
    for entry in candidates:
        if len(entry.get("inputs") or []) == len(args):
            return entry
    raise ValidationError(
        f"Function '{name}' does not accept {len(args)} argument(s)."
    )


def find_event(abi: Sequence[Dict[str, Any]], name: str) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == name:
            return entry
    raise PreconditionError(f"Event '{name}' not found in ABI.")


def _split_array(typ: str) -> Tuple[str, Optional[str]]:
    if not typ.endswith("]"):
        return typ, None
    idx = typ.rindex("[")
    return typ[:idx], typ[idx + 1 : -1]


def coerce_value(param: Dict[str, Any], value: Any) -> Any:
    typ = str(param.get("type", ""))
    base, dim = _split_array(typ)
    if dim is not None:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValidationError(f"Expected an array for type {typ}.") from exc
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"Expected an array for type {typ}.")
        if dim and len(value) != int(dim):
            raise ValidationError(f"Expected {dim} items for type {typ}, got {len(value)}.")
        inner = dict(param, type=base)
        return [coerce_value(inner, item) for item in value]

    if base == "tuple":
        components = param.get("components") or []
        if isinstance(value, dict):
            value = [value.get(c.get("name")) for c in components]
        if not isinstance(value, (list, tuple)) or len(value) != len(components):
            raise ValidationError(f"Expected a tuple of {len(components)} items.")
        return tuple(coerce_value(c, v) for c, v in zip(components, value))

    if base == "address":
        if not isinstance(value, str) or not is_address(value):
            raise ValidationError(f"Invalid address argument: {value!r}.")
        return to_checksum_address(value)

    if base.startswith(("uint", "int")):
        if isinstance(value, bool):
            raise ValidationError(f"Expected an integer for type {base}.")
        if isinstance(value, int):
            return value
        try:
            text = str(value).strip()
            return int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        except ValueError as exc:
            raise ValidationError(f"Expected an integer for type {base}, got {value!r}.") from exc

    if base == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        if value in (0, 1):
            return bool(value)
        raise ValidationError(f"Expected a boolean, got {value!r}.")

    if base.startswith("bytes"):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        return hex_to_bytes(value, field=base)

    if base == "string":
        return str(value)

    return value


def coerce_args(inputs: Sequence[Dict[str, Any]], args: Sequence[Any]) -> List[Any]:
    if len(inputs) != len(args):
        raise ValidationError(f"Expected {len(inputs)} argument(s), got {len(args)}.")
    return [coerce_value(p, a) for p, a in zip(inputs, args)]


def encode_arguments(inputs: Sequence[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    types = [canonical_type(p) for p in inputs]
    return encode(types, coerce_args(inputs, args))


def encode_function_call(
    abi: Sequence[Dict[str, Any]], name: str, args: Optional[Sequence[Any]] = None
) -> Tuple[Dict[str, Any], str]:
    args = list(args or [])
    entry = find_function(abi, name, args)
    payload = selector(entry) + encode_arguments(entry.get("inputs") or [], args)
    return entry, bytes_to_hex(payload)


def encode_deploy_data(abi: Sequence[Dict[str, Any]], bytecode: str, args: Optional[Sequence[Any]] = None) -> str:
    code = hex_to_bytes(bytecode, field="bytecode")
    if not code:
        raise ValidationError("bytecode must not be empty.")
    args = list(args or [])
    ctor = next((e for e in abi if e.get("type") == "constructor"), None)
    inputs = (ctor or {}).get("inputs") or []
    if not inputs and args:
        raise ValidationError("ABI has no constructor inputs but arguments were given.")
    return bytes_to_hex(code + (encode_arguments(inputs, args) if inputs else b""))


def to_jsonable(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value) if abs(value) >= _JS_SAFE_INT else value
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def decode_function_result(entry: Dict[str, Any], data: str) -> Any:
    outputs = entry.get("outputs") or []
    if not outputs:
        return None
    raw = hex_to_bytes(data or "0x")
    if not raw:
        raise ValidationError(f"Function '{entry.get('name')}' returned no data.")
    values = decode([canonical_type(p) for p in outputs], raw)
    if len(values) == 1:
        return values[0]
    return list(values)


def decode_function_input(abi: Sequence[Dict[str, Any]], data: str) -> Dict[str, Any]:
    raw = hex_to_bytes(data or "0x")
    if len(raw) < 4:
        raise ValidationError("Transaction input has no function selector.")
    sel = raw[:4]
    for entry in abi:
        if entry.get("type", "function") != "function" or not entry.get("name"):
            continue
        if selector(entry) != sel:
            continue
        inputs = entry.get("inputs") or []
        values = decode([canonical_type(p) for p in inputs], raw[4:])
        return {
            "function_name": entry["name"],
            "signature": signature(entry),
            "selector": bytes_to_hex(sel),
            "args": {
                (p.get("name") or f"arg{i}"): to_jsonable(v)
                for i, (p, v) in enumerate(zip(inputs, values))
            },
        }
    raise PreconditionError(f"No function with selector {bytes_to_hex(sel)} in ABI.")


def _is_dynamic(param: Dict[str, Any]) -> bool:
    typ = str(param.get("type", ""))
    return typ in {"string", "bytes"} or typ.endswith("]") or typ.startswith("tuple")


def decode_event_log(entry: Dict[str, Any], log: Dict[str, Any]) -> Dict[str, Any]:
    """Decode one log against an event ABI. Indexed dynamic values stay as their topic hash."""
    inputs = entry.get("inputs") or []
    topics = list(log.get("topics") or [])
    indexed = [p for p in inputs if p.get("indexed")]
    plain = [p for p in inputs if not p.get("indexed")]
    if len(topics) - 1 != len(indexed):
        raise ValidationError(f"Log topics do not match event '{entry.get('name')}'.")

    topic_iter = iter(topics[1:])
    data_iter = iter(
        decode([canonical_type(p) for p in plain], hex_to_bytes(log.get("data") or "0x")) if plain else ()
    )

    values: Dict[str, Any] = {}
    for i, param in enumerate(inputs):
        name = param.get("name") or f"arg{i}"
        if param.get("indexed"):
            topic = next(topic_iter)
            if _is_dynamic(param):
                values[name] = topic
            else:
                values[name] = to_jsonable(decode([canonical_type(param)], hex_to_bytes(topic))[0])
        else:
            values[name] = to_jsonable(next(data_iter))
    return values
