"""
Entry Point Schemas
===================
One canonical argument schema per recovery registry action.

Each schema is an ordered list of (name, CL type) pairs plus the call mode.
`EntryPointSchema.bind()` validates a plain-Python argument mapping against
it and returns the typed runtime args, so width checks live here and
nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from guardian_recovery.errors import SchemaMismatch
from guardian_recovery.protocol.clvalue import (
    ACCOUNT_HASH,
    PUBLIC_KEY,
    U8,
    U256,
    CLType,
    CLValue,
    encode_value,
    list_of,
)


class CallMode(Enum):
    """How a deploy reaches the contract logic."""
    BOOTSTRAP = "BOOTSTRAP"        # session module bytes, run once
    STORED_CALL = "STORED_CALL"    # named entry point on the stored registry


class ProtocolAction(Enum):
    REGISTER_GUARDIANS = "REGISTER_GUARDIANS"
    START_RECOVERY = "START_RECOVERY"
    APPROVE = "APPROVE"
    CHECK_THRESHOLD = "CHECK_THRESHOLD"
    FINALIZE = "FINALIZE"
    HAS_GUARDIANS = "HAS_GUARDIANS"
    GET_GUARDIANS = "GET_GUARDIANS"


# Discriminator the bootstrap module reads to pick its action
REGISTER_ACTION_CODE = 1


@dataclass(frozen=True)
class ArgSpec:
    name: str
    cl_type: CLType


@dataclass(frozen=True)
class RuntimeArgs:
    """Ordered, typed runtime arguments."""

    args: Tuple[Tuple[str, CLValue], ...]

    def __getitem__(self, name: str) -> CLValue:
        for arg_name, value in self.args:
            if arg_name == name:
                return value
        raise KeyError(name)

    def names(self) -> List[str]:
        return [name for name, _ in self.args]

    def to_json(self) -> List[list]:
        return [[name, value.to_json()] for name, value in self.args]

    @classmethod
    def from_json(cls, items: List[list]) -> "RuntimeArgs":
        return cls(tuple((name, CLValue.from_json(value)) for name, value in items))


@dataclass(frozen=True)
class EntryPointSchema:
    action: ProtocolAction
    mode: CallMode
    entry_point: str
    fields: Tuple[ArgSpec, ...]

    def bind(self, values: Mapping[str, Any]) -> RuntimeArgs:
        """
        Validate `values` against the declared fields and type them.

        Missing or unexpected names and values that do not fit the declared
        width raise SchemaMismatch naming the offending field.
        """
        expected = [spec.name for spec in self.fields]
        missing = [name for name in expected if name not in values]
        extra = [name for name in values if name not in expected]
        if missing or extra:
            raise SchemaMismatch(
                f"{self.entry_point}: missing={missing} unexpected={extra}"
            )

        bound = []
        for spec in self.fields:
            value = values[spec.name]
            try:
                encode_value(spec.cl_type, value)
            except SchemaMismatch as e:
                raise SchemaMismatch(
                    f"{self.entry_point}.{spec.name}: {e.message}", field=spec.name
                ) from None
            bound.append((spec.name, CLValue(spec.cl_type, value)))
        return RuntimeArgs(tuple(bound))


SCHEMAS: Dict[ProtocolAction, EntryPointSchema] = {
    schema.action: schema
    for schema in (
        EntryPointSchema(
            ProtocolAction.REGISTER_GUARDIANS,
            CallMode.BOOTSTRAP,
            "call",
            (
                ArgSpec("action", U8),
                ArgSpec("account", ACCOUNT_HASH),
                ArgSpec("guardians", list_of(ACCOUNT_HASH)),
                ArgSpec("threshold", U8),
            ),
        ),
        EntryPointSchema(
            ProtocolAction.START_RECOVERY,
            CallMode.STORED_CALL,
            "start_recovery",
            (ArgSpec("account", ACCOUNT_HASH), ArgSpec("new_key", PUBLIC_KEY)),
        ),
        EntryPointSchema(
            ProtocolAction.APPROVE,
            CallMode.STORED_CALL,
            "approve",
            (ArgSpec("id", U256),),
        ),
        EntryPointSchema(
            ProtocolAction.CHECK_THRESHOLD,
            CallMode.STORED_CALL,
            "is_approved",
            (ArgSpec("id", U256),),
        ),
        EntryPointSchema(
            ProtocolAction.FINALIZE,
            CallMode.STORED_CALL,
            "finalize",
            (ArgSpec("id", U256),),
        ),
        EntryPointSchema(
            ProtocolAction.HAS_GUARDIANS,
            CallMode.STORED_CALL,
            "has_guardians",
            (ArgSpec("account", ACCOUNT_HASH),),
        ),
        EntryPointSchema(
            ProtocolAction.GET_GUARDIANS,
            CallMode.STORED_CALL,
            "get_guardians",
            (ArgSpec("account", ACCOUNT_HASH),),
        ),
    )
}


def get_schema(action: ProtocolAction) -> EntryPointSchema:
    return SCHEMAS[action]
