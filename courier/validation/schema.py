"""Event schema registry port consulted by the local validator.

The pipeline does not own the event taxonomy. Hosts that maintain one can
expose it through ``EventSchemaRegistry``; ``MappingSchemaRegistry`` adapts a
plain mapping of ``EventSchema`` definitions supplied by the host.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

_PARAM_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
}


@dc.dataclass(frozen=True, slots=True)
class SchemaCheck:
    """Registry verdict for one event."""

    valid: bool
    errors: tuple[str, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class EventSchema:
    """Per-event schema supplied by the host's taxonomy.

    Attributes
    ----------
    required_params
        Parameter names that must be present.
    param_types
        Expected type name (``string``, ``number``, ``boolean``, ``array``)
        per known parameter.
    allow_unknown_params
        Whether parameters absent from ``param_types`` are accepted.

    """

    required_params: tuple[str, ...] = ()
    param_types: cabc.Mapping[str, str] = dc.field(default_factory=dict)
    allow_unknown_params: bool = True


@typ.runtime_checkable
class EventSchemaRegistry(typ.Protocol):
    """Protocol for stricter per-event-name checks."""

    def check_event(
        self,
        name: str,
        params: cabc.Mapping[str, typ.Any],
    ) -> SchemaCheck:
        """Return whether ``params`` satisfy the schema registered for ``name``."""
        ...


def _type_matches(value: object, type_name: str) -> bool:
    expected = _PARAM_TYPES.get(type_name)
    if expected is None:
        return True
    if type_name == "number" and isinstance(value, bool):
        return False
    return isinstance(value, expected)


class MappingSchemaRegistry:
    """Registry backed by an in-memory mapping of event name to schema."""

    def __init__(
        self,
        schemas: cabc.Mapping[str, EventSchema],
        *,
        allow_unknown_events: bool = False,
    ) -> None:
        """Store the schemas and the policy for unregistered event names."""
        self._schemas = dict(schemas)
        self._allow_unknown_events = allow_unknown_events

    def check_event(
        self,
        name: str,
        params: cabc.Mapping[str, typ.Any],
    ) -> SchemaCheck:
        """Check required parameters, parameter types, and unknown names."""
        schema = self._schemas.get(name)
        if schema is None:
            if self._allow_unknown_events:
                return SchemaCheck(valid=True)
            return SchemaCheck(valid=False, errors=(f"Unknown event: {name}",))

        errors = [
            f"Missing required parameter: {param}"
            for param in schema.required_params
            if param not in params
        ]
        for param, value in params.items():
            type_name = schema.param_types.get(param)
            if type_name is None:
                if not schema.allow_unknown_params:
                    errors.append(f"Unknown parameter: {param}")
                continue
            if not _type_matches(value, type_name):
                errors.append(f"Parameter {param} must be a {type_name}")

        return SchemaCheck(valid=not errors, errors=tuple(errors))
