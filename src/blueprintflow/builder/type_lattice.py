"""
Type lattice for blueprint pins.

A closed, total compatibility relation between pin kinds. Every other module
asks this one; nothing else encodes compatibility rules.

Rules:
  - ``any`` is compatible with every kind, in either position
  - identical kinds are always compatible
  - ``execution`` is compatible only with ``execution``
  - there is no implicit coercion (``number`` -> ``string`` is not compatible)
"""

from dataclasses import dataclass
from typing import List, Optional, Union

from blueprintflow.builder.types import ConnectionType, PinKind

KindLike = Union[PinKind, str]


def _kind(value: KindLike) -> PinKind:
    return value if isinstance(value, PinKind) else PinKind(value)


def compatible(producer: KindLike, consumer: KindLike) -> bool:
    """Return True when a value of kind ``producer`` may flow into a pin of kind ``consumer``."""
    producer, consumer = _kind(producer), _kind(consumer)
    if producer is PinKind.ANY or consumer is PinKind.ANY:
        return True
    return producer is consumer


def compatible_kinds(producer: KindLike) -> List[PinKind]:
    """All consumer kinds that ``producer`` may connect to, in declaration order."""
    return [kind for kind in PinKind if compatible(producer, kind)]


@dataclass(frozen=True)
class ConnectionCheck:
    valid: bool
    reason: Optional[str] = None


def check_connection(
    producer: KindLike,
    consumer: KindLike,
    connection_type: ConnectionType,
) -> ConnectionCheck:
    """
    Check a pair of pin kinds against a connection class.

    Execution connections join two execution pins. Data connections join two
    non-execution pins that the lattice considers compatible.
    """
    producer, consumer = _kind(producer), _kind(consumer)
    if connection_type == "execution":
        if producer.is_execution and consumer.is_execution:
            return ConnectionCheck(True)
        return ConnectionCheck(
            False,
            f"Execution connections join execution pins only, got {producer.value} -> {consumer.value}",
        )
    if producer.is_execution or consumer.is_execution:
        return ConnectionCheck(
            False,
            f"Data connections cannot use execution pins, got {producer.value} -> {consumer.value}",
        )
    if not compatible(producer, consumer):
        return ConnectionCheck(False, f"Cannot connect {producer.value} to {consumer.value}")
    return ConnectionCheck(True)


def connection_type_for(producer: KindLike) -> ConnectionType:
    """The connection class implied by a source pin kind."""
    return "execution" if _kind(producer).is_execution else "data"
