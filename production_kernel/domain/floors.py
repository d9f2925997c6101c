"""
Floor Catalog & Router.

Responsibility:
    Defines the closed set of production floors and derives the ordered
    route an article follows from its routing (linking) attribute.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Every other
    module asks this one for "next floor" and "is this floor gated".

Invariants enforced:
    - AUTO routes have 7 floors and never include LINKING.
    - HAND and ROSSO routes have 8 floors with LINKING immediately after
      KNITTING.
    - The catalog order is the physical production order; every route is
      a subsequence of it.
"""

from __future__ import annotations

from enum import Enum

from production_kernel.exceptions import (
    FloorNotInRouteError,
    TerminalFloorTransferError,
    UnknownFloorError,
    ValidationError,
)


class Floor(str, Enum):
    """Production floors, in physical order."""

    KNITTING = "KNITTING"
    LINKING = "LINKING"
    CHECKING = "CHECKING"
    WASHING = "WASHING"
    BOARDING = "BOARDING"
    FINAL_CHECKING = "FINAL_CHECKING"
    BRANDING = "BRANDING"
    WAREHOUSE = "WAREHOUSE"


class RoutingAttribute(str, Enum):
    """Linking type of an article; selects whether LINKING is on the route."""

    AUTO = "AUTO"
    HAND = "HAND"
    ROSSO = "ROSSO"


class FloorKind(str, Enum):
    """How a floor's eligible quantity is derived."""

    KNITTING = "knitting"  # completed - m4, overproduction allowed
    QUALITY_GATED = "quality_gated"  # eligible = m1
    STANDARD = "standard"  # eligible = completed


CATALOG: tuple[Floor, ...] = tuple(Floor)

QUALITY_GATED_FLOORS: frozenset[Floor] = frozenset({
    Floor.CHECKING,
    Floor.FINAL_CHECKING,
})

_AUTO_ROUTE: tuple[Floor, ...] = (
    Floor.KNITTING,
    Floor.CHECKING,
    Floor.WASHING,
    Floor.BOARDING,
    Floor.FINAL_CHECKING,
    Floor.BRANDING,
    Floor.WAREHOUSE,
)

_LINKED_ROUTE: tuple[Floor, ...] = (
    _AUTO_ROUTE[:1] + (Floor.LINKING,) + _AUTO_ROUTE[1:]
)


def parse_floor(value: Floor | str) -> Floor:
    """Coerce a floor name into the enum, raising UnknownFloorError on unknown names."""
    if isinstance(value, Floor):
        return value
    try:
        return Floor(str(value).strip().upper())
    except ValueError:
        raise UnknownFloorError(str(value)) from None


def parse_routing(value: RoutingAttribute | str) -> RoutingAttribute:
    """Coerce a routing attribute, accepting the shop-floor spelling "Hand Linking"."""
    if isinstance(value, RoutingAttribute):
        return value
    normalized = str(value).strip().upper().removesuffix(" LINKING")
    try:
        return RoutingAttribute(normalized)
    except ValueError:
        raise ValidationError("routing_attribute", value, "unknown linking type") from None


def route_for(routing: RoutingAttribute) -> tuple[Floor, ...]:
    """Ordered floors an article with this routing attribute passes through."""
    match routing:
        case RoutingAttribute.AUTO:
            return _AUTO_ROUTE
        case RoutingAttribute.HAND | RoutingAttribute.ROSSO:
            return _LINKED_ROUTE
        case _:
            raise ValidationError("routing_attribute", routing, "unknown linking type")


def floor_kind(floor: Floor) -> FloorKind:
    match floor:
        case Floor.KNITTING:
            return FloorKind.KNITTING
        case Floor.CHECKING | Floor.FINAL_CHECKING:
            return FloorKind.QUALITY_GATED
        case (
            Floor.LINKING
            | Floor.WASHING
            | Floor.BOARDING
            | Floor.BRANDING
            | Floor.WAREHOUSE
        ):
            return FloorKind.STANDARD
        case _:
            raise UnknownFloorError(str(floor))


def is_quality_gated(floor: Floor) -> bool:
    return floor in QUALITY_GATED_FLOORS


def terminal_floor(routing: RoutingAttribute) -> Floor:
    return route_for(routing)[-1]


def ensure_in_route(floor: Floor, routing: RoutingAttribute) -> None:
    """Raise FloorNotInRouteError unless ``floor`` is on the route."""
    if floor not in route_for(routing):
        raise FloorNotInRouteError(floor.value, routing.value)


def next_floor(floor: Floor, routing: RoutingAttribute) -> Floor:
    """
    Floor that receives quantity transferred out of ``floor``.

    Raises:
        FloorNotInRouteError: ``floor`` is not on this route.
        TerminalFloorTransferError: ``floor`` is the last floor of the route.
    """
    route = route_for(routing)
    ensure_in_route(floor, routing)
    index = route.index(floor)
    if index == len(route) - 1:
        raise TerminalFloorTransferError(floor.value)
    return route[index + 1]
