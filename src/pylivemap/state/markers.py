"""Marker reconciliation.

This is the only component allowed to mutate the displayed marker set.
Snapshots are full replacements; reconciliation turns each one into the
minimal remove/upsert delta against what is currently displayed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pylivemap.models.position import EntityPosition, PositionSnapshot
from pylivemap.state.events import MarkerDelta

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DisplayedMarker:
    """A marker currently on the map.

    ``handle`` is the shell's visual object; it is created once per identity
    and kept for the marker's lifetime so moving a marker never recreates it.
    """

    identity: str
    display_name: str
    handle: Any
    last_coordinates: tuple[float, float]


@dataclass(frozen=True, slots=True)
class ReconcilePlan:
    to_remove: frozenset[str]
    to_upsert: tuple[EntityPosition, ...]

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_upsert


def _default_handle(position: EntityPosition) -> Any:
    return position.avatar_url


def _is_current(marker: DisplayedMarker, position: EntityPosition) -> bool:
    return marker.last_coordinates == position.coordinates and marker.display_name == position.display_name


def reconcile(previous: Mapping[str, DisplayedMarker], snapshot: PositionSnapshot) -> ReconcilePlan:
    """Compute the delta that turns *previous* into *snapshot*.

    Identities in *previous* but absent from *snapshot* are removed. Identities
    in *snapshot* are upserted when unseen or when their coordinates or name
    changed; unchanged markers are left alone, so re-reconciling an applied
    snapshot yields an empty plan. Runs in O(len(previous) + len(snapshot)).
    """
    incoming = snapshot.by_identity()
    to_remove = frozenset(identity for identity in previous if identity not in incoming)
    to_upsert = tuple(
        position
        for identity, position in incoming.items()
        if (marker := previous.get(identity)) is None or not _is_current(marker, position)
    )
    return ReconcilePlan(to_remove=to_remove, to_upsert=to_upsert)


class MarkerReconciler:
    """Owns the displayed marker set and applies snapshots to it in order.

    Snapshots carrying a ``sequence`` older than (or equal to) the last applied
    one are dropped, so a reordering transport cannot move markers backwards.
    """

    def __init__(
        self,
        *,
        handle_factory: Callable[[EntityPosition], Any] = _default_handle,
        on_release: Callable[[DisplayedMarker], None] | None = None,
    ) -> None:
        self._handle_factory = handle_factory
        self._on_release = on_release
        self._markers: dict[str, DisplayedMarker] = {}
        self._last_sequence: int | None = None

    @property
    def markers(self) -> Mapping[str, DisplayedMarker]:
        return self._markers

    @property
    def last_sequence(self) -> int | None:
        return self._last_sequence

    def reset_sequence(self) -> None:
        """Forget the last applied tick (e.g. after reconnecting to a restarted server)."""
        self._last_sequence = None

    def apply(self, snapshot: PositionSnapshot) -> MarkerDelta | None:
        """Reconcile *snapshot* into the marker set.

        Returns the applied delta, or ``None`` when the snapshot is out of order.
        """
        sequence = snapshot.sequence
        if sequence is not None and self._last_sequence is not None and sequence <= self._last_sequence:
            _logger.debug("Dropping out-of-order snapshot sequence=%s last=%s", sequence, self._last_sequence)
            return None

        plan = reconcile(self._markers, snapshot)

        for identity in plan.to_remove:
            marker = self._markers.pop(identity)
            self._release(marker)

        upserted: list[DisplayedMarker] = []
        for position in plan.to_upsert:
            marker = self._markers.get(position.identity)
            if marker is None:
                marker = DisplayedMarker(
                    identity=position.identity,
                    display_name=position.display_name,
                    handle=self._handle_factory(position),
                    last_coordinates=position.coordinates,
                )
                self._markers[position.identity] = marker
            else:
                marker.last_coordinates = position.coordinates
                marker.display_name = position.display_name
            upserted.append(marker)

        if sequence is not None:
            self._last_sequence = sequence

        if not plan.is_empty:
            _logger.debug(
                "Reconciled snapshot sequence=%s removed=%d upserted=%d displayed=%d",
                sequence,
                len(plan.to_remove),
                len(upserted),
                len(self._markers),
            )
        return MarkerDelta(to_remove=plan.to_remove, to_upsert=tuple(upserted), sequence=sequence)

    def clear(self) -> MarkerDelta:
        """Remove every marker (view teardown)."""
        removed = frozenset(self._markers)
        for marker in self._markers.values():
            self._release(marker)
        self._markers.clear()
        self._last_sequence = None
        return MarkerDelta(to_remove=removed, to_upsert=())

    def players(self) -> list[DisplayedMarker]:
        """Displayed markers ordered by display name, then identity."""
        return sorted(self._markers.values(), key=lambda m: (m.display_name.casefold(), m.identity))

    def _release(self, marker: DisplayedMarker) -> None:
        if self._on_release is None:
            return
        try:
            self._on_release(marker)
        except Exception:
            _logger.debug("Marker release callback failed identity=%s", marker.identity, exc_info=True)
