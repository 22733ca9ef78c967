"""Per-(user, subject) interaction status with toggle semantics."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from animesync.domain.model import AnimeSummary, InteractionStatus

log = getLogger(__name__)

type InteractionKey = tuple[str, int]


def next_status(
    current: InteractionStatus | None,
    requested: InteractionStatus,
) -> InteractionStatus | None:
    """Transition of the absent/watched/favorite machine.

    Requesting the active status toggles it off; requesting any other status
    switches to it directly.
    """

    if current is requested:
        return None
    return requested


class InteractionStore:
    """Keyed mapping of ``(user_id, subject_id)`` to a single active status."""

    def __init__(self, user_id: str | None) -> None:
        self.user_id = user_id
        self._statuses: dict[InteractionKey, InteractionStatus] = {}

    def __len__(self) -> int:
        return len(self._statuses)

    def _key(self, subject_id: int) -> InteractionKey:
        if self.user_id is None:
            raise ValueError("Interactions require a signed-in user")
        return (self.user_id, subject_id)

    def status_of(self, subject_id: int) -> InteractionStatus | None:
        if self.user_id is None:
            return None
        return self._statuses.get(self._key(subject_id))

    def set_interaction(
        self,
        subject_id: int,
        requested: InteractionStatus,
    ) -> InteractionStatus | None:
        """Apply ``requested`` to the subject and return the resulting status."""

        status = next_status(self.status_of(subject_id), requested)
        self.put(subject_id, status)
        return status

    def assign(self, subject_id: int, status: InteractionStatus | None) -> bool:
        """Store ``status``; return whether it differed from the current one."""

        if self.status_of(subject_id) is status:
            return False
        self.put(subject_id, status)
        log.debug("Interaction with %s is now %s", subject_id, status)
        return True

    def put(self, subject_id: int, status: InteractionStatus | None) -> None:
        key = self._key(subject_id)
        if status is None:
            self._statuses.pop(key, None)
        else:
            self._statuses[key] = status

    def items(self) -> dict[int, InteractionStatus]:
        return {subject_id: status for (_, subject_id), status in self._statuses.items()}

    def annotate(
        self,
        summaries: Iterable[AnimeSummary],
    ) -> list[tuple[AnimeSummary, InteractionStatus | None]]:
        return [(summary, self.status_of(summary.id)) for summary in summaries]
