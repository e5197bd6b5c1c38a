"""
Notification Policy
===================

Decides what the user is shown for a batch of new records.

- one record: a single high priority alert with sound, no actions
- several records: one alert per record with an "Open" link action; only
  the first alert of the pass carries the sound
- the configured mode selects the blink pattern

Alerts are keyed by record identity so showing the same record again
replaces the earlier alert. Error alerts share one fixed key.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ..database.models import NewItemBatch, StoredFeedRecord
from ..ingestion.content_cleaner import ContentCleaner
from ..utils.exceptions import NotificationError
from ..utils.logging import get_logger_for_component

ERROR_ALERT_KEY = 42

# mode -> (on_ms, off_ms)
BLINK_MODES = {
    1: (1000, 0),
    2: (4000, 1000),
    3: (500, 200),
}


@dataclass(frozen=True)
class BlinkPattern:
    color: str
    on_ms: int
    off_ms: int


@dataclass(frozen=True)
class AlertAction:
    label: str
    url: str


@dataclass
class Alert:
    """Everything a surface needs to show one alert."""

    key: int
    title: str
    body: str
    actions: List[AlertAction] = field(default_factory=list)
    sound: Optional[str] = None
    blink: Optional[BlinkPattern] = None
    image: Optional[bytes] = None
    high_priority: bool = False


class NotificationSurface(Protocol):
    """Where alerts end up. Showing an existing key replaces that alert."""

    async def show(
        self,
        key: int,
        title: str,
        body: str,
        actions: List[AlertAction],
        sound: Optional[str] = None,
        blink: Optional[BlinkPattern] = None,
        image: Optional[bytes] = None,
        high_priority: bool = False,
    ) -> None:
        ...


def blink_pattern(mode: int, color: str) -> Optional[BlinkPattern]:
    """Blink pattern for a notify mode, None for modes without one."""
    timing = BLINK_MODES.get(mode)
    if timing is None:
        return None
    return BlinkPattern(color, *timing)


class NotificationPolicy:
    """Maps new record batches and errors to alerts on a surface."""

    OPEN_ACTION_LABEL = "Open"

    def __init__(
        self,
        surface: NotificationSurface,
        cleaner: Optional[ContentCleaner] = None,
        mode: int = 2,
        color: str = "#FF33B5E5",
        sound: str = "notifysnd",
    ):
        self.surface = surface
        self.cleaner = cleaner or ContentCleaner()
        self.mode = mode
        self.color = color
        self.sound = sound
        self.logger = get_logger_for_component("notification_policy")

    @classmethod
    def from_settings(cls, surface: NotificationSurface, settings) -> "NotificationPolicy":
        return cls(
            surface,
            cleaner=ContentCleaner.from_settings(settings.filtering),
            mode=settings.notify.mode,
            color=settings.notify.color,
            sound=settings.notify.sound,
        )

    def build_alerts(self, batch: NewItemBatch, mode: Optional[int] = None) -> List[Alert]:
        """Alerts for ``batch`` in the order they are shown."""
        if not batch:
            return []

        blink = blink_pattern(self.mode if mode is None else mode, self.color)

        if len(batch) == 1:
            return [self._alert(batch.latest, blink, sound=self.sound, single=True)]

        alerts = []
        sound: Optional[str] = self.sound
        for record in batch.records:
            alerts.append(self._alert(record, blink, sound=sound, single=False))
            sound = None
        return alerts

    async def present(self, batch: NewItemBatch, mode: Optional[int] = None) -> int:
        """Show ``batch`` on the surface.

        Returns:
            Number of alerts the surface accepted
        """
        shown = 0
        for alert in self.build_alerts(batch, mode):
            if await self._show(alert):
                shown += 1

        if shown:
            self.logger.info(f"Presented {shown} alert(s) for {len(batch)} new item(s)")
        return shown

    async def present_error(self, title: str, message: str) -> bool:
        """Show an error alert under the shared error key."""
        alert = Alert(
            key=ERROR_ALERT_KEY,
            title=title,
            body=message,
            high_priority=True,
        )
        return await self._show(alert)

    def _alert(
        self,
        record: StoredFeedRecord,
        blink: Optional[BlinkPattern],
        sound: Optional[str],
        single: bool,
    ) -> Alert:
        actions = []
        if not single and record.link:
            actions.append(AlertAction(self.OPEN_ACTION_LABEL, record.link))

        return Alert(
            key=record.id,
            title=self.cleaner.clean(record.title),
            body=self.cleaner.clean(record.body),
            actions=actions,
            sound=sound,
            blink=blink,
            image=record.image,
            high_priority=single,
        )

    async def _show(self, alert: Alert) -> bool:
        try:
            await self.surface.show(
                alert.key,
                alert.title,
                alert.body,
                alert.actions,
                sound=alert.sound,
                blink=alert.blink,
                image=alert.image,
                high_priority=alert.high_priority,
            )
            return True
        except NotificationError as e:
            self.logger.warning(f"Alert {alert.key} not shown: {e}", extra=e.to_dict())
            return False
