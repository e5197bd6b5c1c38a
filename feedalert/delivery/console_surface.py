"""
Console notification surface rendering alerts as rich panels.
"""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from .notification_policy import AlertAction, BlinkPattern


def border_style(blink: Optional[BlinkPattern]) -> str:
    """Rich color for the panel border; ARGB colors drop their alpha byte."""
    if blink is None:
        return "blue"
    color = blink.color
    if len(color) == 9:
        color = "#" + color[3:]
    return color


class ConsoleNotificationSurface:
    """NotificationSurface printing to a terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.shown: List[int] = []

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
        content = Text(body or "")
        for action in actions:
            content.append(f"\n{action.label}: ", style="bold")
            content.append(action.url, style="underline cyan")

        flags = []
        if high_priority:
            flags.append("❗")
        if sound:
            flags.append("🔔")
        if image:
            flags.append("🖼")

        heading = " ".join(flags + [title or "(untitled)"])
        replaced = " (updated)" if key in self.shown else ""

        self.console.print(
            Panel(
                content,
                title=f"[bold]{escape(heading)}[/bold]",
                subtitle=f"#{key}{replaced}",
                border_style=border_style(blink),
            )
        )
        if key not in self.shown:
            self.shown.append(key)
