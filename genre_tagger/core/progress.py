"""
Progress bar handling for genre-tagger using the Rich library.

Both pipeline stages that take noticeable time get a bar:
    - Genre resolution: ResolveProgressBar
    - Tag writing: TaggingProgressBar

Collection is a quick directory scan and has no bar.

Usage:
    from genre_tagger.core.progress import TaggingProgressBar

    with TaggingProgressBar(total=100) as progress:
        for outcome in outcomes:
            progress.update(outcome.status)
"""

from abc import ABC, abstractmethod
from typing import Optional

from rich import get_console
from rich.console import JustifyMethod, OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class SizedTextColumn(ProgressColumn):
    """
    Text column truncated with an ellipsis when it exceeds its width.
    """

    def __init__(
        self,
        text_format: str,
        style: StyleType = "none",
        justify: JustifyMethod = "left",
        overflow: Optional[OverflowMethod] = None,
        width: int = 20,
    ) -> None:
        self.text_format = text_format
        self.justify: JustifyMethod = justify
        self.style = style
        self.overflow: Optional[OverflowMethod] = overflow
        self.width = width
        super().__init__()

    def render(self, task: Task) -> Text:
        """Render the column."""
        text = Text.from_markup(
            self.text_format.format(task=task),
            style=self.style,
            justify=self.justify,
        )
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class BaseProgressBar(ABC):
    """
    Abstract base class for all progress bars.

    Provides:
    - Rich Progress instance with the shared theme
    - Context manager support (__enter__/__exit__)
    - Manual start/stop control

    Subclasses must implement:
    - _get_status_text(): Return formatted status string
    - update(): Update progress with stage-specific logic
    """

    def __init__(
        self,
        total: int,
        description: str,
        status_width: int = 35
    ):
        self.total = total
        self.description = description
        self.completed = 0

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            SizedTextColumn(
                "[white]{task.description}",
                overflow="ellipsis",
                width=15,
            ),
            SizedTextColumn(
                "{task.fields[status]}",
                width=status_width,
                style="white",
            ),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "BaseProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if not self._started:
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        """Stop the progress bar."""
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def _update_progress(self) -> None:
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
            )

    @abstractmethod
    def _get_status_text(self) -> str:
        pass

    @abstractmethod
    def update(self, *args, **kwargs) -> None:
        pass


class ResolveProgressBar(BaseProgressBar):
    """
    Progress bar for the genre resolution stage.

    Example:
        Resolving       ✓ 45  ∅ 3  ✗ 1         ━━━━━━━━━━━━━━━━━  47%
    """

    def __init__(self, total: int, description: str = "Resolving"):
        super().__init__(total=total, description=description)
        self.resolved = 0
        self.empty = 0
        self.failed = 0

    def _get_status_text(self) -> str:
        parts = [
            f"[green]✓ {self.resolved}[/green]",
            f"[yellow]∅ {self.empty}[/yellow]",
        ]
        if self.failed > 0:
            parts.append(f"[red]✗ {self.failed}[/red]")
        return "  ".join(parts)

    def update(self, failed: bool, empty: bool = False) -> None:
        """
        Update the progress bar with one artist reaching a terminal state.

        Args:
            failed: Whether resolution failed after all retries.
            empty: Whether the artist resolved to zero genres.
        """
        self.completed += 1
        if failed:
            self.failed += 1
        elif empty:
            self.empty += 1
        else:
            self.resolved += 1

        self._update_progress()


class TaggingProgressBar(BaseProgressBar):
    """
    Progress bar for the tag writing stage.

    Example:
        Tagging         ✓ 120  ✗ 3  ⊘ 5        ━━━━━━━━━━━━━━━━━  64%
    """

    def __init__(self, total: int, description: str = "Tagging"):
        super().__init__(total=total, description=description)
        self.tagged = 0
        self.failed = 0
        self.skipped = 0

    def _get_status_text(self) -> str:
        parts = [
            f"[green]✓ {self.tagged}[/green]",
            f"[red]✗ {self.failed}[/red]",
        ]
        if self.skipped > 0:
            parts.append(f"[yellow]⊘ {self.skipped}[/yellow]")
        return "  ".join(parts)

    def update(self, success: bool, skipped: bool = False) -> None:
        """
        Update the progress bar with a finished file.

        Args:
            success: Whether the file was tagged.
            skipped: Whether the file was skipped (no genres to write).
        """
        self.completed += 1
        if skipped:
            self.skipped += 1
        elif success:
            self.tagged += 1
        else:
            self.failed += 1

        self._update_progress()


__all__ = [
    "PROGRESS_THEME",
    "SizedTextColumn",
    "BaseProgressBar",
    "ResolveProgressBar",
    "TaggingProgressBar",
]
