# ui/rich_display.py
"""Live terminal panel for a script generation run.

`RichDisplayManager` subscribes to a [`ProgressChannel`](core/progress.py:1)
and keeps a small grid of status rows current. Rendering is best-effort: a
failed refresh is logged at debug level and never interrupts the pipeline.
"""

from __future__ import annotations

import asyncio
import time

import structlog
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

import config
from core.llm_interface import llm_service
from core.progress import PhaseProgress, ProgressChannel, ProgressEvent, SegmentProgress
from models.script_models import ScriptChunk

logger = structlog.get_logger(__name__)

# Row label -> initial value, in display order.
STATUS_ROWS = {
    "Script": "N/A",
    "Progress": "N/A",
    "Step": "Initializing...",
    "Nodes": "0",
    "Requests/Min": "0.00",
    "Elapsed": "00:00:00",
}


class RichDisplayManager:
    """Render a Rich `Live` panel summarising the current run.

    Call `attach()` with the run's channel, `start()` before generation and
    `await stop()` afterwards. Every method is a no-op when
    `config.ENABLE_RICH_PROGRESS` is off.
    """

    _shared_console: Console | None = None

    @classmethod
    def get_shared_console(cls) -> Console:
        """Console shared by the live panel and the Rich log handler."""
        if cls._shared_console is None:
            cls._shared_console = Console()
        return cls._shared_console

    def __init__(self) -> None:
        self.rows: dict[str, Text] = {label: Text(value) for label, value in STATUS_ROWS.items()}
        self.live: Live | None = None
        self.run_start_time = 0.0
        self.nodes_received = 0
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

        if config.ENABLE_RICH_PROGRESS:
            self.live = Live(
                Panel(self._build_grid(), title="Galforge", border_style="magenta", expand=True),
                console=self.get_shared_console(),
                refresh_per_second=4,
                redirect_stdout=False,
                redirect_stderr=False,
            )

    def _build_grid(self) -> Table:
        grid = Table.grid(padding=(0, 2))
        grid.add_column(style="bold cyan", no_wrap=True)
        grid.add_column()
        for label, text in self.rows.items():
            grid.add_row(label, text)
        return grid

    def status(self, label: str) -> str:
        return self.rows[label].plain

    def attach(self, channel: ProgressChannel) -> None:
        channel.subscribe(self.on_progress)
        channel.subscribe_chunks(self.on_chunk)

    def start(self) -> None:
        if self.live is None:
            return
        self.run_start_time = time.time()
        self.live.start()
        self._stop_event.clear()
        self._task = asyncio.create_task(self._auto_refresh())

    async def stop(self) -> None:
        """Stop the refresh task and the live session; the shared console stays open."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        if self.live is not None and self.live.is_started:
            self.live.stop()

    async def _auto_refresh(self) -> None:
        while not self._stop_event.is_set():
            self.refresh()
            await asyncio.sleep(1)

    def on_progress(self, event: ProgressEvent) -> None:
        if isinstance(event, PhaseProgress):
            self._set("Progress", f"{event.phase.value} {event.current}/{event.total}")
        elif isinstance(event, SegmentProgress):
            self._set(
                "Progress",
                f"segment {event.current_segment}/{event.total_segments} ({event.status.value})",
            )
        else:
            return
        if event.message:
            self._set("Step", event.message)
        self.refresh()

    def on_chunk(self, chunk: ScriptChunk) -> None:
        self.nodes_received += len(chunk.nodes)
        if chunk.is_initial and chunk.script is not None:
            self._set("Script", chunk.script.title)
        self._set("Nodes", str(self.nodes_received))
        self._set("Step", f"Segment {chunk.segment} received")
        self.refresh()

    def _set(self, label: str, value: str) -> None:
        if self.live is not None:
            self.rows[label].plain = value

    def refresh(self) -> None:
        """Recompute the timing rows and redraw the panel."""
        if self.live is None:
            return
        elapsed = time.time() - self.run_start_time if self.run_start_time else 0.0
        requests = llm_service.get_statistics().get("completions_requested", 0)
        per_minute = requests / (elapsed / 60) if elapsed > 0 else 0.0
        self.rows["Requests/Min"].plain = f"{per_minute:.2f}"
        self.rows["Elapsed"].plain = time.strftime("%H:%M:%S", time.gmtime(elapsed))
        try:
            self.live.refresh()
        except Exception as e:
            logger.debug("Rich live refresh failed", error=str(e))
