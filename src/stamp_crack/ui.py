from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from stamp_crack.state_queue import SingleSlotQueue
from stamp_crack.state_snapshot import SearchSnapshot


COLORS = {
    "label": "bold cyan",
    "seed": "bold yellow",
    "found": "bold spring_green2",
    "warning": "dark_orange",
    "dim": "dim",
}


def styled(value, style: str) -> str:
    return f"[{COLORS[style]}]{value}[/{COLORS[style]}]"


def render(state: Optional[SearchSnapshot]):
    """Render the search state snapshot."""
    if state is None:
        return Panel("Waiting for first update…", title="Timestamp Search", border_style="dim")

    if state.found_seed is not None:
        status = styled(f"found seed {state.found_seed}", "found")
    elif state.complete:
        status = styled("finished without a match", "warning")
    else:
        status = "searching"

    ui_table = Table(
        title=f"Seeds {state.upper_seed} → {state.lower_seed}  |  {state.workers} worker(s)  |  v{state.state_version}",
        show_header=False,
    )
    ui_table.add_column("Field", justify="right")
    ui_table.add_column("Value")

    ui_table.add_row(styled("Status", "label"), status)
    ui_table.add_row(styled("Current seed", "label"), styled(state.current_seed, "seed"))
    ui_table.add_row(
        styled("Checked", "label"),
        f"{state.seeds_checked:,} / {state.seeds_total:,}  ({state.percent_complete:.2f}%)",
    )
    ui_table.add_row(
        styled("Progress", "label"),
        ProgressBar(total=max(state.seeds_total, 1), completed=state.seeds_checked, width=40),
    )
    ui_table.add_row(styled("Rate", "label"), f"{state.seeds_per_second:,.0f} seeds/s")
    ui_table.add_row(styled("Elapsed", "label"), f"{state.elapsed:.1f}s")

    false_positives = str(state.false_positives)
    if state.false_positives:
        false_positives = styled(false_positives, "warning")
    ui_table.add_row(styled("Candidates", "label"), str(state.candidates))
    ui_table.add_row(styled("False positives", "label"), false_positives)

    return ui_table


def ui_loop(state_queue: SingleSlotQueue[SearchSnapshot], console: Optional[Console] = None) -> None:
    """Loop the UI until the queue closes. Draws on stderr by default."""
    console = console or Console(stderr=True)
    with Live(render(None), refresh_per_second=10, screen=False, console=console) as live:
        while True:
            state = state_queue.get()
            if state is None:
                break
            live.update(render(state))
