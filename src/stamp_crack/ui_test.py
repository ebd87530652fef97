import io

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stamp_crack.state_queue import SingleSlotQueue
from stamp_crack.state_snapshot import SearchSnapshot
from stamp_crack.ui import render, ui_loop


def make_snapshot(**overrides) -> SearchSnapshot:
    values = dict(
        state_version=3,
        complete=False,
        seeds_total=1000,
        seeds_checked=250,
        current_seed=1467120900,
        upper_seed=1467121149,
        lower_seed=1467120150,
        workers=2,
        elapsed=2.0,
    )
    values.update(overrides)
    return SearchSnapshot(**values)


def to_text(renderable) -> str:
    console = Console(file=io.StringIO(), width=120, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


class TestSearchSnapshot:
    """Test suite for derived snapshot values"""

    def test_percent_complete(self):
        """Test percentage of seeds checked"""
        assert make_snapshot().percent_complete == 25.0

    def test_seeds_per_second(self):
        """Test the search rate"""
        assert make_snapshot().seeds_per_second == 125.0
        assert make_snapshot(elapsed=0).seeds_per_second == 0.0


class TestRender:
    """Test suite for the live progress table"""

    def test_waiting(self):
        """Test a placeholder is shown before the first snapshot"""
        assert isinstance(render(None), Panel)

    def test_searching(self):
        """Test a running search shows its position"""
        table = render(make_snapshot())
        assert isinstance(table, Table)
        text = to_text(table)
        assert "1467120900" in text
        assert "searching" in text
        assert "25.00%" in text

    def test_found(self):
        """Test the found seed is shown"""
        text = to_text(render(make_snapshot(complete=True, found_seed=1467120901)))
        assert "found seed 1467120901" in text

    def test_exhausted(self):
        """Test a finished search without a match says so"""
        text = to_text(render(make_snapshot(complete=True, seeds_checked=1000)))
        assert "finished without a match" in text


class TestUiLoop:
    """Test suite for the UI loop"""

    def test_exits_when_queue_closes(self):
        """Test the loop drains the queue and returns on close"""
        queue: SingleSlotQueue[SearchSnapshot] = SingleSlotQueue()
        queue.publish(make_snapshot(complete=True, found_seed=1))
        queue.close()
        ui_loop(queue, console=Console(file=io.StringIO(), width=120))
