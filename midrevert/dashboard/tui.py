"""
Rich CLI Dashboard.
"""
from datetime import datetime
from rich.table import Table
from rich.layout import Layout
from rich.panel import Panel
from rich.console import Group
from rich.text import Text
from rich import box

from ..common.types import format_price


class Dashboard:
    def __init__(self, loop, journal=None):
        self.loop = loop
        self.journal = journal
        self.start_time = datetime.now()

    def get_stats(self):
        stats = self.loop.get_stats()
        runtime = datetime.now() - self.start_time
        stats["runtime"] = str(runtime).split('.')[0]
        return stats

    def generate_header(self) -> Panel:
        stats = self.get_stats()

        table = Table(show_header=False, box=None, expand=True)
        table.add_column("Key", style="cyan bold")
        table.add_column("Value", justify="right")
        table.add_column("Key2", style="cyan bold")
        table.add_column("Value2", justify="right")

        status = "[green]RUNNING[/green]" if self.loop.running else "[red]STOPPED[/red]"
        table.add_row(
            "Runtime:", stats['runtime'],
            "Symbol:", stats['symbol'],
        )
        table.add_row(
            "Ticks:", str(stats['ticks']),
            "Lifecycles:", str(stats['lifecycles']),
        )
        table.add_row(
            "Malformed/Dropped:", f"{stats['malformed']}/{stats['dropped']}",
            "Status:", status,
        )

        return Panel(table, title="[bold blue]MIDREVERT - LIVE MONITOR[/bold blue]", border_style="blue", box=box.DOUBLE)

    def generate_table(self) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True, box=box.ROUNDED)

        table.add_column("Symbol", style="white bold", width=12)
        table.add_column("Price", justify="right", style="yellow")
        table.add_column("Average", justify="right")
        table.add_column("Window", justify="right", style="dim white")
        table.add_column("Signal", justify="center")
        table.add_column("Last Action", justify="center")
        table.add_column("Lifecycle", justify="center")
        table.add_column("Errors", justify="right")

        s = self.get_stats()
        signal_color = {"BUY": "green", "SELL": "red"}.get(s['signal'], "white")
        state_color = "white" if s['state'] == "IDLE" else "yellow"
        error_color = "red" if s['errors'] else "dim white"

        table.add_row(
            s['symbol'],
            format_price(s['price']) if s['price'] is not None else "-",
            format_price(s['average']) if s['average'] is not None else "-",
            s['window'],
            f"[{signal_color}]{s['signal']}[/{signal_color}]",
            s['last_action'],
            f"[{state_color}]{s['state']}[/{state_color}]",
            f"[{error_color}]{s['errors']}[/{error_color}]",
        )

        return table

    def generate_log_panel(self) -> Panel:
        lines = list(self.journal.recent) if self.journal else []
        log_text = Group(*[Text(line) for line in lines])
        return Panel(log_text, title="Decision Journal", border_style="blue")

    def create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=6),
            Layout(name="table", size=7),
            Layout(name="log", ratio=1),
            Layout(name="footer", size=3)
        )

        layout["header"].update(self.generate_header())
        layout["table"].update(Panel(self.generate_table(), title="Engine", border_style="blue"))
        layout["log"].update(self.generate_log_panel())
        layout["footer"].update(Panel(Text("Press Ctrl+C to Stop", justify="center", style="dim"), box=box.SIMPLE))

        return layout
