"""
UI Renderer Module (View Layer)
Handles all Rich/UI rendering of the engine snapshot - no game logic
"""

from typing import Any, Dict, List
from rich.console import Console, Group
from rich.panel import Panel
from rich.theme import Theme
from rich.rule import Rule
from rich.table import Table
from rich.box import HEAVY
from rich.markup import escape
from core.expression import format_value

# Check log lines end with "-> <LABEL>"
_RESULT_STYLES = {
    "-> CRIT SUCCESS": "critical",
    "-> CRIT FAIL": "critical",
    "-> SUCCESS": "success",
    "-> FAIL": "failure",
}


class GameRenderer:
    """Handles all UI rendering using Rich library"""

    def __init__(self):
        """Initialize the renderer with the game theme"""
        game_theme = Theme({
            "info": "dim cyan",
            "warning": "yellow",
            "error": "bold red",
            "success": "bold green",
            "failure": "bold red",
            "critical": "bold yellow reverse",
            "story": "bold purple",
            "player": "bold white",
            "disabled": "grey50",
            "stat": "bold blue",
            "item": "bold magenta",
        })
        self.console = Console(theme=game_theme)

    def clear_screen(self):
        """Clear the console screen"""
        self.console.clear()

    def show_title(self, title_text: str):
        """Display a styled title rule"""
        self.console.print(Rule(f"[bold purple]{title_text}[/bold purple]", style="bold purple"))
        self.console.print()

    def show_dashboard(self, snapshot: Dict[str, Any]) -> Group:
        """
        Render the dashboard panels for one engine snapshot.

        Args:
            snapshot: Dict from GameEngine.snapshot()

        Returns:
            Group: Status, story, shop and log panels
        """
        panels = [
            self._status_panel(snapshot),
            self._story_panel(snapshot["node"]),
        ]
        if snapshot.get("shops"):
            panels.append(self._shop_panel(snapshot["shops"]))
        panels.append(self._log_panel(snapshot.get("log") or []))
        return Group(*panels)

    def _status_panel(self, snapshot: Dict[str, Any]) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="stat")
        table.add_column()

        table.add_row("Day", f"[stat]{snapshot['day']}[/stat]")
        for stat_id, stat in snapshot["stats"].items():
            table.add_row(stat_id, f"{format_value(stat['cur'])}/{format_value(stat['max'])}")

        capacity = snapshot.get("capacity")
        used = format_value(snapshot.get("inventory_count", 0))
        limit = "∞" if capacity is None else format_value(capacity)
        items = ", ".join(
            f"[item]{line['name']}[/item] x{format_value(line['count'])}" + (" (usable)" if line["usable"] else "")
            for line in snapshot["inventory"]
        ) or "[dim]Empty[/dim]"
        table.add_row(f"🎒 {used}/{limit}", items)

        buff_text = ", ".join(
            f"{buff['id']} ({format_value(buff['value'])})" for buff in snapshot["buffs"]
        ) or "[dim]None[/dim]"
        table.add_row("Buffs", buff_text)

        return Panel(table, title=f"[bold]{snapshot['title']}[/bold]", border_style="blue")

    def _story_panel(self, node: Dict[str, Any]) -> Panel:
        lines = [escape(node["text"]), ""]
        for number, choice in enumerate(node["choices"], start=1):
            if choice["enabled"]:
                lines.append(f"[player]{number}.[/player] {choice['text']}")
            else:
                lines.append(f"[disabled]{number}. {choice['text']}[/disabled]")
        if node["is_ending"]:
            lines.append("[critical]THE END[/critical]")

        return Panel(
            "\n".join(lines).rstrip(),
            title=f"[story]{node['title']}[/story]",
            title_align="left",
            border_style="purple",
            box=HEAVY,
            expand=True
        )

    def _shop_panel(self, shops: List[Dict[str, Any]]) -> Panel:
        lines = []
        for shop in shops:
            lines.append(f"[bold gold1]{shop['name']}[/bold gold1] [dim]({shop['id']})[/dim]")
            for entry in shop["entries"]:
                price = "" if entry["price"] is None else f" - {format_value(entry['price'])}"
                style = "item" if entry["enabled"] else "disabled"
                lines.append(f"  [{style}]{entry['name']}[/{style}] [dim]({entry['id']})[/dim]{price}")
        return Panel("\n".join(lines), title="🛒 Shops", title_align="left", border_style="gold1", expand=True)

    def _log_panel(self, log: List[str]) -> Panel:
        if log:
            log_text = "\n".join(f"• [{self._log_style(line)}]{escape(line)}[/{self._log_style(line)}]" for line in log)
        else:
            log_text = "[dim]Nothing has happened yet.[/dim]"
        return Panel(log_text, title="📜 Recent Events", title_align="left", border_style="dim", expand=True)

    @staticmethod
    def _log_style(line: str) -> str:
        for suffix, style in _RESULT_STYLES.items():
            if line.endswith(suffix):
                return style
        return "default"

    def input_prompt(self, prompt_text: str = "[player]> [/player]") -> str:
        """
        Get user input with styled prompt.

        Args:
            prompt_text: The prompt text to display

        Returns:
            str: User input string
        """
        return self.console.input(prompt_text).strip()

    def print_system_info(self, text: str):
        """Display system information message"""
        self.console.print(f"[info]{text}[/info]")

    def print_warning(self, text: str):
        """Display warning message"""
        self.console.print(f"[warning]{text}[/warning]")

    def print_error(self, text: str):
        """Display error message"""
        self.console.print(f"[error]{text}[/error]")

    def print_rule(self, text: str, style: str = "info"):
        """Display a horizontal rule"""
        self.console.print(Rule(text, style=style))
        self.console.print()

    def print(self, *args, **kwargs):
        """Direct print passthrough to console"""
        self.console.print(*args, **kwargs)
