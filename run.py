#!/usr/bin/env python3
"""
Beatfolio Launcher
Single entry point for the API server and the studio setup.

    python run.py            interactive menu
    python run.py --daemon   start the API server directly
"""
import logging
import sqlite3
import sys

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from shared.config import AppConfig, default_config_path
from shared.constants import DEFAULT_API_PORT
from shared.database import DatabaseManager

console = Console()


class BeatfolioLauncher:
    def __init__(self):
        self.config = AppConfig.load()
        self.stats = {"beats": 0, "comments": 0, "likes": 0, "dislikes": 0}
        self._load_stats()

    def _load_stats(self):
        try:
            self.stats = DatabaseManager(self.config.database_path).get_stats()
        except (OSError, sqlite3.Error) as e:
            console.print(f"[yellow]Database unavailable: {e}[/yellow]")

    def is_configured(self):
        return default_config_path().exists() or bool(self.config.admin_password)

    def show_menu(self):
        console.clear()
        stats_line = (
            f"[dim]Catalog: {self.stats['beats']} beats | {self.stats['comments']} comments | "
            f"👍 {self.stats['likes']}  👎 {self.stats['dislikes']}[/dim]"
        )
        console.print(Panel.fit(
            "[bold cyan]BEATFOLIO[/bold cyan] [white]Beat showcase[/white]\n" + stats_line,
            border_style="cyan"
        ))

        table = Table(show_header=False, box=None)
        table.add_column("Key", style="bold magenta")
        table.add_column("Option", style="white")
        table.add_row("1", f"Start API server (port {DEFAULT_API_PORT})")
        table.add_row("2", "Studio setup (storage, admin password)")
        table.add_row("q", "Exit")
        console.print(Panel(table, title="Main Menu", border_style="dim"))

        choice = Prompt.ask("[bold cyan]>[/bold cyan] Select an option", choices=["1", "2", "q"], default="1")
        if choice == "1":
            self.start_server()
        elif choice == "2":
            self.run_setup()
        else:
            sys.exit(0)

    def start_server(self):
        from shared.api import start_api
        start_api(self.config)

    def run_setup(self):
        from studio.cli import cli
        cli.main(args=["init"], standalone_mode=False)
        self.config = AppConfig.load()
        self._load_stats()

    def run(self):
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

        if "--daemon" in sys.argv:
            if not self.is_configured():
                print("Daemon: no configuration found, run 'python -m studio init' first")
                return
            self.start_server()
            return

        if not self.is_configured():
            console.print(Panel("[bold yellow]First Run Detected![/bold yellow]\nLaunching setup...",
                                border_style="yellow"))
            self.run_setup()

        while True:
            self.show_menu()


if __name__ == "__main__":
    BeatfolioLauncher().run()
