"""Console output with Rich, or plain JSON for machine consumers.

The ConsoleManager adapts output to:
- Rich panels, tables and log rendering for humans
- JSON documents on stdout when ``json_output`` is set (CI, scripts)
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime
from typing import Any, Dict

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table


class ConsoleManager:
    """Manages console output with Rich integration."""

    def __init__(self, verbose: bool = False, json_output: bool = False):
        self.verbose = verbose
        self.json_output = json_output
        # Diagnostics go to stderr so stdout stays clean for results
        self.console = None if json_output else Console(stderr=True)
        self._lock = threading.RLock()

    def setup_logging(self, logger: logging.Logger) -> None:
        """Attach a Rich (or plain stderr) handler to ``logger`` once."""

        def _has_handler_of_type(h_type):
            return any(isinstance(h, h_type) for h in logger.handlers)

        if self.json_output:
            if not _has_handler_of_type(logging.StreamHandler):
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(logging.Formatter("%(message)s"))
                logger.addHandler(handler)
        elif not _has_handler_of_type(RichHandler):
            logger.addHandler(
                RichHandler(
                    console=self.console,
                    show_time=True,
                    show_path=self.verbose,
                    rich_tracebacks=True,
                )
            )
        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def print_stage(self, stage: str, status: str = "starting") -> None:
        """Print stage information with appropriate renderer."""
        if self.json_output:
            print(
                json.dumps({"timestamp": self._get_timestamp(), "stage": stage, "status": status}),
                file=sys.stderr,
            )
            return

        status_color = {
            "starting": "blue",
            "complete": "green",
            "error": "red",
            "warning": "yellow",
        }.get(status, "white")
        with self._lock:
            self.console.print(Panel(f"[bold]{stage}[/bold]", style=status_color, padding=(0, 1)))

    def print_result(self, title: str, payload: Dict[str, Any]) -> None:
        """Print a result document as JSON on stdout or as a Rich table.

        Long text fields (transcripts) are printed below the table rather than
        inside it.
        """
        if self.json_output:
            print(json.dumps(payload, ensure_ascii=False))
            return

        success = payload.get("success", False)
        table = Table(title=title, show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green" if success else "red")

        long_text = None
        for key, value in payload.items():
            if key in ("transcript", "text") and value:
                long_text = value
                continue
            table.add_row(key, str(value))

        with self._lock:
            self.console.print(table)
            if long_text:
                self.console.print(Panel(long_text, title="Transcript", padding=(1, 2)))

    def _get_timestamp(self) -> str:
        """Get ISO timestamp for JSON output."""
        return datetime.now().isoformat()
