import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()


def setup_logging(log_file: Optional[str] = "logs/midrevert.log", level: str = "INFO",
                  component_name: str = "Engine", use_console: bool = True):
    """
    Sets up logging to both console (Rich) and file.
    With the live dashboard running, pass use_console=False so log lines
    don't tear the display; the file still gets everything.
    """
    # Remove existing handlers to avoid duplicates during re-runs
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    handlers = []
    if use_console:
        handlers.append(RichHandler(console=console, rich_tracebacks=True, show_path=False))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(file_handler)
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )
    return logging.getLogger(component_name)
