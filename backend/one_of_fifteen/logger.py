import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install

# keep library frames out of rendered tracebacks
import starlette, uvicorn, websockets

console = Console()


def setup_logging(level: str = "INFO"):
    FORMAT = "%(message)s"
    logging_handler = RichHandler(
        level=level.upper(),
        console=console,
        rich_tracebacks=True,
        tracebacks_suppress=[starlette, uvicorn, websockets],
    )

    logging.basicConfig(
        level="NOTSET", format=FORMAT, datefmt="[%X]", handlers=[logging_handler], force=True
    )

    install(console=console)
