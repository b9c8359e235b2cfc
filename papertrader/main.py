"""Entrypoint for the paper-trading TUI."""
from __future__ import annotations

import logging

from .config import ClientConfig, load_config
from .ui import PaperTradeApp

_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(config: ClientConfig) -> None:
    # The terminal belongs to the TUI, so logs only go to a file when asked.
    if not config.log_file:
        logging.getLogger("papertrader").addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=_LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        filename=config.log_file,
    )
    logging.captureWarnings(True)
    for name, lvl in {
        "urllib3": logging.WARNING,
        "websockets": logging.INFO,
        "websockets.client": logging.INFO,
    }.items():
        logging.getLogger(name).setLevel(lvl)


def main() -> None:
    config = load_config()
    configure_logging(config)
    PaperTradeApp(config).run()


if __name__ == "__main__":
    main()
