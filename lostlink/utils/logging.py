"""Shared logging helpers for LostLink."""

import logging
from typing import Union


def configure_logging(*, level: Union[int, str] = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Mirrors ``logging.basicConfig`` with a terse format suitable for server
    output. Pass ``force=True`` to reconfigure from tests or alternative
    entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
