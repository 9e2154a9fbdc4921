"""Bootstrap: wires config, logging, adapter and scripts into a robot."""

from __future__ import annotations

import importlib
import logging
import logging.handlers
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

import structlog

from heybot.adapters.shell import ShellAdapter
from heybot.core.config import HeybotConfig
from heybot.core.robot import Robot
from heybot.exceptions import AdapterError

if TYPE_CHECKING:
    from heybot.adapters.base import Adapter

logger = structlog.get_logger()

AdapterFactory = Callable[[Robot], "Adapter"]
Script = Callable[[Robot], None]

BUILTIN_ADAPTERS: dict[str, AdapterFactory] = {
    "shell": ShellAdapter,
}


def _configure_logging(config: HeybotConfig) -> None:
    """Set up structlog with console output and optional rotating JSON file handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    # Console handler: colored dev-friendly output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    # File handler: JSON lines for machine parsing
    if config.log_dir is not None:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.log_dir / "heybot.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def resolve_adapter(target: str) -> AdapterFactory:
    """Return a built-in adapter by name, or import one from ``module:attribute``."""
    if target in BUILTIN_ADAPTERS:
        return BUILTIN_ADAPTERS[target]

    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise AdapterError(
            f"Unknown adapter {target!r}: use one of {sorted(BUILTIN_ADAPTERS)} "
            "or 'package.module:Attribute'"
        )
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise AdapterError(f"Cannot load adapter {target!r}: {e}") from e
    if not callable(factory):
        raise AdapterError(f"Adapter {target!r} is not callable")
    return factory


def build_robot(
    config: HeybotConfig | None = None,
    adapter: AdapterFactory | None = None,
    scripts: Iterable[Script] = (),
) -> Robot:
    if config is None:
        config = HeybotConfig()

    _configure_logging(config)

    robot = Robot(name=config.name, alias=config.alias)
    robot.load_adapter(adapter or resolve_adapter(config.adapter))

    for script in scripts:
        script(robot)
        logger.info(
            "script_loaded",
            script=getattr(script, "__qualname__", repr(script)),
        )

    logger.info(
        "robot_built",
        name=robot.name,
        alias=robot.alias,
        listeners=len(robot.listeners),
    )
    return robot
