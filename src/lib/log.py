"""
Verbosity-gated logging for typfence

All diagnostics go through loguru to stderr, which keeps stdout free for
the mdBook protocol (the processed book JSON is written there).

Whether a message is shown depends on the verbosity of the ProgramState
bound to the current context, so library code logs without being handed
the state. Render workers are started in a copy of the submitting
context (renderer.requests_render), which carries the binding into the
worker threads.

Message levels:
    1   progress (documents processed, failures)         -> loguru INFO
    2   detail (settings, block counts, cache activity)   -> loguru DEBUG
    3   trace (engine command lines, every fence found)   -> loguru TRACE

Usage:
    from typfence.lib.log import LOG, state_connectToLogger

    state_connectToLogger(state)          # once per entry point
    LOG(f"Processing {relative}", level=1)
    LOG(f"Running {' '.join(command)}", level=3)
"""

import sys
from contextvars import ContextVar
from typing import Any, Optional

from loguru import logger

_program_state: ContextVar[Optional[Any]] = ContextVar("program_state", default=None)

LEVEL_NAMES = {1: "INFO", 2: "DEBUG", 3: "TRACE"}

logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <5}</level> │ "
    "<cyan>{function: <20}</cyan> @ "
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()
logger.add(sys.stderr, format=logger_format, level="TRACE")


def state_connectToLogger(state: Any) -> None:
    """Bind state (anything with a `verbosity` attribute) to the current context"""
    _program_state.set(state)


def verbosity_current() -> int:
    """Verbosity of the bound state; 0 (silent) when nothing is bound"""
    state = _program_state.get()
    return getattr(state, "verbosity", 0) if state is not None else 0


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Emit message when the bound verbosity is at least level.

    The record is attributed to the caller, so the {function} and {line}
    columns point at the code that logged rather than at this helper.
    Extra keyword arguments are passed to loguru as format arguments.
    """
    if verbosity_current() < level:
        return
    level_name = LEVEL_NAMES.get(level, "TRACE")
    logger.opt(depth=1).log(level_name, message, **kwargs)
