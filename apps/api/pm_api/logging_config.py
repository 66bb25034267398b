from __future__ import annotations

import logging

import colorlog

LOGGER_NAME = "pm_api"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
  """Attach a colored console handler to the package logger. Safe to call more than once."""
  if isinstance(level, str):
    level = logging.getLevelName(level.strip().upper())
    if not isinstance(level, int):
      level = logging.INFO

  logger = logging.getLogger(LOGGER_NAME)
  logger.setLevel(level)
  if logger.handlers:
    return logger

  handler = colorlog.StreamHandler()
  handler.setFormatter(
    colorlog.ColoredFormatter(
      "%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s",
      datefmt="%Y-%m-%d %H:%M:%S",
      log_colors={
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "red,bg_white",
      },
    )
  )
  logger.addHandler(handler)
  logger.propagate = False
  return logger
