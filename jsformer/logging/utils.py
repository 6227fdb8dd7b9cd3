# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Logging helpers (secret redaction, rotating logs)."""

from __future__ import annotations

import logging
import os

from logging.handlers import RotatingFileHandler
from pathlib import Path

_REDACT_KEYS = {
    "OPENAI_API_KEY",
}


def redact(text: str) -> str:
    """Replace credential values found in provider error text."""

    if not text:
        return ""
    cleaned = text
    for key in _REDACT_KEYS:
        secret = os.environ.get(key)
        if secret and len(secret) > 4 and secret in cleaned:
            cleaned = cleaned.replace(secret, "<REDACTED>")
    return cleaned


def setup_file_logger(
    log_file: Path, name: str = "jsformer"
) -> logging.Logger:
    """Configure a rotating file logger (idempotent per file)."""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    marker = str(log_file)
    if not any(
        isinstance(handler, RotatingFileHandler)
        and getattr(handler, "_jsformer_tag", None) == marker
        for handler in logger.handlers
    ):
        handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=3
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        handler._jsformer_tag = marker  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
