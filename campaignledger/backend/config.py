"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_TOKENS_PER_HEX = 3
DEFAULT_STARTING_RP = 5


@dataclass(frozen=True)
class BackendSettings:
    host: str
    port: int
    log_level: str
    max_tokens_per_hex: int
    starting_rp: int


def load_settings() -> BackendSettings:
    port_raw = os.getenv("CAMPAIGNLEDGER_PORT", "8000")
    max_tokens_raw = os.getenv("CAMPAIGNLEDGER_MAX_TOKENS_PER_HEX", str(DEFAULT_MAX_TOKENS_PER_HEX))
    starting_rp_raw = os.getenv("CAMPAIGNLEDGER_STARTING_RP", str(DEFAULT_STARTING_RP))
    return BackendSettings(
        host=os.getenv("CAMPAIGNLEDGER_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("CAMPAIGNLEDGER_LOG_LEVEL", "INFO").upper(),
        max_tokens_per_hex=int(max_tokens_raw),
        starting_rp=int(starting_rp_raw),
    )
