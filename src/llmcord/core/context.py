from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import AppConfig

if TYPE_CHECKING:
    from ..llm import ModelClient


@dataclass(frozen=True)
class AppContext:
    """Everything components need after startup; never mutated once built."""

    config: AppConfig
    models: tuple[str, ...]
    model_client: "ModelClient"
