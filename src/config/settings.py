# src/config/settings.py

"""Central configuration for the price tracker engine."""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

from src.errors import ConfigError

load_dotenv()


def _env_decimal(name: str, default: Decimal) -> Decimal:
    """Read a finite decimal override from the environment."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if not value.is_finite():
        raise ConfigError(f"{name} must be a finite number, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


class Settings:
    """Central configuration for the price tracker engine."""

    # --- Engine policy defaults ---
    # PRICE_TRACKER_* overrides are applied by EngineConfig.from_settings()
    PRICE_FLOOR: Decimal = Decimal("50")
    MIN_CLUSTER_STORES: int = 2
    HISTORY_RETENTION_DAYS: int = 30

    # --- Normalisation ---
    # Store-presentation artifacts; never model-distinguishing tokens.
    BRAND_NOISE_WORDS: frozenset[str] = frozenset({
        "apple",
        "samsung",
        "google",
        "new",
        "official",
        "genuine",
        "unlocked",
        "smartphone",
    })

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    RESULTS_DIR: Path = BASE_DIR / "results"
    LOGS_DIR: Path = BASE_DIR / "logs"
    LOG_RETENTION_DAYS: int = 30
    STATE_PATH: Path = Path(
        os.getenv("PRICE_TRACKER_STATE_PATH", str(BASE_DIR / "prices.json"))
    )

    # --- Stores (registry for the offline HTML extractor) ---
    AVAILABLE_STORES: list[dict[str, str]] = [
        {
            "id": "scan",
            "label": "Scan Malta",
            "base_url": "https://www.scanmalta.com",
        },
        {
            "id": "klikk",
            "label": "Klikk",
            "base_url": "https://www.klikk.com.mt",
        },
        {
            "id": "megatekk",
            "label": "Megatekk",
            "base_url": "https://www.megatekk.com.mt",
        },
        {
            "id": "intercomp",
            "label": "Intercomp",
            "base_url": "https://www.intercomp.com.mt",
        },
    ]


@dataclass(frozen=True)
class EngineConfig:
    """Policy knobs accepted by a reconciliation cycle."""

    price_floor: Decimal = Decimal("50")
    min_cluster_stores: int = 2
    history_retention_days: int = 30

    def __post_init__(self) -> None:
        try:
            floor = Decimal(self.price_floor)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ConfigError(
                f"price_floor must be a number, got {self.price_floor!r}"
            ) from exc
        # NaN would raise InvalidOperation on the comparison below.
        if not floor.is_finite():
            raise ConfigError(
                f"price_floor must be finite, got {self.price_floor!r}"
            )
        if floor < 0:
            raise ConfigError("price_floor must be non-negative")
        if self.min_cluster_stores < 2:
            raise ConfigError(
                "min_cluster_stores must be at least 2, "
                f"got {self.min_cluster_stores}"
            )
        if self.history_retention_days < 0:
            raise ConfigError("history_retention_days must be non-negative")

    @classmethod
    def from_settings(cls) -> "EngineConfig":
        """Build the engine config from Settings plus PRICE_TRACKER_* overrides.

        Raises:
            ConfigError: an override is malformed or out of range.
        """
        return cls(
            price_floor=_env_decimal(
                "PRICE_TRACKER_PRICE_FLOOR", Settings.PRICE_FLOOR
            ),
            min_cluster_stores=_env_int(
                "PRICE_TRACKER_MIN_CLUSTER_STORES", Settings.MIN_CLUSTER_STORES
            ),
            history_retention_days=_env_int(
                "PRICE_TRACKER_RETENTION_DAYS", Settings.HISTORY_RETENTION_DAYS
            ),
        )
