"""
Configuration management and loading.

Handles application settings for generation, billing, storage, export and
the HTTP server.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_DB_PATH = "note_forge.db"


@dataclass(frozen=True)
class GenerationSettings:
    """Upstream generation service settings."""
    model: str = "gemini-2.0-flash"
    base_url: Optional[str] = "https://generativelanguage.googleapis.com/v1beta/openai/"
    api_key_env: str = "GEMINI_API_KEY"
    max_attempts: int = 3
    retry_delay_seconds: float = 2.0
    temperature: float = 0.7
    single_page_max_tokens: int = 8192
    multi_page_max_tokens: int = 32768
    request_timeout_seconds: float = 60.0
    request_deadline_seconds: Optional[float] = 90.0

    def __post_init__(self):
        """Validate generation values."""
        if not self.model or not self.model.strip():
            raise ValueError("generation.model is required and cannot be empty")
        if self.max_attempts < 1:
            raise ValueError("generation.max_attempts must be >= 1")
        if self.retry_delay_seconds < 0:
            raise ValueError("generation.retry_delay_seconds must be >= 0")
        if self.single_page_max_tokens <= 0 or self.multi_page_max_tokens <= 0:
            raise ValueError("generation max token limits must be > 0")
        if self.multi_page_max_tokens < self.single_page_max_tokens:
            raise ValueError("generation.multi_page_max_tokens must be >= single_page_max_tokens")
        if self.request_timeout_seconds <= 0:
            raise ValueError("generation.request_timeout_seconds must be > 0")
        if self.request_deadline_seconds is not None and self.request_deadline_seconds <= 0:
            raise ValueError("generation.request_deadline_seconds must be > 0 or null")


@dataclass(frozen=True)
class TierConfig:
    """Per-tier quota configuration."""
    monthly_limit: Optional[int] = None

    def __post_init__(self):
        if self.monthly_limit is not None and self.monthly_limit < 0:
            raise ValueError("monthly_limit must be >= 0 or null")


def _default_tiers() -> Dict[str, TierConfig]:
    return {
        "free": TierConfig(monthly_limit=None),
        "pro": TierConfig(monthly_limit=None),
        "enterprise": TierConfig(monthly_limit=None),
    }


@dataclass(frozen=True)
class BillingSettings:
    """Coin ledger settings."""
    coins_per_page: int = 1
    signup_bonus: int = 10
    default_tier: str = "free"
    tiers: Dict[str, TierConfig] = field(default_factory=_default_tiers)

    def __post_init__(self):
        if self.coins_per_page < 1:
            raise ValueError("billing.coins_per_page must be >= 1")
        if self.signup_bonus < 0:
            raise ValueError("billing.signup_bonus must be >= 0")
        if self.default_tier not in self.tiers:
            raise ValueError(f"billing.default_tier '{self.default_tier}' is not a configured tier")

    def get_tier(self, tier: str) -> TierConfig:
        """Get configuration for a tier, falling back to the default tier."""
        return self.tiers.get(tier, self.tiers[self.default_tier])


@dataclass(frozen=True)
class StorageSettings:
    """Persistence settings."""
    db_path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class ExportSettings:
    """Rasterizer and document export settings."""
    min_width: int = 600
    max_width: int = 1200
    device_scale: float = 2.0
    settle_delay_seconds: float = 0.5
    page_size: str = "A4"
    page_margin: float = 36.0

    def __post_init__(self):
        if self.min_width <= 0:
            raise ValueError("export.min_width must be > 0")
        if self.max_width < self.min_width:
            raise ValueError("export.max_width must be >= export.min_width")
        if self.device_scale <= 0:
            raise ValueError("export.device_scale must be > 0")
        if self.settle_delay_seconds < 0:
            raise ValueError("export.settle_delay_seconds must be >= 0")
        if self.page_size.upper() not in ("A4", "LETTER"):
            raise ValueError("export.page_size must be one of: ['A4', 'LETTER']")
        if self.page_margin < 0:
            raise ValueError("export.page_margin must be >= 0")


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server settings."""
    api_tokens: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Settings:
    """Complete application configuration."""
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    billing: BillingSettings = field(default_factory=BillingSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    server: ServerSettings = field(default_factory=ServerSettings)


def default_settings() -> Settings:
    """Return the built-in default configuration."""
    return Settings()


def load_settings(path: str) -> Settings:
    """Load and validate application configuration from YAML file.

    Strict validation ensures no silent misconfigurations: unknown keys are
    rejected rather than ignored.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = {'generation', 'billing', 'storage', 'export', 'server'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    generation = GenerationSettings(**_section(raw_config, 'generation', GenerationSettings))
    billing = _parse_billing(raw_config.get('billing') or {})
    storage = StorageSettings(**_section(raw_config, 'storage', StorageSettings))
    export = ExportSettings(**_section(raw_config, 'export', ExportSettings))
    server = _parse_server(raw_config.get('server') or {})

    return Settings(
        generation=generation,
        billing=billing,
        storage=storage,
        export=export,
        server=server
    )


def _section(raw_config: Dict, name: str, settings_cls) -> Dict[str, Any]:
    """Extract a flat section and reject keys the settings class doesn't know."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    allowed_keys = set(settings_cls.__dataclass_fields__.keys())
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return dict(data)


def _parse_billing(data: Dict) -> BillingSettings:
    """Parse and validate the billing section.

    Args:
        data: Billing configuration data

    Returns:
        Validated BillingSettings

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'billing' must be a dictionary")

    allowed_keys = {'coins_per_page', 'signup_bonus', 'default_tier', 'tiers'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in billing: {unknown_keys}")

    kwargs = {k: v for k, v in data.items() if k != 'tiers'}

    if 'tiers' in data:
        tiers_data = data['tiers']
        if not isinstance(tiers_data, dict) or not tiers_data:
            raise ValueError("'billing.tiers' must be a non-empty dictionary")

        tiers = {}
        for tier_name, tier_data in tiers_data.items():
            tier_data = tier_data or {}
            if not isinstance(tier_data, dict):
                raise ValueError(f"Tier '{tier_name}' must be a dictionary")
            unknown_tier_keys = set(tier_data.keys()) - {'monthly_limit'}
            if unknown_tier_keys:
                raise ValueError(f"Unknown keys in billing.tiers.{tier_name}: {unknown_tier_keys}")

            limit = tier_data.get('monthly_limit')
            if limit is not None and not isinstance(limit, int):
                raise ValueError(f"'monthly_limit' in billing.tiers.{tier_name} must be an integer or null")
            tiers[tier_name] = TierConfig(monthly_limit=limit)
        kwargs['tiers'] = tiers

    return BillingSettings(**kwargs)


def _parse_server(data: Dict) -> ServerSettings:
    """Parse the server section; api_tokens maps bearer tokens to user ids."""
    if not isinstance(data, dict):
        raise ValueError("'server' must be a dictionary")

    unknown_keys = set(data.keys()) - {'api_tokens'}
    if unknown_keys:
        raise ValueError(f"Unknown keys in server: {unknown_keys}")

    tokens = data.get('api_tokens') or {}
    if not isinstance(tokens, dict):
        raise ValueError("'server.api_tokens' must be a dictionary")
    for token, user_id in tokens.items():
        if not isinstance(token, str) or not isinstance(user_id, str) or not user_id:
            raise ValueError("'server.api_tokens' must map token strings to user id strings")

    return ServerSettings(api_tokens=dict(tokens))
