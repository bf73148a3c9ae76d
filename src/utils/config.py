from dataclasses import dataclass, field, fields
from typing import Dict, Any, Optional
from dotenv import load_dotenv
import yaml
import os

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"

class ConfigError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass

@dataclass(frozen=True)
class PipelineParameters:
    """Pipeline tunables"""
    alert_threshold_sol: float = 0.1      # Alert when a balance moves by more than this
    queue_capacity: int = 100             # Signatures buffered between feed and dispatcher
    max_concurrency: int = 50             # Concurrent lookups, 0 for unbounded fan-out
    lookup_attempts: int = 3              # Tries before a missing transaction is given up on
    lookup_retry_delay: float = 0.5       # Seconds between lookup tries
    alert_timeout: float = 10.0           # Seconds per notification request
    delivery_policy: str = 'single'       # 'single' or 'retry'
    delivery_attempts: int = 3            # Only used by the 'retry' policy
    delivery_backoff: float = 1.0         # Base backoff for the 'retry' policy
    commitment: str = 'processed'         # Subscription commitment level
    heartbeat_interval: int = 30          # Seconds between health summaries
    log_level: str = 'INFO'               # Console verbosity, the file log is always DEBUG
    explorer_url: str = 'https://solscan.io/tx/'
    program_id: str = SYSTEM_PROGRAM_ID

# (field, lowest allowed value)
_MINIMUMS = (
    ('queue_capacity', 1),
    ('max_concurrency', 0),
    ('lookup_attempts', 1),
    ('lookup_retry_delay', 0),
    ('alert_timeout', 0.001),
    ('delivery_attempts', 1),
    ('delivery_backoff', 0),
    ('heartbeat_interval', 1),
)
_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

@dataclass(frozen=True)
class MonitorConfig:
    ws_url: str
    rpc_url: str
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_proxy: Optional[str] = None
    pipeline: PipelineParameters = field(default_factory=PipelineParameters)

    @property
    def alerts_enabled(self) -> bool:
        return bool(self.telegram_token and self.telegram_chat_id)

def _optional(env: Dict[str, str], key: str) -> Optional[str]:
    value = env.get(key, '').strip()
    return value or None

def _coerce(name: str, expected: type, value: Any) -> Any:
    """Convert a YAML value to the field's declared type"""
    if isinstance(value, bool) or value is None:
        raise ConfigError(f"{name} must be a {expected.__name__}, got {value!r}")
    if expected is str:
        if not isinstance(value, str):
            raise ConfigError(f"{name} must be a string, got {value!r}")
        return value
    try:
        if expected is int and isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            return int(value)
        return expected(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a {expected.__name__}, got {value!r}") from e

def load_pipeline_parameters(config_path: str) -> PipelineParameters:
    """Load pipeline tunables from YAML, falling back to defaults"""
    if not os.path.exists(config_path):
        return PipelineParameters()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    overrides = config_data.get('pipeline') or {}
    if not isinstance(overrides, dict):
        raise ConfigError(f"'pipeline' in {config_path} must be a mapping")

    types = {f.name: f.type for f in fields(PipelineParameters)}
    unknown = set(overrides) - set(types)
    if unknown:
        raise ConfigError(f"Unknown pipeline parameters in {config_path}: {sorted(unknown)}")

    params = PipelineParameters(**{
        name: _coerce(name, types[name], value) for name, value in overrides.items()
    })

    for name, minimum in _MINIMUMS:
        if getattr(params, name) < minimum:
            raise ConfigError(f"{name} must be at least {minimum}")
    if params.delivery_policy not in ('single', 'retry'):
        raise ConfigError(f"Unknown delivery_policy: {params.delivery_policy}")
    if params.log_level.upper() not in _LOG_LEVELS:
        raise ConfigError(f"Unknown log_level: {params.log_level}")
    return params

def load_config(config_path: Optional[str] = None, env: Optional[Dict[str, str]] = None) -> MonitorConfig:
    """
    Read process configuration once at startup.

    WS_URL and RPC_URL are required. TELEGRAM_TOKEN and TELEGRAM_CHAT_ID are
    optional; without both the monitor runs in observe-only mode.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    ws_url = _optional(env, 'WS_URL')
    rpc_url = _optional(env, 'RPC_URL')
    missing = [name for name, value in (('WS_URL', ws_url), ('RPC_URL', rpc_url)) if not value]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    config_path = config_path or env.get('WHALE_CONFIG', 'config.yaml')

    return MonitorConfig(
        ws_url=ws_url,
        rpc_url=rpc_url,
        telegram_token=_optional(env, 'TELEGRAM_TOKEN'),
        telegram_chat_id=_optional(env, 'TELEGRAM_CHAT_ID'),
        telegram_proxy=_optional(env, 'TELEGRAM_PROXY'),
        pipeline=load_pipeline_parameters(config_path),
    )
