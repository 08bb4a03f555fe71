"""

# Configuration

Controller settings are read from an optional YAML file & then overlaid by `SANDLINK_*` environment variables.

```yaml
log_level: DEBUG
handshake_timeout: 40
pending_warn_limit: 32
```

"""
from __future__ import annotations
import os, sys, pathlib, yaml
from collections.abc import Mapping
from typing import TypedDict
from loguru import logger

from .errors import ConfigError

_LOG_LEVELS = ('TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL')

class ControllerConfig(TypedDict):
  log_level: str
  """The loguru Log Level"""
  handshake_timeout: float | None
  """Seconds to wait for a client's handshake; None waits forever"""
  pending_warn_limit: int | None
  """Warn once a client's queue of pending listeners grows past this size; None disables the warning"""

  @staticmethod
  def factory(**kwargs) -> ControllerConfig:
    return {
      'log_level': 'INFO',
      'handshake_timeout': 40.0,
      'pending_warn_limit': None,
    } | kwargs

  @staticmethod
  def validate(cfg: ControllerConfig):
    if not isinstance(cfg, dict): raise ConfigError("Configuration must be a dictionary")
    unknown = set(cfg.keys()) - set(ControllerConfig.__annotations__.keys())
    if unknown: raise ConfigError(f"Unknown Configuration keys: {', '.join(sorted(unknown))}")
    if cfg.get('log_level') not in _LOG_LEVELS: raise ConfigError(f"'log_level' must be one of {', '.join(_LOG_LEVELS)}")
    timeout = cfg.get('handshake_timeout')
    if timeout is not None:
      if isinstance(timeout, bool) or not isinstance(timeout, (int, float)): raise ConfigError("'handshake_timeout' must be a number")
      if timeout <= 0: raise ConfigError("'handshake_timeout' must be positive")
    limit = cfg.get('pending_warn_limit')
    if limit is not None:
      if isinstance(limit, bool) or not isinstance(limit, int): raise ConfigError("'pending_warn_limit' must be an integer")
      if limit < 1: raise ConfigError("'pending_warn_limit' must be at least 1")

def _parse_optional(value: str, cast: type) -> float | int | None:
  if value.strip().lower() in ('', 'none', 'null'): return None
  try: return cast(value)
  except ValueError as e: raise ConfigError(f"Could not parse `{value}` as {cast.__name__}") from e

def load_config(
  env: Mapping[str, str] = os.environ,
  path: pathlib.Path | str | None = None,
) -> ControllerConfig:
  """Load the Controller Config from a YAML file (if any) & the environment."""
  cfg = ControllerConfig.factory()
  if path is None and 'SANDLINK_CONFIG' in env: path = env['SANDLINK_CONFIG']
  if path is not None:
    path = pathlib.Path(path)
    logger.debug(f"Loading Configuration from {path.as_posix()}")
    if not path.is_file(): raise ConfigError(f"Configuration file '{path}' does not exist")
    file_cfg = yaml.safe_load(path.read_text()) or {}
    if not isinstance(file_cfg, dict): raise ConfigError(f"Configuration file '{path}' must contain a mapping")
    cfg |= file_cfg
  if 'SANDLINK_LOG_LEVEL' in env: cfg['log_level'] = env['SANDLINK_LOG_LEVEL']
  elif 'LOG_LEVEL' in env: cfg['log_level'] = env['LOG_LEVEL']
  if 'SANDLINK_HANDSHAKE_TIMEOUT' in env: cfg['handshake_timeout'] = _parse_optional(env['SANDLINK_HANDSHAKE_TIMEOUT'], float)
  if 'SANDLINK_PENDING_WARN_LIMIT' in env: cfg['pending_warn_limit'] = _parse_optional(env['SANDLINK_PENDING_WARN_LIMIT'], int)
  if isinstance(cfg.get('log_level'), str): cfg['log_level'] = cfg['log_level'].upper()
  ControllerConfig.validate(cfg)
  logger.trace(f"Loaded Configuration: {cfg}")
  return cfg

def setup_logging(log_level: str = os.environ.get('LOG_LEVEL', 'INFO')):
  logger.remove()
  logger.add(sys.stderr, level=log_level, enqueue=True, colorize=True)
  logger.trace(f'Log level set to {log_level}')

def finalize_logging():
  logger.complete()
