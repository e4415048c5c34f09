"""
Flowsmith Configuration Module

Centralized configuration from environment variables.
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional


@dataclass
class BundlerConfig:
    """Bundler settings (build directory, timeout, output shape)."""
    build_dir: str = tempfile.gettempdir()
    timeout_seconds: float = 30.0
    minify: bool = True


@dataclass
class FlowsmithConfig:
    """Main configuration container."""
    bundler: BundlerConfig
    debug: bool = False
    log_level: str = "INFO"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def load_config() -> FlowsmithConfig:
    """
    Load configuration from environment variables.

    Environment Variables:
        FLOWSMITH_BUILD_DIR: Directory for transient build inputs (default: system temp dir)
        FLOWSMITH_BUNDLE_TIMEOUT: Bundle build timeout in seconds (default: 30)
        FLOWSMITH_MINIFY: Minify bundles by default (default: true)
        FLOWSMITH_DEBUG: Enable debug mode (default: false)
        FLOWSMITH_LOG_LEVEL: Log level (default: INFO)
    """
    bundler = BundlerConfig(
        build_dir=os.getenv("FLOWSMITH_BUILD_DIR", tempfile.gettempdir()),
        timeout_seconds=float(os.getenv("FLOWSMITH_BUNDLE_TIMEOUT", "30")),
        minify=_env_flag("FLOWSMITH_MINIFY", "true"),
    )

    return FlowsmithConfig(
        bundler=bundler,
        debug=_env_flag("FLOWSMITH_DEBUG", "false"),
        log_level=os.getenv("FLOWSMITH_LOG_LEVEL", "INFO").upper(),
    )


# Singleton config instance
_config: Optional[FlowsmithConfig] = None


def get_config() -> FlowsmithConfig:
    """Get the global configuration (lazy-loaded singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
