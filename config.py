"""
Configuration and shared factories for the contract auditor.
"""

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from auditor.client import DEFAULT_BASE_URL, DEFAULT_MODEL, ChatClient, ModelGateway
from auditor.errors import ConfigurationError
from auditor.keys import KeyPool
from auditor.settings import PipelineConfig

logger = logging.getLogger(__name__)

load_dotenv()

BASE_URL = os.environ.get("AUDITOR_BASE_URL", DEFAULT_BASE_URL)
MODEL = os.environ.get("AUDITOR_MODEL", DEFAULT_MODEL)
TIMEOUT = float(os.environ.get("AUDITOR_TIMEOUT", "60"))
CONFIG_FILE = Path(os.environ.get("AUDITOR_CONFIG", "auditor.yaml"))

# Cached pool so every request in a process shares exhaustion state
_pool: Optional[KeyPool] = None


def load_api_keys() -> str:
    """Raw comma separated key list from the environment."""
    return os.environ.get("AUDITOR_API_KEYS") or os.environ.get("AUDITOR_API_KEY") or ""


def load_pipeline_config(path: Optional[Path] = None) -> PipelineConfig:
    """
    PipelineConfig with overrides from the YAML file, if present.

    Unknown keys are kept in `extra` with a warning.
    """
    path = Path(path) if path else CONFIG_FILE
    if not path.exists():
        return PipelineConfig()

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping of settings")

    pipeline = data.get("pipeline", data)
    if not isinstance(pipeline, dict):
        raise ConfigurationError(f"{path}: 'pipeline' must be a mapping")
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(pipeline) - known)
    if unknown:
        logger.warning(f"[CONFIG] Unknown settings in {path}: {', '.join(unknown)}")
    return PipelineConfig.from_dict(pipeline)


def get_key_pool() -> KeyPool:
    """
    Shared KeyPool built from AUDITOR_API_KEYS.

    Raises:
        ConfigurationError: no keys configured
    """
    global _pool
    if _pool is None:
        _pool = KeyPool.from_string(load_api_keys())
    return _pool


def reset_key_pool() -> None:
    """Forget the cached pool (new keys in the environment, tests)."""
    global _pool
    _pool = None


def get_chat_client() -> ChatClient:
    return ChatClient(base_url=BASE_URL, model=MODEL, timeout=TIMEOUT)


def get_gateway() -> ModelGateway:
    return ModelGateway(get_key_pool(), get_chat_client())


def get_analyzer(use_cache: Optional[bool] = None):
    """ContractAnalyzer wired to the configured gateway and repository."""
    from auditor.pipeline import ContractAnalyzer
    from repositories import get_repository

    config = load_pipeline_config()
    if use_cache is not None:
        config.use_cache = use_cache
    return ContractAnalyzer(get_gateway(), config, get_repository())
