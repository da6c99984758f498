"""Configuration loading for ANISHA.

Values come from, in increasing precedence: dataclass defaults, an optional
YAML file (argument or ANISHA_CONFIG), and ANISHA_* environment variables.

Example config.yaml:

    api_key: sk-...
    memory_mode: consent
    default_language: hi
    stt_backend: vosk
    tts_backend: piper
    piper_voices:
      en-US: ~/.anisha/voices/en_US-amy-medium.onnx
      hi-IN: ~/.anisha/voices/hi_IN-medium.onnx
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

import yaml

from ..core.errors import ConfigError
from ..core.language import Language, locale_code, parse_language
from ..core.memory import DEFAULT_MAX_HISTORY_LENGTH, MemoryMode, parse_memory_mode
from ..vision.presence import DEFAULT_PRESENCE_TIMEOUT_S
from ..voice.llm import DEFAULT_ENDPOINT, DEFAULT_MODEL

logger = logging.getLogger(__name__)

STT_BACKENDS = ("mock", "vosk", "none")
TTS_BACKENDS = ("mock", "piper", "none")


@dataclass
class AnishaConfig:
    """Session configuration. Sampling parameters are intentionally absent."""

    api_key: str = ""
    llm_endpoint: str = DEFAULT_ENDPOINT
    llm_model: str = DEFAULT_MODEL
    llm_timeout: float = 30.0
    max_history: int = DEFAULT_MAX_HISTORY_LENGTH
    memory_mode: MemoryMode = MemoryMode.SESSION
    default_language: Language = Language.EN
    presence_timeout: float = DEFAULT_PRESENCE_TIMEOUT_S
    stt_backend: str = "mock"
    tts_backend: str = "mock"
    vosk_model_dir: Optional[str] = None
    piper_voices: Dict[str, str] = field(default_factory=dict)
    camera_index: int = 0

    def validate(self) -> "AnishaConfig":
        """Normalise types and reject invalid values.

        Raises:
            ConfigError: On any invalid value
        """
        try:
            self.memory_mode = parse_memory_mode(self.memory_mode)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        self.default_language = parse_language(self.default_language)

        try:
            self.llm_timeout = float(self.llm_timeout)
            self.max_history = int(self.max_history)
            self.presence_timeout = float(self.presence_timeout)
            self.camera_index = int(self.camera_index)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid numeric setting: {e}") from e

        if self.max_history < 1:
            raise ConfigError("max_history must be >= 1")
        if self.llm_timeout <= 0 or self.presence_timeout <= 0:
            raise ConfigError("timeouts must be > 0")
        if self.stt_backend not in STT_BACKENDS:
            raise ConfigError(f"stt_backend must be one of {STT_BACKENDS}, got {self.stt_backend!r}")
        if self.tts_backend not in TTS_BACKENDS:
            raise ConfigError(f"tts_backend must be one of {TTS_BACKENDS}, got {self.tts_backend!r}")
        if not isinstance(self.piper_voices, dict):
            raise ConfigError("piper_voices must be a mapping of locale -> model path")
        self.piper_voices = {str(k): os.path.expanduser(str(v)) for k, v in self.piper_voices.items()}
        if self.vosk_model_dir:
            self.vosk_model_dir = os.path.expanduser(self.vosk_model_dir)
        return self


_ENV_KEYS = {
    "ANISHA_API_KEY": "api_key",
    "ANISHA_LLM_ENDPOINT": "llm_endpoint",
    "ANISHA_LLM_MODEL": "llm_model",
    "ANISHA_LLM_TIMEOUT": "llm_timeout",
    "ANISHA_MAX_HISTORY": "max_history",
    "ANISHA_MEMORY_MODE": "memory_mode",
    "ANISHA_DEFAULT_LANGUAGE": "default_language",
    "ANISHA_PRESENCE_TIMEOUT": "presence_timeout",
    "ANISHA_STT_BACKEND": "stt_backend",
    "ANISHA_TTS_BACKEND": "tts_backend",
    "ANISHA_VOSK_MODEL_DIR": "vosk_model_dir",
    "ANISHA_CAMERA_INDEX": "camera_index",
}

_PIPER_PREFIX = "ANISHA_PIPER_VOICE_"


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    known = {f.name for f in fields(AnishaConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys in {path}: {', '.join(unknown)}")
    return data


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {k: env[e] for e, k in _ENV_KEYS.items() if env.get(e)}

    voices: Dict[str, str] = {}
    for key, value in env.items():
        if not key.startswith(_PIPER_PREFIX) or not value:
            continue
        suffix = key[len(_PIPER_PREFIX):].lower()
        locale = "default" if suffix == "default" else locale_code(parse_language(suffix))
        voices[locale] = value
    if voices:
        overrides["piper_voices"] = voices
    return overrides


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> AnishaConfig:
    """Load configuration from YAML and environment.

    Args:
        path: YAML config file; falls back to ANISHA_CONFIG when None
        env: Environment mapping (default: os.environ)

    Returns:
        Validated AnishaConfig

    Raises:
        ConfigError: If the file is unreadable, has unknown keys or invalid values
    """
    env = os.environ if env is None else env
    path = path or env.get("ANISHA_CONFIG")

    values: Dict[str, Any] = {}
    if path:
        values.update(_read_yaml(os.path.expanduser(path)))
        logger.info(f"[config] loaded {path}")

    overrides = _env_overrides(env)
    voices = overrides.pop("piper_voices", None)
    values.update(overrides)
    if voices:
        values["piper_voices"] = {**(values.get("piper_voices") or {}), **voices}

    return AnishaConfig(**values).validate()
