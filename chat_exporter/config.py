"""
Konfiguration aus etc/config.yaml, über eingebaute Defaults gemergt.

Verwendung:
    from chat_exporter.config import load_config
    cfg = load_config()                       # /opt/chat-exporter/etc/config.yaml
    cfg = load_config("etc/config.yaml")      # expliziter Pfad
"""
import copy
import logging
from pathlib import Path
from typing import Optional, Union

import yaml

log = logging.getLogger(__name__)

_BASE = Path("/opt/chat-exporter")
CONFIG_PATH = _BASE / "etc" / "config.yaml"

DEFAULTS: dict = {
    "output": {
        "dir": str(_BASE / "var" / "exports"),
        "format": "md",
        "timestamp": False,
    },
    "markdown": {
        "heading_level": 4,
        "collapsible_thoughts": True,
        "include_custom_instructions": True,
        "turn_style": "merged",
    },
    "services": {
        "chatgpt": {
            "url": "https://chatgpt.com",
            "user_label": "User",
            "assistant_label": "Assistant",
        },
        "gemini": {
            "url": "https://gemini.google.com",
        },
        "copilot": {
            "url": "https://copilot.microsoft.com",
            "user_label": "User",
            "assistant_label": "Copilot",
        },
    },
    "cdp": {
        "host": "127.0.0.1",
        "port": 9222,
        "timeout_s": 60,
    },
    "http": {
        "timeout_s": 30,
        "user_agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
                      "(KHTML, like Gecko) Chrome/130.0 Safari/537.36",
    },
    "browser": {
        "driver": "/usr/bin/chromedriver",
        "binary": "/usr/bin/chromium",
        "profile_dir": str(_BASE / "var" / "chromium-profile"),
        "headless": True,
        "window_size": [1920, 1080],
        "script_timeout_s": 60,
    },
    "credentials": {
        "key_file": str(Path.home() / ".config" / "chat-exporter" / "keyfile"),
        "cookie_file": str(_BASE / "etc" / "cookies.enc"),
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    },
}


def deep_merge(target: dict, source: dict) -> dict:
    """Mergt source rekursiv in target (in-place) und gibt target zurück."""
    for key, value in (source or {}).items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            deep_merge(target[key], value)
        else:
            target[key] = value
    return target


def load_config(path: Optional[Union[str, Path]] = None) -> dict:
    """Defaults + YAML-Datei. Eine fehlende Datei bei Default-Pfad ist ok."""
    cfg = copy.deepcopy(DEFAULTS)
    cfg_path = Path(path) if path else CONFIG_PATH

    if not cfg_path.exists():
        if path:
            raise FileNotFoundError(f"Config not found: {cfg_path}")
        log.debug("Keine Config unter %s, nutze Defaults", cfg_path)
        return cfg

    with open(cfg_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {cfg_path} must be a mapping, got {type(data).__name__}")

    log.debug("Config geladen: %s", cfg_path)
    return deep_merge(cfg, data)


def service_config(cfg: dict, service: str) -> dict:
    services = cfg.get("services", {})
    if service not in services:
        raise KeyError(f"Unknown service: '{service}'. Known: {list(services.keys())}")
    return services[service]
