"""Dateinamen ableiten und Exporte schreiben."""
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

_UNSAFE = re.compile(r'[\\/?<>:*|"]')


def sanitize_filename(name: str, replacement: str = "-", collapse_spaces: bool = False) -> str:
    """Ersetzt Zeichen, die auf gängigen Dateisystemen verboten sind."""
    name = _UNSAFE.sub(replacement, name or "")
    if collapse_spaces:
        name = re.sub(r"\s+", replacement, name)
    return name.strip() or "conversation"


def timestamp(now: Optional[datetime] = None) -> str:
    """YYYY-MM-DDTHH-MM-SS, Doppelpunkte sind in Dateinamen tabu."""
    return (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")


def build_filename(stem: str, extension: str, with_timestamp: bool = False,
                   now: Optional[datetime] = None) -> str:
    if with_timestamp:
        stem = f"{stem}_{timestamp(now)}"
    return f"{stem}.{extension.lstrip('.')}"


def render_json(raw) -> str:
    return json.dumps(raw, indent=2, ensure_ascii=False) + "\n"


def write_export(out_dir: Path, filename: str, content: str) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / filename
    path.write_text(content, encoding="utf-8")
    log.info("Export geschrieben: %s (%d Zeichen)", path, len(content))
    return path
