"""
Ledger configuration.

Fixed at ledger creation and never mutated afterwards:
  - administrator: the single identity allowed to stop voting
  - digest_alg: commitment digest algorithm (must match the committing clients).
    Left unset, a ledger reopened from its log uses the logged algorithm and
    a new ledger uses sha256.
  - events_path: optional JSONL event log

Sources, lowest to highest precedence: YAML file, then env
(VOTELEDGER_ADMIN, VOTELEDGER_DIGEST_ALG, VOTELEDGER_EVENTS).
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import os

import yaml

from voteledger.commitment import DIGEST_ALGORITHMS
from voteledger.errors import ConfigError


@dataclass(frozen=True)
class LedgerConfig:
    administrator: str
    digest_alg: Optional[str] = None
    events_path: Optional[Path] = None

    def __post_init__(self) -> None:
        if not isinstance(self.administrator, str) or not self.administrator.strip():
            raise ConfigError("administrator must be a non-empty string")
        if self.digest_alg is not None and self.digest_alg not in DIGEST_ALGORITHMS:
            raise ConfigError(f"unsupported digest_alg '{self.digest_alg}'. Expected one of: {list(DIGEST_ALGORITHMS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "administrator": self.administrator,
            "digest_alg": self.digest_alg,
            "events_path": str(self.events_path) if self.events_path else None,
        }


def load_yaml(path: Path) -> Dict[str, Any]:
    # BOM-tolerant
    doc = yaml.safe_load(path.read_text(encoding="utf-8-sig"))
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return doc


def _from_mapping(doc: Dict[str, Any], *, base_dir: Optional[Path] = None) -> Dict[str, Any]:
    section = doc.get("ledger", doc)
    if not isinstance(section, dict):
        raise ConfigError("'ledger' section must be a mapping")

    out: Dict[str, Any] = {}
    if section.get("administrator") is not None:
        out["administrator"] = str(section["administrator"])
    if section.get("digest_alg") is not None:
        out["digest_alg"] = str(section["digest_alg"])
    if section.get("events_path"):
        p = Path(str(section["events_path"]))
        if base_dir is not None and not p.is_absolute():
            p = base_dir / p
        out["events_path"] = p
    return out


def _from_env() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    admin = os.getenv("VOTELEDGER_ADMIN", "").strip()
    if admin:
        out["administrator"] = admin
    alg = os.getenv("VOTELEDGER_DIGEST_ALG", "").strip()
    if alg:
        out["digest_alg"] = alg
    events = os.getenv("VOTELEDGER_EVENTS", "").strip()
    if events:
        out["events_path"] = Path(events)
    return out


def load_config(path: Optional[Path] = None, **overrides: Any) -> LedgerConfig:
    """
    Merge YAML file (if given), env, then explicit keyword overrides (None values ignored).
    """
    merged: Dict[str, Any] = {}
    if path is not None:
        merged.update(_from_mapping(load_yaml(path), base_dir=path.resolve().parent))
    merged.update(_from_env())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    if "administrator" not in merged:
        raise ConfigError("administrator is required (config file 'administrator' or VOTELEDGER_ADMIN)")
    if merged.get("events_path") is not None:
        merged["events_path"] = Path(merged["events_path"])
    return LedgerConfig(**merged)

