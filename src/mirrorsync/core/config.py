"""Configuration management: TOML-based, global + per-mirror merge.

The merged dict is turned into a frozen ``SyncConfig`` once, at the entry
point, and handed to every component explicitly.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigurationError
from .path_map import PathMapper

_GLOBAL_CONFIG_PATH = Path.home() / ".mirrorsync" / "config.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "staging_root": "__mirror",
        "map": {
            "tools/lib/bpf": "src",
            "tools/include/uapi/linux/bpf_common.h": "include/uapi/linux/bpf_common.h",
            "tools/include/uapi/linux/bpf.h": "include/uapi/linux/bpf.h",
            "tools/include/uapi/linux/btf.h": "include/uapi/linux/btf.h",
            "tools/include/uapi/linux/if_link.h": "include/uapi/linux/if_link.h",
            "tools/include/uapi/linux/if_xdp.h": "include/uapi/linux/if_xdp.h",
            "tools/include/uapi/linux/netlink.h": "include/uapi/linux/netlink.h",
            "tools/include/tools/libc_compat.h": "include/tools/libc_compat.h",
        },
        "exclude": [
            "src/Makefile",
            "src/Build",
            "src/test_libbpf.cpp",
            "src/.gitignore",
        ],
    },
    "checkpoints": {
        "primary_file": "CHECKPOINT-COMMIT",
        "secondary_file": "BPF-CHECKPOINT-COMMIT",
        "primary_label": "bpf-next",
        "secondary_label": "bpf",
    },
    "signatures": {
        "window": 500,
    },
    "refs": {
        "prefix": "mirrorsync",
    },
    "summary": {
        "subject": "sync: latest changes from upstream",
        "intro": "Syncing latest changes from upstream repository.",
    },
    "workspace": {
        "keep_artifacts": False,
    },
    "verify": {
        "ignore_consistency": False,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_config(mirror_path: str | Path | None = None) -> dict[str, Any]:
    """Load merged config: defaults <- global <- per-mirror."""
    config = DEFAULT_CONFIG.copy()

    layers = [_GLOBAL_CONFIG_PATH]
    if mirror_path:
        layers.append(Path(mirror_path) / ".mirrorsync" / "config.toml")

    for path in layers:
        if not path.exists():
            continue
        layer = _read_toml(path)
        config = _deep_merge(config, layer)
        # A user-supplied map replaces the default layout instead of extending it.
        user_map = layer.get("paths", {}).get("map")
        if user_map:
            config["paths"] = {**config["paths"], "map": dict(user_map)}

    return config


def get_config_value(config: dict, key: str) -> Any:
    """Get a nested config value by dotted key."""
    parts = key.split(".")
    current = config
    for part in parts:
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


@dataclass(frozen=True)
class SyncConfig:
    """Everything one sync run needs, resolved up front."""

    source_repo: Path
    mirror_repo: Path
    secondary_branch: str
    mapper: PathMapper
    primary_baseline: str | None = None
    secondary_baseline: str | None = None
    manual_mode: bool = False
    ignore_consistency: bool = False
    keep_artifacts: bool = False
    primary_file: str = "CHECKPOINT-COMMIT"
    secondary_file: str = "BPF-CHECKPOINT-COMMIT"
    primary_label: str = "bpf-next"
    secondary_label: str = "bpf"
    signature_window: int = 500
    ref_prefix: str = "mirrorsync"
    summary_subject: str = "sync: latest changes from upstream"
    summary_intro: str = "Syncing latest changes from upstream repository."


def build_sync_config(
    source_repo: str | Path,
    mirror_repo: str | Path,
    secondary_branch: str,
    *,
    primary_baseline: str | None = None,
    secondary_baseline: str | None = None,
    manual_mode: bool = False,
    ignore_consistency: bool | None = None,
    keep_artifacts: bool | None = None,
    config: dict[str, Any] | None = None,
) -> SyncConfig:
    """Validate parameters and merge them with the file configuration.

    Explicit arguments win over file values; ``None`` means "use the file".
    """
    if not source_repo or not mirror_repo:
        raise ConfigurationError("Source and mirror repositories must both be specified")
    if not secondary_branch:
        raise ConfigurationError("The secondary upstream branch is not specified")

    source_path = Path(source_repo).expanduser().resolve()
    mirror_path = Path(mirror_repo).expanduser().resolve()
    for label, path in (("Source", source_path), ("Mirror", mirror_path)):
        if not path.is_dir():
            raise ConfigurationError(f"{label} repository {path} does not exist")

    if config is None:
        config = load_config(mirror_path)

    window = get_config_value(config, "signatures.window")
    if not isinstance(window, int) or window <= 0:
        raise ConfigurationError(f"signatures.window must be a positive integer, got {window!r}")

    if ignore_consistency is None:
        ignore_consistency = bool(get_config_value(config, "verify.ignore_consistency"))
    if keep_artifacts is None:
        keep_artifacts = bool(get_config_value(config, "workspace.keep_artifacts"))

    cp = config.get("checkpoints", {})
    summary = config.get("summary", {})
    return SyncConfig(
        source_repo=source_path,
        mirror_repo=mirror_path,
        secondary_branch=secondary_branch,
        mapper=PathMapper.from_config(config.get("paths", {})),
        primary_baseline=primary_baseline or None,
        secondary_baseline=secondary_baseline or None,
        manual_mode=manual_mode,
        ignore_consistency=ignore_consistency,
        keep_artifacts=keep_artifacts,
        primary_file=cp.get("primary_file", "CHECKPOINT-COMMIT"),
        secondary_file=cp.get("secondary_file", "BPF-CHECKPOINT-COMMIT"),
        primary_label=cp.get("primary_label", "bpf-next"),
        secondary_label=cp.get("secondary_label", "bpf"),
        signature_window=window,
        ref_prefix=get_config_value(config, "refs.prefix") or "mirrorsync",
        summary_subject=summary.get("subject", DEFAULT_CONFIG["summary"]["subject"]),
        summary_intro=summary.get("intro", DEFAULT_CONFIG["summary"]["intro"]),
    )
