"""
Settings for a live-preview session.

The dataclasses below are the schema; OmegaConf merges them with an optional
YAML file and dotted-key overrides and validates types on the way.

Examples:
    >>> settings = load_settings()
    >>> settings = load_settings(Path("latexsync.yaml"), ["triggers.debounce_s=0.5"])
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf
from omegaconf.errors import OmegaConfBaseException

from latexsync.utils.exceptions import ConfigurationError

load_dotenv()


@dataclass
class ToolchainStep:
    """
    One external toolchain invocation.

    Placeholders in args: %DOC% (root path without extension), %DOCFILE%
    (root file name without extension), %DOC_EXT% (root path), %DIR% (root
    directory), %OUTDIR% (output directory).
    """

    name: str
    command: str
    args: List[str] = field(default_factory=list)
    timeout_s: float = 120.0


def _default_toolchain() -> List[ToolchainStep]:
    return [
        ToolchainStep(
            name="pdflatex",
            command="pdflatex",
            args=["-synctex=1", "-interaction=nonstopmode", "-file-line-error", "%DOC%"],
        )
    ]


@dataclass
class ResolutionSettings:
    extensions: List[str] = field(default_factory=lambda: [".tex"])
    # How many directories above the document are scanned for including roots
    max_parent_levels: int = 2
    # Lines at the top of a document searched for "% !TEX root ="
    magic_comment_lines: int = 20


@dataclass
class BuildSettings:
    toolchain: List[ToolchainStep] = field(default_factory=_default_toolchain)
    # Relative to the root document's directory; None builds in place
    output_dir: Optional[str] = None
    output_extension: str = ".pdf"
    cancel_superseded: bool = True
    # Grace period between SIGTERM and SIGKILL when stopping a process tree
    kill_grace_s: float = 2.0


@dataclass
class TriggerSettings:
    build_on_save: bool = True
    build_on_change: bool = True
    debounce_s: float = 0.3
    suppress_after_build_s: float = 1.0
    watch_interval_s: float = 1.0


@dataclass
class NavigationSettings:
    # Points; None means an inverse lookup always returns the nearest record
    max_inverse_distance: Optional[float] = 144.0


@dataclass
class PreviewSettings:
    host: str = "127.0.0.1"
    port: int = 17373
    notify_failures: bool = False
    # A viewer that does not accept an event within this bound is pruned
    send_timeout_s: float = 5.0


@dataclass
class LoggingSettings:
    log_dir: str = "outs/logs"
    events_file: Optional[str] = None
    console_level: str = "INFO"
    verbose: bool = False


@dataclass
class Settings:
    resolution: ResolutionSettings = field(default_factory=ResolutionSettings)
    build: BuildSettings = field(default_factory=BuildSettings)
    triggers: TriggerSettings = field(default_factory=TriggerSettings)
    navigation: NavigationSettings = field(default_factory=NavigationSettings)
    preview: PreviewSettings = field(default_factory=PreviewSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def default_config_path() -> Optional[Path]:
    """YAML settings path from LATEXSYNC_CONFIG, if set."""
    value = os.getenv("LATEXSYNC_CONFIG")
    return Path(value) if value else None


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[List[str]] = None,
) -> Settings:
    """
    Load settings from defaults, an optional YAML file, and dotted overrides.

    Later sources override earlier ones: defaults < YAML file < overrides.

    Args:
        config_path: YAML file (defaults to LATEXSYNC_CONFIG; skipped if unset)
        overrides: Dotted assignments such as ["build.cancel_superseded=false"]

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If the file is missing, a key is unknown, a value
            has the wrong type, or the toolchain is empty
    """
    if config_path is None:
        config_path = default_config_path()

    try:
        merged = OmegaConf.structured(Settings)
        if config_path is not None:
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_path}")
            merged = OmegaConf.merge(merged, OmegaConf.load(config_path))
        if overrides:
            merged = OmegaConf.merge(merged, OmegaConf.from_dotlist(list(overrides)))
        settings = OmegaConf.to_object(merged)
    except OmegaConfBaseException as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    _validate(settings)
    return settings


def _validate(settings: Settings) -> None:
    if not settings.build.toolchain:
        raise ConfigurationError("build.toolchain must contain at least one step")
    for step in settings.build.toolchain:
        if step.timeout_s <= 0:
            raise ConfigurationError(f"Step '{step.name}' needs a positive timeout_s")
    if settings.triggers.debounce_s < 0:
        raise ConfigurationError("triggers.debounce_s must be >= 0")
    if not settings.resolution.extensions:
        raise ConfigurationError("resolution.extensions must not be empty")
