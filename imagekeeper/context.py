"""
Shared context object for imagekeeper CLI commands.

The root command builds one :class:`ImageKeeperContext` per invocation and
subcommands receive it through :data:`pass_context`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from imagekeeper.config import ImageKeeperConfig


class ImageKeeperContext:
    """Global context object for imagekeeper CLI commands.

    Attributes:
        config_path: Path to the configuration file, if one was used.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Loaded configuration.
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: ImageKeeperConfig = ImageKeeperConfig()


#: Click decorator for injecting :class:`ImageKeeperContext` into commands.
pass_context = click.make_pass_decorator(ImageKeeperContext, ensure=True)
