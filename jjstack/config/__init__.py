"""Validated jjstack configuration."""

from typing import Any, Dict

from .models import JJStackConfig, RepoConfig, ToolConfig, UserConfig


class Config(JJStackConfig):
    """Configuration built from the nested dict the parser returns.

    Tool settings live under ``tool.jjstack`` so the file can share a
    ``tool`` table with other programs.
    """

    def __init__(self, config: Dict[str, Dict[str, Any]]):
        super().__init__(
            repo=RepoConfig.model_validate(config.get('repo', {})),
            user=UserConfig.model_validate(config.get('user', {})),
            tool=ToolConfig.model_validate(config.get('tool', {}).get('jjstack', {})),
        )


def default_config() -> Config:
    """Defaults used before the repository root is known."""
    return Config({'repo': {}, 'user': {}, 'tool': {}})
