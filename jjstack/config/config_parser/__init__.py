"""Config parser logic."""

import os
import re
from typing import Dict, Optional, Tuple, Any
import logging
import yaml

from ...jj import get_remote_url
from ...typing import JJCommandError, JJInterface

# Get module logger
logger = logging.getLogger(__name__)

RepoConfig = Dict[str, Any]  # Use Any since yaml can return various types
Config = Dict[str, RepoConfig]

CONFIG_FILE_NAME = ".jjstack.yaml"

_SSH_REMOTE = re.compile(r'^(?:ssh://)?[^@]+@(?P<host>[^:/]+)[:/](?P<path>.+?)(?:\.git)?/?$')
_HTTPS_REMOTE = re.compile(r'^https?://(?:[^@/]+@)?(?P<host>[^/]+)/(?P<path>.+?)(?:\.git)?/?$')

def get_repo_from_remote(remote_url: str) -> Tuple[str, str]:
    """Parse a GitHub remote URL into (owner, name).

    Handles SSH (git@github.com:owner/repo.git, ssh://git@github.com/owner/repo)
    and HTTPS (https://github.com/owner/repo.git) forms.

    Raises:
        ValueError: If the URL does not name an owner/repo pair
    """
    url = remote_url.strip()
    match = _HTTPS_REMOTE.match(url) or _SSH_REMOTE.match(url)
    if not match:
        raise ValueError(f"Unrecognized remote URL: {remote_url!r}")
    parts = match.group('path').split('/')
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Remote URL does not point at a repository: {remote_url!r}")
    return parts[0], parts[1]

def load_config_file(path: str) -> Optional[Dict[str, Any]]:
    """Load a YAML config file, returning None when it does not exist."""
    try:
        with open(path, 'r') as f:
            logger.info(f"Found {path}, loading...")
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.info(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data

def parse_config(jj_cmd: JJInterface, repo_root: Optional[str] = None) -> Config:
    """Parse config from the repository config file and the jj remote."""
    config: Config = {
        'repo': {
            'github_remote': 'origin',
            'github_branch': 'main',
            'github_host': 'github.com',
            'merge_method': 'squash',
        },
        'user': {},
        'tool': {
            'jjstack': {
                'poll_interval': 5.0,
            }
        }
    }

    root = repo_root if repo_root is not None else jj_cmd.must_jj(["root"]).strip()
    file_config = load_config_file(os.path.join(root, CONFIG_FILE_NAME))
    if file_config:
        logger.debug(f"Config from {CONFIG_FILE_NAME}: {file_config}")
        for section in ('repo', 'user'):
            if isinstance(file_config.get(section), dict):
                config[section].update(file_config[section])
        tool_section = file_config.get('tool')
        if isinstance(tool_section, dict) and isinstance(tool_section.get('jjstack'), dict):
            config['tool']['jjstack'].update(tool_section['jjstack'])

    # Fill in repo owner/name from the remote if not in config
    if not config['repo'].get('github_repo_owner') or not config['repo'].get('github_repo_name'):
        remote = config['repo']['github_remote']
        try:
            remote_url = get_remote_url(jj_cmd, remote)
        except JJCommandError as e:
            logger.error(f"Failed to list remotes: {e}")
            remote_url = None
        if remote_url is None:
            logger.error(f"Remote '{remote}' not found")
        else:
            try:
                owner, name = get_repo_from_remote(remote_url)
            except ValueError as e:
                logger.error(f"Failed to parse remote {remote}: {e}")
            else:
                if not config['repo'].get('github_repo_owner'):
                    config['repo']['github_repo_owner'] = owner
                if not config['repo'].get('github_repo_name'):
                    config['repo']['github_repo_name'] = name

    return config
