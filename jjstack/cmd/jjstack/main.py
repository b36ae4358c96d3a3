"""CLI entry point."""

import os
import signal
import sys
import threading
import click
import logging
from contextlib import contextmanager
from types import FrameType
from typing import Any, Callable, Dict, Iterator, Optional, Tuple
from click import Context

from ...config import Config, default_config
from ...config.config_parser import parse_config
from ...github import GitHubClient, find_github_token
from ...github.adapters import create_github
from ...jj import RealJJ
from ...merge import EventLoop, MergeModel, Phase
from ...pretty import LiveDisplay, get_term_width, print_header, render_progress, render_stack
from ...typing import PreconditionError

# Get module logger
logger = logging.getLogger(__name__)

def check(err: Optional[Exception]) -> None:
    """Check for error and exit if needed."""
    if err:
        logger.error(f"{err}")
        sys.exit(1)

class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)

@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """jjstack - land stacked pull requests from a jj repository."""
    ctx.obj = {}

cli.add_alias('land', 'merge')
cli.add_alias('st', 'status')

def setup(directory: Optional[str] = None) -> Tuple[Config, RealJJ, GitHubClient]:
    """Build config, jj runner and GitHub client for the current repository."""
    if directory:
        os.chdir(directory)

    jj_cmd = RealJJ(default_config())
    try:
        repo_root = jj_cmd.must_jj(["root"]).strip()
    except Exception as e:
        check(e)
        raise

    config = Config(parse_config(jj_cmd, repo_root))
    jj_cmd = RealJJ(config, cwd=repo_root)

    token = find_github_token(config.repo.github_host)
    if not token:
        check(ValueError("No GitHub token found. Try one of:\n"
                         "1. Set GITHUB_TOKEN env var\n"
                         "2. Log in with 'gh auth login'"))
    github = GitHubClient(config, create_github(str(token), config.repo.github_host))
    return config, jj_cmd, github

@contextmanager
def cancel_on_signals(cancel: threading.Event) -> Iterator[None]:
    """Set the cancel token on SIGINT/SIGTERM while the block runs."""
    def handler(signum: int, frame: Optional[FrameType]) -> None:
        logger.debug(f"Received signal {signum}, cancelling")
        cancel.set()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)

def make_confirm(display: LiveDisplay) -> Callable[[MergeModel], bool]:
    """Confirmation callback that prompts on the terminal."""
    def confirm(model: MergeModel) -> bool:
        # Ctrl-C at the prompt declines instead of cancelling a run that has not started
        previous = signal.signal(signal.SIGINT, signal.default_int_handler)
        try:
            return click.confirm(f"Merge {model.total()} PR(s)?", default=False)
        except click.Abort:
            click.echo()
            return False
        finally:
            signal.signal(signal.SIGINT, previous)
            display.reset()
    return confirm

@cli.command(name="merge", help="Merge the pull requests of a stack bottom-up, rebasing the rest after each merge")
@click.argument('revset', default='@', required=False)
@click.option('--no-wait', is_flag=True, help="Fail instead of waiting when a PR is not mergeable yet")
@click.option('--yes', '-y', is_flag=True, help="Do not ask for confirmation before merging")
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if jjstack was started in DIRECTORY instead of the current working directory')
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def merge(ctx: Context, revset: str, no_wait: bool, yes: bool, directory: Optional[str], verbose: int) -> None:
    """Merge command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, jj_cmd, github = setup(directory)
    cancel = threading.Event()
    model = MergeModel(config, jj_cmd, github, revset=revset, no_wait=no_wait, cancel=cancel)

    display = LiveDisplay()
    width = get_term_width()
    loop = EventLoop(
        model,
        render=lambda m: display.update(render_progress(m, width, animate=display.interactive)),
        confirm=None if yes else make_confirm(display),
    )
    with cancel_on_signals(cancel):
        loop.run()

    if model.phase is Phase.ERROR:
        sys.exit(1)

@cli.command(name="status", help="Show the stack and its pull requests without merging")
@click.argument('revset', default='@', required=False)
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if jjstack was started in DIRECTORY instead of the current working directory')
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def status(ctx: Context, revset: str, directory: Optional[str], verbose: int) -> None:
    """Status command."""
    from ... import setup_logging
    setup_logging(verbose)

    config, jj_cmd, github = setup(directory)
    model = MergeModel(config, jj_cmd, github, revset=revset)
    # Read-only: no fetch, and a missing PR or empty stack is reported, not fatal
    model.update(model.load(fetch=False).run())
    if model.phase is Phase.ERROR and not isinstance(model.err, PreconditionError):
        check(model.err)

    if model.stack.revisions:
        print_header(f"Stack on {model.trunk_name or config.repo.github_branch}")
        click.echo(render_stack(model.stack, github.pull_request_url, get_term_width(), None), nl=False)
    revs = model.stack.mutable_revisions()
    without_pr = sum(1 for rev in revs if rev.pr_number == 0)
    summary = f"{len(revs) - without_pr} PR(s), {model.stack.revisions_needing_sync()} need sync"
    if without_pr:
        summary += f", {without_pr} change(s) without a PR"
    click.echo(summary)


def main() -> None:
    """Main entry point."""
    cli(obj={})

if __name__ == "__main__":
    main()
