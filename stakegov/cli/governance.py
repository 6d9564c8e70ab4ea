#!/usr/bin/env python3
"""
stakegov Governance CLI

Drives a GovernanceEngine whose state (proposals, votes, a manual clock,
voting power table and deployed code) lives in a JSON file.

Usage:
    stakegov-gov init [--block N] [--time T] [--system-clock] [--force]
    stakegov-gov set-power <identity> <amount>
    stakegov-gov deploy <reference> <code_hex>
    stakegov-gov advance [--blocks N] [--seconds S]
    stakegov-gov propose --as <caller> <title> [--description D] [--target REF]
    stakegov-gov vote --as <caller> <proposal_id> <for|against>
    stakegov-gov execute <proposal_id>
    stakegov-gov cancel --as <caller> <proposal_id>
    stakegov-gov status <proposal_id>
    stakegov-gov show <proposal_id>
    stakegov-gov list
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import click

from stakegov import __version__
from stakegov.config import StakegovConfig, load_config
from stakegov.exceptions import GovernanceError
from stakegov.governance import (
    CodeRegistry,
    GovernanceEngine,
    ManualClock,
    SystemClock,
    Vote,
    clock_from_dict,
)


class GovernanceSession:
    """An engine loaded from, and saved back to, a JSON state file."""

    def __init__(self, path: Path, data: Dict[str, Any]):
        self.path = path
        self.clock = clock_from_dict(data.get("clock", {}))
        self.powers: Dict[str, int] = {
            k: int(v) for k, v in data.get("powers", {}).items()
        }
        self.registry = CodeRegistry.from_dict(data.get("code", {}))
        self.engine = GovernanceEngine.from_dict(
            data.get("engine", {}),
            clock=self.clock,
            voting_power_fn=lambda identity: self.powers.get(identity, 0),
            fingerprint_fn=self.registry.fingerprint_of,
        )

    @classmethod
    def load(cls, path: Path) -> "GovernanceSession":
        if not path.exists():
            raise click.ClickException(
                f"State file {path} not found. Run 'stakegov-gov init' first."
            )
        with open(path) as f:
            return cls(path, json.load(f))

    def save(self) -> None:
        data = {
            "clock": self.clock.to_dict(),
            "powers": {k: str(v) for k, v in self.powers.items()},
            "code": self.registry.to_dict(),
            "engine": self.engine.to_dict(),
        }
        with open(self.path, "w") as f:
            json.dump(data, f, indent=4)


def _session(ctx: click.Context) -> GovernanceSession:
    return GovernanceSession.load(ctx.obj["state_path"])


def _fail(e: GovernanceError) -> click.ClickException:
    return click.ClickException(f"{e.kind}: {e}")


@click.group()
@click.version_option(version=__version__, prog_name="stakegov-gov")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config.toml")
@click.option("--state", "-s", "state_path", type=click.Path(), help="Path to the JSON state file")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], state_path: Optional[str]):
    """stakegov Governance Command Line Interface

    Create proposals, vote, and execute them against a local state file.
    """
    config: StakegovConfig = load_config(config_path)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["state_path"] = Path(state_path or config.state.path)


@cli.command("init")
@click.option("--block", type=int, default=0, help="Starting block height")
@click.option("--time", "timestamp", type=int, default=0, help="Starting wall-clock time")
@click.option(
    "--system-clock",
    is_flag=True,
    help="Follow the host clock using the [clock] block_time and genesis_time",
)
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init_cmd(ctx: click.Context, block: int, timestamp: int, system_clock: bool, force: bool):
    """Create a fresh state file using the configured parameters."""
    path: Path = ctx.obj["state_path"]
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")

    config: StakegovConfig = ctx.obj["config"]
    if system_clock:
        clock = SystemClock(config.clock.block_time, config.clock.genesis_time).to_dict()
    else:
        clock = ManualClock(block, timestamp).to_dict()
    data = {
        "clock": clock,
        "powers": {},
        "code": {},
        "engine": {"parameters": config.governance.to_dict(), "proposals": [], "votes": []},
    }
    session = GovernanceSession(path, data)
    session.save()
    click.echo(click.style(f"✓ Initialized governance state at {path}", fg="green"))


@cli.command("set-power")
@click.argument("identity")
@click.argument("amount", type=int)
@click.pass_context
def set_power_cmd(ctx: click.Context, identity: str, amount: int):
    """Set the voting power of IDENTITY."""
    if amount < 0:
        raise click.ClickException("Voting power cannot be negative")
    session = _session(ctx)
    session.powers[identity] = amount
    session.save()
    click.echo(f"{identity}: {amount}")


@cli.command("deploy")
@click.argument("reference")
@click.argument("code_hex")
@click.pass_context
def deploy_cmd(ctx: click.Context, reference: str, code_hex: str):
    """Deploy CODE_HEX at REFERENCE and print its fingerprint."""
    try:
        code = bytes.fromhex(code_hex[2:] if code_hex.startswith("0x") else code_hex)
    except ValueError:
        raise click.ClickException(f"Invalid hex code: {code_hex}")
    session = _session(ctx)
    fingerprint = session.registry.deploy(reference, code)
    session.save()
    click.echo(f"{reference}: 0x{fingerprint.hex()}")


@cli.command("advance")
@click.option("--blocks", "-b", type=int, default=0, help="Blocks to advance")
@click.option("--seconds", "-t", type=int, default=0, help="Seconds to advance")
@click.pass_context
def advance_cmd(ctx: click.Context, blocks: int, seconds: int):
    """Advance the simulated clocks."""
    session = _session(ctx)
    if not isinstance(session.clock, ManualClock):
        raise click.ClickException("State follows the system clock and cannot be advanced")
    try:
        snap = session.clock.advance(blocks=blocks, seconds=seconds)
    except ValueError as e:
        raise click.ClickException(str(e))
    session.save()
    click.echo(f"Block {snap.block}, time {snap.timestamp}")


@cli.command("propose")
@click.option("--as", "caller", required=True, help="Proposer identity")
@click.argument("title")
@click.option("--description", "-d", default="", help="Proposal description")
@click.option("--target", help="Implementation reference to verify at execution")
@click.pass_context
def propose_cmd(ctx: click.Context, caller: str, title: str, description: str, target: Optional[str]):
    """Create a proposal."""
    session = _session(ctx)
    try:
        pid = session.engine.create_proposal(caller, title, description, target)
    except GovernanceError as e:
        raise _fail(e)
    session.save()
    click.echo(click.style(f"✓ Proposal #{pid} created", fg="green"))


@cli.command("vote")
@click.option("--as", "caller", required=True, help="Voter identity")
@click.argument("proposal_id", type=int)
@click.argument("direction", type=click.Choice(["for", "against"], case_sensitive=False))
@click.pass_context
def vote_cmd(ctx: click.Context, caller: str, proposal_id: int, direction: str):
    """Vote FOR or AGAINST a proposal."""
    session = _session(ctx)
    support = Vote.parse(direction)
    try:
        session.engine.cast_vote(caller, proposal_id, support)
    except GovernanceError as e:
        raise _fail(e)
    session.save()
    record = session.engine.get_user_vote(proposal_id, caller)
    click.echo(f"{caller} voted {Vote.name(support)} on #{proposal_id} with weight {record.weight}")


@cli.command("execute")
@click.argument("proposal_id", type=int)
@click.pass_context
def execute_cmd(ctx: click.Context, proposal_id: int):
    """Execute a proposal that passed and whose timelock expired."""
    session = _session(ctx)
    try:
        session.engine.execute_proposal(proposal_id)
    except GovernanceError as e:
        raise _fail(e)
    session.save()
    click.echo(click.style(f"✓ Proposal #{proposal_id} executed", fg="green"))


@cli.command("cancel")
@click.option("--as", "caller", required=True, help="Proposer identity")
@click.argument("proposal_id", type=int)
@click.pass_context
def cancel_cmd(ctx: click.Context, caller: str, proposal_id: int):
    """Cancel a proposal (proposer only)."""
    session = _session(ctx)
    try:
        session.engine.cancel_proposal(caller, proposal_id)
    except GovernanceError as e:
        raise _fail(e)
    session.save()
    click.echo(click.style(f"Proposal #{proposal_id} cancelled", fg="yellow"))


@cli.command("status")
@click.argument("proposal_id", type=int)
@click.pass_context
def status_cmd(ctx: click.Context, proposal_id: int):
    """Print the status report of a proposal."""
    session = _session(ctx)
    try:
        report = session.engine.status_report(proposal_id)
    except GovernanceError as e:
        raise _fail(e)

    colors = {"EXECUTED": "magenta", "CANCELLED": "red", "READY": "green", "PENDING": "yellow"}
    click.echo(click.style(f"Proposal #{report.proposal_id}: {report.title}", fg="cyan", bold=True))
    click.echo(f"  For:                {report.votes_for}")
    click.echo(f"  Against:            {report.votes_against}")
    click.echo(f"  Timelock remaining: {report.timelock_remaining}s")
    click.echo("  Status:             " + click.style(report.status, fg=colors[report.status]))


@cli.command("show")
@click.argument("proposal_id", type=int)
@click.pass_context
def show_cmd(ctx: click.Context, proposal_id: int):
    """Dump a proposal, its votes and executability as JSON."""
    session = _session(ctx)
    proposal = session.engine.get_proposal(proposal_id)
    if proposal is None:
        raise click.ClickException(f"ProposalNotFound: Proposal #{proposal_id} does not exist")
    click.echo(json.dumps({
        "proposal": proposal.to_dict(),
        "state": session.engine.proposal_state(proposal_id).name,
        "canExecute": session.engine.can_execute(proposal_id),
        "defeated": session.engine.is_defeated(proposal_id),
        "votes": [v.to_dict() for v in session.engine.get_votes(proposal_id)],
    }, indent=4))


@cli.command("list")
@click.pass_context
def list_cmd(ctx: click.Context):
    """List all proposals."""
    session = _session(ctx)
    click.echo(f"{session.engine.get_proposal_count()} proposal(s)")
    for proposal in session.engine.proposals():
        report = session.engine.status_report(proposal.id)
        click.echo(f"  #{proposal.id:<4} {report.status:<10} {proposal.title}")


if __name__ == "__main__":
    cli()
