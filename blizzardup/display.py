# All terminal output of the apply workflow.
#
# Services log through `logging`; anything meant for the operator to read or
# copy-paste (step banners, the loaded plan, SSH hints, the teardown command)
# goes through here.

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.rule import Rule
from rich.syntax import Syntax

from blizzardup.models import Member

console = Console()

PROGRAM_NAME = "blizzardup-aws"


def loaded_plan(path: Path, plan_yaml: str) -> None:
    console.print()
    console.print(f"[blue]Loaded plan: '{path}'[/blue]")
    console.print(Syntax(plan_yaml, "yaml", background_color="default"))


def confirm_apply() -> bool:
    try:
        return Confirm.ask("Create the resources in this plan?", default=False, console=console)
    except (KeyboardInterrupt, EOFError):
        # Ctrl-C or a closed stdin at the prompt is a "no"
        console.print()
        return False


def declined() -> None:
    console.print("[yellow]Not creating any resources.[/yellow]")


def step(title: str) -> None:
    console.print()
    console.print(Rule(f"[green]STEP: {title}[/green]", style="green"))


def step_skipped(title: str) -> None:
    console.print(f"[dim]skipping '{title}' (already recorded in the plan)[/dim]")


def ssh_access(*, members: list[Member], key_path: str, region: str) -> None:
    console.print()
    console.print("# change SSH key permission")
    console.print(f"chmod 400 {key_path}", markup=False)
    for m in members:
        host = m.public_ipv4 or m.public_hostname or "<no public address>"
        lines = [
            f"# instance '{m.instance_id}' ({m.instance_state_name}, {m.availability_zone})",
            f'ssh -o "StrictHostKeyChecking no" -i {key_path} ubuntu@{host}',
            "# download to local machine",
            f"scp -i {key_path} ubuntu@{host}:REMOTE_FILE_PATH LOCAL_FILE_PATH",
            f"scp -i {key_path} -r ubuntu@{host}:REMOTE_DIRECTORY_PATH LOCAL_DIRECTORY_PATH",
            "# upload to remote machine",
            f"scp -i {key_path} LOCAL_FILE_PATH ubuntu@{host}:REMOTE_FILE_PATH",
            f"scp -i {key_path} -r LOCAL_DIRECTORY_PATH ubuntu@{host}:REMOTE_DIRECTORY_PATH",
            "# SSM session (requires SSM agent)",
            f"aws ssm start-session --region {region} --target {m.instance_id}",
        ]
        console.print()
        console.print("\n".join(lines), markup=False, highlight=False)
    console.print()


def teardown_command(spec_file_path: Path) -> str:
    return (
        f"{PROGRAM_NAME} delete \\\n"
        "--delete-cloudwatch-log-group \\\n"
        "--delete-s3-objects \\\n"
        f"--spec-file-path {spec_file_path}"
    )


def teardown_hint(spec_file_path: Path) -> None:
    console.print()
    console.print("# run the following to delete resources")
    console.print(teardown_command(spec_file_path), style="green", markup=False, highlight=False)


def fatal(message: str) -> None:
    console.print(Panel(message, title="[bold red]apply failed[/bold red]", border_style="red"))
