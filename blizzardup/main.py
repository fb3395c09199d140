from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from blizzardup import display
from blizzardup.services.cancellation import CancellationToken
from blizzardup.services.dependencies import get_apply_service
from blizzardup.services.errors import ProvisionError
from blizzardup.services.plan_store import load_plan
from blizzardup.services.setup.apply_service import ApplyOutcome


logger = logging.getLogger(__name__)


def _ensure_logging(level: str) -> None:
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format="%(levelname)s: %(message)s")
    else:
        root.setLevel(level.upper())
        for handler in root.handlers:
            handler.setFormatter(formatter)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=display.PROGRAM_NAME,
        description="Blizzard worker fleet on AWS; safe to re-run against the same plan",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    apply = subcommands.add_parser("apply", help="Applies/creates resources based on the plan file")
    apply.add_argument("-l", "--log-level", choices=["debug", "info"], default="info")
    apply.add_argument("-s", "--spec-file-path", required=True, type=Path, help="The plan file to load and update")
    apply.add_argument("--skip-prompt", action="store_true", help="Create resources without asking for confirmation")
    return parser


async def apply(*, spec_file_path: Path, skip_prompt: bool) -> ApplyOutcome:
    plan = load_plan(spec_file_path)
    service = get_apply_service(
        plan=plan,
        spec_file_path=spec_file_path,
        token=CancellationToken(),
        skip_prompt=skip_prompt,
    )
    return await service.run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parser().parse_args(argv)
    _ensure_logging(args.log_level)

    try:
        outcome = asyncio.run(apply(spec_file_path=args.spec_file_path, skip_prompt=args.skip_prompt))
    except ProvisionError as exc:
        logger.debug("apply failed", exc_info=exc)
        display.fatal(str(exc))
        return 1

    logger.info("apply finished: %s", outcome.value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
