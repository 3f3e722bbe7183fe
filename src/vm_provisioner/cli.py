#!/usr/bin/env python3
"""
VM Provisioner - Command Line Interface

Reads a VM description and provisions it through VBoxManage.
"""

import argparse
import logging
import sys
from pathlib import Path

from common.exceptions import ConfigError, TemplateError
from common.logging_config import setup_logging

from . import __version__
from .core.config_loader import DEFAULT_CONFIG_PATH, load_config
from .core.hypervisor import VBoxManage
from .core.sequencer import ProvisioningSequencer
from .core.vm_config import DiskFormat, ProvisionerSettings
from .templates.loader import render_script

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vm-provisioner",
        description="Create a VirtualBox VM from a TOML description",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vm-provisioner                       # Provision from ./vm_config.toml
  vm-provisioner web.toml --dry-run    # Print the VBoxManage commands
  vm-provisioner web.toml --script -   # Emit a shell script instead
  vm-provisioner web.toml --rollback   # Undo completed steps on failure
        """
    )

    parser.add_argument("config", nargs="?", default=str(DEFAULT_CONFIG_PATH),
                        help="Configuration file (default: %(default)s)")
    parser.add_argument("--vm-root", type=Path, default=None,
                        help="Directory holding VM folders (default: ~/VirtualBox VMs)")
    parser.add_argument("--vboxmanage", default="VBoxManage",
                        help="VBoxManage executable (default: %(default)s)")
    parser.add_argument("--disk-format", choices=[f.value for f in DiskFormat],
                        default=DiskFormat.VDI.value, help="Disk image format")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for each VBoxManage call (default: no limit)")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-n", "--dry-run", action="store_true",
                      help="Show the commands without running them")
    mode.add_argument("--script", metavar="OUT",
                      help="Write the plan as a shell script to OUT ('-' for stdout)")

    parser.add_argument("--rollback", action="store_true",
                        help="Undo completed steps if a later step fails")
    parser.add_argument("--ignore-exit-status", action="store_true",
                        help="Only fail when VBoxManage cannot be launched")

    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log verbosity (-v info, -vv debug)")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="Also write a debug log to this file")
    parser.add_argument("--json-logs", action="store_true",
                        help="Write the log file as JSON lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def settings_from_args(args: argparse.Namespace) -> ProvisionerSettings:
    """Build provisioner settings from parsed arguments."""
    overrides = {}
    if args.vm_root is not None:
        overrides["vm_root"] = args.vm_root.expanduser()

    return ProvisionerSettings(
        vboxmanage=args.vboxmanage,
        disk_format=DiskFormat(args.disk_format),
        check_exit_status=not args.ignore_exit_status,
        rollback_on_failure=args.rollback,
        timeout=args.timeout,
        **overrides,
    )


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def main(argv=None) -> int:
    """Main entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    # Failures are reported on one line below; the console log is opt-in
    level = {0: logging.CRITICAL, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    setup_logging(level=level, log_file=args.log_file, json_logs=args.json_logs)

    settings = settings_from_args(args)

    try:
        description = load_config(args.config)
    except ConfigError as e:
        return _error(e.message)

    if args.script:
        try:
            script = render_script(description, settings)
        except TemplateError as e:
            return _error(e.message)

        if args.script == "-":
            sys.stdout.write(script)
        else:
            out = Path(args.script)
            try:
                out.write_text(script, encoding="utf-8")
                out.chmod(0o755)
            except OSError as e:
                return _error(f"Failed to write script '{out}': {e.strerror or e}")
            logger.info(f"Wrote provisioning script: {out}")
        return 0

    sequencer = ProvisioningSequencer(settings)

    if args.dry_run:
        hypervisor = VBoxManage(settings)
        for step in sequencer.plan(description):
            print(hypervisor.command_line(step.args))
        return 0

    result = sequencer.run(description)

    if not result.success:
        if result.rolled_back:
            logger.warning(f"Rolled back: {', '.join(s.name for s in result.rolled_back)}")
        for problem in result.rollback_errors:
            logger.warning(f"Rollback incomplete: {problem}")
        return _error(result.error_message)

    print(f"VM '{description.name}' created successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
