import argparse
import os
import sys
from pathlib import Path

from zram_generator.__version__ import __version__
from zram_generator.config.settings import ROOT_ENV_VAR, ResolutionSettings
from zram_generator.exceptions import ZramConfigError
from zram_generator.logging import setup_logging
from zram_generator.planner import read_all_devices, read_device


def build_parser():
    parser = argparse.ArgumentParser(
        prog="zram-generator-py",
        description="Resolve zram device configuration into an activation plan",
    )
    parser.add_argument(
        "--root",
        type=Path,
        help=f"Filesystem root to read configuration from (default: ${ROOT_ENV_VAR} or /)",
    )
    parser.add_argument("--device", metavar="NAME", help="Show only the named device")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument("--trace", action="store_true", help="Enable trace output")
    parser.add_argument("--log-dir", type=Path, help="Also write log files to this directory")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def format_device(device):
    return (
        f"{device.name} disksize={device.disksize} mem_limit={device.mem_limit} "
        f"fs-type={device.effective_fs_type()} swap-priority={device.swap_priority} "
        f"mount-point={device.mount_point or '-'} options={device.options}"
    )


def main(argv=None, environ=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.device is not None and not args.device.startswith("zram"):
        parser.error(f"--device requires a zram device name, got {args.device!r}")

    log = setup_logging(debug=args.debug, trace=args.trace, log_dir=args.log_dir)

    settings = ResolutionSettings.from_env(os.environ if environ is None else environ)
    if args.root is not None:
        settings = ResolutionSettings(root=args.root)
    log.debug(f"Using {settings.root} as root directory")

    try:
        if args.device is not None:
            devices = [read_device(settings, args.device)]
        else:
            devices = read_all_devices(settings)
    except ZramConfigError as error:
        log.error(str(error))
        return 1

    if not devices:
        log.info("No devices configured.")
    for device in devices:
        print(str(device))
        print(f"  {format_device(device)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
