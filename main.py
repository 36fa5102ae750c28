import argparse
import logging
import sys

import requests

# Silence noisy libraries so the terminal stays clean
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("requests").setLevel(logging.WARNING)

from bencoding import decode, encode
from errors import BencodeError, NonCanonical
from sources import open_source, read_source
from torrent import Torrent
from ui import ui
from utils import logger


def show(args):
    with open_source(args.source) as stream:
        value = decode(stream)
    ui.show_tree(value, label=args.source)
    return 0


def show_torrent(args):
    ui.show_torrent(Torrent(read_source(args.source)))
    return 0


def check(args):
    """Exit status 0 only if the input is already in canonical form."""
    data = read_source(args.source)
    try:
        value = decode(data, canonical=True)
    except NonCanonical as e:
        ui.print_log(f"Not canonical: {e}", "WARNING")
        return 1

    if encode(value) != data:
        ui.print_log("Re-encoding does not reproduce the input", "WARNING")
        return 1

    ui.print_log(f"{args.source}: canonical bencode ({len(data)} bytes)", "INFO")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="bencodec", description="Inspect bencoded data.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    show_cmd = commands.add_parser("show", help="print any bencoded value as a tree")
    show_cmd.add_argument("source", help="file path, URL or - for stdin")
    show_cmd.set_defaults(handler=show)

    torrent_cmd = commands.add_parser("torrent", help="summarize a .torrent file")
    torrent_cmd.add_argument("source", help="file path, URL or - for stdin")
    torrent_cmd.set_defaults(handler=show_torrent)

    check_cmd = commands.add_parser("check", help="verify the input is canonical bencode")
    check_cmd.add_argument("source", help="file path, URL or - for stdin")
    check_cmd.set_defaults(handler=check)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        return args.handler(args)
    except (BencodeError, ValueError, OSError, requests.RequestException) as e:
        ui.print_log(str(e), "ERROR")
        return 1


if __name__ == "__main__":
    sys.exit(main())
