"""
Multiparty - Command line entry point.

Created by orpheus497
"""

import argparse
import getpass
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import Config
from .constants import CONFIG_FILENAME, IDENTITY_FILENAME, LOGS_DIR, PASSWORD_ENV_VAR
from .crypto import fingerprint, parse_public_key
from .errors import MultipartyError
from .identity import Identity, IdentityManager
from .logging_setup import setup_logging
from .session import GroupSession

console = Console()
err_console = Console(stderr=True)


def _default_data_dir() -> Path:
    if sys.platform == 'win32':
        data_dir = Path(os.getenv('APPDATA', '~')) / 'Multiparty'
    elif sys.platform == 'darwin':
        data_dir = Path.home() / 'Library' / 'Application Support' / 'Multiparty'
    else:
        data_dir = Path.home() / '.multiparty'
    return data_dir.expanduser().resolve()


def _parse_peer(value: str) -> Tuple[str, str]:
    """Parse NAME=PUBLIC_KEY."""
    name, sep, key = value.partition('=')
    if not sep or not name or not key:
        raise argparse.ArgumentTypeError(f"expected NAME=PUBLIC_KEY, got {value!r}")
    return name, key


def _password(args: argparse.Namespace, confirm: bool = False) -> str:
    if args.password:
        return args.password
    env_password = os.environ.get(PASSWORD_ENV_VAR)
    if env_password:
        return env_password
    password = getpass.getpass("Identity password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise SystemExit("Passwords do not match")
    return password


def _identity_manager(args: argparse.Namespace, config: Config) -> IdentityManager:
    return IdentityManager(
        str(args.data_dir / IDENTITY_FILENAME),
        time_cost=config.get("identity", "argon2_time_cost"),
        memory_cost=config.get("identity", "argon2_memory_cost"),
    )


def _load_identity(args: argparse.Namespace, config: Config) -> Identity:
    manager = _identity_manager(args, config)
    if not manager.identity_exists():
        raise SystemExit(f"No identity in {args.data_dir}; run 'multiparty keygen NAME' first")
    identity = manager.load_identity(_password(args))
    if identity is None:
        raise SystemExit("Could not unlock identity (incorrect password?)")
    return identity


def _session(identity: Identity, config: Config, peers: List[Tuple[str, str]],
             known: Optional[List[str]] = None) -> GroupSession:
    session = GroupSession(identity.name, keypair=identity.keypair, config=config)
    for name, key in peers:
        session.add_buddy(name, key)
    for name in known or []:
        if name != identity.name:
            session.add_buddy(name)
    return session


def cmd_keygen(args: argparse.Namespace, config: Config) -> int:
    manager = _identity_manager(args, config)
    identity = manager.create_identity(args.name, _password(args, confirm=True))
    console.print(f"Created identity [bold]{escape(identity.name)}[/bold]")
    _print_identity(identity)
    return 0


def cmd_show(args: argparse.Namespace, config: Config) -> int:
    _print_identity(_load_identity(args, config))
    return 0


def _print_identity(identity: Identity) -> None:
    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    info = identity.get_shareable_info()
    table.add_row("Name", info['name'])
    table.add_row("Public key", info['public_key'])
    table.add_row("Fingerprint", info['fingerprint'])
    console.print(table)


def cmd_fingerprint(args: argparse.Namespace, config: Config) -> int:
    console.print(fingerprint(parse_public_key(args.public_key)))
    return 0


def cmd_encrypt(args: argparse.Namespace, config: Config) -> int:
    identity = _load_identity(args, config)
    session = _session(identity, config, args.to)
    envelope = session.encrypt(args.message)
    print(envelope.to_json())
    return 0


def cmd_decrypt(args: argparse.Namespace, config: Config) -> int:
    identity = _load_identity(args, config)
    sender, sender_key = args.sender
    session = _session(identity, config, [(sender, sender_key)], args.known)

    if args.file == '-':
        raw = sys.stdin.read()
    else:
        raw = Path(args.file).read_text(encoding='utf-8')

    result = session.decrypt(raw, sender)
    print(result.plaintext)
    if result.missing_recipients:
        err_console.print(
            f"[yellow]Warning:[/yellow] not sent to {escape(', '.join(result.missing_recipients))}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='multiparty',
        description='Multiparty - authenticated group message encryption',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  multiparty keygen alice
  multiparty show
  multiparty encrypt --to bob=<key> --to carol=<key> "hello"
  multiparty decrypt --from bob=<key> --known carol envelope.json
        """
    )
    parser.add_argument('--version', action='version', version=f'Multiparty {__version__}')
    parser.add_argument('--data-dir', type=Path, default=None,
                        help='Directory holding identity.json and config.toml')
    parser.add_argument('--password', default=None,
                        help=f'Identity password (default: ${PASSWORD_ENV_VAR} or prompt)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    sub = parser.add_subparsers(dest='command', required=True)

    keygen = sub.add_parser('keygen', help='Create a password-protected identity')
    keygen.add_argument('name', help='Identity label used in group messages')
    keygen.set_defaults(func=cmd_keygen)

    show = sub.add_parser('show', help='Show the local public key and fingerprint')
    show.set_defaults(func=cmd_show)

    fp = sub.add_parser('fingerprint', help='Fingerprint of a base64 public key')
    fp.add_argument('public_key')
    fp.set_defaults(func=cmd_fingerprint)

    enc = sub.add_parser('encrypt', help='Encrypt a message for a group')
    enc.add_argument('--to', type=_parse_peer, action='append', required=True,
                     metavar='NAME=PUBLIC_KEY', help='Recipient (repeatable)')
    enc.add_argument('message')
    enc.set_defaults(func=cmd_encrypt)

    dec = sub.add_parser('decrypt', help='Decrypt an envelope')
    dec.add_argument('--from', dest='sender', type=_parse_peer, required=True,
                     metavar='NAME=PUBLIC_KEY', help='Sender')
    dec.add_argument('--known', action='append', default=[], metavar='NAME',
                     help='Other group member expected as recipient (repeatable)')
    dec.add_argument('file', help="Envelope JSON file, or '-' for stdin")
    dec.set_defaults(func=cmd_decrypt)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the multiparty command."""
    args = build_parser().parse_args(argv)
    args.data_dir = (args.data_dir.expanduser().resolve() if args.data_dir
                     else _default_data_dir())
    args.data_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = Config(args.data_dir / CONFIG_FILENAME)
        setup_logging(config, args.data_dir / LOGS_DIR, args.debug)
        return args.func(args, config)
    except MultipartyError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
