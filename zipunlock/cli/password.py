"""
zipunlock CLI - password lookup shared by the commands
"""
import getpass
import sys

from ..config import config


def resolve_password(cli_value: str = None) -> str:
    """--password, then the configured environment variable, then a prompt"""
    if cli_value:
        return cli_value

    from_env = config.password_from_env()
    if from_env:
        return from_env

    if not sys.stdin.isatty():
        return ''
    return getpass.getpass("Archive password: ")


__all__ = ["resolve_password"]
