"""
paraclaim/cli/__init__.py

paraclaim CLI — root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    paraclaim = "paraclaim.cli:cli"
"""

import logging

import click

from paraclaim.cli.keys import (
    check_observation_command,
    keygen_command,
    sign_observation_command,
)
from paraclaim.cli.quote import quote_command
from paraclaim.cli.verify import verify_command


@click.group()
@click.version_option(package_name="paraclaim")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log at INFO level.")
def cli(verbose: bool) -> None:
    """
    paraclaim — parametric weather insurance engine CLI.

    \b
    Commands:
      keygen             Generate an Ed25519 issuer key.
      sign-observation   Sign a weather observation as the issuer.
      check-observation  Check a signed observation against an issuer key.
      quote              Price a policy.
      verify             Verify an audit log: chain, signatures, nonces.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(keygen_command)
cli.add_command(sign_observation_command)
cli.add_command(check_observation_command)
cli.add_command(quote_command)
cli.add_command(verify_command)
