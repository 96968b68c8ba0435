"""
paraclaim/cli/keys.py

Issuer-side tooling: generate an Ed25519 key and sign observations with it.

    paraclaim keygen issuer.pem
    paraclaim sign-observation --key issuer.pem --location NYC \\
        --parameter temperature --value 35.5 --timestamp 1767225600
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from paraclaim.core.crypto import Ed25519KeyManager, is_public_key_hex
from paraclaim.core.models import WeatherObservation, WeatherParameter, to_fixed
from paraclaim.oracle.gateway import ObservationGateway, sign_observation


_PARAMETERS = [p.value for p in WeatherParameter]


@click.command(name="keygen")
@click.argument("output", type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing key file.")
def keygen_command(output: str, force: bool) -> None:
    """
    Generate an Ed25519 private key (PKCS8 PEM) and print its public key.

    The printed hex is what goes into issuer_public_key in the engine config.
    """
    path = Path(output)
    if path.exists() and not force:
        click.echo(f"Refusing to overwrite {path} (use --force)", err=True)
        sys.exit(2)

    key = Ed25519KeyManager.generate()
    key.save(path)
    click.echo(key.public_key_hex)


@click.command(name="sign-observation")
@click.option("--key", "key_path", required=True,
              type=click.Path(exists=True, dir_okay=False),
              help="Issuer private key (PEM).")
@click.option("--location", required=True, help="Location identifier.")
@click.option("--parameter", required=True,
              type=click.Choice(_PARAMETERS, case_sensitive=False))
@click.option("--value", required=True,
              help="Reading in native units, at most two decimals (e.g. 35.5).")
@click.option("--timestamp", required=True, type=int, help="Unix seconds.")
@click.option("--output", "output", type=click.Path(dir_okay=False), default=None,
              help="Write JSON to this file instead of stdout.")
def sign_observation_command(
    key_path:  str,
    location:  str,
    parameter: str,
    value:     str,
    timestamp: int,
    output:    Optional[str],
) -> None:
    """Sign a weather observation and emit it as JSON with its proof."""
    try:
        key     = Ed25519KeyManager.from_file(Path(key_path))
        reading = to_fixed(value)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    observation = WeatherObservation(
        location=  location,
        parameter= WeatherParameter(parameter.lower()),
        value=     reading,
        timestamp= timestamp,
    )
    signed = sign_observation(observation, key)
    text   = json.dumps(signed.to_dict(), indent=2, sort_keys=True)

    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        click.echo(text)


@click.command(name="check-observation")
@click.argument("observation", type=click.Path(exists=True, dir_okay=False))
@click.option("--issuer", required=True, metavar="PUBKEY_HEX",
              help="Trusted issuer public key.")
def check_observation_command(observation: str, issuer: str) -> None:
    """
    Check a signed observation file against an issuer key.

    Exit 0 if the proof verifies, 1 if it does not, 2 on bad input.
    """
    if not is_public_key_hex(issuer):
        click.echo(f"Error: {issuer!r} is not a 64-char hex public key", err=True)
        sys.exit(2)
    try:
        data = json.loads(Path(observation).read_text(encoding="utf-8"))
        obs  = WeatherObservation.from_dict(data)
    except (ValueError, KeyError, TypeError) as e:
        click.echo(f"Error: malformed observation: {e}", err=True)
        sys.exit(2)

    gateway = ObservationGateway(admin="cli", issuer_key=issuer)
    if gateway.submit(obs):
        click.echo("VERIFIED")
        sys.exit(0)
    click.echo("REJECTED")
    sys.exit(1)
