"""
paraclaim/cli/quote.py

paraclaim quote — price a policy without buying it.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from paraclaim.core.config import EngineConfig
from paraclaim.core.models import ComparisonOperator, WeatherParameter, to_fixed
from paraclaim.core.time import DAY_SECONDS
from paraclaim.registry.premium import PremiumCalculator


@click.command(name="quote")
@click.option("--parameter", required=True,
              type=click.Choice([p.value for p in WeatherParameter], case_sensitive=False))
@click.option("--operator", required=True,
              type=click.Choice([o.value for o in ComparisonOperator], case_sensitive=False))
@click.option("--threshold", required=True, help="Trigger threshold in native units (e.g. 30).")
@click.option("--payout", required=True, type=int, help="Payout amount, smallest currency unit.")
@click.option("--days", required=True, type=int, help="Coverage length in days.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Engine YAML config (risk table).")
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
def quote_command(
    parameter:   str,
    operator:    str,
    threshold:   str,
    payout:      int,
    days:        int,
    config_path: Optional[str],
    as_json:     bool,
) -> None:
    """Print the minimum premium for the given terms."""
    try:
        config    = EngineConfig.from_yaml(Path(config_path)) if config_path else EngineConfig.default()
        fixed     = to_fixed(threshold)
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    if days <= 0 or payout <= 0:
        click.echo("Error: --days and --payout must be positive", err=True)
        sys.exit(2)

    param      = WeatherParameter(parameter.lower())
    op         = ComparisonOperator(operator.lower())
    calculator = PremiumCalculator(config.risk)
    premium    = calculator.required_premium(days * DAY_SECONDS, payout, param, fixed, op)

    if as_json:
        click.echo(json.dumps({
            "parameter":      param.value,
            "operator":       op.value,
            "threshold":      fixed,
            "payout_amount":  payout,
            "coverage_days":  days,
            "likelihood_pct": calculator.likelihood_pct(param, fixed, op),
            "premium":        premium,
        }, indent=2))
    else:
        click.echo(premium)
