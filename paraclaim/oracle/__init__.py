"""
Paraclaim Oracle - authenticated weather observations
"""

from paraclaim.oracle.gateway import (
    IssuerChange,
    ObservationGateway,
    observation_bytes,
    sign_observation,
)

__all__ = ["IssuerChange", "ObservationGateway", "observation_bytes", "sign_observation"]
