"""Estimator profile dataclasses and helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class EstimatorProfile:
    name: str
    tail_fraction: float
    transform: str
    scale_factor: float
    sample_rate_hz: Optional[float] = None
    description: str = ""


def default_estimator_profiles() -> Dict[str, EstimatorProfile]:
    profiles = [
        EstimatorProfile(
            name="amplitude",
            tail_fraction=0.1,
            transform="sqrt_half",
            scale_factor=1.0,
            description="Amplitude-domain noise floor, sqrt(tail/2) of the last 10% of bins",
        ),
        EstimatorProfile(
            name="power",
            tail_fraction=0.2,
            transform="linear_bandwidth",
            scale_factor=225.438,
            sample_rate_hz=1970.0,
            description="Tail power over the last 20% of bins rescaled by fs/2",
        ),
    ]
    return {prof.name: prof for prof in profiles}


def serialize_profiles() -> Dict[str, Any]:
    ordered = sorted(default_estimator_profiles().values(), key=lambda prof: prof.name)
    return {
        "profiles": [
            {
                "name": prof.name,
                "tail_fraction": prof.tail_fraction,
                "transform": prof.transform,
                "scale_factor": prof.scale_factor,
                "sample_rate_hz": prof.sample_rate_hz,
                "description": prof.description,
            }
            for prof in ordered
        ]
    }
