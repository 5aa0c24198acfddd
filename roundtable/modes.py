"""Debate modes: default topology and one-line instruction per mode."""

from dataclasses import dataclass
from enum import Enum

from roundtable.errors import ConfigurationError


class Parallelization(str, Enum):
    """Override applied on top of each mode's default topology."""

    NONE = "none"            # keep the mode default
    LAST_ONLY = "last-only"  # sequential modes run as hybrid
    FULL = "full"            # every mode runs in parallel


@dataclass(frozen=True)
class DebateMode:
    name: str
    topology: str
    instruction: str


MODES: dict[str, DebateMode] = {
    mode.name: mode
    for mode in (
        DebateMode(
            "collaborative",
            "parallel",
            "Build on the strongest ideas so far and work toward a shared answer.",
        ),
        DebateMode(
            "adversarial",
            "sequential",
            "Challenge the previous arguments: name concrete weaknesses and take a strong opposing position.",
        ),
        DebateMode(
            "socratic",
            "sequential",
            "Probe the assumptions behind earlier answers with pointed questions, then give your own answer.",
        ),
        DebateMode(
            "expert-panel",
            "parallel",
            "Answer as an independent domain expert. Be explicit about evidence and uncertainty.",
        ),
        DebateMode(
            "devils-advocate",
            "hybrid",
            "If you speak last, argue against the emerging majority as strongly as the evidence allows.",
        ),
        DebateMode(
            "delphi",
            "parallel",
            "Give your honest independent estimate and confidence. Change position only for new reasons.",
        ),
        DebateMode(
            "red-team-blue-team",
            "parallel",
            "Either attack the proposal to find risks or defend it with mitigations, and say which side you take.",
        ),
    )
}


def get_mode(name: str) -> DebateMode:
    try:
        return MODES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown debate mode '{name}'. Choose from: {', '.join(sorted(MODES))}"
        ) from None


def resolve_topology(mode: str, parallelization: Parallelization | str = Parallelization.NONE) -> str:
    """Topology name for *mode* after applying the parallelization override."""
    default = get_mode(mode).topology
    override = Parallelization(parallelization)
    if override is Parallelization.FULL:
        return "parallel"
    if override is Parallelization.LAST_ONLY and default == "sequential":
        return "hybrid"
    return default
