"""
Weighted Variable Groups

A VariableGroup names the stored variables that make up one aggregate
quantity (total PM2.5, particulate nitrate, ...) and the weight each one
contributes. VariableGroupProducer pulls one raw producer per member on the
same cadence and returns the weighted elementwise sum.

Groups are immutable; overriding a group from configuration builds a new
one with VariableGroup.from_mapping().
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Mapping, Sequence, Tuple

import numpy as np

from grid_producers import CombinedProducer, GridProducer
from logging_utils import ConfigurationError


@dataclass(frozen=True)
class VariableGroup:
    """
    Immutable set of (variable, weight) pairs forming one aggregate quantity.

    Attributes:
        name: Name of the aggregate quantity
        members: Ordered (variable name, weight) pairs with unique names
        units: Units of the aggregate, for documentation and logging
    """

    name: str
    members: Tuple[Tuple[str, float], ...]
    units: str = ""

    def __post_init__(self):
        if not self.members:
            raise ConfigurationError(f"Variable group '{self.name}' has no members", {'group': self.name})

        seen = set()
        for variable, weight in self.members:
            if not isinstance(variable, str) or not variable:
                raise ConfigurationError(f"Variable group '{self.name}' has an invalid member name {variable!r}",
                                         {'group': self.name})
            if variable in seen:
                raise ConfigurationError(f"Variable group '{self.name}' lists '{variable}' more than once",
                                         {'group': self.name, 'variable': variable})
            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not np.isfinite(weight):
                raise ConfigurationError(f"Weight of '{variable}' in group '{self.name}' must be a finite number, "
                                         f"got {weight!r}", {'group': self.name, 'variable': variable})
            seen.add(variable)

    @classmethod
    def from_mapping(cls, name: str, weights: Mapping[str, float], units: str = "") -> "VariableGroup":
        """Build a group from a {variable: weight} mapping."""
        if not isinstance(weights, Mapping):
            raise ConfigurationError(f"Variable group '{name}' must map variable names to weights",
                                     {'group': name})
        return cls(name, tuple((variable, weight) for variable, weight in weights.items()), units)

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(variable for variable, _ in self.members)

    @property
    def weights(self) -> Tuple[float, ...]:
        return tuple(float(weight) for _, weight in self.members)

    def as_dict(self) -> Dict[str, float]:
        return {variable: float(weight) for variable, weight in self.members}

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


def weighted_sum(weights: Sequence[float]) -> Callable[..., np.ndarray]:
    """Elementwise weighted sum over as many grids as there are weights."""

    def _sum(*grids: np.ndarray) -> np.ndarray:
        total = np.zeros(np.shape(grids[0]), dtype=float)
        for weight, grid in zip(weights, grids):
            total += weight * np.asarray(grid, dtype=float)
        return total

    return _sum


class VariableGroupProducer(CombinedProducer):
    """
    Pull every member of a VariableGroup and return their weighted sum.

    A member that cannot be read fails the whole pull; there are no partial
    sums.

    Args:
        group: The VariableGroup to aggregate
        member_producer: Builds a fresh raw producer for a variable name
    """

    def __init__(self, group: VariableGroup, member_producer: Callable[[str], GridProducer]):
        upstreams = [member_producer(variable) for variable in group.variables]
        super().__init__(weighted_sum(group.weights), upstreams, group.name)
        self.group = group
