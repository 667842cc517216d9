"""AWS regions where a service is available."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class Regions:
    """A set of AWS region names, kept in their listed order."""

    def __init__(self, names: Iterable[str]) -> None:
        self._names = tuple(names)

    def include(self, region: str) -> bool:
        """Whether the set holds the region, ignoring case and surrounding spaces."""
        return region.lower().strip(" ") in self._names

    def names(self) -> list[str]:
        """The region names as a new list."""
        return list(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"Regions({list(self._names)!r})"


# AWS regions where Fargate is available.
FARGATE_REGIONS = Regions(
    [
        "ap-northeast-1",  # Asia Pacific (Tokyo)
        "ap-northeast-2",  # Asia Pacific (Seoul)
        "ap-southeast-1",  # Asia Pacific (Singapore)
        "ap-southeast-2",  # Asia Pacific (Sydney)
        "ap-south-1",  # Asia Pacific (Mumbai)
        "ca-central-1",  # Canada (Central)
        "eu-central-1",  # EU (Frankfurt)
        "eu-west-1",  # EU (Ireland)
        "eu-west-2",  # EU (London)
        "us-east-1",  # US East (N. Virginia)
        "us-east-2",  # US East (Ohio)
        "us-west-1",  # US West (N. California)
        "us-west-2",  # US West (Oregon)
    ]
)