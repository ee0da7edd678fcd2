"""Upstream query definitions."""

from dataclasses import dataclass, field

EXPANSION_SUBTYPE = "boardgameexpansion"


@dataclass(frozen=True)
class BggQuery:
    """A fully-formed request against the XML API: endpoint plus query parameters.

    Parameter order is significant only for readability of logged URLs; the
    upstream treats them as an unordered set.
    """
    endpoint: str
    username: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def query_params(self) -> dict[str, str]:
        """All parameters sent on the wire, username first."""
        return {"username": self.username, **self.params}

    @classmethod
    def collection_base_games(cls, username: str) -> "BggQuery":
        """Owned items excluding expansions."""
        return cls(
            endpoint="collection",
            username=username,
            params={"own": "1", "showprivate": "1", "excludesubtype": EXPANSION_SUBTYPE},
        )

    @classmethod
    def collection_expansions(cls, username: str) -> "BggQuery":
        """Owned expansions only."""
        return cls(
            endpoint="collection",
            username=username,
            params={"own": "1", "showprivate": "1", "subtype": EXPANSION_SUBTYPE},
        )

    @classmethod
    def plays(cls, username: str, page: int) -> "BggQuery":
        """One page of the user's logged plays."""
        return cls(
            endpoint="plays",
            username=username,
            params={"type": "thing", "page": str(page)},
        )
