"""Data model for Resource Explorer topology reconciliation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class IndexState(Enum):
    """Lifecycle state of a Resource Explorer index."""

    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DELETED = "DELETED"


class IndexType(Enum):
    """Resource Explorer index type."""

    LOCAL = "LOCAL"
    AGGREGATOR = "AGGREGATOR"


class RegionStatus(Enum):
    """Opt-in status of a region as reported by the Account API."""

    ENABLED = "ENABLED"
    ENABLING = "ENABLING"
    ENABLED_BY_DEFAULT = "ENABLED_BY_DEFAULT"
    DISABLING = "DISABLING"
    DISABLED = "DISABLED"


USABLE_REGION_STATUSES = frozenset({
    RegionStatus.ENABLED.value,
    RegionStatus.ENABLING.value,
    RegionStatus.ENABLED_BY_DEFAULT.value,
})

# An index in one of these states exists and must not be created again
PRESENT_INDEX_STATES = frozenset({
    IndexState.ACTIVE,
    IndexState.CREATING,
    IndexState.UPDATING,
})

VIEW_CREATED = "created"
VIEW_ALREADY_EXISTS = "already exists"


@dataclass(frozen=True)
class Account:
    """Organization member account."""

    id: str
    status: str
    is_root: bool = False

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"


@dataclass(frozen=True)
class IndexDescriptor:
    """Resource Explorer index in one region."""

    region: str
    arn: Optional[str] = None
    type: Optional[IndexType] = None
    state: Optional[IndexState] = None

    @property
    def is_present(self) -> bool:
        return self.state in PRESENT_INDEX_STATES

    @property
    def is_active(self) -> bool:
        return self.state is IndexState.ACTIVE

    @property
    def is_aggregator(self) -> bool:
        return self.type is IndexType.AGGREGATOR

    @classmethod
    def from_response(cls, response: Dict[str, Any],
                      region: str) -> "IndexDescriptor":
        """Build a descriptor from a GetIndex or ListIndexes entry.

        Args:
            response: API response or list entry
            region: Region the call was made in, used when the
                    entry carries no Region attribute

        Returns:
            IndexDescriptor with unknown enum values mapped to None
        """
        return cls(
            region=response.get("Region") or region,
            arn=response.get("Arn"),
            type=_enum_or_none(IndexType, response.get("Type")),
            state=_enum_or_none(IndexState, response.get("State")),
        )


@dataclass(frozen=True)
class ViewDescriptor:
    """Resource Explorer view, as reported in run summaries."""

    name: str
    region: str
    arn: Optional[str] = None
    status: str = VIEW_CREATED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "arn": self.arn,
            "region": self.region,
            "status": self.status,
        }


@dataclass
class RunSummary:
    """Outcome of setting up one account.

    Attributes:
        account_id: Account the summary belongs to
        regions: Resolved region list the account was reconciled over
        deployed_indexes: Regions holding an index, in processing order
        aggregator_region: Region of the aggregator index, if one is known
        default_view: Default view created or found, if any
        errors: Non-fatal error messages, in the order encountered
    """

    account_id: str
    regions: List[str] = field(default_factory=list)
    deployed_indexes: List[str] = field(default_factory=list)
    aggregator_region: Optional[str] = None
    default_view: Optional[ViewDescriptor] = None
    errors: List[str] = field(default_factory=list)

    def add_deployed(self, region: str) -> None:
        if region not in self.deployed_indexes:
            self.deployed_indexes.append(region)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountId": self.account_id,
            "regions": list(self.regions),
            "deployedIndexes": list(self.deployed_indexes),
            "aggregatorRegion": self.aggregator_region,
            "defaultView": self.default_view.to_dict() if self.default_view else None,
            "errors": list(self.errors),
        }


@dataclass
class TeardownSummary:
    """Outcome of tearing down one account."""

    account_id: str
    regions: List[str] = field(default_factory=list)
    deleted_views: List[str] = field(default_factory=list)
    deleted_indexes: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accountId": self.account_id,
            "regions": list(self.regions),
            "deletedViews": list(self.deleted_views),
            "deletedIndexes": list(self.deleted_indexes),
            "errors": list(self.errors),
        }


def failure_record(account_id: str, error: Exception) -> Dict[str, Any]:
    """Build the result entry recorded for an account that failed."""
    return {
        "accountId": account_id,
        "status": "failed",
        "error": str(error),
    }


def _enum_or_none(enum_class, value):
    try:
        return enum_class(value)
    except ValueError:
        return None
