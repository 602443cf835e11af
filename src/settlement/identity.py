"""Seller identity resolution for external feed records.

The external feed knows sellers only by display name and by a numeric
character identifier. Matching them to employees is fragile by nature
(homonyms, formatting drift), so resolution never guesses: a record either
maps to exactly one employee or is reported as unresolved with a reason, and
the surrounding application reconciles identities offline.
"""

from collections import defaultdict
from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from src.core.types import EmployeeId


class ResolutionFailure(Enum):
    """Why a revenue event could not be attributed to an employee."""

    NO_MATCH = "no_match"
    AMBIGUOUS_NAME = "ambiguous_name"
    MISSING_OPERATOR = "missing_operator"


class Employee(BaseModel):
    """An employee of the company being settled."""

    model_config = ConfigDict(frozen=True)

    employee_id: EmployeeId
    first_name: str = ""
    last_name: str = ""
    username: str | None = None
    external_id: int | str | None = Field(
        default=None, description="Character identifier used by the external feed"
    )

    @property
    def full_name(self) -> str:
        """First and last name as the feed displays them."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def display_name(self) -> str:
        """Best available human-readable name."""
        return self.full_name or self.username or self.employee_id


class IdentityResolution(BaseModel):
    """Outcome of resolving one feed record."""

    model_config = ConfigDict(frozen=True)

    employee_id: EmployeeId | None = None
    failure: ResolutionFailure | None = None

    @property
    def resolved(self) -> bool:
        return self.employee_id is not None


class SellerIdentityResolver(Protocol):
    """Maps an external seller identity to a known employee."""

    def resolve(
        self, display_name: str | None, external_id: int | str | None
    ) -> IdentityResolution:
        """Resolve a seller by display name and external identifier."""
        ...


class DirectorySellerResolver:
    """Resolve sellers against the company's employee directory.

    Full-name match is tried first, then external-id match. A full name that
    belongs to more than one employee is not used for matching.
    """

    def __init__(self, employees: Iterable[Employee]) -> None:
        by_name: dict[str, list[EmployeeId]] = defaultdict(list)
        self._by_external_id: dict[str, EmployeeId] = {}

        for employee in employees:
            if employee.full_name:
                by_name[employee.full_name].append(employee.employee_id)
            if employee.external_id is not None:
                self._by_external_id[str(employee.external_id)] = employee.employee_id

        self._by_name = {name: ids[0] for name, ids in by_name.items() if len(ids) == 1}
        self._ambiguous_names = {name for name, ids in by_name.items() if len(ids) > 1}

        if self._ambiguous_names:
            logger.warning(
                "Employee directory has {} ambiguous full names",
                len(self._ambiguous_names),
                ambiguous_names=sorted(self._ambiguous_names),
            )

    def resolve(
        self, display_name: str | None, external_id: int | str | None
    ) -> IdentityResolution:
        name = (display_name or "").strip()

        if name in self._by_name:
            return IdentityResolution(employee_id=self._by_name[name])

        if external_id is not None and str(external_id) in self._by_external_id:
            return IdentityResolution(
                employee_id=self._by_external_id[str(external_id)]
            )

        if name in self._ambiguous_names:
            return IdentityResolution(failure=ResolutionFailure.AMBIGUOUS_NAME)
        return IdentityResolution(failure=ResolutionFailure.NO_MATCH)
