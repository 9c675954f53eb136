"""Package lifecycle service."""

from __future__ import annotations

import logging
from typing import Optional

from apiwave.core.errors import InvalidStatusTransitionError, PackageNotFoundError
from apiwave.core.package.models import Package, PackageConfig, PackageStatus
from apiwave.core.package.transitions import can_transition
from apiwave.core.scenario.models import utcnow
from apiwave.events.models import PackageStatusChangedEvent
from apiwave.events.publisher import EventPublisher
from apiwave.persistence.repositories import PackageRepository

logger = logging.getLogger(__name__)


class PackageService:
    """Creates packages and moves them through the status state machine."""

    def __init__(self, packages: PackageRepository, publisher: Optional[EventPublisher] = None):
        self.packages = packages
        self.publisher = publisher or EventPublisher()

    async def create_package(
        self,
        name: str,
        base_url: str,
        spec_url: Optional[str] = None,
        spec_content: Optional[str] = None,
        requirements: Optional[str] = None,
        description: Optional[str] = None,
        config: Optional[PackageConfig] = None,
        triggered_by: str = "system",
    ) -> Package:
        package = Package(
            name=name,
            base_url=base_url,
            spec_url=spec_url,
            spec_content=spec_content,
            requirements=requirements,
            description=description,
            config=config or PackageConfig(),
            triggered_by=triggered_by,
        )
        created = await self.packages.create(package)
        logger.info(f"Created package {created.id} ({created.name})")
        return created

    async def get_package(self, package_id: str) -> Package:
        package = await self.packages.find_by_id(package_id)
        if package is None:
            raise PackageNotFoundError(package_id)
        return package

    async def update_status(
        self,
        package_id: str,
        target: PackageStatus,
        reason: Optional[str] = None,
    ) -> Package:
        """Move a package to target.

        The write is a compare-and-set on the status read just before it.
        When another writer got there first, the fresh status is re-read and
        the transition is validated again.

        Args:
            package_id: Package to update
            target: Desired status
            reason: Optional note carried on the status-changed event

        Returns:
            The updated package (unchanged when already in target)

        Raises:
            PackageNotFoundError: Unknown package id
            InvalidStatusTransitionError: Transition not in the table
        """
        while True:
            current = await self.get_package(package_id)
            if current.status == target:
                return current
            if not can_transition(current.status, target):
                raise InvalidStatusTransitionError(current.status, target, package_id)

            updated = await self.packages.compare_and_set_status(
                package_id, current.status, target, utcnow()
            )
            if updated is None:
                logger.debug(f"Package {package_id} changed concurrently, re-reading status")
                continue

            logger.info(f"Package {package_id}: {current.status.value} -> {target.value}")
            self.publisher.publish(PackageStatusChangedEvent(
                aggregate_id=package_id,
                previous_status=current.status.value,
                new_status=target.value,
                reason=reason,
            ))
            return updated

    async def cancel(self, package_id: str, reason: Optional[str] = None) -> Package:
        """Cancel a package; its executing runs stop before their next step."""
        return await self.update_status(package_id, PackageStatus.CANCELLED, reason=reason)

    async def find_by_status(self, status: PackageStatus) -> list[Package]:
        return await self.packages.find_by_status(status)
