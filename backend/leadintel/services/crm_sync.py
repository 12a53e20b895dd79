"""External CRM sync tracking."""

import asyncio
import logging
import random
import string
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Set
from uuid import UUID

from leadintel.config import settings
from leadintel.exceptions import NotFoundError, RepositoryError, SyncError, ValidationError
from leadintel.repositories.base import LeadIntelRepository
from leadintel.schemas import CRMSystem, ExternalCRMSync, Lead, SyncStatus

logger = logging.getLogger(__name__)


class CRMConnector(ABC):
    """Pushes a lead into one third-party CRM."""

    @abstractmethod
    async def push(self, lead: Lead, system: CRMSystem) -> str:
        """
        Mirror the lead and return its id in the external system.

        Raises:
            SyncError: the external system rejected or failed the sync
        """


class SimulatedCRMConnector(CRMConnector):
    """Pretends to sync after a delay and hands back a random external id."""

    def __init__(self, delay: float = None, rng: Optional[random.Random] = None):
        self.delay = settings.CRM_SYNC_DELAY_SECONDS if delay is None else delay
        self.rng = rng or random.Random()

    async def push(self, lead: Lead, system: CRMSystem) -> str:
        await asyncio.sleep(self.delay)
        suffix = "".join(self.rng.choices(string.ascii_lowercase + string.digits, k=6))
        return f"{system.value}_{suffix}"


class CRMSyncTracker:
    """
    Record sync attempts and complete them in the background.

    The caller gets the pending row back immediately; the outcome lands
    on the same row as synced or error. Attempts are never deduplicated.
    """

    def __init__(self, repository: LeadIntelRepository, connector: Optional[CRMConnector] = None):
        self.repository = repository
        self.connector = connector or SimulatedCRMConnector()
        self._pending: Set[asyncio.Task] = set()

    async def sync_lead(self, lead_id: UUID, system: str) -> ExternalCRMSync:
        """
        Start a sync attempt.

        Raises:
            ValidationError: unsupported CRM system
            NotFoundError: unknown lead
        """
        try:
            crm_system = CRMSystem(system)
        except ValueError:
            raise ValidationError(
                f"Unsupported CRM system '{system}', expected one of {[s.value for s in CRMSystem]}"
            ) from None

        lead = await self.repository.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)

        now = datetime.utcnow()
        sync = await self.repository.create_crm_sync(ExternalCRMSync(
            lead_id=lead_id,
            crm_type=crm_system,
            external_id=f"temp_{int(now.timestamp() * 1000)}",
            sync_status=SyncStatus.PENDING,
            sync_data={
                "lead_data": lead.model_dump(mode="json"),
                "sync_initiated_at": now.isoformat(),
            },
            created_at=now,
        ))
        logger.info(f"CRM sync {sync.id} to {crm_system.value} started for lead {lead_id}")

        task = asyncio.create_task(self._complete(sync, lead, crm_system))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        return sync

    async def _complete(self, sync: ExternalCRMSync, lead: Lead, system: CRMSystem):
        try:
            try:
                external_id = await self.connector.push(lead, system)
            except SyncError as e:
                await self._record_error(sync, str(e))
                return
            except Exception as e:
                await self._record_error(sync, f"{type(e).__name__}: {e}")
                return

            await self.repository.update_crm_sync(
                sync.id,
                sync_status=SyncStatus.SYNCED,
                external_id=external_id,
                last_synced=datetime.utcnow(),
                error_message=None
            )
            logger.info(f"CRM sync {sync.id} completed as {external_id}")
        except RepositoryError as e:
            logger.error(f"Could not record outcome of CRM sync {sync.id}: {e}")

    async def _record_error(self, sync: ExternalCRMSync, message: str):
        logger.warning(f"CRM sync {sync.id} failed: {message}")
        await self.repository.update_crm_sync(
            sync.id,
            sync_status=SyncStatus.ERROR,
            error_message=message
        )

    async def get_lead_crm_sync_status(self, lead_id: UUID) -> List[ExternalCRMSync]:
        """Sync attempts for a lead, newest first."""
        return await self.repository.list_crm_syncs(lead_id)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def wait_for_pending(self):
        """Wait for every in-flight sync to land (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
