"""
HR Integration API Routes

Endpoints for connecting companies to HR systems, testing connections and
running syncs.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.dependencies import get_adapter_cache, get_cipher, get_config_store, get_sync_service
from backend.middleware.rbac import (
    CurrentUser,
    Permission,
    ensure_company_access,
    require_permission,
)
from backend.models.hr_integration import HRIntegration
from backend.models.sync_run import HRSyncRun
from backend.schemas.hr_integration import (
    ConnectionTestResponse,
    EntityProbe,
    HRIntegrationCreate,
    HRIntegrationResponse,
    SyncHistoryResponse,
    SyncQueuedResponse,
    SyncRequest,
    SyncRunResponse,
)
from backend.services.collaborators import IntegrationConfigStore
from backend.services.hr_sync import HRSyncService
from integrations.adapter_cache import AdapterCache
from integrations.base import EntityType, HRCredentials, SyncStats
from integrations.credentials import CredentialCipher
from integrations.exceptions import (
    HRIntegrationError,
    IntegrationInactiveError,
    IntegrationNotFoundError,
)
from integrations.registry import create_adapter, get_hr_system_info, list_hr_systems

logger = logging.getLogger(__name__)

router = APIRouter()


def to_response(row: HRIntegration) -> HRIntegrationResponse:
    return HRIntegrationResponse(
        id=str(row.id),
        company_id=row.company_id,
        system_type=row.system_type,
        name=row.name,
        sync_settings=row.sync_settings or {},
        field_mappings=row.field_mappings or [],
        last_sync=row.last_sync,
        last_sync_at=row.last_sync_at,
        last_sync_status=row.last_sync_status,
        is_active=row.is_active,
        has_webhook_secret=bool(row.webhook_secret),
        created_at=row.created_at,
    )


async def get_integration_or_404(
    company_id: str,
    config_id: UUID,
    db: AsyncSession,
) -> HRIntegration:
    """Helper to get a company's integration or raise 404."""
    result = await db.execute(
        select(HRIntegration).where(
            HRIntegration.id == config_id,
            HRIntegration.company_id == company_id,
        )
    )
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"HR integration {config_id} not found",
        )
    return row


@router.get(
    "/hr-integrations/providers",
    summary="List HR systems",
    description="Registry metadata for every supported HR system.",
)
async def list_providers(
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_READ)),
) -> list[dict]:
    return [info.model_dump(by_alias=True) for info in list_hr_systems()]


@router.get(
    "/companies/{company_id}/hr-integrations",
    response_model=list[HRIntegrationResponse],
    summary="List HR integrations",
)
async def list_integrations(
    company_id: str,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_READ)),
) -> list[HRIntegrationResponse]:
    ensure_company_access(user, company_id)

    query = select(HRIntegration).where(HRIntegration.company_id == company_id)
    if not include_inactive:
        query = query.where(HRIntegration.is_active.is_(True))

    result = await db.execute(query.order_by(HRIntegration.created_at))
    return [to_response(row) for row in result.scalars().all()]


@router.post(
    "/companies/{company_id}/hr-integrations",
    response_model=HRIntegrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Connect an HR system",
)
async def create_integration(
    company_id: str,
    data: HRIntegrationCreate,
    db: AsyncSession = Depends(get_db),
    cipher: CredentialCipher = Depends(get_cipher),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_WRITE)),
) -> HRIntegrationResponse:
    ensure_company_access(user, company_id)

    auth_type = get_hr_system_info(data.system_type).auth_type
    credentials = HRCredentials.model_validate({"type": auth_type, **data.credentials})
    row = HRIntegration(
        company_id=company_id,
        system_type=data.system_type.value,
        name=data.name,
        credentials_encrypted=cipher.encrypt(credentials),
        sync_settings=data.sync_settings.model_dump(mode="json", by_alias=True),
        field_mappings=[
            m.model_dump(mode="json", by_alias=True, exclude_none=True)
            for m in data.field_mappings
        ],
        webhook_secret=data.webhook_secret,
        is_active=True,
    )
    db.add(row)
    await db.flush()
    await db.refresh(row)

    logger.info(
        f"Connected {data.system_type.value} integration",
        extra={"company_id": company_id, "config_id": str(row.id), "user_id": user.id},
    )
    return to_response(row)


@router.post(
    "/companies/{company_id}/hr-integrations/{config_id}/test",
    response_model=ConnectionTestResponse,
    summary="Test an HR connection",
    description="Validates credentials and probes employee, department and job access.",
)
async def test_integration(
    company_id: str,
    config_id: UUID,
    db: AsyncSession = Depends(get_db),
    config_store: IntegrationConfigStore = Depends(get_config_store),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_WRITE)),
) -> ConnectionTestResponse:
    ensure_company_access(user, company_id)
    await get_integration_or_404(company_id, config_id, db)

    config = await config_store.get_config(str(config_id))
    try:
        adapter = create_adapter(config)
    except HRIntegrationError as e:
        return ConnectionTestResponse(success=False, message=str(e))

    try:
        if not await adapter.validate_connection():
            return ConnectionTestResponse(
                success=False,
                message=f"Failed to connect to {config.system_type.value}",
            )

        probes = {
            EntityType.EMPLOYEES: lambda: adapter.get_employees(None),
            EntityType.DEPARTMENTS: adapter.get_departments,
            EntityType.JOB_POSITIONS: adapter.get_job_positions,
        }
        entities: dict[str, EntityProbe] = {}
        for entity, probe in probes.items():
            try:
                records = await probe()
                entities[entity.value] = EntityProbe(accessible=True, count=len(records))
            except Exception as e:
                logger.warning(
                    f"{entity.value} probe failed: {e}",
                    extra={"config_id": str(config_id)},
                )
                entities[entity.value] = EntityProbe(accessible=False, error=str(e))
    finally:
        await adapter.close()

    return ConnectionTestResponse(
        success=True,
        message=f"Connected to {config.system_type.value}",
        entities=entities,
    )


@router.post(
    "/companies/{company_id}/hr-integrations/{config_id}/sync",
    summary="Run an HR sync",
    description=(
        "Runs a sync and returns the SyncResult: 200 when every record synced, "
        "207 on partial failure. With background=true the sync is queued instead."
    ),
    responses={207: {"description": "Sync completed with failures"}},
)
async def trigger_sync(
    company_id: str,
    config_id: UUID,
    body: SyncRequest | None = None,
    background: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    service: HRSyncService = Depends(get_sync_service),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_SYNC)),
):
    ensure_company_access(user, company_id)
    row = await get_integration_or_404(company_id, config_id, db)
    if not row.is_active:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="HR integration is not active",
        )

    entity_types = body.entity_types if body else None

    if background:
        from workers.tasks.sync_tasks import sync_integration

        task = sync_integration.delay(str(config_id), entity_types)
        queued = SyncQueuedResponse(task_id=task.id, config_id=str(config_id))
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=queued.model_dump())

    try:
        result = await service.perform_sync(str(config_id), entity_types)
    except IntegrationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IntegrationInactiveError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return JSONResponse(
        status_code=status.HTTP_200_OK if result.success else status.HTTP_207_MULTI_STATUS,
        content=result.as_dict(),
    )


@router.get(
    "/companies/{company_id}/hr-integrations/{config_id}/sync",
    response_model=SyncHistoryResponse,
    summary="Sync history",
)
async def sync_history(
    company_id: str,
    config_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_READ)),
) -> SyncHistoryResponse:
    ensure_company_access(user, company_id)
    await get_integration_or_404(company_id, config_id, db)

    count_result = await db.execute(
        select(func.count()).select_from(HRSyncRun).where(HRSyncRun.integration_id == config_id)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(HRSyncRun)
        .where(HRSyncRun.integration_id == config_id)
        .order_by(HRSyncRun.started_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = [
        SyncRunResponse(
            sync_id=run.sync_id,
            success=run.success,
            started_at=run.started_at,
            stats=SyncStats(
                total_records=run.total_records,
                successful=run.successful,
                failed=run.failed,
                skipped=run.skipped,
            ),
            entity_stats=run.entity_stats or {},
            errors=run.errors or [],
            warnings=run.warnings or [],
        )
        for run in result.scalars().all()
    ]
    return SyncHistoryResponse(items=items, total=total, page=page, page_size=page_size)


@router.delete(
    "/companies/{company_id}/hr-integrations/{config_id}",
    response_model=HRIntegrationResponse,
    summary="Disconnect an HR system",
    description="Deactivates the integration; sync history is kept.",
)
async def deactivate_integration(
    company_id: str,
    config_id: UUID,
    db: AsyncSession = Depends(get_db),
    adapters: AdapterCache = Depends(get_adapter_cache),
    user: CurrentUser = Depends(require_permission(Permission.HR_INTEGRATION_WRITE)),
) -> HRIntegrationResponse:
    ensure_company_access(user, company_id)
    row = await get_integration_or_404(company_id, config_id, db)

    row.is_active = False
    await db.flush()
    await adapters.invalidate(str(config_id))

    logger.info(
        "Deactivated HR integration",
        extra={"company_id": company_id, "config_id": str(config_id), "user_id": user.id},
    )
    return to_response(row)
