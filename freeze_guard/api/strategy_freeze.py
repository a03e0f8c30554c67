"""Strategy freeze API: list, upsert, inspect, edit, unfreeze, reset, delete, options."""

from fastapi import APIRouter, Depends, HTTPException

from freeze_guard.api.deps import get_freeze_service, get_key_discovery
from freeze_guard.schemas.strategy_freeze import (
    FreezeDetailRead,
    FreezeEdit,
    FreezeKeyIn,
    FreezeOptionsRead,
    FreezePageRead,
    FreezeRecordRead,
    FreezeUpsert,
    FreezeUpsertResult,
)
from freeze_guard.services import freeze_engine
from freeze_guard.services.errors import (
    DuplicateKeyError,
    FreezeError,
    FreezeValidationError,
    RecordNotFoundError,
)
from freeze_guard.services.freeze_service import FreezeService
from freeze_guard.services.key_discovery import KeyDiscovery

router = APIRouter(prefix="/api/strategy-freeze", tags=["strategy-freeze"])


def _http_error(e: FreezeError) -> HTTPException:
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=404, detail="Freeze config not found")
    if isinstance(e, FreezeValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, DuplicateKeyError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=FreezePageRead)
def list_freezes(
    page: int = 1,
    page_size: int = 20,
    service: FreezeService = Depends(get_freeze_service),
):
    try:
        result = service.list_configs(page, page_size)
    except FreezeError as e:
        raise _http_error(e)

    # Show seconds remaining instead of the raw deadline; stored rows are untouched.
    now = service.now()
    items = [
        FreezeRecordRead.model_validate(record).model_copy(
            update={"frozen_until": freeze_engine.remaining_seconds(record, now)}
        )
        for record in result.records
    ]
    return FreezePageRead(items=items, total=result.total, page=result.page, page_size=result.page_size)


@router.post("", response_model=FreezeUpsertResult)
def upsert_freeze(
    data: FreezeUpsert,
    service: FreezeService = Depends(get_freeze_service),
):
    threshold = data.freeze_threshold if data.freeze_threshold > 0 else service.store.default_threshold
    hours = (
        data.freeze_duration_hours if data.freeze_duration_hours > 0
        else service.store.default_duration_hours
    )
    try:
        record, created = service.upsert_config(
            data.symbol,
            data.strategy_name,
            data.trade_mode,
            freeze_threshold=threshold,
            freeze_duration_hours=hours,
            loss_count=data.loss_count,
            frozen_until=data.frozen_until,
        )
    except FreezeError as e:
        raise _http_error(e)
    return FreezeUpsertResult(created=created, record=FreezeRecordRead.model_validate(record))


@router.get("/options", response_model=FreezeOptionsRead)
def freeze_options(discovery: KeyDiscovery = Depends(get_key_discovery)):
    try:
        return discovery.options()
    except FreezeError as e:
        raise _http_error(e)


@router.get("/detail", response_model=FreezeDetailRead)
def get_freeze(
    symbol: str = "",
    strategy_name: str = "",
    trade_mode: str = "",
    service: FreezeService = Depends(get_freeze_service),
):
    try:
        record = service.get_freeze_config(symbol, strategy_name, trade_mode)
    except FreezeError as e:
        raise _http_error(e)

    now = service.now()
    return FreezeDetailRead(
        config=FreezeRecordRead.model_validate(record),
        is_frozen=freeze_engine.is_frozen(record, now),
        remaining_seconds=freeze_engine.remaining_seconds(record, now),
    )


@router.put("/{record_id}", response_model=FreezeRecordRead)
def edit_freeze(
    record_id: int,
    data: FreezeEdit,
    service: FreezeService = Depends(get_freeze_service),
):
    try:
        return service.edit_by_id(record_id, data.model_dump(mode="json"))
    except FreezeError as e:
        raise _http_error(e)


@router.post("/unfreeze")
def unfreeze(data: FreezeKeyIn, service: FreezeService = Depends(get_freeze_service)):
    try:
        service.unfreeze_manually(data.symbol, data.strategy_name, data.trade_mode)
    except FreezeError as e:
        raise _http_error(e)
    return {"status": "ok", "message": "Unfrozen"}


@router.post("/reset-loss-count")
def reset_loss_count(data: FreezeKeyIn, service: FreezeService = Depends(get_freeze_service)):
    try:
        service.reset_loss_count(data.symbol, data.strategy_name, data.trade_mode)
    except FreezeError as e:
        raise _http_error(e)
    return {"status": "ok", "message": "Loss count reset"}


@router.delete("/{record_id}", status_code=204)
def delete_freeze(record_id: int, service: FreezeService = Depends(get_freeze_service)):
    try:
        service.delete_by_id(record_id)
    except FreezeError as e:
        raise _http_error(e)
