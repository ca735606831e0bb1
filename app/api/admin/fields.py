from fastapi import APIRouter, Depends

from app.core.deps import CAP_MANAGE_OPTIONS, get_field_registry, require_capability
from app.schemas.admin import FieldDefinitionIn, FieldsReplaceIn, GenerateIdIn, LegacyLabelIn
from app.services.audit import resolve_actor
from app.services.field_registry import LEGACY_FIELD_ID, FieldRegistry

router = APIRouter()

can_manage = require_capability(CAP_MANAGE_OPTIONS)


@router.get("")
def list_fields(registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    fields = registry.list_fields()
    return {
        "fields": fields,
        "count": len(fields),
        "types": registry.field_types(),
        "positions": registry.field_positions(),
    }


@router.post("")
def replace_fields(
    payload: FieldsReplaceIn,
    registry: FieldRegistry = Depends(get_field_registry),
    admin=Depends(can_manage),
):
    fields = registry.replace_fields(payload.fields, actor=resolve_actor(admin))
    return {"success": True, "fields": fields, "count": len(fields)}


@router.post("/generate-id")
def generate_id(payload: GenerateIdIn, registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    return {"id": registry.generate_unique_id(payload.base or LEGACY_FIELD_ID)}


@router.get("/legacy-label")
def get_legacy_label(registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    return {"label": registry.legacy_label()}


@router.put("/legacy-label")
def put_legacy_label(payload: LegacyLabelIn, registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    return {"label": registry.set_legacy_label(payload.label, actor=resolve_actor(admin))}


@router.get("/{field_id}")
def get_field(field_id: str, registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    return registry.get_field(field_id)


@router.put("/{field_id}")
def update_field(
    field_id: str,
    payload: FieldDefinitionIn,
    registry: FieldRegistry = Depends(get_field_registry),
    admin=Depends(can_manage),
):
    return registry.update_field(field_id, payload.model_dump(exclude_unset=True), actor=resolve_actor(admin))


@router.delete("/{field_id}")
def delete_field(field_id: str, registry: FieldRegistry = Depends(get_field_registry), admin=Depends(can_manage)):
    removed = registry.delete_field(field_id, actor=resolve_actor(admin))
    return {"deleted": True, "field": removed}
