"""CRUD routes for slot-bearing entities (schools, plans, subjects, posts, books)."""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from ..api.errors import bad_request_error, validation_error
from ..media.asset_replacement import AssetReplacementService, EntityUpdateOutcome, SlotRequest
from ..media.slot_bindings import EntityResource
from ..media.slot_repository import MediaSlotRepository
from .entity_resources import RESOURCES, SCHOOLS
from .entity_schemas import SlotReceipt

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_replacement_service(request: Request) -> AssetReplacementService:
    """Fetch the asset replacement service from application state."""
    try:
        return request.app.state.replacement_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("AssetReplacementService is not configured") from exc


def get_slot_repository(request: Request) -> MediaSlotRepository:
    try:
        return request.app.state.slot_repository  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - misconfigured app
        raise RuntimeError("MediaSlotRepository is not configured") from exc


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


async def _read_body(request: Request, resource: EntityResource) -> tuple[dict[str, Any], dict[str, UploadFile]]:
    """Return the JSON payload and the uploaded files keyed by slot name.

    Multipart bodies carry the payload as a ``payload`` form field and one
    file field per slot; plain JSON bodies carry the payload directly.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except json.JSONDecodeError as exc:
            raise bad_request_error("request body is not valid JSON") from exc
        uploads: dict[str, UploadFile] = {}
    else:
        form = await request.form()
        raw = form.get("payload")
        if raw is None or isinstance(raw, UploadFile):
            data = {}
        else:
            try:
                data = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError as exc:
                raise bad_request_error("payload must be a JSON object") from exc
        uploads = {}
        for slot in resource.slot_names:
            value = form.get(slot)
            if isinstance(value, UploadFile) and value.filename:
                uploads[slot] = value
    if not isinstance(data, dict):
        raise bad_request_error("payload must be a JSON object")
    return data, uploads


def _pop_text(data: dict[str, Any], name: str) -> str | None:
    value = data.pop(name, None)
    if value is not None and not isinstance(value, str):
        raise validation_error(f"{name} must be a string")
    return value


def _split_payload(
    resource: EntityResource,
    data: dict[str, Any],
    uploads: dict[str, UploadFile],
    schema: type[BaseModel],
    *,
    partial: bool,
) -> tuple[dict[str, Any], dict[str, SlotRequest]]:
    data = dict(data)
    requests: dict[str, SlotRequest] = {}
    for slot in resource.slot_names:
        url = _pop_text(data, f"{slot}_url")
        key = _pop_text(data, f"{slot}_object_key")
        clear = _flag(data.pop(f"{slot}_clear", False))
        request = SlotRequest(
            upload=uploads.get(slot),
            asset_url=url or None,
            asset_object_key=key or None,
            clear=clear,
        )
        if not request.is_noop:
            requests[slot] = request
    try:
        model = schema.model_validate(data)
    except ValidationError as exc:
        raise validation_error(str(exc)) from exc
    fields = model.model_dump(exclude_unset=partial)
    return fields, requests


def _render(resource: EntityResource, outcome: EntityUpdateOutcome) -> dict[str, Any]:
    body = dict(outcome.entity)
    body["id"] = outcome.entity.get(resource.id_column)
    body["uploaded_image_url"] = outcome.uploaded_image_url
    body["moved_old_image_url"] = outcome.moved_old_image_url
    body["media"] = {
        slot: SlotReceipt(
            uploaded_url=slot_outcome.uploaded_url,
            moved_old_url=slot_outcome.moved_old_url,
            deleted_keys=list(slot_outcome.deleted_keys),
            warnings=[str(failure) for failure in slot_outcome.failures],
        ).model_dump()
        for slot, slot_outcome in outcome.slots.items()
    }
    return jsonable_encoder(body)


def build_entity_router(resource: EntityResource) -> APIRouter:
    """Create the router exposing ``resource`` under ``/api``."""
    if resource.tenant_column:
        prefix = f"/api/schools/{{school_id}}/{resource.name}"
    else:
        prefix = f"/api/{resource.name}"
    router = APIRouter(prefix=prefix, tags=[resource.name])

    def _tenant(request: Request, repo: MediaSlotRepository) -> str | None:
        school_id = request.path_params.get("school_id")
        if school_id is not None:
            repo.get(SCHOOLS, school_id)
        return school_id

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_entity(
        request: Request,
        service: AssetReplacementService = Depends(get_replacement_service),
        repo: MediaSlotRepository = Depends(get_slot_repository),
    ) -> JSONResponse:
        tenant_id = _tenant(request, repo)
        data, uploads = await _read_body(request, resource)
        fields, requests = _split_payload(
            resource, data, uploads, resource.create_schema, partial=False
        )
        outcome = await service.create_entity(
            resource, fields=fields, requests=requests, tenant_id=tenant_id
        )
        return JSONResponse(status_code=status.HTTP_201_CREATED, content=_render(resource, outcome))

    @router.get("/{entity_id}")
    async def fetch_entity(
        entity_id: str,
        request: Request,
        repo: MediaSlotRepository = Depends(get_slot_repository),
    ) -> JSONResponse:
        tenant_id = _tenant(request, repo)
        loaded = repo.get(resource, entity_id, tenant_id=tenant_id)
        return JSONResponse(content=_render(resource, EntityUpdateOutcome(entity=loaded.row)))

    @router.patch("/{entity_id}")
    async def update_entity(
        entity_id: str,
        request: Request,
        service: AssetReplacementService = Depends(get_replacement_service),
        repo: MediaSlotRepository = Depends(get_slot_repository),
    ) -> JSONResponse:
        tenant_id = _tenant(request, repo)
        data, uploads = await _read_body(request, resource)
        fields, requests = _split_payload(
            resource, data, uploads, resource.update_schema, partial=True
        )
        outcome = await service.update_entity(
            resource, entity_id, requests=requests, fields=fields, tenant_id=tenant_id
        )
        return JSONResponse(content=_render(resource, outcome))

    @router.delete("/{entity_id}")
    async def delete_entity(
        entity_id: str,
        request: Request,
        service: AssetReplacementService = Depends(get_replacement_service),
        repo: MediaSlotRepository = Depends(get_slot_repository),
    ) -> JSONResponse:
        tenant_id = _tenant(request, repo)
        outcome = await service.discard_entity(resource, entity_id, tenant_id=tenant_id)
        return JSONResponse(content=_render(resource, outcome))

    return router


def build_entity_routers() -> list[APIRouter]:
    return [build_entity_router(resource) for resource in RESOURCES]


__all__ = [
    "build_entity_router",
    "build_entity_routers",
    "get_replacement_service",
    "get_slot_repository",
]
