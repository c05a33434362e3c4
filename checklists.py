"""
checklists.py — Packing list and pre-trip preparations (FastAPI)

Routes (all require authentication):
  GET    /trips/{id}/packing                    — {items, packed, total}
  POST   /trips/{id}/packing                    — add an item (never packed on create)
  PUT    /trips/{id}/packing/{item_id}          — partial update
  DELETE /trips/{id}/packing/{item_id}
  GET    /trips/{id}/preparations               — {items, completed, total}
  POST   /trips/{id}/preparations               — add a preparation
  PUT    /trips/{id}/preparations/{item_id}     — partial update
  DELETE /trips/{id}/preparations/{item_id}

A preparation with a non-empty checklist is completed exactly when every
checklist entry is; with no checklist, `completed` is whatever was set.
"""

import json
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from auth import get_current_user
from database import get_db
from models import PackingItem, PreparationItem, User
from schemas import (
    ChecklistEntry, PackingItemCreate, PackingItemUpdate,
    PreparationItemCreate, PreparationItemUpdate,
)
from store import trip_or_404

logger = logging.getLogger(__name__)

checklists_router = APIRouter(prefix='/trips/{trip_id}', tags=['checklists'])


def _find_or_404(items, item_id: int, label: str):
    for item in items:
        if item.id == item_id:
            return item
    raise HTTPException(status_code=404, detail=f'{label} not found')


def _serialise_checklist(entries: list[ChecklistEntry]) -> str | None:
    if not entries:
        return None
    return json.dumps([
        {'id': e.id or uuid.uuid4().hex, 'text': e.text, 'completed': e.completed}
        for e in entries
    ])


def derive_completed(checklist: list[dict], completed: bool) -> bool:
    if checklist:
        return all(entry.get('completed') for entry in checklist)
    return completed


# ── Packing list ──────────────────────────────────────────────────────────────

@checklists_router.get('/packing')
async def list_packing(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _query():
        items = trip_or_404(db, trip_id, current_user).packing_items
        return {
            'items':  [i.to_dict() for i in items],
            'packed': sum(1 for i in items if i.packed),
            'total':  len(items),
        }

    return await run_in_threadpool(_query)


@checklists_router.post('/packing', status_code=201)
async def create_packing_item(
    trip_id: int,
    body: PackingItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _create():
        trip = trip_or_404(db, trip_id, current_user)
        item = PackingItem(name=body.name, quantity=body.quantity,
                           priority=body.priority, packed=False)
        trip.packing_items.append(item)
        db.commit()
        db.refresh(item)
        return item.to_dict()

    item = await run_in_threadpool(_create)
    logger.info("Packing item created: id=%d on trip %d", item['id'], trip_id)
    return {'item': item}


@checklists_router.put('/packing/{item_id}')
async def update_packing_item(
    trip_id: int,
    item_id: int,
    body: PackingItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _update():
        trip = trip_or_404(db, trip_id, current_user)
        item = _find_or_404(trip.packing_items, item_id, 'Packing item')
        for field in ('name', 'quantity', 'priority', 'packed'):
            value = getattr(body, field)
            if field in body.model_fields_set and value is not None:
                setattr(item, field, value)
        db.commit()
        return item.to_dict()

    return {'item': await run_in_threadpool(_update)}


@checklists_router.delete('/packing/{item_id}')
async def delete_packing_item(
    trip_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _delete():
        trip = trip_or_404(db, trip_id, current_user)
        trip.packing_items.remove(_find_or_404(trip.packing_items, item_id, 'Packing item'))
        db.commit()

    await run_in_threadpool(_delete)
    logger.info("Packing item deleted: id=%d on trip %d", item_id, trip_id)
    return {'status': 'ok'}


# ── Preparations ──────────────────────────────────────────────────────────────

@checklists_router.get('/preparations')
async def list_preparations(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _query():
        items = trip_or_404(db, trip_id, current_user).preparations
        return {
            'items':     [p.to_dict() for p in items],
            'completed': sum(1 for p in items if p.completed),
            'total':     len(items),
        }

    return await run_in_threadpool(_query)


@checklists_router.post('/preparations', status_code=201)
async def create_preparation(
    trip_id: int,
    body: PreparationItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _create():
        trip = trip_or_404(db, trip_id, current_user)
        item = PreparationItem(
            name      = body.name,
            category  = body.category,
            due_date  = body.due_date,
            notes     = body.notes,
            checklist = _serialise_checklist(body.checklist),
        )
        item.completed = derive_completed(item.checklist_items, body.completed)
        trip.preparations.append(item)
        db.commit()
        db.refresh(item)
        return item.to_dict()

    item = await run_in_threadpool(_create)
    logger.info("Preparation created: id=%d on trip %d", item['id'], trip_id)
    return {'item': item}


@checklists_router.put('/preparations/{item_id}')
async def update_preparation(
    trip_id: int,
    item_id: int,
    body: PreparationItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """PUT — partial update; `completed` is re-derived whenever a checklist exists."""
    def _update():
        trip = trip_or_404(db, trip_id, current_user)
        item = _find_or_404(trip.preparations, item_id, 'Preparation')
        sent = body.model_fields_set

        if 'name' in sent and body.name is not None:
            item.name = body.name
        if 'category' in sent and body.category is not None:
            item.category = body.category
        if 'due_date' in sent:
            item.due_date = body.due_date
        if 'notes' in sent:
            item.notes = body.notes
        if 'checklist' in sent:
            item.checklist = _serialise_checklist(body.checklist or [])

        requested = body.completed if body.completed is not None else item.completed
        item.completed = derive_completed(item.checklist_items, requested)
        db.commit()
        return item.to_dict()

    return {'item': await run_in_threadpool(_update)}


@checklists_router.delete('/preparations/{item_id}')
async def delete_preparation(
    trip_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _delete():
        trip = trip_or_404(db, trip_id, current_user)
        trip.preparations.remove(_find_or_404(trip.preparations, item_id, 'Preparation'))
        db.commit()

    await run_in_threadpool(_delete)
    logger.info("Preparation deleted: id=%d on trip %d", item_id, trip_id)
    return {'status': 'ok'}
