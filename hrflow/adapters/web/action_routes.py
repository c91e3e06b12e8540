"""HR action API routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from hrflow.domain.dispatcher import Dispatcher
from hrflow.domain.models import ActionContext, ActionResult, Actor
from hrflow.domain.permissions import can_manage_agents
from hrflow.domain.sweep import TerminationReminderSweep


class ActorModel(BaseModel):
    id: str
    role: str
    department: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    is_active: bool = True

    def to_actor(self) -> Actor:
        return Actor(
            id=self.id,
            role=self.role,
            department=self.department,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            is_active=self.is_active,
        )


class ActionRequest(BaseModel):
    actor: ActorModel
    message: str


class ActionResultModel(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    requires_confirmation: bool = False
    confirmation_data: Optional[Dict[str, Any]] = None


class ActionResponse(BaseModel):
    results: List[ActionResultModel]


class ConfirmRequest(BaseModel):
    actor: ActorModel
    payload: Optional[Dict[str, Any]] = None
    correlation_id: Optional[str] = None
    selection: Optional[str] = None


class RejectRequest(BaseModel):
    actor: ActorModel
    correlation_id: str


class SweepRunRequest(BaseModel):
    actor: ActorModel


def _result(result: ActionResult) -> ActionResultModel:
    return ActionResultModel(**result.to_dict())


def create_action_router(
    dispatcher: Dispatcher,
    sweep: Optional[TerminationReminderSweep] = None,
) -> APIRouter:
    actions_router = APIRouter(prefix="/actions", tags=["Actions"])

    @actions_router.post("", response_model=ActionResponse)
    async def process_message(req: ActionRequest):
        results = await dispatcher.process(ActionContext(actor=req.actor.to_actor(), message=req.message))
        return ActionResponse(results=[_result(r) for r in results])

    @actions_router.post("/confirm", response_model=ActionResultModel)
    async def confirm(req: ConfirmRequest):
        if req.payload is None and not req.correlation_id:
            raise HTTPException(status_code=422, detail="Provide a payload or a correlation_id")
        result = await dispatcher.confirm(
            req.actor.to_actor(),
            payload=req.payload,
            correlation_id=req.correlation_id,
            selection=req.selection,
        )
        return _result(result)

    @actions_router.post("/reject")
    async def reject(req: RejectRequest):
        return await dispatcher.reject(req.actor.to_actor(), req.correlation_id)

    @actions_router.get("/confirmations/pending")
    async def confirmations_pending(actor_id: Optional[str] = None):
        if dispatcher.store is None:
            return {"pending": []}
        pending = await dispatcher.store.list_pending(actor_id)
        return {"pending": [p.__dict__ for p in pending]}

    @actions_router.get("/sweep")
    async def sweep_status():
        if sweep is None:
            raise HTTPException(status_code=503, detail="Termination sweep not configured")
        return sweep.guard.status()

    @actions_router.post("/sweep/run")
    async def sweep_run(req: SweepRunRequest):
        if sweep is None:
            raise HTTPException(status_code=503, detail="Termination sweep not configured")
        if not can_manage_agents(req.actor.to_actor()):
            raise HTTPException(status_code=403, detail="Not allowed to run the sweep")
        sent = await sweep.run_once()
        return {"ran": sent is not None, "sent": sent or 0, **sweep.guard.status()}

    return actions_router
