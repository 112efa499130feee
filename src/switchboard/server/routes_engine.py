"""Engine routes: agents, matching, dispatch, plan execution, registry reload."""

from __future__ import annotations

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from switchboard.engine.models import ExecutionPlan
from switchboard.errors import NotFound, PlanRunning, RegistryError


def _plan_payload(plan: ExecutionPlan) -> dict:
    data = plan.model_dump(mode="json")
    data["exit_code"] = plan.exit_code()
    return data


async def _task_from_body(request: Request) -> str | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    task = body.get("task") if isinstance(body, dict) else None
    if not isinstance(task, str) or not task.strip():
        return None
    return task


async def list_agents(request: Request) -> JSONResponse:
    """GET /api/agents: agents in load order."""
    registry = request.app.state.engine.registry
    agents = [
        {
            "name": a.name,
            "category": a.category.value,
            "description": a.description,
            "triggers": list(a.triggers),
            "workflows": [w.name for w in a.workflows],
            "related_agents": list(a.related_agents),
        }
        for a in registry.all_agents()
    ]
    return JSONResponse({"agents": agents, "count": len(agents), "registry": registry.digest})


async def get_agent(request: Request) -> JSONResponse:
    """GET /api/agents/{name}: full agent definition."""
    name = request.path_params["name"]
    try:
        agent = request.app.state.engine.registry.lookup(name)
    except NotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return JSONResponse(agent.model_dump(mode="json"))


async def match_task(request: Request) -> JSONResponse:
    """POST /api/match: ranked candidates for a task, without dispatching."""
    task = await _task_from_body(request)
    if task is None:
        return JSONResponse({"error": "Body must be JSON with a non-empty 'task'"}, status_code=422)
    matches = request.app.state.engine.match(task)
    return JSONResponse(
        {
            "task": task,
            "matches": [
                {
                    "agent": m.agent.name,
                    "category": m.agent.category.value,
                    "score": m.score,
                    "triggers": list(m.triggers),
                    "focus_hits": list(m.focus_hits),
                }
                for m in matches
            ],
        }
    )


async def dispatch_task(request: Request) -> JSONResponse:
    """POST /api/dispatch: create a plan for a task."""
    task = await _task_from_body(request)
    if task is None:
        return JSONResponse({"error": "Body must be JSON with a non-empty 'task'"}, status_code=422)
    plan = request.app.state.engine.dispatch(task)
    return JSONResponse(_plan_payload(plan))


async def list_plans(request: Request) -> JSONResponse:
    """GET /api/plans: plans known to this process."""
    plans = request.app.state.engine.list_plans()
    return JSONResponse(
        {
            "plans": [
                {
                    "id": p.id,
                    "task": p.task,
                    "agent": p.agent.name if p.agent else None,
                    "outcome": p.outcome.model_dump(mode="json") if p.outcome else None,
                }
                for p in plans
            ],
            "count": len(plans),
        }
    )


async def get_plan(request: Request) -> JSONResponse:
    """GET /api/plans/{plan_id}"""
    try:
        plan = request.app.state.engine.get_plan(request.path_params["plan_id"])
    except NotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    return JSONResponse(_plan_payload(plan))


async def run_plan(request: Request) -> JSONResponse:
    """POST /api/plans/{plan_id}/run: execute the plan (blocking, off the event loop)."""
    engine = request.app.state.engine
    follow: bool | None = None
    raw = await request.body()
    if raw.strip():
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=422)
        if isinstance(body, dict) and isinstance(body.get("follow_handoffs"), bool):
            follow = body["follow_handoffs"]
    try:
        plan = engine.get_plan(request.path_params["plan_id"])
    except NotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    try:
        plan = await run_in_threadpool(engine.run, plan, follow_handoffs=follow)
    except PlanRunning as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return JSONResponse(_plan_payload(plan))


async def cancel_plan(request: Request) -> JSONResponse:
    """POST /api/plans/{plan_id}/cancel"""
    plan_id = request.path_params["plan_id"]
    if not request.app.state.engine.cancel(plan_id):
        return JSONResponse({"error": f"Plan '{plan_id}' not found"}, status_code=404)
    return JSONResponse({"plan_id": plan_id, "cancel_requested": True})


async def reload_registry(request: Request) -> JSONResponse:
    """POST /api/registry/reload: atomic swap; the old snapshot stays on failure."""
    engine = request.app.state.engine
    sources = None
    raw = await request.body()
    if raw.strip():
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=422)
        if isinstance(body, dict) and isinstance(body.get("sources"), list):
            sources = [str(s) for s in body["sources"]]
    try:
        registry = await run_in_threadpool(engine.reload, sources)
    except RegistryError as e:
        return JSONResponse(
            {"reloaded": False, "error": str(e), "problems": e.problems},
            status_code=422,
        )
    return JSONResponse(
        {
            "reloaded": True,
            "registry": registry.digest,
            "generation": engine.holder.generation,
            "agents": len(registry),
        }
    )


routes = [
    Route("/api/agents", list_agents),
    Route("/api/agents/{name}", get_agent),
    Route("/api/match", match_task, methods=["POST"]),
    Route("/api/dispatch", dispatch_task, methods=["POST"]),
    Route("/api/plans", list_plans),
    Route("/api/plans/{plan_id}", get_plan),
    Route("/api/plans/{plan_id}/run", run_plan, methods=["POST"]),
    Route("/api/plans/{plan_id}/cancel", cancel_plan, methods=["POST"]),
    Route("/api/registry/reload", reload_registry, methods=["POST"]),
]
