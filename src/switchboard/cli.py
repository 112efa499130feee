"""CLI entry point for switchboard."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import cast

from switchboard import __version__
from switchboard.engine.config import CONFIG_FILENAME, EngineConfig, load_engine_config
from switchboard.engine.models import ExecutionPlan, StepResult, StepStatus
from switchboard.engine.plan_store import PlanStore
from switchboard.engine.service import DispatchEngine
from switchboard.errors import NotFound, RegistryError

_STATUS_MARK = {
    StepStatus.COMPLETED: "ok",
    StepStatus.FAILED: "FAILED",
    StepStatus.BLOCKED: "BLOCKED",
}


def _load_config(args: argparse.Namespace) -> EngineConfig:
    config_path = cast(Path | None, args.config) or Path.cwd() / CONFIG_FILENAME
    config = load_engine_config(config_path)
    sources = cast(list[str] | None, getattr(args, "source", None))
    if sources:
        config.sources = sources
    return config


def _build_engine(args: argparse.Namespace) -> DispatchEngine:
    config = _load_config(args)
    try:
        return DispatchEngine.from_config(config)
    except RegistryError as e:
        print("Error: registry is invalid:", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _print_step(plan: ExecutionPlan, result: StepResult) -> None:
    agent = plan.agent.name if plan.agent else "?"
    mark = _STATUS_MARK[result.status]
    print(f"[{agent}] step {result.index} ({result.action}) {mark}: {result.instruction}")
    if result.output:
        print(f"    {result.output}")
    if result.reason:
        print(f"    reason: {result.reason}")


def _cmd_dispatch(args: argparse.Namespace) -> None:
    task = " ".join(cast(list[str], args.task))
    engine = _build_engine(args)
    plan = engine.dispatch(task)
    store = PlanStore()

    if plan.outcome is not None:
        print(f"Error: {plan.outcome.reason}", file=sys.stderr)
        sys.exit(plan.exit_code())

    store.save(plan)
    assert plan.agent is not None and plan.workflow is not None
    print(f"Agent:    {plan.agent.name}")
    print(f"Workflow: {plan.workflow.name}")
    print(f"Score:    {plan.score:g}")
    print(f"Plan:     {plan.id}")

    if args.run:
        _execute(engine, store, plan, pause=bool(args.pause_on_handoff))


def _cmd_run(args: argparse.Namespace) -> None:
    store = PlanStore()
    plan_id = cast(str, args.plan_id)
    try:
        plan = store.load(plan_id)
    except NotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    engine = _build_engine(args)
    _execute(engine, store, plan, pause=bool(args.pause_on_handoff))


def _execute(
    engine: DispatchEngine, store: PlanStore, plan: ExecutionPlan, *, pause: bool
) -> None:
    engine.run(plan, on_step=_print_step, follow_handoffs=not pause)
    for p in plan.chain():
        store.save(p)

    plans = plan.chain()
    if len(plans) > 1:
        print("Handoff chain: " + " -> ".join(p.agent.name for p in plans if p.agent))
    print(f"Outcome: {plan.last_outcome()}")
    final = plan.final()
    if not final.done:
        print(f"Next plan: {final.id}")
    sys.exit(plan.exit_code())


def _cmd_cancel(args: argparse.Namespace) -> None:
    import httpx

    from switchboard.config import get_api_url

    plan_id = cast(str, args.plan_id)
    try:
        resp = httpx.post(f"{get_api_url()}/api/plans/{plan_id}/cancel", timeout=5.0)
    except httpx.HTTPError as e:
        print(f"Error: server unreachable: {e}", file=sys.stderr)
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.json().get('error', resp.text)}", file=sys.stderr)
        sys.exit(1)
    print(f"Cancellation requested for plan {plan_id}")


def _cmd_reload_registry(args: argparse.Namespace) -> None:
    from switchboard.registry.loader import Registry
    from switchboard.registry.validation import validate_registry

    config = _load_config(args)
    base = Path.cwd()
    sources = [Path(s) if Path(s).is_absolute() else base / s for s in config.sources]
    try:
        registry = Registry.load(sources)
    except RegistryError as e:
        print("Error: registry is invalid:", file=sys.stderr)
        for problem in e.problems:
            print(f"  - {problem}", file=sys.stderr)
        sys.exit(1)

    for warning in validate_registry(registry):
        print(f"Warning: {warning.message}", file=sys.stderr)

    if args.remote:
        import httpx

        from switchboard.config import get_api_url

        try:
            resp = httpx.post(
                f"{get_api_url()}/api/registry/reload",
                json={"sources": [str(s) for s in sources]},
                timeout=30.0,
            )
        except httpx.HTTPError as e:
            print(f"Error: server unreachable: {e}", file=sys.stderr)
            sys.exit(1)
        if resp.status_code != 200:
            print(f"Error: {resp.json().get('error', resp.text)}", file=sys.stderr)
            sys.exit(1)

    print(f"Registry {registry.digest[:12]}: {len(registry)} agents, "
          f"{len(registry.all_skills())} skills")


def _cmd_agents(args: argparse.Namespace) -> None:
    engine = _build_engine(args)
    for agent in engine.registry.all_agents():
        workflows = ", ".join(w.name for w in agent.workflows)
        print(f"{agent.name:<32} {agent.category.value:<15} {workflows}")


def _cmd_match(args: argparse.Namespace) -> None:
    task = " ".join(cast(list[str], args.task))
    engine = _build_engine(args)
    matches = engine.match(task)
    if not matches:
        print("No confident match.")
        sys.exit(1)
    for m in matches:
        triggers = ", ".join(m.triggers) or "-"
        print(f"{m.score:>7.2f}  {m.agent.name:<32} triggers: {triggers}")


def _cmd_serve(args: argparse.Namespace) -> None:
    from switchboard.config import load_config
    from switchboard.server.runner import run_server

    engine = _build_engine(args)
    config_path = cast(Path | None, args.config) or Path.cwd() / CONFIG_FILENAME
    run_server(engine, load_config(config_path))


def _cmd_mcp_serve(_args: argparse.Namespace) -> None:
    from switchboard.mcp_server.server import main as mcp_main

    mcp_main()


def _add_registry_args(p: argparse.ArgumentParser) -> None:
    _ = p.add_argument(
        "--source",
        action="append",
        default=None,
        help="Registry source file or directory (repeatable; overrides config)",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Agent selection and workflow dispatch engine",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"switchboard {__version__}"
    )
    _ = parser.add_argument(
        "--config", type=Path, default=None, help=f"Config file (default: ./{CONFIG_FILENAME})"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # dispatch subcommand
    dispatch_p = subparsers.add_parser("dispatch", help="Select an agent and workflow for a task")
    _ = dispatch_p.add_argument("task", nargs="+", help="Task description")
    _ = dispatch_p.add_argument("--run", action="store_true", help="Run the plan immediately")
    _ = dispatch_p.add_argument(
        "--pause-on-handoff",
        action="store_true",
        dest="pause_on_handoff",
        help="Stop at the first handoff instead of running the target plan",
    )
    _add_registry_args(dispatch_p)

    # run subcommand
    run_p = subparsers.add_parser("run", help="Execute a dispatched plan")
    _ = run_p.add_argument("plan_id", help="Plan id printed by dispatch")
    _ = run_p.add_argument(
        "--pause-on-handoff",
        action="store_true",
        dest="pause_on_handoff",
        help="Stop at the first handoff instead of running the target plan",
    )
    _add_registry_args(run_p)

    # cancel subcommand
    cancel_p = subparsers.add_parser("cancel", help="Cancel a plan running in the server")
    _ = cancel_p.add_argument("plan_id")

    # reload-registry subcommand
    reload_p = subparsers.add_parser("reload-registry", help="Validate and swap the registry")
    _ = reload_p.add_argument(
        "--remote", action="store_true", help="Also swap the registry of the running server"
    )
    _add_registry_args(reload_p)

    # agents subcommand
    agents_p = subparsers.add_parser("agents", help="List registry agents")
    _add_registry_args(agents_p)

    # match subcommand
    match_p = subparsers.add_parser("match", help="Show agent ranking for a task")
    _ = match_p.add_argument("task", nargs="+")
    _add_registry_args(match_p)

    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _add_registry_args(serve_p)
    _ = subparsers.add_parser("mcp-serve", help="Start the MCP stdio server")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    dispatch = {
        "dispatch": _cmd_dispatch,
        "run": _cmd_run,
        "cancel": _cmd_cancel,
        "reload-registry": _cmd_reload_registry,
        "agents": _cmd_agents,
        "match": _cmd_match,
        "serve": _cmd_serve,
        "mcp-serve": _cmd_mcp_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if handler:
        handler(args)
    else:
        parser.print_help()
        sys.exit(1)
