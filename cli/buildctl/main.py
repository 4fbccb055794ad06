#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict

import httpx

from internal.api.types import RunStatusResponse, StartBuildRunRequest
from internal.streaming import iter_sse_json


def main() -> None:
    parser = argparse.ArgumentParser(prog="buildctl", add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    parser_start = subparsers.add_parser("start")
    parser_start.add_argument("--plan", required=True)
    parser_start.add_argument("--sandbox", default="")
    parser_start.add_argument("--model", default="")
    parser_start.add_argument("--only", default="")
    parser_start.add_argument("--attach", action="store_true")
    parser_start.add_argument("--url", default="")

    for name in ("attach", "status", "pause", "resume", "cancel"):
        sub = subparsers.add_parser(name)
        sub.add_argument("run_id")
        sub.add_argument("--url", default="")

    parser_retry = subparsers.add_parser("retry")
    parser_retry.add_argument("run_id")
    parser_retry.add_argument("ticket_id")
    parser_retry.add_argument("--url", default="")

    parser_list = subparsers.add_parser("list")
    parser_list.add_argument("--url", default="")

    parser_sandbox = subparsers.add_parser("sandbox")
    sandbox_sub = parser_sandbox.add_subparsers(dest="sandbox_command")
    sandbox_create = sandbox_sub.add_parser("create")
    sandbox_create.add_argument("--provider", default="")
    sandbox_create.add_argument("--url", default="")
    sandbox_exec = sandbox_sub.add_parser("exec")
    sandbox_exec.add_argument("sandbox_id")
    sandbox_exec.add_argument("shell_command")
    sandbox_exec.add_argument("--url", default="")
    sandbox_rm = sandbox_sub.add_parser("rm")
    sandbox_rm.add_argument("sandbox_id")
    sandbox_rm.add_argument("--url", default="")

    args, _ = parser.parse_known_args()

    if args.help or not args.command:
        usage()
        sys.exit(2 if not args.command else 0)

    try:
        dispatch(args)
    except (RuntimeError, ValueError, OSError, httpx.HTTPError) as err:
        die(str(err))


def dispatch(args) -> None:
    if args.command == "start":
        cmd_start(args)
        return
    if args.command == "attach":
        cmd_attach(args)
        return
    if args.command == "status":
        cmd_status(args)
        return
    if args.command in ("pause", "resume", "cancel"):
        cmd_control(args, args.command)
        return
    if args.command == "retry":
        cmd_retry(args)
        return
    if args.command == "list":
        cmd_list(args)
        return
    if args.command == "sandbox":
        cmd_sandbox(args)
        return
    print(f"unknown command: {args.command}")
    usage()
    sys.exit(2)


def usage() -> None:
    print(
        """buildctl - CLI client for buildd

Usage:
  buildctl start --plan <file.json> [--sandbox <id>] [--model <name>] [--only <ticket_id>] [--attach] [--url <base>]
  buildctl attach <run_id> [--url <base>]
  buildctl status <run_id> [--url <base>]
  buildctl list [--url <base>]
  buildctl pause <run_id> [--url <base>]
  buildctl resume <run_id> [--url <base>]
  buildctl cancel <run_id> [--url <base>]
  buildctl retry <run_id> <ticket_id> [--url <base>]
  buildctl sandbox create [--provider <auto|e2b|local>] [--url <base>]
  buildctl sandbox exec <sandbox_id> <command> [--url <base>]
  buildctl sandbox rm <sandbox_id> [--url <base>]

The plan file holds either a start request ({"plan", "tickets", "sandboxId",
"model"}) or a bare plan object with its tickets under "tickets".

Environment:
  BUILDD_URL         Base URL for buildd (default http://127.0.0.1:8787)
  BUILDD_AUTH_TOKEN  Bearer token (optional, must match buildd)
"""
    )


def base_url(flag_url: str) -> str:
    if flag_url.strip():
        return flag_url.strip().rstrip("/")
    env = os.environ.get("BUILDD_URL", "").strip()
    if env:
        return env.rstrip("/")
    return "http://127.0.0.1:8787"


def auth_headers() -> Dict[str, str]:
    tok = os.environ.get("BUILDD_AUTH_TOKEN", "").strip()
    return {"Authorization": f"Bearer {tok}"} if tok else {}


def do_json(method: str, url: str, body: Any | None = None) -> Any:
    headers: Dict[str, str] = {"Content-Type": "application/json", **auth_headers()}
    with httpx.Client(timeout=60.0) as client:
        resp = client.request(method, url, headers=headers, json=body)
    if resp.status_code >= 400:
        raise RuntimeError(f"http {resp.status_code}: {_error_text(resp)}")
    if resp.status_code == 204:
        return None
    return resp.json() if resp.text else None


def load_start_request(path: str, sandbox: str = "", model: str = "", only: str = "") -> StartBuildRunRequest:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"plan file must hold a JSON object: {path}")
    if isinstance(data.get("plan"), dict):
        body: StartBuildRunRequest = dict(data)  # type: ignore[assignment]
        body.setdefault("tickets", data["plan"].get("tickets") or [])
    else:
        body = {"plan": data, "tickets": data.get("tickets") or []}
    if sandbox:
        body["sandboxId"] = sandbox
    if model:
        body["model"] = model
    if only:
        body["onlyTicketId"] = only
    if not body.get("sandboxId"):
        raise ValueError("a sandbox id is required (--sandbox or sandboxId in the plan file)")
    if not body.get("model"):
        raise ValueError("a model is required (--model or model in the plan file)")
    return body


def cmd_start(args) -> None:
    body = load_start_request(args.plan, args.sandbox, args.model, args.only)
    resp = do_json("POST", f"{base_url(args.url)}/v1/build-runs", body)
    print(resp["runId"])
    if args.attach:
        args.run_id = resp["runId"]
        cmd_attach(args)


def cmd_attach(args) -> None:
    url = f"{base_url(args.url)}/v1/build-runs/{args.run_id}/events"
    final_status = ""
    with httpx.stream("GET", url, headers=auth_headers(), timeout=httpx.Timeout(10.0, read=None)) as resp:
        if resp.status_code >= 400:
            resp.read()
            die(f"http {resp.status_code}: {_error_text(resp)}")
        for ev in iter_sse_json(resp.iter_lines()):
            print_event(ev)
            typ = ev.get("type")
            if typ == "run_completed" or (typ == "run_status" and ev.get("status") == "failed"):
                final_status = str(ev.get("status") or "")
                break
    if final_status == "failed":
        sys.exit(1)


def cmd_status(args) -> None:
    resp: RunStatusResponse = do_json("GET", f"{base_url(args.url)}/v1/build-runs/{args.run_id}")
    run = resp["run"]
    paused = " (paused)" if run.get("paused") else ""
    print(f"{run['runId']}  {run['status']}{paused}")
    if run.get("error"):
        print(f"error: {run['error']}")
    for ticket in run.get("tickets") or []:
        status = str(ticket.get("status", ""))
        progress = ticket.get("progress", 0)
        marker = "*" if ticket.get("id") == run.get("currentTicketId") else " "
        print(f" {marker} {str(ticket.get('id', '')).ljust(14)}  {status.ljust(14)}  {str(progress).rjust(3)}%  {ticket.get('title', '')}")
        if ticket.get("error"):
            print(f"      error: {ticket['error']}")


def cmd_list(args) -> None:
    resp = do_json("GET", f"{base_url(args.url)}/v1/build-runs")
    for run in resp.get("runs") or []:
        progress = f"{run.get('ticketsDone', 0)}/{run.get('ticketsTotal', 0)}"
        print(f"{run['runId']}  {str(run['status']).ljust(10)}  {progress.ljust(7)}  {run.get('sandboxId', '')}")


def cmd_control(args, action: str) -> None:
    resp = do_json("POST", f"{base_url(args.url)}/v1/build-runs/{args.run_id}/{action}")
    print(resp.get("status", "ok"))


def cmd_retry(args) -> None:
    resp = do_json("POST", f"{base_url(args.url)}/v1/build-runs/{args.run_id}/tickets/{args.ticket_id}/retry")
    print(resp["runId"])


def cmd_sandbox(args) -> None:
    root = f"{base_url(args.url)}/v1/sandboxes"
    if args.sandbox_command == "create":
        resp = do_json("POST", root, {"provider": args.provider} if args.provider else {})
        sandbox = resp["sandbox"]
        print(f"{sandbox['sandboxId']}  {sandbox['provider']}  {sandbox['url']}")
        return
    if args.sandbox_command == "exec":
        url = f"{root}/{args.sandbox_id}/commands"
        headers: Dict[str, str] = {"Content-Type": "application/json", **auth_headers()}
        with httpx.Client(timeout=None) as client:
            resp = client.post(url, headers=headers, json={"command": args.shell_command})
        if resp.status_code >= 400:
            die(f"http {resp.status_code}: {_error_text(resp)}")
        result = resp.json()
        if result.get("output"):
            sys.stdout.write(result["output"])
        if result.get("error"):
            sys.stderr.write(result["error"])
        sys.exit(int(result.get("exitCode") or 0))
    if args.sandbox_command == "rm":
        do_json("DELETE", f"{root}/{args.sandbox_id}")
        print("ok")
        return
    die("sandbox requires a subcommand (create|exec|rm)")


def print_event(ev: Dict[str, Any]) -> None:
    at = ev.get("at")
    ts = time.strftime("%H:%M:%S", time.localtime(at / 1000)) if isinstance(at, (int, float)) else "--:--:--"
    typ = str(ev.get("type", ""))
    if typ == "log":
        detail = f"[{ev.get('level', 'info')}] {ev.get('message', '')}"
    elif typ == "ticket_status":
        detail = f"{ev.get('ticketId')} -> {ev.get('status')}"
        if ev.get("progress") is not None:
            detail += f" ({ev['progress']}%)"
        if ev.get("error"):
            detail += f": {ev['error']}"
    elif typ == "ticket_artifacts":
        keys = [k for k in ev if k not in ("type", "runId", "at", "ticketId", "generatedCode")]
        if "generatedCode" in ev:
            keys.insert(0, f"generatedCode({len(ev['generatedCode'])} chars)")
        detail = f"{ev.get('ticketId')} {', '.join(keys)}"
    else:
        detail = str(ev.get("status") or "")
        if ev.get("message"):
            detail += f" {ev['message']}"
        if ev.get("error") and ev.get("error") != ev.get("message"):
            detail += f" ({ev['error']})"
    print(f"{ts}  {typ.ljust(17)}  {detail}")


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text.strip()
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return resp.text.strip()


def die(message: str) -> None:
    print(f"error: {message}", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
