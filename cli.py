#!/usr/bin/env python3
"""
Use Case Registry Assistant CLI

Purpose
-------
Drive an AI use case registry intake session locally: chat with the
assistant, pick the organization's role, save organization details, and
inspect the registry that the conversation builds up.

Top-level entrypoints
---------------------
- chat     --session ID [--model NAME]
- ask      --session ID --text "MESSAGE" [--json] [--model NAME]
- role     --session ID ROLE
- org      --session ID [--name ..] [--country ..] [--industry ..] [--size ..]
- show     --session ID [--json]
- sessions
- reset    --session ID

In-session slash commands (after `chat` starts)
-----------------------------------------------
- /help                       Show available commands
- /role <role>                Set the (single) active role
- /org key=value ...          Save organization details (name, country, industry, size)
- /registry                   Show the use case registry
- /state                      Print the raw session state JSON
- /show packet                Print the last turn result
- /quit                       Exit

Anything else is sent to the assistant as a turn. Sessions are stored under
REGISTRY_STORE_DIR (default ./local_store).
"""

from __future__ import annotations
import argparse, json, shlex, sys
from typing import Any, Dict, Optional

from intake_agent.controller import IntakeSession
from intake_agent.local_store import LocalStore
from intake_agent.mapping import ROLE_OPTIONS, render_progress, render_registry
from usecase_registry.config import get_settings

ORG_KEYS = ("name", "country", "industry", "size")

# ---------------- utils ----------------

def _store() -> LocalStore:
    return LocalStore(get_settings().store_dir)

def _session_arg(value: str) -> str:
    try:
        return LocalStore.validate_session_id(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))

def _parse_org_pairs(arg: str) -> Dict[str, str]:
    """'name=Acme country="Latvia"' -> {"name": "Acme", "country": "Latvia"}"""
    out: Dict[str, str] = {}
    for tok in shlex.split(arg):
        if "=" not in tok:
            raise ValueError(f"expected key=value, got {tok!r}")
        k, v = tok.split("=", 1)
        k = k.strip().lower()
        if k not in ORG_KEYS:
            raise ValueError(f"unknown org field {k!r} (use {', '.join(ORG_KEYS)})")
        out[k] = v
    return out

def _print_chat_help():
    print(
        "Commands:\n"
        "  /help                         Show this help\n"
        f"  /role <role>                  Set role ({', '.join(ROLE_OPTIONS)})\n"
        "  /org key=value ...            Save org details (name, country, industry, size)\n"
        "  /registry                     Show the use case registry\n"
        "  /state                        Print raw session state JSON\n"
        "  /show packet                  Show last turn result\n"
        "  /quit                         Exit\n"
    )

# ---------------- chat / ask ----------------

def cmd_chat(args):
    session = IntakeSession(_store(), args.session)
    print(f"Session {args.session}. Type '/help' for commands. Natural text is fine too.")
    print(render_progress(session.state))

    last_packet: Optional[Dict[str, Any]] = None
    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print(); break
        if not line:
            continue

        if line.startswith("/"):
            cmd = line[1:].strip().split(" ", 1)
            name = cmd[0].lower()
            arg = cmd[1].strip() if len(cmd) > 1 else ""

            if name == "quit":
                break

            elif name == "help":
                _print_chat_help()

            elif name == "role":
                if not arg:
                    print(f"usage: /role <role>  (e.g. {', '.join(ROLE_OPTIONS)})"); continue
                print(session.select_role(arg))

            elif name == "org":
                try:
                    fields = _parse_org_pairs(arg)
                except ValueError as e:
                    print(f"usage: /org name=... country=... industry=... size=...  ({e})"); continue
                if not fields:
                    print("usage: /org name=... country=... industry=... size=..."); continue
                print(session.save_org(**fields))

            elif name == "registry":
                print(render_registry(session.state))

            elif name == "state":
                print(json.dumps(session.state.to_payload(), indent=2, ensure_ascii=False))

            elif name == "show":
                if arg != "packet":
                    print("usage: /show packet"); continue
                print(json.dumps(last_packet or {"note": "(no packet yet)"}, indent=2, ensure_ascii=False))

            else:
                print("Unknown command. Type /help for options.")
            continue

        out = session.handle(line, model_name=args.model)
        last_packet = out["result"].to_packet()
        print(out["reply"])
        print(render_progress(session.state))

    return 0

def cmd_ask(args):
    session = IntakeSession(_store(), args.session)
    out = session.handle(args.text, model_name=args.model)
    result = out["result"]
    if args.json:
        print(json.dumps(result.as_response(), ensure_ascii=False, indent=2))
    else:
        print(out["reply"])
    return 0 if result.ok else 1

# ---------------- direct actions ----------------

def cmd_role(args):
    session = IntakeSession(_store(), args.session)
    print(session.select_role(args.role))
    return 0

def cmd_org(args):
    fields = {k: getattr(args, k) for k in ORG_KEYS if getattr(args, k) is not None}
    if not fields:
        print("Provide at least one of --name/--country/--industry/--size", file=sys.stderr)
        return 2
    session = IntakeSession(_store(), args.session)
    print(session.save_org(**fields))
    return 0

def cmd_show(args):
    session = IntakeSession(_store(), args.session)
    if args.json:
        print(json.dumps(session.state.to_payload(), indent=2, ensure_ascii=False))
    else:
        print(render_progress(session.state))
        print(render_registry(session.state))
    return 0

def cmd_sessions(args):
    rows = _store().list_sessions()
    if not rows:
        print("No sessions.")
        return 0
    for r in rows:
        roles = ",".join(r["roles"]) or "-"
        print(f"{r['session_id'][:20]:20} | {r['org_name'][:24]:24} | {roles[:16]:16} | {r['use_cases']:>3} | {r['updated_at']}")
    return 0

def cmd_reset(args):
    IntakeSession(_store(), args.session).reset()
    print(f"Session {args.session} reset.")
    return 0

# ---------------- parser ----------------

def build_parser():
    p = argparse.ArgumentParser(prog="registry-intake")
    sub = p.add_subparsers(dest="cmd")

    p_chat = sub.add_parser("chat", help="interactive intake chat")
    p_chat.add_argument("--session", required=True, type=_session_arg, help="session id")
    p_chat.add_argument("--model", help="override OPENAI_MODEL for this session")
    p_chat.set_defaults(func=cmd_chat)

    p_ask = sub.add_parser("ask", help="one-shot turn")
    p_ask.add_argument("--session", required=True, type=_session_arg)
    p_ask.add_argument("--text", required=True)
    p_ask.add_argument("--json", action="store_true", help="print the wire response")
    p_ask.add_argument("--model")
    p_ask.set_defaults(func=cmd_ask)

    p_role = sub.add_parser("role", help="set the active role")
    p_role.add_argument("--session", required=True, type=_session_arg)
    p_role.add_argument("role")
    p_role.set_defaults(func=cmd_role)

    p_org = sub.add_parser("org", help="save organization details")
    p_org.add_argument("--session", required=True, type=_session_arg)
    for k in ORG_KEYS:
        p_org.add_argument(f"--{k}")
    p_org.set_defaults(func=cmd_org)

    p_show = sub.add_parser("show", help="show progress and registry")
    p_show.add_argument("--session", required=True, type=_session_arg)
    p_show.add_argument("--json", action="store_true")
    p_show.set_defaults(func=cmd_show)

    p_list = sub.add_parser("sessions", help="list stored sessions")
    p_list.set_defaults(func=cmd_sessions)

    p_reset = sub.add_parser("reset", help="clear a session's state")
    p_reset.add_argument("--session", required=True, type=_session_arg)
    p_reset.set_defaults(func=cmd_reset)

    return p

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "cmd", None):
        parser.print_help()
        return 0
    return args.func(args)

if __name__ == "__main__":
    raise SystemExit(main())
