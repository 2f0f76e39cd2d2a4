#!/usr/bin/env python3
"""omi-relay CLI.

Usage:
    omi-relay serve       Start the webhook server
    omi-relay status      Query a running server's /health
    omi-relay ask TEXT    Send a simulated transcript to a running server
    omi-relay memories    Inspect or search the memory store
    omi-relay config      Show the effective configuration
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from omi_relay.config import load_config, missing_credentials

SECRET_KEYS = {"api_key", "app_secret"}


class C:
    BOLD = "\033[1m"
    DIM = "\033[2m"
    GREEN = "\033[32m"
    RED = "\033[31m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    RESET = "\033[0m"

    @staticmethod
    def strip():
        """Disable colors if not a TTY."""
        if not sys.stdout.isatty():
            for attr in ["BOLD", "DIM", "GREEN", "RED", "YELLOW", "CYAN", "RESET"]:
                setattr(C, attr, "")


C.strip()


def _server_url(args, cfg: dict) -> str:
    return args.url or f"http://localhost:{cfg['server']['port']}"


def masked(cfg: dict) -> dict:
    out = {}
    for section, values in cfg.items():
        if isinstance(values, dict):
            out[section] = {
                k: ("***" if k in SECRET_KEYS and v else v) for k, v in values.items()
            }
        else:
            out[section] = values
    return out


# ── Commands ───────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    cfg = load_config()
    logging.basicConfig(
        level=getattr(logging, str(cfg["server"]["log_level"]).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    port = args.port or cfg["server"]["port"]
    print(f"{C.GREEN}Omi AI relay starting{C.RESET} on {args.host}:{port}")
    print(f"  Health check: http://localhost:{port}/health")
    print(f"  Webhook:      http://localhost:{port}/omi-webhook")
    uvicorn.run("omi_relay.receiver:create_app", factory=True, host=args.host, port=port)


def cmd_status(args):
    cfg = load_config()
    url = _server_url(args, cfg)
    try:
        resp = httpx.get(f"{url}/health", timeout=2)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        print(f"{C.RED}Server not reachable at {url}{C.RESET} ({e})")
        return 1
    data = resp.json()
    print(f"{C.GREEN}●{C.RESET} {C.BOLD}{data.get('message', 'running')}{C.RESET}")
    print(f"  Model:          {data['api']['model']} (assistant mode: {data['api']['assistant_mode']})")
    print(f"  Wake phrases:   {', '.join(data['wake_phrases'])}")
    print(f"  Sessions:       {data['conversation_context']['active_sessions']}")
    print(f"  Memory:         {'enabled' if data['memory']['enabled'] else 'disabled'}")
    for name in missing_credentials(cfg):
        print(f"  {C.YELLOW}⚠ {name} is not set locally{C.RESET}")
    return 0


def cmd_ask(args):
    cfg = load_config()
    url = _server_url(args, cfg)
    body = {"session_id": args.session, "segments": [{"text": t} for t in args.text]}
    try:
        resp = httpx.post(f"{url}/omi-webhook", json=body, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"{C.RED}Request failed:{C.RESET} {e}")
        return 1
    colour = C.GREEN if resp.is_success else C.RED
    print(f"{colour}{resp.status_code}{C.RESET}")
    print(json.dumps(resp.json(), indent=2))
    return 0 if resp.is_success else 1


def cmd_memories(args):
    from omi_relay.memory_store import MemoryStore

    cfg = load_config()
    store = MemoryStore.from_config(cfg)

    if args.search:
        if not args.user:
            print(f"{C.RED}--user is required with --search{C.RESET}")
            return 1
        results = asyncio.run(store.search(args.user, args.search, limit=args.limit))
        print(f"{C.BOLD}{len(results)} result(s) for '{args.search}'{C.RESET}")
        for i, r in enumerate(results, 1):
            print(f"  {i}. {r['content'][:100]} {C.DIM}(distance {r['score']:.3f}){C.RESET}")
        return 0

    stats = store.stats()
    print(f"{C.BOLD}Total memories:{C.RESET} {stats['total_memories']}")
    if not stats["total_memories"]:
        return 0
    print(f"  Categories: {stats['categories']}")
    print(f"  Monthly:    {stats['months']}")
    print()
    for m in store.list_memories(args.user)[:args.limit]:
        content = m["content"]
        snippet = content[:60] + ("..." if len(content) > 60 else "")
        print(f"  {C.CYAN}[{m['user_id']}]{C.RESET} {snippet} {C.DIM}{m['timestamp']}{C.RESET}")
    return 0


def cmd_config(args):
    cfg = load_config()
    print(json.dumps(masked(cfg), indent=2))
    missing = missing_credentials(cfg)
    if missing:
        print(f"{C.YELLOW}Missing: {', '.join(missing)}{C.RESET}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="omi-relay", description="Omi wake-phrase AI relay")
    sub = parser.add_subparsers(dest="command")

    p_serve = sub.add_parser("serve", help="Start the webhook server")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=None)

    p_status = sub.add_parser("status", help="Query a running server")
    p_status.add_argument("--url", default=None)

    p_ask = sub.add_parser("ask", help="Send segments to a running server's webhook")
    p_ask.add_argument("text", nargs="+", help="One argument per segment")
    p_ask.add_argument("--session", default="cli-session")
    p_ask.add_argument("--url", default=None)
    p_ask.add_argument("--timeout", type=float, default=60.0)

    p_mem = sub.add_parser("memories", help="Inspect or search stored memories")
    p_mem.add_argument("--user", default=None)
    p_mem.add_argument("--search", default=None, metavar="QUERY")
    p_mem.add_argument("--limit", type=int, default=20)

    sub.add_parser("config", help="Show effective configuration (secrets masked)")

    args = parser.parse_args(argv)
    commands = {
        "serve": cmd_serve,
        "status": cmd_status,
        "ask": cmd_ask,
        "memories": cmd_memories,
        "config": cmd_config,
    }
    if args.command not in commands:
        parser.print_help()
        return 1
    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())
