#!/usr/bin/env python3
"""Gutenberg Agent: command-line client.

Talks to the FastAPI backend over HTTP/SSE. If the server isn't
running, it is started automatically as a background process.

Usage:
    python main.py                               # Interactive mode (auto-starts server)
    python main.py --verbose                     # Show tool calls and editor commands
    python main.py "Add a hero section to post 12"   # Single-command mode
    python main.py --url http://host:9000        # Custom server URL
    python main.py --no-color                    # Disable ANSI colors

Slash commands (type /help for full list):
    /quit           - Print token summary and exit
    /reset          - Start a new conversation
    /stats          - Show server statistics
    /conversations  - List stored conversations
    /help           - Show available commands
Anything without a leading / is sent as a message to the agent.

Editor commands are shown but not executed: a terminal has no live block
editor, so deferred tools fall back to their timeout result.
"""

import argparse
import json
import os
import socket
import subprocess
import sys
import time
from pathlib import Path
from urllib.parse import urlparse

import requests

# readline is optional (not available on Windows without pyreadline3)
try:
    import readline
    _READLINE_AVAILABLE = True
except ImportError:
    _READLINE_AVAILABLE = False

# ---- ANSI colors ----

_USE_COLOR = True
_VERBOSE = False

# Accumulated token usage across the session
_total_usage = {
    "input_tokens": 0,
    "output_tokens": 0,
}


def _c(code: str, text: str) -> str:
    if not _USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def dim(text: str) -> str:
    return _c("2", text)


def cyan(text: str) -> str:
    return _c("36", text)


def green(text: str) -> str:
    return _c("32", text)


def yellow(text: str) -> str:
    return _c("33", text)


def red(text: str) -> str:
    return _c("31", text)


def bold(text: str) -> str:
    return _c("1", text)


# ---- Readline ----

def _history_path() -> str:
    from config import get_data_dir
    return os.path.join(str(get_data_dir()), ".cli_history")


_SLASH_COMMANDS = [
    ("/conversations", "List stored conversations"),
    ("/exit",          "Exit (alias for /quit)"),
    ("/help",          "Show available commands"),
    ("/quit",          "Print token summary and exit"),
    ("/reset",         "Start a new conversation"),
    ("/stats",         "Show server statistics"),
]


def _slash_completer(text, state):
    """Readline completer for slash commands."""
    if text.startswith("/"):
        matches = [c[0] for c in _SLASH_COMMANDS if c[0].startswith(text)]
    else:
        matches = []
    if state < len(matches):
        return matches[state]
    return None


def setup_readline():
    if not _READLINE_AVAILABLE:
        return
    readline.set_history_length(500)
    readline.set_completer(_slash_completer)
    readline.set_completer_delims(' \t\n')
    readline.parse_and_bind('tab: complete')
    try:
        readline.read_history_file(_history_path())
    except FileNotFoundError:
        pass


def save_readline():
    if not _READLINE_AVAILABLE:
        return
    try:
        path = _history_path()
        os.makedirs(os.path.dirname(path), exist_ok=True)
        readline.write_history_file(path)
    except OSError:
        pass


# ---- Server auto-start ----

def _is_port_open(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(1)
        return s.connect_ex((host, port)) == 0


def _wait_for_port(host: str, port: int, timeout: float = 30.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if _is_port_open(host, port):
            return True
        time.sleep(0.25)
    return False


def _find_server_script() -> str:
    """Find api_server.py relative to this script."""
    return str(Path(__file__).resolve().parent / "api_server.py")


def ensure_server(url: str) -> bool:
    """If the server isn't running, start it as a detached background process.

    The server survives after the CLI exits (shared resource).
    Returns True if server is available.
    """
    parsed = urlparse(url)
    host = parsed.hostname or "localhost"
    port = parsed.port or 3000

    if _is_port_open(host, port):
        return True

    server_script = _find_server_script()
    if not Path(server_script).exists():
        print(red(f"Server script not found: {server_script}"))
        return False

    from config import get_data_dir
    log_path = os.path.join(str(get_data_dir()), "logs", "api_server.log")
    os.makedirs(os.path.dirname(log_path), exist_ok=True)

    print(f"Server not running. Starting on port {port}...")
    log_file = open(log_path, "a")

    popen_kwargs = {
        "stdout": log_file,
        "stderr": log_file,
    }
    # Detach from CLI's process group so Ctrl+C doesn't kill the server
    if sys.platform == "win32":
        popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        popen_kwargs["start_new_session"] = True

    proc = subprocess.Popen(
        [sys.executable, server_script, "--port", str(port), "--host", host],
        **popen_kwargs,
    )

    print(dim(f"  PID {proc.pid} (log: {log_path})"))

    if not _wait_for_port(host, port, timeout=30.0):
        if proc.poll() is not None:
            print(red(f"  Server exited with code {proc.returncode}. Check {log_path}"))
        else:
            print(red(f"  Timed out after 30s. Check {log_path}"))
        return False

    print("  Server ready.")
    return True


# ---- SSE parsing ----

def iter_sse_events(response: requests.Response):
    """Parse SSE events from a streaming requests response.

    Yields (event_type, data_dict) tuples.
    """
    event_type = "message"
    data_lines = []

    for line in response.iter_lines(decode_unicode=True):
        if line is None:
            continue

        if line == "":
            # Empty line = end of event
            if data_lines:
                raw = "\n".join(data_lines)
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    data = {"raw": raw}
                yield event_type, data
            event_type = "message"
            data_lines = []
            continue

        if line.startswith("event:"):
            event_type = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:"):].strip())
        # Ignore comments (lines starting with ':') and other fields


# ---- API helpers ----

class APIClient:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")
        self.conversation_id = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def check_server(self) -> dict:
        resp = requests.get(self._url("/health"), timeout=5)
        resp.raise_for_status()
        return resp.json()

    def get_stats(self) -> dict:
        resp = requests.get(self._url("/agent/stats"), timeout=5)
        resp.raise_for_status()
        return resp.json().get("stats", {})

    def list_conversations(self) -> list:
        resp = requests.get(self._url("/agent/conversations"), timeout=10)
        resp.raise_for_status()
        return resp.json().get("conversations", [])

    def delete_conversation(self):
        if self.conversation_id:
            try:
                requests.delete(
                    self._url(f"/agent/conversations/{self.conversation_id}"), timeout=5
                )
            except requests.RequestException:
                pass
            self.conversation_id = None

    def chat_stream(self, message: str, options: dict | None = None):
        """Send a message and yield SSE events until the turn ends.

        The conversation id from the ``final_response`` event is kept so the
        next message continues the same conversation.
        """
        body = {"message": message, "options": options or {}}
        if self.conversation_id:
            body["conversation_id"] = self.conversation_id
        resp = requests.post(
            self._url("/agent/process-stream"), json=body, stream=True, timeout=600,
        )
        resp.raise_for_status()
        try:
            for event_type, data in iter_sse_events(resp):
                etype = data.get("type", event_type)
                if etype == "final_response" and data.get("conversation_id"):
                    self.conversation_id = data["conversation_id"]
                yield etype, data
                if etype in ("final_response", "error"):
                    break
        finally:
            resp.close()


# ---- Event display ----

def display_event(event_type: str, data: dict):
    """Display an SSE event to the terminal. Returns a proposed plan, if any."""
    if event_type == "iteration_start":
        if _VERBOSE:
            print(dim(f"  [Iteration {data.get('iteration')}/{data.get('maxIterations')}]"))

    elif event_type == "tool_call":
        if _VERBOSE:
            name = data.get("toolName", "(unknown tool)")
            args = data.get("input") or {}
            args_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
            print(dim(f"  [Tool: {name}({args_str})]"))

    elif event_type == "tool_result":
        if _VERBOSE:
            name = data.get("toolName", "(unknown tool)")
            marker = green("ok") if data.get("success") else red("failed")
            print(dim(f"  [Result: {name} -> {marker}] {data.get('resultSummary', '')}"))

    elif event_type == "editor_command":
        print(yellow(f"  [Editor: {data.get('action')} {data.get('requestId')}]"))

    elif event_type == "plan":
        plan = data.get("plan") or {}
        print()
        print(bold("Proposed plan:"))
        if plan.get("summary"):
            print(f"  {plan['summary']}")
        for i, task in enumerate(plan.get("tasks", []), 1):
            agent = task.get("agent") or "orchestrator"
            print(f"  {i}. {task.get('description', '')} {dim('[' + agent + ']')}")
        return plan

    elif event_type == "final_response":
        text = data.get("response", "")
        if text:
            print(f"\n{text}")
        usage = data.get("usage") or {}
        for key in ("input_tokens", "output_tokens"):
            if key in usage:
                _total_usage[key] += usage[key]
        if _VERBOSE and usage:
            print(dim(f"  [in={usage.get('input_tokens', 0)}, out={usage.get('output_tokens', 0)}]"))

    elif event_type == "error":
        msg = data.get("message", str(data))
        print(red(f"\n  Error: {msg}"))

    return None


def run_message(client: APIClient, message: str, options: dict | None = None, interactive: bool = True):
    """Stream one turn; if a plan comes back, ask for approval and rerun."""
    plan = None
    for event_type, data in client.chat_stream(message, options):
        plan = display_event(event_type, data) or plan
    if plan is None:
        return
    if not interactive:
        print(dim("  Plan not executed (run interactively to approve)."))
        return
    try:
        answer = input(cyan("\nApprove plan? [y/N] ")).strip().lower()
    except EOFError:
        answer = ""
    if answer not in ("y", "yes"):
        print(dim("  Plan discarded."))
        return
    approved = {"plan_approved": True, "plan": plan}
    for event_type, data in client.chat_stream(message, approved):
        display_event(event_type, data)


# ---- Commands ----

def cmd_help():
    print()
    print(bold("Slash commands:"))
    print(f"  {cyan('/quit')}            Exit (shows token summary)")
    print(f"  {cyan('/reset')}           Start a new conversation")
    print(f"  {cyan('/stats')}           Show server statistics")
    print(f"  {cyan('/conversations')}   List stored conversations")
    print(f"  {cyan('/help')}            Show this message")
    print()
    print(dim("  Anything else is sent as a message to the agent."))


def cmd_stats(client: APIClient):
    try:
        stats = client.get_stats()
        print(f"  Conversations:    {stats.get('total_conversations', 0)}")
        print(f"  Messages:         {stats.get('total_messages', 0)}")
        print(f"  Pending requests: {stats.get('pending_requests', 0)}")
        print(f"  Uptime:           {stats.get('uptime_seconds', 0):.0f}s")
        if client.conversation_id:
            print(f"  Current:          {client.conversation_id}")
    except requests.RequestException as e:
        print(red(f"  Error: {e}"))


def cmd_conversations(client: APIClient):
    try:
        items = client.list_conversations()
        if not items:
            print("  No stored conversations.")
            return
        print(f"  Conversations ({len(items)}):")
        for conv in items:
            marker = bold("*") if conv["id"] == client.conversation_id else " "
            updated = (conv.get("updated_at") or "")[:19]
            print(f"  {marker} {conv['id']}  {conv.get('message_count', 0)} messages  {updated}")
    except requests.RequestException as e:
        print(red(f"  Error: {e}"))


def cmd_reset(client: APIClient):
    client.delete_conversation()
    print(dim("  Started a new conversation."))


def print_welcome():
    print()
    print("=" * 60)
    print("  Gutenberg Agent (API client)")
    print("=" * 60)
    print()
    print("I can build and edit WordPress pages with Gutenberg blocks.")
    print()
    print("Examples:")
    print("  'Summarize the blocks on post 42'")
    print("  'Create a landing page with a hero and a pricing table'")
    print("  'Improve the SEO of the page title'")
    print()
    print("Type /help for available commands.")
    print("-" * 60)


def print_token_summary():
    total = _total_usage["input_tokens"] + _total_usage["output_tokens"]
    if total > 0:
        print()
        print("-" * 60)
        print("  Session token usage:")
        print(f"    Input tokens:  {_total_usage['input_tokens']:,}")
        print(f"    Output tokens: {_total_usage['output_tokens']:,}")
        print(f"    Total tokens:  {total:,}")
        print("-" * 60)


# ---- Main ----

def main():
    global _USE_COLOR, _VERBOSE

    parser = argparse.ArgumentParser(
        description="CLI client for the Gutenberg agent backend"
    )
    parser.add_argument(
        "command", nargs="?", default=None,
        help="Single message to send (non-interactive mode)",
    )
    parser.add_argument(
        "--url", default="http://localhost:3000",
        help="API server URL (default: http://localhost:3000)",
    )
    parser.add_argument(
        "--no-color", action="store_true",
        help="Disable ANSI color output",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Show iterations, tool calls and per-turn token usage",
    )
    parser.add_argument(
        "--conversation", default=None,
        help="Continue an existing conversation by ID",
    )
    args = parser.parse_args()

    if args.no_color:
        _USE_COLOR = False
    _VERBOSE = args.verbose

    single_command = args.command
    interactive = single_command is None

    if interactive:
        setup_readline()

    client = APIClient(args.url)
    client.conversation_id = args.conversation

    # Check server, auto-start if not running
    if interactive:
        print(f"Connecting to {args.url} ...")
    try:
        status = client.check_server()
        if interactive:
            print(f"Server OK ({status.get('environment', 'unknown')})")
    except requests.ConnectionError:
        if not ensure_server(args.url):
            print(red("Could not start the server. Exiting."))
            sys.exit(1)
    except requests.RequestException as e:
        print(red(f"Server error: {e}"))
        sys.exit(1)

    # Single-command mode
    if single_command:
        try:
            run_message(client, single_command, interactive=False)
        except requests.HTTPError as e:
            print(red(f"Error: {e}"))
            sys.exit(1)
        except requests.ConnectionError:
            print(red("Lost connection to server."))
            sys.exit(1)
        finally:
            print_token_summary()
        return

    print_welcome()

    try:
        while True:
            try:
                user_input = input(cyan("\n> ")).strip()
            except EOFError:
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                cmd = user_input[1:].lower().strip()

                if cmd in ("quit", "exit", "q"):
                    break
                elif cmd == "help":
                    cmd_help()
                elif cmd == "reset":
                    cmd_reset(client)
                elif cmd == "stats":
                    cmd_stats(client)
                elif cmd == "conversations":
                    cmd_conversations(client)
                else:
                    print(red(f"  Unknown command: /{cmd}"))
                    print(dim("  Type /help for available commands."))
                continue

            try:
                run_message(client, user_input)
            except requests.HTTPError as e:
                if e.response is not None and e.response.status_code == 404:
                    print(red("  Conversation expired. Starting a new one."))
                    client.conversation_id = None
                else:
                    print(red(f"  Error: {e}"))
            except requests.ConnectionError:
                print(red("  Lost connection to server."))
            except KeyboardInterrupt:
                print(yellow("\n  Interrupted."))

    except KeyboardInterrupt:
        pass
    finally:
        print()
        print_token_summary()
        save_readline()
        if client.conversation_id:
            print(dim(f"Conversation {client.conversation_id} kept on the server."))
        print("Goodbye.")


if __name__ == "__main__":
    main()
