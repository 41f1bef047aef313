import asyncio
import json
import logging
from typing import Any, Awaitable, Dict, List, Optional

import httpx
import typer
from rich import print
from rich.table import Table
from rich.tree import Tree

from haku.config import Settings, save_token
from haku.core.api_client import HakuApiClient
from haku.core.content import ContentType, TodoNodeStatus
from haku.core.errors import HakuError
from haku.core.ordering import ROOT_ID, TodoNodeTree
from haku.core.store import JsonFileKeyValueStore, Store
from haku.core.sync import MutationResult, TodoSync

logger = logging.getLogger(__name__)

APP_HELP = """
haku: notes and todos from the terminal.

Notes and todos live in folders on the Haku server. Todos are trees of nodes
you can check off, nest, collapse and reorder. The inbox holds quick captures.

CORE WORKFLOW:
1. LOG IN:  `haku login you@example.com` (the email must be allow-listed).
2. BROWSE:  `haku tree` or `haku files`, `haku history` for recent content.
3. EDIT:    `haku todo show <id>`, `haku todo check <id> <node>`.
4. CAPTURE: `haku inbox add "call the plumber"`.
"""

app = typer.Typer(name="haku", help=APP_HELP, no_args_is_help=True)
inbox_app = typer.Typer(name="inbox", help="Quick-capture inbox entries.")
note_app = typer.Typer(name="note", help="Read and manage notes.")
todo_app = typer.Typer(name="todo", help="Read and edit todo trees.")
folder_app = typer.Typer(name="folder", help="Organize notes and todos in folders.")
worker_app = typer.Typer(name="worker", help="Local offline worker.")
app.add_typer(inbox_app, name="inbox")
app.add_typer(note_app, name="note")
app.add_typer(todo_app, name="todo")
app.add_typer(folder_app, name="folder")
app.add_typer(worker_app, name="worker")

STATUS_MARKS = {
    TodoNodeStatus.ACTIVE: "[ ]",
    TodoNodeStatus.COMPLETED: "[green][x][/green]",
    TodoNodeStatus.CANCELLED: "[dim][-][/dim]",
}


def _settings() -> Settings:
    return Settings()


def _client(settings: Optional[Settings] = None, store: Optional[Store] = None) -> HakuApiClient:
    """API client; with a ``store``, every request updates its online flag."""
    settings = settings or _settings()
    return HakuApiClient(
        settings.api_url,
        settings.token,
        settings.timeout,
        on_network_status=store.set_online if store is not None else None,
    )


def _store(settings: Optional[Settings] = None) -> Store:
    settings = settings or _settings()
    return Store(JsonFileKeyValueStore(settings.state_path))


def _run(awaitable: Awaitable[Any]) -> Any:
    """Run a coroutine, turning domain errors into a readable exit."""
    try:
        return asyncio.run(awaitable)
    except HakuError as e:
        print(f"[red]{e.message}[/red]")
        raise typer.Exit(code=1)


def _offline_notice(store: Store) -> None:
    if not store.state.online and store.state.content_available_offline:
        print("[yellow]Offline: showing the copy saved on this device[/yellow]")


def _check(result: MutationResult) -> None:
    if result.ok:
        return
    hint = " (the server could not be reached, try again)" if result.retryable else ""
    print(f"[red]{result.error.message if result.error else 'Update failed'}{hint}[/red]")
    raise typer.Exit(code=1)


def _render_forest(forest: List[Dict[str, Any]], tree: Tree) -> None:
    for node in forest:
        if "items" in node:
            branch = tree.add(f"[bold blue]{node['name']}/[/bold blue]")
            _render_forest(node.get("children", []), branch)
            _render_forest(node.get("items", []), branch)
        else:
            tree.add(f"{node['name']} [dim]{node['id']}[/dim]")


def _render_todo(todo: TodoNodeTree, title: str) -> Tree:
    root = Tree(f"[bold]{title}[/bold]")
    branches = {ROOT_ID: root}
    for node in todo:
        parent = branches[node.parent_id or ROOT_ID]
        label = f"{STATUS_MARKS[node.status]} {node.content or '[dim](empty)[/dim]'} [dim]{node.id}[/dim]"
        if node.collapsed and node.children:
            label += f" [dim](+{len(todo.descendants(node.id))})[/dim]"
        branches[node.id] = parent.add(label)
    return root


# ============================================================================
# Session
# ============================================================================

@app.command()
def login(
    email: str = typer.Argument(..., help="Allow-listed email address"),
):
    """
    Log in and save the session token to ~/.haku/.env.
    """
    client = _client()
    data = _run(client.login(email))
    save_token(data["token"])
    print(f"[green]Logged in as {data['user']['email']}[/green]")


@app.command()
def logout():
    """Forget the session token and the local state."""
    _store().teardown()
    save_token(None)
    print("[green]Logged out[/green]")


@app.command("use")
def use_content_type(content_type: ContentType = typer.Argument(..., help="NOTE or TODO")):
    """Switch the content type shown by `haku tree`."""
    _store().set_content_type(content_type)
    print(f"Now showing [bold]{content_type.value.lower()}s[/bold]")


# ============================================================================
# Browsing
# ============================================================================

@app.command("files")
def list_files(json_output: bool = typer.Option(False, "--json", help="Output as JSON")):
    """List every note and todo by name."""
    files = _run(_client().get_files())
    if json_output:
        print(json.dumps(files))
        return

    table = Table(title="Files")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Name")
    for item in files:
        table.add_row(item["id"], item["type"], item["name"])
    print(table)


@app.command("history")
def history(json_output: bool = typer.Option(False, "--json", help="Output as JSON")):
    """Show recently modified notes and todos, and recently opened files."""
    data = _run(_client().get_history())
    if json_output:
        print(json.dumps(data))
        return

    for label, key in (("Notes", "notes"), ("Todos", "todos")):
        table = Table(title=f"Recent {label}")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Modified", style="dim")
        for item in data.get(key, []):
            table.add_row(item["id"], item["name"], item.get("modified_at", ""))
        print(table)

    opened = _store().state.file_history
    if opened:
        print("[bold]Recently opened:[/bold] " + ", ".join(opened))


@app.command("tree")
def show_tree(
    content_type: Optional[ContentType] = typer.Option(None, "--type", "-t", help="NOTE or TODO"),
):
    """Show the folder tree of notes or todos."""
    content_type = content_type or _store().state.content_type
    forest = _run(_client().get_tree(content_type))
    tree = Tree(f"[bold]{content_type.route}[/bold]")
    _render_forest(forest, tree)
    print(tree)


@app.command("search")
def search(query: str, page: int = typer.Option(0, "--page", "-p")):
    """Search note and todo names and note text."""
    data = _run(_client().search(query, page))
    for item in data["results"]:
        print(f"[cyan]{item['id']}[/cyan] [magenta]{item['type']}[/magenta] {item['name']}")
    if data.get("next_page") is not None:
        print(f"[dim]More results: --page {data['next_page']}[/dim]")


# ============================================================================
# Inbox
# ============================================================================

@inbox_app.command("list")
def inbox_list():
    entries = _run(_client().get_inbox())
    for entry in entries:
        print(f"[cyan]{entry['id']}[/cyan] {entry['text']}")


@inbox_app.command("add")
def inbox_add(text: str):
    entry = _run(_client().add_inbox_entry(text))
    print(f"[green]Added {entry['id']}[/green]")


@inbox_app.command("delete")
def inbox_delete(entry_id: str):
    _run(_client().delete_inbox_entry(entry_id))
    print(f"[green]Deleted {entry_id}[/green]")


# ============================================================================
# Folders
# ============================================================================

@folder_app.command("add")
def folder_add(
    name: str,
    content_type: ContentType = typer.Option(ContentType.NOTE, "--type", "-t"),
    parent_id: Optional[str] = typer.Option(None, "--parent"),
):
    folder = _run(_client().add_folder(name, content_type, parent_id))
    print(f"[green]Created folder {folder['id']}[/green]")


@folder_app.command("rename")
def folder_rename(folder_id: str, name: str):
    _run(_client().update_folder(folder_id, name=name))
    print(f"[green]Renamed {folder_id}[/green]")


@folder_app.command("delete")
def folder_delete(folder_id: str):
    """Delete a folder with its nested folders and content."""
    _run(_client().delete_folder(folder_id))
    print(f"[green]Deleted {folder_id}[/green]")


# ============================================================================
# Notes
# ============================================================================

@note_app.command("show")
def note_show(note_id: str):
    store = _store()
    client = _client(store=store)
    path = f"/notes/{note_id}"
    note = _run(store.load_content(path, lambda: client.get_note(note_id)))
    store.visit(path)
    _offline_notice(store)
    print(f"[bold]{note['name']}[/bold]\n")
    print(note.get("text") or "[dim](empty)[/dim]")


@note_app.command("add")
def note_add(
    name: str,
    folder_id: Optional[str] = typer.Option(None, "--folder"),
    text: str = typer.Option("", "--text"),
):
    note = _run(_client().add_note(name, folder_id, html=f"<p>{text}</p>" if text else "", text=text))
    print(f"[green]Created note {note['id']}[/green]")


@note_app.command("delete")
def note_delete(note_id: str):
    _run(_client().delete_note(note_id))
    print(f"[green]Deleted {note_id}[/green]")


# ============================================================================
# Todos
# ============================================================================

async def _load_todo(todo_id: str, store: Store) -> TodoSync:
    client = _client(store=store)
    sync = TodoSync(client, todo_id)
    await sync.load(
        await store.load_content(f"/todos/{todo_id}", lambda: client.get_todo_nodes(todo_id))
    )
    return sync


@todo_app.command("add")
def todo_add(name: str, folder_id: Optional[str] = typer.Option(None, "--folder")):
    todo = _run(_client().add_todo(name, folder_id))
    print(f"[green]Created todo {todo['id']}[/green]")


@todo_app.command("delete")
def todo_delete(todo_id: str):
    _run(_client().delete_todo(todo_id))
    print(f"[green]Deleted {todo_id}[/green]")


@todo_app.command("show")
def todo_show(todo_id: str):
    """Print a todo's node tree."""
    store = _store()
    sync = _run(_load_todo(todo_id, store))
    store.visit(f"/todos/{todo_id}")
    _offline_notice(store)
    print(_render_todo(sync.tree, sync.name or todo_id))


def _edit(todo_id: str, edit) -> TodoSync:
    store = _store()

    async def run() -> TodoSync:
        sync = TodoSync(_client(store=store), todo_id)
        await sync.load()
        _check(await edit(sync))
        store.save_offline(f"/todos/{todo_id}", {"name": sync.name, **sync.tree.to_data()})
        return sync

    sync = _run(run())
    print(_render_todo(sync.tree, sync.name or todo_id))
    return sync


@todo_app.command("check")
def todo_check(todo_id: str, node_id: str, cancel: bool = typer.Option(False, "--cancel")):
    """Toggle a node between completed (or cancelled) and active."""
    status = TodoNodeStatus.CANCELLED if cancel else TodoNodeStatus.COMPLETED
    _edit(todo_id, lambda sync: sync.toggle_status(node_id, status))


@todo_app.command("rename")
def todo_rename(todo_id: str, node_id: str, content: str):
    _edit(todo_id, lambda sync: sync.rename(node_id, content))


@todo_app.command("collapse")
def todo_collapse(todo_id: str, node_id: str):
    _edit(todo_id, lambda sync: sync.toggle_collapsed(node_id))


@todo_app.command("add-node")
def todo_add_node(todo_id: str, after: str, content: str = typer.Argument("")):
    """Add a node after another one."""

    async def edit(sync: TodoSync) -> MutationResult:
        _, result = await sync.add_after(after, content=content)
        return result

    _edit(todo_id, edit)


@todo_app.command("delete-node")
def todo_delete_node(todo_id: str, node_id: str):
    _edit(todo_id, lambda sync: sync.delete(node_id))


@todo_app.command("move")
def todo_move(
    todo_id: str,
    node_id: str,
    parent_id: str = typer.Option(ROOT_ID, "--parent"),
    index: int = typer.Option(0, "--index"),
):
    """Move a node under another parent at a position."""
    _edit(todo_id, lambda sync: sync.move(node_id, parent_id, index))


@todo_app.command("nest")
def todo_nest(todo_id: str, node_id: str):
    _edit(todo_id, lambda sync: sync.nest(node_id))


@todo_app.command("unnest")
def todo_unnest(todo_id: str, node_id: str):
    _edit(todo_id, lambda sync: sync.unnest(node_id))


# ============================================================================
# Worker
# ============================================================================

@worker_app.command("serve")
def worker_serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: Optional[int] = typer.Option(None, "--port", "-p"),
):
    """Run the offline worker in the foreground."""
    from haku.daemon.server import run_server

    run_server(host=host, port=port)


@worker_app.command("update")
def worker_update():
    """Ask the running worker to activate its waiting version."""
    settings = _settings()
    url = f"http://127.0.0.1:{settings.worker_port}/message"
    try:
        response = httpx.post(url, json={"type": "UPDATE"}, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"[red]Worker not reachable: {e}[/red]")
        raise typer.Exit(code=1)
    data = response.json()
    print(f"[green]Worker running version {data['active_version']}[/green]")


if __name__ == "__main__":
    app()
