"""Tests for per-message snapshots and restore."""

from __future__ import annotations

from pathlib import Path

import pytest

from samantha.chat.chat_store import ChatStore
from samantha.chat.snapshots import RestoreError, SnapshotManager
from samantha.host.local import LocalWorkspaceHost


def _setup(workspace: Path, answer: str | None = None) -> tuple[ChatStore, LocalWorkspaceHost, SnapshotManager]:
    host = LocalWorkspaceHost(workspace, confirm=lambda message, choices: answer)
    store = ChatStore()
    host.add_change_listener(store.record_edit)
    return store, host, SnapshotManager(store, host)


@pytest.mark.asyncio
async def test_restore_rewrites_open_documents_and_truncates_chat(workspace: Path) -> None:
    (workspace / "main.py").write_text("v1", encoding="utf-8")
    store, host, snapshots = _setup(workspace)
    host.open_document("main.py")
    message = store.append_message("user", "change it")
    snapshots.capture(message.timestamp)
    store.append_message("assistant", "done")

    host.write_text("main.py", "v2")
    outcome = await snapshots.restore(message.timestamp)

    assert (workspace / "main.py").read_text(encoding="utf-8") == "v1"
    assert outcome.restored == 1
    assert [item.content for item in outcome.messages] == ["change it"]
    assert host.notices[-1] == "Restored 1 file(s) to state before message"


@pytest.mark.asyncio
async def test_restore_offers_to_delete_files_created_later(workspace: Path) -> None:
    (workspace / "main.py").write_text("v1", encoding="utf-8")
    store, host, snapshots = _setup(workspace, answer="Yes")
    host.open_document("main.py")
    message = store.append_message("user", "add a helper")
    snapshots.capture(message.timestamp)

    host.write_text("helper.py", "def helper(): ...")
    outcome = await snapshots.restore(message.timestamp)

    assert not (workspace / "helper.py").exists()
    assert outcome.deleted == 1
    assert host.notices[0] == "1 file(s) were created after this message. Delete them?"
    assert "Deleted 1 file(s) created after the message" in host.notices


@pytest.mark.asyncio
async def test_declined_deletion_keeps_new_files(workspace: Path) -> None:
    store, host, snapshots = _setup(workspace, answer="No")
    message = store.append_message("user", "add a file")
    snapshots.capture(message.timestamp)

    host.write_text("new.txt", "content")
    outcome = await snapshots.restore(message.timestamp)

    assert (workspace / "new.txt").exists()
    assert outcome.deleted == 0
    assert outcome.restored == 0
    assert host.notices[-1] == "Restored to initial state before any changes"


@pytest.mark.asyncio
async def test_restore_without_confirm_handler_never_deletes(workspace: Path) -> None:
    store, host, snapshots = _setup(workspace, answer=None)
    message = store.append_message("user", "add a file")
    snapshots.capture(message.timestamp)

    host.write_text("new.txt", "content")
    await snapshots.restore(message.timestamp)

    assert (workspace / "new.txt").exists()


@pytest.mark.asyncio
async def test_restore_reports_missing_snapshot(workspace: Path) -> None:
    store, _, snapshots = _setup(workspace)
    message = store.append_message("user", "hi")

    with pytest.raises(RestoreError, match="No previous state found for this message"):
        await snapshots.restore(message.timestamp)


@pytest.mark.asyncio
async def test_restore_reports_message_from_another_chat(workspace: Path) -> None:
    store, _, snapshots = _setup(workspace)
    message = store.append_message("user", "hi")
    snapshots.capture(message.timestamp)
    store.create_chat()

    with pytest.raises(RestoreError, match="Message not found in conversation"):
        await snapshots.restore(message.timestamp)


def test_capture_resets_tracking_to_open_documents(workspace: Path) -> None:
    (workspace / "a.txt").write_text("a", encoding="utf-8")
    store, host, snapshots = _setup(workspace)
    store.record_edit(workspace / "stale.txt")
    host.open_document("a.txt")

    snapshot = snapshots.capture("id-1")

    assert snapshot.tracked_files == frozenset({workspace / "stale.txt"})
    assert store.tracked_files == frozenset({workspace.resolve() / "a.txt"})
    assert snapshot.primary_file == workspace.resolve() / "a.txt"
    assert store.has_snapshot("id-1")
