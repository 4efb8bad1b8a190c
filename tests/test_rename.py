"""
Tests for bulk rename: pure planning, collision checks, application and the
transaction state machine (with real nested "editors" run on a pty).
"""

from __future__ import annotations

import asyncio
import shlex
from pathlib import Path

import pytest
from conftest import FakeEditor

from yazi_bridge.config.bridge import BridgeSettings
from yazi_bridge.exceptions import EditorError, InvalidRenamePlan, RenameApplyFailure, RenameLineCountMismatch
from yazi_bridge.schemas.operations.rename import RenamePlan, RenameResult, RenameState
from yazi_bridge.services.rename import (
    BulkRenameTransaction,
    apply_plan,
    check_collisions,
    plan_renames,
    read_edited_names,
)

# ==============================================================================
# Planning
# ==============================================================================


def test_plan_lists_positional_changes() -> None:
    plan = plan_renames(Path('/p'), ['a.txt', 'b.txt', 'c.txt'], ['a.txt', 'B.txt', 'cc.txt'])

    assert [(c.index, c.source, c.target) for c in plan.changes] == [
        (1, Path('/p/b.txt'), Path('/p/B.txt')),
        (2, Path('/p/c.txt'), Path('/p/cc.txt')),
    ]


def test_plan_without_edits_has_no_changes() -> None:
    plan = plan_renames(Path('/p'), ['file2.txt'], ['file2.txt'])

    assert plan.changes == ()


@pytest.mark.parametrize('edited', [[], ['a', 'b', 'c']], ids=['removed', 'added'])
def test_plan_rejects_line_count_change(edited: list[str]) -> None:
    with pytest.raises(RenameLineCountMismatch) as exc_info:
        plan_renames(Path('/p'), ['a', 'b'], edited)

    assert exc_info.value.expected == 2
    assert exc_info.value.actual == len(edited)


@pytest.mark.parametrize('name', ['', '   ', 'sub/dir.txt', '.', '..'])
def test_plan_rejects_unusable_names(name: str) -> None:
    with pytest.raises(InvalidRenamePlan) as exc_info:
        plan_renames(Path('/p'), ['a', 'b'], ['a', name])

    assert exc_info.value.index == 1


def test_read_edited_names_ignores_trailing_newline(tmp_path: Path) -> None:
    scratch = tmp_path / 'bulk-1'
    scratch.write_text('one\ntwo\n')

    assert read_edited_names(scratch) == ['one', 'two']


# ==============================================================================
# Collisions and application
# ==============================================================================


def test_collision_with_untouched_file_aborts_whole_plan(project: Path) -> None:
    plan = plan_renames(project, ['file3.txt', 'file1.txt'], ['new.txt', 'file2.txt'])

    with pytest.raises(RenameApplyFailure) as exc_info:
        check_collisions(plan)

    assert exc_info.value.index == 1
    assert exc_info.value.applied == []
    assert (project / 'file3.txt').exists()


def test_duplicate_targets_are_rejected(project: Path) -> None:
    plan = plan_renames(project, ['file1.txt', 'file2.txt'], ['same.txt', 'same.txt'])

    with pytest.raises(RenameApplyFailure, match='same name'):
        check_collisions(plan)


def test_target_freed_by_earlier_rename_is_allowed(project: Path) -> None:
    plan = plan_renames(project, ['file2.txt', 'file1.txt'], ['old-file2.txt', 'file2.txt'])

    check_collisions(plan)
    applied = apply_plan(plan)

    assert [c.index for c in applied] == [0, 1]
    assert (project / 'old-file2.txt').read_text() == 'file2.txt\n'
    assert (project / 'file2.txt').read_text() == 'file1.txt\n'


def test_swapped_names_are_applied(project: Path) -> None:
    plan = plan_renames(project, ['file1.txt', 'file2.txt'], ['file2.txt', 'file1.txt'])

    check_collisions(plan)
    applied = apply_plan(plan)

    assert [c.index for c in applied] == [0, 1]
    assert (project / 'file1.txt').read_text() == 'file2.txt\n'
    assert (project / 'file2.txt').read_text() == 'file1.txt\n'
    assert sorted(p.name for p in project.iterdir() if p.is_file()) == ['file1.txt', 'file2.txt', 'file3.txt']


def test_chain_is_applied_in_any_line_order(project: Path) -> None:
    plan = plan_renames(project, ['file1.txt', 'file2.txt'], ['file2.txt', 'file2.txt.bak'])

    check_collisions(plan)
    apply_plan(plan)

    assert (project / 'file2.txt').read_text() == 'file1.txt\n'
    assert (project / 'file2.txt.bak').read_text() == 'file2.txt\n'
    assert not (project / 'file1.txt').exists()


def test_failed_swap_puts_staged_items_back(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_rename = Path.rename

    def failing_rename(self: Path, target: Path) -> Path:
        if target.name == 'file3.txt.new':
            raise PermissionError(13, 'Permission denied')
        return real_rename(self, target)

    monkeypatch.setattr(Path, 'rename', failing_rename)
    plan = plan_renames(
        project, ['file1.txt', 'file2.txt', 'file3.txt'], ['file2.txt', 'file1.txt', 'file3.txt.new']
    )

    with pytest.raises(RenameApplyFailure) as exc_info:
        apply_plan(plan)

    assert exc_info.value.index == 2
    assert exc_info.value.applied == [0, 1]
    assert (project / 'file1.txt').read_text() == 'file2.txt\n'
    assert (project / 'file2.txt').read_text() == 'file1.txt\n'
    assert (project / 'file3.txt').exists()
    assert not [p for p in project.iterdir() if 'yazi-bridge' in p.name]


def test_failure_before_staged_item_lands_moves_it_back(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_rename = Path.rename

    def failing_rename(self: Path, target: Path) -> Path:
        if target.name == 'new-file1.txt':
            raise PermissionError(13, 'Permission denied')
        return real_rename(self, target)

    monkeypatch.setattr(Path, 'rename', failing_rename)
    # file1.txt is moved aside first because line 1 claims its name
    plan = plan_renames(project, ['file1.txt', 'file2.txt'], ['new-file1.txt', 'file1.txt'])

    with pytest.raises(RenameApplyFailure) as exc_info:
        apply_plan(plan)

    assert exc_info.value.applied == []
    assert (project / 'file1.txt').read_text() == 'file1.txt\n'
    assert (project / 'file2.txt').read_text() == 'file2.txt\n'
    assert not [p for p in project.iterdir() if 'yazi-bridge' in p.name]


def test_partial_failure_keeps_earlier_renames(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_rename = Path.rename

    def failing_rename(self: Path, target: Path) -> Path:
        if self.name == 'file2.txt':
            raise PermissionError(13, 'Permission denied')
        return real_rename(self, target)

    monkeypatch.setattr(Path, 'rename', failing_rename)
    plan = plan_renames(project, ['file1.txt', 'file2.txt', 'file3.txt'], ['a.txt', 'b.txt', 'c.txt'])

    with pytest.raises(RenameApplyFailure) as exc_info:
        apply_plan(plan)

    assert exc_info.value.index == 1
    assert exc_info.value.applied == [0]
    assert exc_info.value.cause == 'Permission denied'
    assert (project / 'a.txt').exists()
    assert (project / 'file2.txt').exists()
    assert (project / 'file3.txt').exists()
    assert not (project / 'c.txt').exists()


# ==============================================================================
# Transaction
# ==============================================================================


def editor_settings(command: str) -> BridgeSettings:
    return BridgeSettings(_env_file=None, RENAME_EDITOR=command, TERMINATE_TIMEOUT_SECONDS=1.0)


def sed_editor(old: str, new: str) -> str:
    return shlex.join(['sed', '-i', '-e', f's/^{old}$/{new}/'])


async def always_yes(plan: RenamePlan) -> bool:
    return True


async def run_transaction(transaction: BulkRenameTransaction) -> RenameResult:
    await transaction.start()
    return await asyncio.wait_for(transaction.wait(), timeout=10)


def test_rename_applies_and_follows_buffers(project: Path) -> None:
    editor = FakeEditor(buffers=[project / 'file2.txt'])
    transaction = BulkRenameTransaction(
        [project / 'file2.txt'],
        editor=editor,
        settings=editor_settings(sed_editor('file2.txt', 'renamed-file.txt')),
        confirm=always_yes,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.APPLIED
    assert not (project / 'file2.txt').exists()
    assert (project / 'renamed-file.txt').read_text() == 'file2.txt\n'
    assert editor.buffers == [project / 'renamed-file.txt']
    assert result.buffers_updated == 1
    assert not transaction.scratch_file.exists()


class UniqueNamesEditor(FakeEditor):
    """Refuses to give a buffer a name another buffer has (Neovim's E95)."""

    async def rename_buffer_path(self, old: Path, new: Path) -> bool:
        if new in self.buffers:
            raise EditorError('rename', f'E95: Buffer with this name already exists: {new}')
        return await super().rename_buffer_path(old, new)


def first_match_editor(*substitutions: tuple[str, str]) -> str:
    """sed that applies only the first matching substitution to each line."""
    command = ['sed', '-i']
    for old, new in substitutions:
        command += ['-e', f's/^{old}$/{new}/', '-e', 't']
    return shlex.join(command)


@pytest.mark.parametrize(
    ('substitutions', 'expected'),
    [
        ((('file1.txt', 'file2.txt'), ('file2.txt', 'file1.txt')), ['file2.txt', 'file1.txt']),
        ((('file2.txt', 'file2.txt.bak'), ('file1.txt', 'file2.txt')), ['file2.txt', 'file2.txt.bak']),
    ],
    ids=['swap', 'chain'],
)
def test_buffers_follow_swaps_and_chains(
    project: Path, substitutions: tuple[tuple[str, str], ...], expected: list[str]
) -> None:
    editor = UniqueNamesEditor(buffers=[project / 'file1.txt', project / 'file2.txt'])
    transaction = BulkRenameTransaction(
        [project / 'file1.txt', project / 'file2.txt'],
        editor=editor,
        settings=editor_settings(first_match_editor(*substitutions)),
        confirm=always_yes,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.APPLIED
    assert editor.buffers == [project / name for name in expected]
    assert result.buffers_updated == 2


def test_unreachable_editor_keeps_the_renamed_files(project: Path) -> None:
    class UnreachableEditor(FakeEditor):
        async def list_buffer_paths(self) -> list[Path]:
            raise EditorError('buffers', 'no answer from /sock after 10.0s')

    transaction = BulkRenameTransaction(
        [project / 'file2.txt'],
        editor=UnreachableEditor(),
        settings=editor_settings(sed_editor('file2.txt', 'renamed-file.txt')),
        confirm=always_yes,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.APPLIED
    assert (project / 'renamed-file.txt').exists()
    assert result.buffers_updated == 0


def test_unchanged_names_apply_without_prompt(project: Path) -> None:
    asked: list[RenamePlan] = []

    async def confirm(plan: RenamePlan) -> bool:
        asked.append(plan)
        return False

    transaction = BulkRenameTransaction(
        [project / 'file2.txt'],
        editor=FakeEditor(),
        settings=editor_settings('true'),
        confirm=confirm,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.APPLIED
    assert result.renamed == ()
    assert asked == []
    assert (project / 'file2.txt').exists()


def test_editor_failure_aborts(project: Path) -> None:
    transaction = BulkRenameTransaction(
        [project / 'file1.txt'],
        editor=FakeEditor(),
        settings=editor_settings('false'),
        confirm=always_yes,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.ABORTED
    assert (project / 'file1.txt').exists()


def test_declined_confirmation_aborts(project: Path) -> None:
    async def no(plan: RenamePlan) -> bool:
        return False

    transaction = BulkRenameTransaction(
        [project / 'file1.txt'],
        editor=FakeEditor(),
        settings=editor_settings(sed_editor('file1.txt', 'other.txt')),
        confirm=no,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.ABORTED
    assert (project / 'file1.txt').exists()
    assert not (project / 'other.txt').exists()


def test_line_count_mismatch_reopens_editor(project: Path, tmp_path: Path) -> None:
    """First save drops a line; the editor is reopened and the second save is applied."""
    marker = tmp_path / 'opened-once'
    script = tmp_path / 'editor.sh'
    script.write_text(
        '#!/bin/sh\n'
        f'if [ ! -e {shlex.quote(str(marker))} ]; then\n'
        f'  touch {shlex.quote(str(marker))}\n'
        '  printf "file1.txt\\n" > "$1"\n'
        'else\n'
        '  sed -i -e "s/^file2.txt$/two.txt/" "$1"\n'
        'fi\n'
    )
    shown: list[bytes] = []
    transaction = BulkRenameTransaction(
        [project / 'file1.txt', project / 'file2.txt'],
        editor=FakeEditor(),
        settings=editor_settings(f'sh {shlex.quote(str(script))}'),
        output=shown.append,
        confirm=always_yes,
    )

    result = asyncio.run(run_transaction(transaction))

    assert result.state is RenameState.APPLIED
    assert [c.index for c in result.renamed] == [1]
    assert (project / 'two.txt').exists()
    assert b'Expected 2 line(s) but found 1' in b''.join(shown)


def test_interactive_prompt_reads_keys(project: Path) -> None:
    shown: list[bytes] = []
    transaction = BulkRenameTransaction(
        [project / 'file3.txt'],
        editor=FakeEditor(),
        settings=editor_settings(sed_editor('file3.txt', 'three.txt')),
        output=shown.append,
    )

    async def scenario() -> RenameResult:
        await transaction.start()
        for _ in range(500):
            if transaction.state is RenameState.CONFIRMING and b'(y/N)' in b''.join(shown):
                break
            await asyncio.sleep(0.01)
        transaction.feed_keys(b'y')
        transaction.feed_keys(b'\r')
        return await asyncio.wait_for(transaction.wait(), timeout=10)

    result = asyncio.run(scenario())

    assert result.state is RenameState.APPLIED
    assert (project / 'three.txt').exists()
    assert b'file3.txt -> three.txt' in b''.join(shown)


def test_items_must_share_a_directory(project: Path, settings: BridgeSettings) -> None:
    with pytest.raises(InvalidRenamePlan):
        BulkRenameTransaction(
            [project / 'file1.txt', project / 'dir with spaces' / 'file1.txt'],
            editor=FakeEditor(),
            settings=settings,
        )
