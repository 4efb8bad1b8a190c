"""
Selection tracker - keeps the authoritative hovered/selected snapshot per session.

yazi owns navigation: toggling selection also moves its cursor to the next
sibling, and the tracker simply reads the hover event that follows. The
tracker never simulates yazi's behaviour; it only interprets reports.

Policy:
- No explicit selection: the hovered item is the selection
- Explicit selection: exactly the reported items, in the order yazi lists them
- Directory change: the previous snapshot is discarded, not merged
- yank and chooser reports are yazi's own answer; they replace the snapshot and
  move the working directory to the items' common parent
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from yazi_bridge.domain.session import Session
from yazi_bridge.schemas.events import CdBody, HoverBody, YaziEvent, YankBody
from yazi_bridge.schemas.operations.selection import RawState, SelectionSnapshot

__all__ = ['SelectionTracker']

logger = logging.getLogger(__name__)


class SelectionTracker:
    """Turns yazi state reports into immutable SelectionSnapshots."""

    def on_update(self, session: Session, raw_state: RawState) -> SelectionSnapshot:
        """
        Apply one state report and replace the session's snapshot.

        Args:
            session: Session the report belongs to
            raw_state: Parsed report

        Returns:
            The new snapshot (also stored on the session)
        """
        previous = session.snapshot or SelectionSnapshot(directory=session.working_directory)

        match raw_state.kind:
            case 'cd':
                snapshot = SelectionSnapshot(directory=raw_state.directory or previous.directory)
            case 'hover':
                hovered = raw_state.hovered
                if hovered is not None and hovered.parent != previous.directory:
                    # Hover in another directory means the listing changed under us
                    logger.debug('Hover %s outside %s, rebuilding snapshot', hovered, previous.directory)
                    snapshot = SelectionSnapshot(directory=hovered.parent, hovered_item=hovered)
                else:
                    snapshot = SelectionSnapshot(
                        directory=previous.directory,
                        hovered_item=hovered,
                        explicit_items=previous.explicit_items,
                    )
            case 'yank' | 'chooser':
                selected = self._unique(raw_state.selected)
                if not selected:
                    snapshot = SelectionSnapshot(directory=previous.directory, hovered_item=previous.hovered_item)
                else:
                    directory = Path(os.path.commonpath([path.parent for path in selected]))
                    hovered = previous.hovered_item
                    if hovered is not None and hovered.parent != directory:
                        hovered = None
                    if directory != session.working_directory:
                        logger.debug('%s report moves %s to %s', raw_state.kind, session.working_directory, directory)
                        session.working_directory = directory
                    snapshot = SelectionSnapshot(directory=directory, hovered_item=hovered, explicit_items=selected)

        session.snapshot = snapshot
        return snapshot

    @staticmethod
    def raw_state_from_event(event: YaziEvent) -> RawState | None:
        """Convert a hover/cd/yank event to a RawState. Other kinds return None."""
        match event.body:
            case HoverBody(url=url):
                return RawState(kind='hover', hovered=Path(url) if url else None)
            case CdBody(url=url):
                return RawState(kind='cd', directory=Path(url))
            case YankBody(urls=urls):
                return RawState(kind='yank', selected=tuple(Path(u) for u in urls))
            case _:
                return None

    @staticmethod
    def raw_state_from_chooser(content: str) -> RawState | None:
        """
        Convert chooser-file content (one absolute path per line) to a RawState.

        Returns None when yazi wrote nothing.
        """
        paths = tuple(Path(line) for line in content.splitlines() if line.strip())
        if not paths:
            return None
        return RawState(kind='chooser', selected=paths)

    @staticmethod
    def _unique(paths: Iterable[Path]) -> tuple[Path, ...]:
        """De-duplicate, first occurrence wins."""
        return tuple(dict.fromkeys(paths))
