"""
Event payloads read from yazi's data distribution service.

`ya sub <kinds>` prints one event per line:

    kind,receiver,sender,body

`body` is JSON and may itself contain commas, so only the first three commas
separate fields. The bridge reads:

- hover: {"tab": 0, "url": "/abs/file"}          (url absent on empty dirs)
- cd: {"tab": 0, "url": "/abs/dir"}
- @yank: {"cut": false, "urls": ["/abs/a", ...]} (selected items, or the hovered one)
- rename: {"tab": 0, "from": "/abs/a", "to": "/abs/b"}
- move: {"items": [{"from": "/abs/a", "to": "/abs/b"}, ...]}
- bulk: {"changes": {"/abs/a": "/abs/b", ...}}
- delete / trash: {"urls": ["/abs/a", ...]}
"""

from __future__ import annotations

import logging
from typing import Final

import pydantic

from yazi_bridge.schemas.types import BaseStrictModel, PathStr, PermissiveModel

logger = logging.getLogger(__name__)

__all__ = [
    'BulkBody',
    'CdBody',
    'DeleteBody',
    'EVENT_BODY_MODELS',
    'EventBody',
    'HoverBody',
    'MoveBody',
    'MoveItem',
    'RenameBody',
    'TrashBody',
    'YankBody',
    'YaziEvent',
    'parse_event_line',
]


# ==============================================================================
# Event Bodies
# ==============================================================================


class HoverBody(PermissiveModel):
    """Cursor moved to a new item (or to nothing in an empty directory)."""

    tab: int | str | None = None
    url: PathStr | None = None


class CdBody(PermissiveModel):
    """The active tab changed directory."""

    tab: int | str | None = None
    url: PathStr


class YankBody(PermissiveModel):
    """Items yanked (copied or cut); yazi falls back to the hovered item when nothing is selected."""

    cut: bool = False
    urls: list[PathStr]


class RenameBody(PermissiveModel):
    """A single item was renamed by yazi."""

    tab: int | str | None = None
    from_: PathStr = pydantic.Field(alias='from')
    to: PathStr


class MoveItem(PermissiveModel):
    from_: PathStr = pydantic.Field(alias='from')
    to: PathStr


class MoveBody(PermissiveModel):
    """Items were cut and pasted elsewhere."""

    items: list[MoveItem]


class BulkBody(PermissiveModel):
    """yazi's own bulk rename finished; maps old path to new path."""

    changes: dict[PathStr, PathStr]


class DeleteBody(PermissiveModel):
    """Items were permanently deleted."""

    urls: list[PathStr]


class TrashBody(PermissiveModel):
    """Items were moved to the trash."""

    urls: list[PathStr]


type EventBody = HoverBody | CdBody | YankBody | RenameBody | MoveBody | BulkBody | DeleteBody | TrashBody

EVENT_BODY_MODELS: Final[dict[str, type[PermissiveModel]]] = {
    'hover': HoverBody,
    'cd': CdBody,
    '@yank': YankBody,
    'rename': RenameBody,
    'move': MoveBody,
    'bulk': BulkBody,
    'delete': DeleteBody,
    'trash': TrashBody,
}


class YaziEvent(BaseStrictModel):
    """One parsed line from the event stream."""

    kind: str
    receiver: str
    sender: str
    body: EventBody


# ==============================================================================
# Parsing
# ==============================================================================


def parse_event_line(line: str) -> YaziEvent | None:
    """
    Parse one `ya sub` output line.

    Args:
        line: Raw line, with or without trailing newline

    Returns:
        Parsed event, or None for blank lines and kinds the bridge does not track

    Raises:
        ValueError: If the line is not in `kind,receiver,sender,body` form
        pydantic.ValidationError: If the body does not match the kind's schema
    """
    line = line.rstrip('\r\n')
    if not line.strip():
        return None

    parts = line.split(',', 3)
    if len(parts) != 4:
        raise ValueError(f'Malformed event line: {line!r}')

    kind, receiver, sender, body = parts
    model = EVENT_BODY_MODELS.get(kind)
    if model is None:
        logger.debug('Ignoring untracked event kind %r', kind)
        return None

    return YaziEvent(
        kind=kind,
        receiver=receiver,
        sender=sender,
        body=model.model_validate_json(body),
    )
