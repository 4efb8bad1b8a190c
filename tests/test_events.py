"""
Tests for parsing the `ya sub` event stream.
"""

from __future__ import annotations

import pydantic
import pytest

from yazi_bridge.schemas.events import (
    BulkBody,
    CdBody,
    HoverBody,
    MoveBody,
    RenameBody,
    TrashBody,
    YankBody,
    parse_event_line,
)


def test_hover_event() -> None:
    event = parse_event_line('hover,0,1711957283332834,{"tab":0,"url":"/project/file1.txt"}\n')

    assert event is not None
    assert event.kind == 'hover'
    assert event.receiver == '0'
    assert event.sender == '1711957283332834'
    assert isinstance(event.body, HoverBody)
    assert event.body.url == '/project/file1.txt'


def test_hover_without_url() -> None:
    """An empty directory hovers nothing."""
    event = parse_event_line('hover,0,1,{"tab":0}')

    assert event is not None
    assert isinstance(event.body, HoverBody)
    assert event.body.url is None


def test_body_may_contain_commas() -> None:
    event = parse_event_line('@yank,0,1,{"cut":false,"urls":["/p/a,b.txt","/p/c.txt"]}')

    assert event is not None
    assert isinstance(event.body, YankBody)
    assert event.body.urls == ['/p/a,b.txt', '/p/c.txt']


def test_cd_event() -> None:
    event = parse_event_line('cd,0,1,{"tab":0,"url":"/project/routes"}')

    assert event is not None
    assert isinstance(event.body, CdBody)
    assert event.body.url == '/project/routes'


def test_file_operation_events() -> None:
    rename = parse_event_line('rename,0,1,{"tab":0,"from":"/p/a","to":"/p/b"}')
    move = parse_event_line('move,0,1,{"items":[{"from":"/p/a","to":"/q/a"}]}')
    bulk = parse_event_line('bulk,0,1,{"changes":{"/p/a":"/p/b"}}')
    trash = parse_event_line('trash,0,1,{"urls":["/p/a"]}')

    assert rename is not None and isinstance(rename.body, RenameBody)
    assert (rename.body.from_, rename.body.to) == ('/p/a', '/p/b')
    assert move is not None and isinstance(move.body, MoveBody)
    assert move.body.items[0].to == '/q/a'
    assert bulk is not None and isinstance(bulk.body, BulkBody)
    assert bulk.body.changes == {'/p/a': '/p/b'}
    assert trash is not None and isinstance(trash.body, TrashBody)


def test_unknown_fields_are_kept() -> None:
    event = parse_event_line('hover,0,1,{"tab":0,"url":"/p/a","new_in_next_release":true}')

    assert event is not None
    assert event.body.get_extra_fields() == {'new_in_next_release': True}


@pytest.mark.parametrize('line', ['', '\n', 'mount,0,1,{}', 'hey,0,1,{}'])
def test_blank_and_untracked_lines_are_ignored(line: str) -> None:
    assert parse_event_line(line) is None


def test_malformed_line_raises() -> None:
    with pytest.raises(ValueError, match='Malformed'):
        parse_event_line('hover,0')


def test_body_schema_mismatch_raises() -> None:
    with pytest.raises(pydantic.ValidationError):
        parse_event_line('cd,0,1,{"tab":0}')
