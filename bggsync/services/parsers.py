"""XML document parsing for collection and plays responses.

The upstream returns XML documents that can run to several megabytes for large
collections, so parsing is incremental: elements are turned into records as
soon as they close and are then discarded.
"""

import io
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from datetime import date
from typing import Protocol

import structlog

from ..models import (
    CollectionKind,
    CollectionRecord,
    PageMeta,
    PlayerRecord,
    PlayRecord,
    PlaysPage,
)
from .errors import ParseFailedError

log = structlog.stdlib.get_logger()


class DocumentParser(Protocol):
    """Turns successful response bodies into typed records."""

    def parse_collection(self, body: bytes, kind: CollectionKind) -> list[CollectionRecord]:
        ...

    def parse_plays(self, body: bytes) -> PlaysPage:
        ...


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _to_int(value: str | None) -> int | None:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class _IncrementalDocument:
    """Iterates over the direct children named `child_tag` of a document as each one closes.

    The document element itself is available as `root` once iteration has
    started; its attributes are complete from the first event on.
    """

    def __init__(self, body: bytes, root_tag: str, child_tag: str, document: str) -> None:
        self.body = body
        self.root_tag = root_tag
        self.child_tag = child_tag
        self.document = document
        self.root: ET.Element | None = None

    def __iter__(self) -> Iterator[ET.Element]:
        depth = 0
        try:
            for event, elem in ET.iterparse(io.BytesIO(self.body), events=("start", "end")):
                if event == "start":
                    depth += 1
                    if depth == 1:
                        if elem.tag != self.root_tag:
                            raise ParseFailedError(
                                f"Expected <{self.root_tag}> document, got <{elem.tag}>",
                                document=self.document,
                            )
                        self.root = elem
                    continue

                depth -= 1
                if depth == 1 and elem.tag == self.child_tag and self.root is not None:
                    yield elem
                    self.root.remove(elem)
        except ET.ParseError as e:
            raise ParseFailedError(
                "Response is not well-formed XML",
                document=self.document,
                original_error=e,
            ) from e


class BggXmlParser:
    """Default document parser for XML API2 collection and plays documents."""

    def parse_collection(self, body: bytes, kind: CollectionKind) -> list[CollectionRecord]:
        """Parse an <items> document.

        Items without an object id or a name are skipped. The record kind
        comes from the sub-query that produced the document, not from the
        item's own subtype attribute.

        Args:
            body: Raw response body
            kind: Collection kind requested by the sub-query

        Returns:
            Records in document order

        Raises:
            ParseFailedError: If the document cannot be parsed
        """
        records: list[CollectionRecord] = []
        skipped = 0

        for item in _IncrementalDocument(body, "items", "item", "collection"):
            object_id = _to_int(item.get("objectid"))
            name = _blank_to_none(item.findtext("name"))
            if object_id is None or name is None:
                skipped += 1
                continue

            records.append(
                CollectionRecord(
                    external_id=object_id,
                    kind=kind,
                    name=name,
                    year_published=_to_int(item.findtext("yearpublished")),
                    thumbnail_url=_blank_to_none(item.findtext("thumbnail")),
                )
            )

        log.debug("Parsed collection document", kind=kind.value, items=len(records), skipped=skipped)
        return records

    def parse_plays(self, body: bytes) -> PlaysPage:
        """Parse a <plays> document into one page of records.

        Args:
            body: Raw response body

        Returns:
            Plays in document order together with pagination metadata

        Raises:
            ParseFailedError: If the document cannot be parsed
        """
        plays: list[PlayRecord] = []
        skipped = 0
        document = _IncrementalDocument(body, "plays", "play", "plays")

        for element in document:
            play = self._read_play(element)
            if play is None:
                skipped += 1
                continue
            plays.append(play)

        if document.root is None:
            raise ParseFailedError("Response contained no document element", document="plays")

        meta = PageMeta(
            total_count=_to_int(document.root.get("total")) or 0,
            page_number=_to_int(document.root.get("page")) or 1,
        )

        log.debug(
            "Parsed plays document",
            plays=len(plays),
            skipped=skipped,
            total=meta.total_count,
            page=meta.page_number,
        )
        return PlaysPage(plays=plays, meta=meta)

    def _read_play(self, element: ET.Element) -> PlayRecord | None:
        play_id = _to_int(element.get("id"))
        game = element.find("item")
        if play_id is None or game is None:
            return None

        game_id = _to_int(game.get("objectid"))
        if game_id is None:
            return None

        try:
            play_date = date.fromisoformat(element.get("date", ""))
        except ValueError:
            log.warning("Skipping play with unreadable date", play_id=play_id, date=element.get("date"))
            return None

        length = _to_int(element.get("length"))
        players = tuple(self._read_player(p) for p in element.iterfind("players/player"))

        return PlayRecord(
            external_id=play_id,
            date=play_date,
            quantity=_to_int(element.get("quantity")) or 1,
            game_id=game_id,
            game_name=game.get("name", ""),
            length_minutes=length or None,  # 0 means not recorded
            incomplete=element.get("incomplete") == "1",
            location=_blank_to_none(element.get("location")),
            comments=_blank_to_none(element.findtext("comments")),
            players=players,
        )

    @staticmethod
    def _read_player(element: ET.Element) -> PlayerRecord:
        return PlayerRecord(
            name=element.get("name", ""),
            username=_blank_to_none(element.get("username")),
            user_id=_to_int(element.get("userid")),
            start_position=_blank_to_none(element.get("startposition")),
            color=_blank_to_none(element.get("color")),
            score=_blank_to_none(element.get("score")),
            won=element.get("win") == "1",
        )
