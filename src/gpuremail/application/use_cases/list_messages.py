"""Paginated folder listing."""

from __future__ import annotations

import math
from typing import Callable

from loguru import logger

from gpuremail.application.ports.mail_store import MailStore, RawEmail
from gpuremail.domain.errors import MessageDecodeError
from gpuremail.domain.models import MessageSummary, Pagination

SummaryDecoder = Callable[[RawEmail, int], MessageSummary]


def paginate(total_count: int, page: int, page_size: int) -> tuple[slice, Pagination]:
    """
    Compute the slice of a newest-first identifier list for ``page``.

    A page past the end yields an empty slice and ``has_more=False``.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be > 0")

    total_pages = max(1, math.ceil(total_count / page_size))
    start = (page - 1) * page_size
    return slice(start, start + page_size), Pagination(
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages,
        has_more=page < total_pages,
    )


class ListMessagesUseCase:
    """
    Translate (folder, page, page size, unread filter) into a search, a
    fetch of one page of headers and previews, and pagination metadata.
    """

    def __init__(self, store: MailStore, decoder: SummaryDecoder, preview_length: int = 100) -> None:
        self.store = store
        self.decoder = decoder
        self.preview_length = preview_length

    def run(self, folder: str, page: int, page_size: int, unread_only: bool = False) -> tuple[list[MessageSummary], Pagination]:
        uids = self.store.search(unread_only=unread_only)
        # UIDs grow with arrival order, so newest first is descending UID
        ordered = sorted(set(uids), reverse=True)
        window, pagination = paginate(len(ordered), page, page_size)
        page_uids = ordered[window]

        logger.info(
            f"Listing {folder}: page {page}/{pagination.total_pages} "
            f"({len(page_uids)} of {pagination.total_count}, unread_only={unread_only})"
        )
        if not page_uids:
            return [], pagination

        fetched = {raw.uid: raw for raw in self.store.fetch_summaries(page_uids)}

        summaries: list[MessageSummary] = []
        for uid in page_uids:
            raw = fetched.get(uid)
            if raw is None:
                # Expunged between SEARCH and FETCH
                logger.debug(f"UID {uid} vanished from {folder} before fetch")
                continue
            try:
                summaries.append(self.decoder(raw, self.preview_length))
            except MessageDecodeError as e:
                logger.warning(f"Omitting undecodable message from listing: {e}")

        return summaries, pagination


def list_messages(
    store: MailStore,
    folder: str,
    page: int,
    page_size: int,
    decoder: SummaryDecoder,
    unread_only: bool = False,
    preview_length: int = 100,
) -> tuple[list[MessageSummary], Pagination]:
    return ListMessagesUseCase(store, decoder, preview_length).run(folder, page, page_size, unread_only)
