"""
HTTP Store: remote adapter for a running FluentFlow server.

Speaks the server's ``/api/study-books`` and ``/api/word-book`` routes with
the same camelCase documents the JSON store keeps on disk.
"""

import logging
from typing import Any

import httpx

from fluentflow.domain.constants import REQUEST_TIMEOUT
from fluentflow.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from fluentflow.domain.interfaces import BookRepository, WordBookRepository
from fluentflow.domain.models import (
    StudyBook,
    WordBook,
    book_from_dict,
    book_to_dict,
    card_to_dict,
    word_book_from_dict,
    word_book_to_dict,
)


class HttpBookRepository(BookRepository, WordBookRepository):
    """Adapter that stores books on a FluentFlow server."""

    def __init__(
        self,
        url: str = "http://127.0.0.1:3001",
        client: httpx.AsyncClient | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.logger.debug(f"HttpBookRepository initialized with url={self.url}")

    async def list_books(self) -> list[StudyBook]:
        data = await self._request("GET", "/api/study-books")
        return [book_from_dict(b) for b in data]

    async def load_book(self, book_id: str) -> StudyBook:
        return book_from_dict(await self._request("GET", f"/api/study-books/{book_id}"))

    async def create_book(self, book: StudyBook) -> StudyBook:
        data = await self._request("POST", "/api/study-books", json=book_to_dict(book))
        return book_from_dict(data)

    async def update_book(self, book: StudyBook) -> StudyBook:
        payload = {"title": book.title, "cards": [card_to_dict(c) for c in book.cards]}
        data = await self._request("PUT", f"/api/study-books/{book.id}", json=payload)
        return book_from_dict(data)

    async def delete_book(self, book_id: str) -> None:
        await self._request("DELETE", f"/api/study-books/{book_id}")

    async def load_word_book(self) -> WordBook:
        return word_book_from_dict(await self._request("GET", "/api/word-book"))

    async def save_word_book(self, book: WordBook) -> None:
        await self._request("PUT", "/api/word-book", json=word_book_to_dict(book))

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

        try:
            resp = await self._client.request(method, f"{self.url}{path}", **kwargs)
        except httpx.HTTPError as e:
            self.logger.error(f"{method} {path} failed: {e}")
            raise PersistenceError(f"Server unreachable at {self.url}: {e}") from e

        if resp.status_code == 400:
            raise ValidationError(self._detail(resp))
        if resp.status_code == 404:
            raise NotFoundError(self._detail(resp))
        if resp.status_code == 409:
            raise ConflictError(self._detail(resp))
        if resp.status_code >= 400:
            raise PersistenceError(f"Server error {resp.status_code}: {self._detail(resp)}")
        if not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _detail(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return str(body)
