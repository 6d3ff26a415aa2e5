"""Google Books catalog access for the client side.

Lookups go straight to the Google Books API (the backend is not involved)
and are cached in an :class:`~cache.ExpiringCache`, so repeating a search
or reopening a favorite within the TTL does not hit the network.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import requests

from cache import ExpiringCache
from config import Config

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "books"
INITIAL_FETCH_COUNT = 40
BOOKS_PER_LOAD = 12


class CatalogError(Exception):
    """The catalog API could not be reached or answered with an error."""


class GoogleBooksClient:
    """Thin client for the Google Books volumes API.

    Each call is a single request with a timeout; nothing is retried.
    """

    BASE_URL = "https://www.googleapis.com/books/v1/volumes"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 10,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config=Config) -> "GoogleBooksClient":
        return cls(api_key=config.GOOGLE_BOOKS_API_KEY, timeout=config.HTTP_TIMEOUT)

    def search(self, query: str, max_results: int = INITIAL_FETCH_COUNT) -> Dict[str, Any]:
        params = {"q": query, "maxResults": min(max_results, 40)}  # API limit
        return self._get(self.BASE_URL, params)

    def volume(self, volume_id: str) -> Dict[str, Any]:
        return self._get(f"{self.BASE_URL}/{quote(volume_id, safe='')}", {})

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.api_key:
            params = dict(params, key=self.api_key)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Catalog request to %s failed: %s", url, e)
            raise CatalogError("Failed to load books. Please try again.") from e

        if response.status_code != 200:
            logger.warning("Catalog request to %s returned %s", url, response.status_code)
            raise CatalogError(f"Catalog request failed with status {response.status_code}")
        return response.json()


@dataclass
class CatalogBook:
    """Normalized Google Books volume."""
    id: str
    title: str
    authors: List[str] = field(default_factory=list)
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    large_image: Optional[str] = None
    preview_link: Optional[str] = None
    average_rating: Optional[float] = None
    ratings_count: Optional[int] = None
    publisher: Optional[str] = None
    page_count: Optional[int] = None

    @classmethod
    def from_volume(cls, item: Dict[str, Any]) -> Optional["CatalogBook"]:
        """Build a book from one API item; items without an id are skipped."""
        book_id = item.get("id")
        if not book_id:
            return None
        info = item.get("volumeInfo") or {}
        images = info.get("imageLinks") or {}
        return cls(
            id=book_id,
            title=info.get("title") or "Untitled",
            authors=info.get("authors") or [],
            description=info.get("description"),
            thumbnail=images.get("thumbnail") or images.get("smallThumbnail"),
            large_image=images.get("large"),
            preview_link=info.get("previewLink"),
            average_rating=info.get("averageRating"),
            ratings_count=info.get("ratingsCount"),
            publisher=info.get("publisher"),
            page_count=info.get("pageCount"),
        )

    @property
    def authors_str(self) -> str:
        return ", ".join(self.authors) if self.authors else "Unknown Author"

    @property
    def cover(self) -> Optional[str]:
        return self.large_image or self.thumbnail

    @property
    def rating_str(self) -> str:
        if not self.average_rating:
            return "No rating available"
        return f"{self.average_rating} / 5 ({self.ratings_count or 'No'} ratings)"


def parse_volumes(response: Dict[str, Any]) -> List[CatalogBook]:
    books = []
    for item in response.get("items") or []:
        book = CatalogBook.from_volume(item)
        if book:
            books.append(book)
    return books


@dataclass
class FavoritesResult:
    books: List[CatalogBook]
    error: Optional[str] = None


class BookCatalog:
    """Cached search, detail and favorites lookups."""

    def __init__(self, client: GoogleBooksClient, cache: Optional[ExpiringCache] = None):
        self.client = client
        self.cache = cache if cache is not None else ExpiringCache(ttl=Config.CACHE_TTL)

    @staticmethod
    def search_key(term: str) -> str:
        return "books_" + quote(term or DEFAULT_QUERY, safe="")

    def search(self, term: str = "") -> List[CatalogBook]:
        term = (term or "").strip()
        key = self.search_key(term)
        cached = self.cache.get(key)
        if cached is not None:
            return parse_volumes(cached)

        response = self.client.search(term or DEFAULT_QUERY)
        self.cache.put(key, response)
        return parse_volumes(response)

    def volume(self, volume_id: str) -> Optional[CatalogBook]:
        key = f"volume_{volume_id}"
        cached = self.cache.get(key)
        if cached is None:
            cached = self.client.volume(volume_id)
            self.cache.put(key, cached)
        return CatalogBook.from_volume(cached)

    def favorites(self, ids: Iterable[str]) -> FavoritesResult:
        """Resolve favorite ids to books.

        Ids from Open Library (``/works/...``) cannot be looked up here and
        are skipped. A failing id does not stop the others; when all fail,
        the last cached list is returned even if it has expired.
        """
        ids = list(ids)
        if not ids:
            return FavoritesResult([])

        key = "favorites_" + "_".join(ids)
        cached = self.cache.get(key)
        if cached is not None:
            return FavoritesResult(cached)

        valid_ids = [i for i in ids if not i.startswith("/works/")]
        if not valid_ids:
            return FavoritesResult([], "No valid Google Books favorites found.")

        books = []
        for volume_id in valid_ids:
            try:
                book = self.volume(volume_id)
            except CatalogError:
                continue
            if book:
                books.append(book)

        if books:
            self.cache.put(key, books)
            return FavoritesResult(books)

        stale = self.cache.get_stale(key)
        if stale is not None:
            return FavoritesResult(stale, "API unavailable, showing cached data.")
        return FavoritesResult([], "All favorite book fetches failed. Check your network or book IDs.")


class CatalogPager:
    """Reveals a fetched result list a page at a time ("load more")."""

    def __init__(self, books: List[CatalogBook], per_load: int = BOOKS_PER_LOAD):
        self.books = list(books)
        self.per_load = per_load
        self.shown = min(per_load, len(self.books))

    @property
    def displayed(self) -> List[CatalogBook]:
        return self.books[: self.shown]

    @property
    def has_more(self) -> bool:
        return self.shown < len(self.books)

    def load_more(self) -> List[CatalogBook]:
        """Reveal the next page and return just the newly shown books."""
        start = self.shown
        self.shown = min(self.shown + self.per_load, len(self.books))
        return self.books[start: self.shown]
