"""Client-side session state.

``AuthSession`` and ``BookShelf`` hold this session's copy of the signed-in
user and their books. They are plain objects wired together explicitly, so
several independent sessions can live in one process:

    api = ApiClient("http://localhost:5000")
    auth = AuthSession(api)
    shelf = BookShelf(api, auth)
    auth.login("a@x.com", "secret1")   # shelf fetches the user's books

Local state changes only after the server has confirmed an operation.
"""
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from config import Config

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def log_notice(level: str, message: str) -> None:
    logger.info("[%s] %s", level, message)


class ApiError(Exception):
    """A failed call to the BookHaven API.

    ``message`` is the server's ``error`` field when it sent one.
    ``status_code`` is ``None`` when the server could not be reached.
    """

    def __init__(self, status_code: Optional[int], message: Optional[str] = None):
        super().__init__(message or "Request failed")
        self.status_code = status_code
        self.message = message


# Token stores -----------------------------------------------------------------

class MemoryTokenStore:
    def __init__(self, token: Optional[str] = None):
        self.token = token

    def get(self) -> Optional[str]:
        return self.token

    def set(self, token: str) -> None:
        self.token = token

    def clear(self) -> None:
        self.token = None


class FileTokenStore:
    """Keeps the token in a small JSON file so it survives restarts."""

    def __init__(self, path):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f).get("token")
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable token file %s", self.path)
            return None

    def set(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump({"token": token}, f)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


# HTTP ---------------------------------------------------------------------------

class ApiClient:
    def __init__(self, base_url: Optional[str] = None, token_store=None, session=None, timeout: int = Config.HTTP_TIMEOUT):
        self.base_url = (base_url or Config.API_URL).rstrip("/")
        self.token_store = token_store if token_store is not None else MemoryTokenStore()
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method: str, path: str, *, json=None, data=None, files=None, auth: bool = True) -> Any:
        headers = {}
        token = self.token_store.get() if auth else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.session.request(
                method,
                self.base_url + path,
                headers=headers,
                json=json,
                data=data,
                files=files,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(None) from e

        try:
            body = response.json()
        except ValueError:
            body = None
        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            raise ApiError(response.status_code, message)
        return body

    def get(self, path: str, **kwargs) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> Any:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> Any:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)


# Session state --------------------------------------------------------------------

class AuthSession:
    """The signed-in user for this session, or ``None``."""

    def __init__(self, api: ApiClient, notifier: Optional[Notifier] = None):
        self.api = api
        self.notify = notifier or log_notice
        self.user: Optional[Dict[str, Any]] = None
        self.toggling_favorite: Optional[str] = None
        self._listeners: List[Callable[[Optional[Dict[str, Any]]], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: Callable[[Optional[Dict[str, Any]]], None]) -> None:
        self._listeners.append(listener)

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        self.user = user
        for listener in self._listeners:
            listener(user)

    def _start(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.api.token_store.set(payload["token"])
        self.set_user(payload["user"])
        return self.user

    def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        try:
            payload = self.api.post(
                "/api/auth/register",
                json={"username": username, "email": email, "password": password},
                auth=False,
            )
        except ApiError as e:
            self.notify("error", e.message or "Registration failed")
            raise
        self.notify("success", "Registration successful!")
        return self._start(payload)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        try:
            payload = self.api.post("/api/auth/login", json={"email": email, "password": password}, auth=False)
        except ApiError as e:
            self.notify("error", e.message or "Login failed")
            raise
        self.notify("success", "Logged in successfully!")
        return self._start(payload)

    def logout(self) -> None:
        self.api.token_store.clear()
        self.set_user(None)

    def restore(self) -> Optional[Dict[str, Any]]:
        """Pick up a stored token; a token the server rejects is discarded."""
        if not self.api.token_store.get():
            return None
        try:
            user = self.api.get("/api/auth/me")
        except ApiError as e:
            logger.info("Stored token rejected: %s", e)
            self.logout()
            return None
        self.set_user(user)
        return user

    def update_user(self, fields: Optional[Dict[str, Any]] = None, profile_pic=None) -> Dict[str, Any]:
        """Update the profile; ``profile_pic`` is a ``(filename, fileobj, mimetype)`` tuple."""
        try:
            if profile_pic is not None:
                data = dict(fields or {})
                # requests drops empty lists from form data; an empty value clears the list
                if data.get("favorites") == []:
                    data["favorites"] = ""
                user = self.api.put("/api/auth/me", data=data, files={"profilePic": profile_pic})
            else:
                user = self.api.put("/api/auth/me", json=fields or {})
        except ApiError as e:
            self.notify("error", e.message or "Failed to update profile")
            raise
        self.set_user(user)
        return user

    def is_favorite(self, volume_id: str) -> bool:
        return self.user is not None and volume_id in self.user.get("favorites", [])

    def toggle_favorite(self, volume_id: str) -> Optional[bool]:
        """Add or remove a catalog id; returns whether it is now a favorite.

        Returns ``None`` without calling the server when signed out or while
        another toggle is still in flight.
        """
        if self.toggling_favorite is not None or self.user is None:
            return None
        self.toggling_favorite = volume_id
        try:
            favorites = list(self.user.get("favorites", []))
            was_favorite = volume_id in favorites
            if was_favorite:
                favorites = [f for f in favorites if f != volume_id]
            else:
                favorites.append(volume_id)
            try:
                user = self.api.put("/api/auth/me", json={"favorites": favorites})
            except ApiError:
                self.notify("error", "Failed to update favorites")
                raise
            self.set_user(user)
            self.notify("success", "Removed from favorites!" if was_favorite else "Added to favorites!")
            return not was_favorite
        finally:
            self.toggling_favorite = None


class BookShelf:
    """The signed-in user's own books."""

    def __init__(self, api: ApiClient, auth: AuthSession, notifier: Optional[Notifier] = None):
        self.api = api
        self.auth = auth
        self.notify = notifier or auth.notify
        self.books: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self._pending = set()
        self._user_id: Optional[str] = None
        auth.subscribe(self._on_user_changed)
        if auth.user is not None:
            self._on_user_changed(auth.user)

    def _on_user_changed(self, user: Optional[Dict[str, Any]]) -> None:
        user_id = user["id"] if user else None
        if user_id == self._user_id:
            return
        self._user_id = user_id
        if user_id is None:
            self.books = []
        else:
            self.fetch_books()

    def _begin(self, key) -> bool:
        if key in self._pending:
            return False
        self._pending.add(key)
        return True

    def fetch_books(self) -> List[Dict[str, Any]]:
        try:
            self.books = self.api.get("/api/books")
            self.error = None
        except ApiError as e:
            logger.warning("Error fetching books: %s", e)
            self.error = "Failed to fetch books"
        return self.books

    def add_book(self, fields: Dict[str, Any], cover=None) -> Optional[Dict[str, Any]]:
        if not self._begin("add"):
            return None
        try:
            files = {"coverImage": cover} if cover is not None else None
            payload = self.api.post("/api/books", data=fields, files=files)
        except ApiError as e:
            self.error = "Failed to add book"
            self.notify("error", e.message or self.error)
            raise
        finally:
            self._pending.discard("add")

        self.books.append(payload["book"])
        self.auth.set_user(payload["user"])
        self.error = None
        self.notify("success", "Book added successfully!")
        return payload["book"]

    def delete_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        key = ("delete", book_id)
        if not self._begin(key):
            return None
        try:
            payload = self.api.delete(f"/api/books/{book_id}")
        except ApiError as e:
            self.error = e.message or "Failed to delete book"
            self.notify("error", self.error)
            raise
        finally:
            self._pending.discard(key)

        self.books = [book for book in self.books if book["id"] != book_id]
        self.auth.set_user(payload["user"])
        self.error = None
        self.notify("success", payload.get("message", "Book deleted"))
        return payload

    def edit_book(self, book_id: str, fields: Dict[str, Any], cover=None) -> Optional[Dict[str, Any]]:
        key = ("edit", book_id)
        if not self._begin(key):
            return None
        try:
            files = {"coverImage": cover} if cover is not None else None
            book = self.api.put(f"/api/books/{book_id}", data=fields, files=files)
        except ApiError as e:
            self.error = "Failed to edit book"
            self.notify("error", e.message or self.error)
            raise
        finally:
            self._pending.discard(key)

        self.books = [book if b["id"] == book_id else b for b in self.books]
        self.error = None
        self.notify("success", "Book updated successfully!")
        return book
