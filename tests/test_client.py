"""Tests for the client-side session objects, driven against the real app."""
import io

import pytest

from client import ApiClient, ApiError, AuthSession, BookShelf, FileTokenStore, MemoryTokenStore
from conftest import BASE_URL


class Notices:
    def __init__(self):
        self.items = []

    def __call__(self, level, message):
        self.items.append((level, message))

    @property
    def last(self):
        return self.items[-1]


@pytest.fixture
def notices():
    return Notices()


@pytest.fixture
def auth(api, notices):
    return AuthSession(api, notifier=notices)


@pytest.fixture
def shelf(api, auth):
    return BookShelf(api, auth)


def test_register_stores_token_and_user(auth, api, notices):
    user = auth.register("alice", "a@x.com", "secret1")

    assert auth.is_authenticated
    assert user["username"] == "alice"
    assert api.token_store.get()
    assert notices.last == ("success", "Registration successful!")


def test_failed_login_reports_server_message(auth, notices):
    auth.register("alice", "a@x.com", "secret1")
    auth.logout()

    with pytest.raises(ApiError) as excinfo:
        auth.login("a@x.com", "wrong")

    assert excinfo.value.status_code == 401
    assert notices.last == ("error", "Invalid credentials")
    assert not auth.is_authenticated


def test_restore_uses_stored_token(app, auth, notices):
    auth.register("alice", "a@x.com", "secret1")
    other = AuthSession(ApiClient(BASE_URL, token_store=auth.api.token_store, session=auth.api.session))

    assert other.restore()["email"] == "a@x.com"


def test_restore_discards_rejected_token(api):
    api.token_store.set("not-a-token")
    session = AuthSession(api)

    assert session.restore() is None
    assert api.token_store.get() is None


def test_shelf_fetches_books_when_user_signs_in(auth, shelf, api):
    auth.register("alice", "a@x.com", "secret1")
    shelf.add_book({"title": "Dune", "author": "Herbert"})
    auth.logout()
    assert shelf.books == []

    auth.login("a@x.com", "secret1")

    assert [book["title"] for book in shelf.books] == ["Dune"]


def test_add_and_delete_keep_counter_in_sync(auth, shelf):
    auth.register("alice", "a@x.com", "secret1")

    dune = shelf.add_book({"title": "Dune", "author": "Herbert"})
    shelf.add_book({"title": "Foo", "author": "Bar"}, cover=("foo.png", io.BytesIO(b"img"), "image/png"))
    assert auth.user["booksAddedCount"] == 2
    assert shelf.books[1]["coverImage"] == "https://media.test/book-haven/covers/foo.png"

    shelf.delete_book(dune["id"])

    assert auth.user["booksAddedCount"] == 1
    assert [book["title"] for book in shelf.books] == ["Foo"]


def test_counter_update_does_not_refetch(auth, shelf, api):
    auth.register("alice", "a@x.com", "secret1")
    calls_before = len(api.session.calls)

    shelf.add_book({"title": "Dune", "author": "Herbert"})

    assert api.session.calls[calls_before:] == [("POST", "/api/books")]


def test_failed_add_leaves_state_untouched(auth, shelf, notices):
    auth.register("alice", "a@x.com", "secret1")

    with pytest.raises(ApiError):
        shelf.add_book({"title": "No author"})

    assert shelf.books == []
    assert shelf.error == "Failed to add book"
    assert auth.user["booksAddedCount"] == 0
    assert notices.last[0] == "error"


def test_edit_replaces_book_locally(auth, shelf):
    auth.register("alice", "a@x.com", "secret1")
    book = shelf.add_book({"title": "Dune", "author": "Herbert"})

    shelf.edit_book(book["id"], {"description": "Spice"})

    assert shelf.books[0]["description"] == "Spice"
    assert shelf.books[0]["title"] == "Dune"


def test_deleting_foreign_book_raises_forbidden(app, api, notices):
    owner = AuthSession(api)
    owner_shelf = BookShelf(api, owner)
    owner.register("alice", "a@x.com", "secret1")
    book = owner_shelf.add_book({"title": "Dune", "author": "Herbert"})

    intruder_api = ApiClient(BASE_URL, token_store=MemoryTokenStore(), session=api.session)
    intruder = AuthSession(intruder_api, notifier=notices)
    intruder_shelf = BookShelf(intruder_api, intruder)
    intruder.register("bob", "b@x.com", "secret2")

    with pytest.raises(ApiError) as excinfo:
        intruder_shelf.delete_book(book["id"])

    assert excinfo.value.status_code == 403
    assert intruder_shelf.error == "Unauthorized"
    assert notices.last == ("error", "Unauthorized")


def test_duplicate_submission_is_dropped(auth, shelf, api):
    auth.register("alice", "a@x.com", "secret1")
    shelf._pending.add("add")
    calls_before = len(api.session.calls)

    assert shelf.add_book({"title": "Dune", "author": "Herbert"}) is None
    assert len(api.session.calls) == calls_before


def test_toggle_favorite(auth, notices):
    auth.register("alice", "a@x.com", "secret1")

    assert auth.toggle_favorite("vol1") is True
    assert auth.is_favorite("vol1")
    assert notices.last == ("success", "Added to favorites!")

    assert auth.toggle_favorite("vol1") is False
    assert auth.user["favorites"] == []
    assert notices.last == ("success", "Removed from favorites!")


def test_toggle_favorite_ignored_while_in_flight_or_signed_out(auth, api):
    assert auth.toggle_favorite("vol1") is None

    auth.register("alice", "a@x.com", "secret1")
    auth.toggling_favorite = "vol2"
    assert auth.toggle_favorite("vol1") is None
    assert auth.user["favorites"] == []


def test_update_user_with_profile_picture(auth):
    auth.register("alice", "a@x.com", "secret1")

    user = auth.update_user({"bio": "hi"}, profile_pic=("me.png", io.BytesIO(b"img"), "image/png"))

    assert user["bio"] == "hi"
    assert user["profilePic"] == "https://media.test/book-haven/profiles/me.png"


def test_unreachable_server_raises_api_error(notices):
    import requests

    class DownSession:
        def request(self, *args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

    session = AuthSession(ApiClient(BASE_URL, session=DownSession()), notifier=notices)

    with pytest.raises(ApiError) as excinfo:
        session.login("a@x.com", "secret1")

    assert excinfo.value.status_code is None
    assert notices.last == ("error", "Login failed")


def test_file_token_store_round_trip(tmp_path):
    store = FileTokenStore(tmp_path / "session" / "token.json")
    assert store.get() is None

    store.set("abc")
    assert FileTokenStore(tmp_path / "session" / "token.json").get() == "abc"

    store.clear()
    assert store.get() is None


def test_update_user_with_picture_can_clear_favorites(auth):
    auth.register("alice", "a@x.com", "secret1")
    auth.toggle_favorite("vol1")

    user = auth.update_user({"favorites": []}, profile_pic=("me.png", io.BytesIO(b"img"), "image/png"))

    assert user["favorites"] == []
