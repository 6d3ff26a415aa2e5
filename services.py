"""Auth and book operations.

Every function here takes the caller's identity (the user id carried by the
JWT) rather than the token itself; token validation happens in the
``jwt_required`` layer before these are reached.
"""
import logging

from bson import ObjectId
from flask import current_app
from flask_bcrypt import Bcrypt
from flask_jwt_extended import create_access_token
from mongoengine import NotUniqueError
from mongoengine import ValidationError as StoreValidationError

from errors import AuthError, ConflictError, NotFoundError, OwnershipError, ValidationError
from media import COVER_FOLDER, PROFILE_FOLDER
from models import Book, User

logger = logging.getLogger(__name__)

bcrypt = Bcrypt()


def _upload(file, folder):
    return current_app.extensions["media_uploader"].upload(file, folder)


BOOK_FIELDS = ("title", "author", "description", "category")

# Attribute names as clients know them
PUBLIC_FIELD_NAMES = {
    "cover_image": "coverImage",
    "profile_pic": "profilePic",
    "books_added_count": "booksAddedCount",
}


def _require_strings(**values):
    """Reject anything but plain strings, so request values never become query operators."""
    bad = sorted(name for name, value in values.items() if value is not None and not isinstance(value, str))
    if bad:
        raise ValidationError(f"Expected text for: {', '.join(bad)}")


def _store_error(e):
    names = sorted(PUBLIC_FIELD_NAMES.get(name, name) for name in (e.errors or {}))
    if not names:
        return ValidationError("Invalid input")
    return ValidationError(f"Invalid or missing field: {', '.join(names)}")


def _validate(document):
    try:
        document.validate()
    except StoreValidationError as e:
        raise _store_error(e) from e


def _save(document):
    try:
        document.save()
    except NotUniqueError as e:
        raise ConflictError("User already exists") from e
    except StoreValidationError as e:
        raise _store_error(e) from e
    return document


def _get_user(user_id):
    user = User.objects(id=user_id).first() if ObjectId.is_valid(user_id) else None
    if user is None:
        raise NotFoundError("User not found")
    return user


def _get_owned_book(user_id, book_id):
    book = Book.objects(id=book_id).first() if ObjectId.is_valid(book_id) else None
    if book is None:
        raise NotFoundError("Book not found")
    if book.owner_id != str(user_id):
        raise OwnershipError()
    return book


def _issue_token(user):
    return create_access_token(identity=str(user.id))


# Auth ------------------------------------------------------------------------

def register(username, email, password):
    _require_strings(username=username, email=email, password=password)
    if not username or not email or not password:
        raise ValidationError("Please provide all fields")
    if User.objects(email=email).first():
        raise ConflictError("User already exists")

    hashed_password = bcrypt.generate_password_hash(password).decode("utf-8")
    user = _save(User(username=username, email=email, password=hashed_password, favorites=[]))
    logger.info("Registered user %s", user.id)
    return {"token": _issue_token(user), "user": user.to_public()}


def login(email, password):
    _require_strings(email=email, password=password)
    user = User.objects(email=email).first() if email else None
    # Unknown email and wrong password share one message on purpose
    if user is None or not password or not bcrypt.check_password_hash(user.password, password):
        logger.info("Rejected login attempt")
        raise AuthError("Invalid credentials")
    logger.info("User %s logged in", user.id)
    return {"token": _issue_token(user), "user": user.to_public()}


def get_current_user(user_id):
    return _get_user(user_id).to_public()


def update_current_user(user_id, fields, profile_pic=None):
    """Apply a partial profile update.

    Empty username, email or bio values leave the stored value as is.
    ``favorites`` is replaced whenever it is present, including with an
    empty list. The new picture is uploaded only once the rest of the
    update is known to be valid.
    """
    username, email, bio = (fields.get(name) for name in ("username", "email", "bio"))
    _require_strings(username=username, email=email, bio=bio)
    user = _get_user(user_id)

    if username and username != user.username and User.objects(username=username, id__ne=user.id).first():
        raise ConflictError("Username already taken")
    if email and email != user.email and User.objects(email=email, id__ne=user.id).first():
        raise ConflictError("User already exists")

    user.username = username or user.username
    user.email = email or user.email
    user.bio = bio or user.bio
    favorites = fields.get("favorites")
    if favorites is not None:
        if not isinstance(favorites, list) or not all(isinstance(f, str) for f in favorites):
            raise ValidationError("Favorites must be a list of book ids")
        user.favorites = favorites

    _validate(user)
    if profile_pic is not None:
        user.profile_pic = _upload(profile_pic, PROFILE_FOLDER)
    _save(user)
    return user.to_public()


# Books -----------------------------------------------------------------------

def list_books(user_id):
    return [book.to_dict() for book in Book.objects(user=_get_user(user_id))]


def add_book(user_id, fields, cover=None):
    _require_strings(**{name: fields.get(name) for name in BOOK_FIELDS})
    user = _get_user(user_id)

    book = Book(
        title=fields.get("title"),
        author=fields.get("author"),
        description=fields.get("description"),
        category=fields.get("category") or "Uncategorized",
        user=user,
    )
    _validate(book)
    if cover is not None:
        book.cover_image = _upload(cover, COVER_FOLDER)
    _save(book)

    # Second write; not transactional with the insert above
    User.objects(id=user.id).update_one(inc__books_added_count=1)
    user.reload()
    logger.info("User %s added book %s", user.id, book.id)
    return {"book": book.to_dict(), "user": user.to_public()}


def delete_book(user_id, book_id):
    book = _get_owned_book(user_id, book_id)
    user = _get_user(user_id)
    book.delete()

    # Raw $inc: a -1 operand would fail the field's min_value check
    User.objects(id=user.id, books_added_count__gt=0).update_one(
        __raw__={"$inc": {"booksAddedCount": -1}}
    )
    user.reload()
    logger.info("User %s deleted book %s", user.id, book_id)
    return {"message": "Book deleted", "user": user.to_public()}


def edit_book(user_id, book_id, fields, cover=None):
    _require_strings(coverImage=fields.get("coverImage"), **{name: fields.get(name) for name in BOOK_FIELDS})
    book = _get_owned_book(user_id, book_id)

    book.title = fields.get("title") or book.title
    book.author = fields.get("author") or book.author
    book.description = fields.get("description") or book.description
    book.category = fields.get("category") or book.category
    book.cover_image = fields.get("coverImage") or book.cover_image

    _validate(book)
    if cover is not None:
        book.cover_image = _upload(cover, COVER_FOLDER)
    _save(book)
    logger.info("User %s edited book %s", user_id, book_id)
    return book.to_dict()
