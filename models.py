from datetime import datetime, timezone

from mongoengine import (
    DateTimeField,
    Document,
    IntField,
    ListField,
    ReferenceField,
    StringField,
)


def _now():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(Document):
    username = StringField(required=True, unique=True)
    email = StringField(required=True, unique=True)
    password = StringField(required=True)
    bio = StringField(default="")
    profile_pic = StringField(db_field="profilePic", null=True)
    favorites = ListField(StringField())
    books_added_count = IntField(db_field="booksAddedCount", default=0, min_value=0)
    created_at = DateTimeField(db_field="createdAt", default=_now)
    updated_at = DateTimeField(db_field="updatedAt", default=_now)

    meta = {"collection": "users"}

    def save(self, *args, **kwargs):
        self.updated_at = _now()
        return super().save(*args, **kwargs)

    def to_public(self):
        """Everything safe to send to a client; the password hash never leaves."""
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "bio": self.bio,
            "profilePic": self.profile_pic,
            "favorites": list(self.favorites),
            "booksAddedCount": self.books_added_count,
            "createdAt": _iso(self.created_at),
        }


class Book(Document):
    title = StringField(required=True)
    author = StringField(required=True)
    description = StringField()
    cover_image = StringField(db_field="coverImage", null=True)
    category = StringField(default="Uncategorized")
    user = ReferenceField(User, required=True)

    meta = {"collection": "books", "indexes": ["user"]}

    @property
    def owner_id(self):
        # Raw reference value, so checking ownership does not load the owner
        ref = self._data.get("user")
        return str(getattr(ref, "id", ref))

    def to_dict(self):
        return {
            "id": str(self.id),
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "category": self.category,
            "coverImage": self.cover_image,
            "user": self.owner_id,
        }
