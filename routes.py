from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

import services

auth_routes = Blueprint("auth_routes", __name__, url_prefix="/api/auth")
book_routes = Blueprint("book_routes", __name__, url_prefix="/api/books")
health_routes = Blueprint("health_routes", __name__, url_prefix="/api")


def request_fields():
    """Body fields from a multipart/urlencoded form or a JSON document."""
    if request.form or request.files:
        fields = request.form.to_dict()
        if "favorites" in request.form:
            fields["favorites"] = [f for f in request.form.getlist("favorites") if f]
        return fields
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def request_file(name):
    file = request.files.get(name)
    return file if file and file.filename else None


@health_routes.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


# Route to create a new user
@auth_routes.route("/register", methods=["POST"])
def register():
    fields = request_fields()
    result = services.register(fields.get("username"), fields.get("email"), fields.get("password"))
    return jsonify(result), 201


# Route to sign in a user
@auth_routes.route("/login", methods=["POST"])
def login():
    fields = request_fields()
    return jsonify(services.login(fields.get("email"), fields.get("password"))), 200


@auth_routes.route("/me", methods=["GET"])
@jwt_required()
def get_me():
    return jsonify(services.get_current_user(get_jwt_identity())), 200


# Profile fields and favorites; profilePic is an optional file part
@auth_routes.route("/me", methods=["PUT"])
@jwt_required()
def update_me():
    user = services.update_current_user(
        get_jwt_identity(), request_fields(), request_file("profilePic")
    )
    return jsonify(user), 200


# Route to get the caller's books (protected)
@book_routes.route("", methods=["GET"])
@jwt_required()
def get_books():
    return jsonify(services.list_books(get_jwt_identity())), 200


@book_routes.route("", methods=["POST"])
@jwt_required()
def add_book():
    result = services.add_book(get_jwt_identity(), request_fields(), request_file("coverImage"))
    return jsonify(result), 201


@book_routes.route("/<string:book_id>", methods=["PUT"])
@jwt_required()
def edit_book(book_id):
    book = services.edit_book(
        get_jwt_identity(), book_id, request_fields(), request_file("coverImage")
    )
    return jsonify(book), 200


@book_routes.route("/<string:book_id>", methods=["DELETE"])
@jwt_required()
def delete_book(book_id):
    return jsonify(services.delete_book(get_jwt_identity(), book_id)), 200
