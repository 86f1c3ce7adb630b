from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import create_access_token
from models import User, db
from helpers import is_authenticated, get_current_user, get_json_body, missing_fields

bp = Blueprint('auth', __name__)

MIN_PASSWORD_LENGTH = 8

def _are_strings(data, *fields):
    return all(isinstance(data.get(name), str) for name in fields)

def _token_response(user, status=200):
    token = create_access_token(identity=str(user.id))
    resp = jsonify({"access_token": token, "user": user.to_dict()})
    resp.set_cookie("access_token", token, httponly=True, samesite="Lax")
    return resp, status

@bp.route('/api/register', methods=["POST"])
def register():
    """
	Creates an account and signs it in.

    Expects a JSON body with `email`, `password` and optionally `name`. New
    accounts start on the free plan with no stories.

    Returns:
        Response: 201 with the access token (also set as the `access_token`
        cookie), 400 on missing or invalid fields, 409 if the email is taken.
    """
    data = get_json_body()
    missing = missing_fields(data, "email", "password")
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    if not _are_strings(data, "email", "password"):
        return jsonify({"error": "Email and password must be strings."}), 400
    email = data["email"].strip().lower()
    if "@" not in email:
        return jsonify({"error": "Invalid email address."}), 400
    if len(data["password"]) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "An account with this email already exists."}), 409

    name = data.get("name")
    user = User(email=email, name=(name.strip() or None) if isinstance(name, str) else None)
    user.set_password(data["password"])
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"Registered user {user.id}")
    return _token_response(user, 201)

@bp.route('/api/login', methods=["POST"])
def login():
    data = get_json_body()
    if missing_fields(data, "email", "password"):
        return jsonify({"error": "Email and password are required."}), 400
    if not _are_strings(data, "email", "password"):
        return jsonify({"error": "Email and password must be strings."}), 400
    user = User.query.filter_by(email=data["email"].strip().lower()).first()
    if not user or not user.check_password(data["password"]):
        return jsonify({"error": "Invalid email or password."}), 401
    return _token_response(user)

@bp.route('/api/logout', methods=["POST"])
@is_authenticated
def logout():
    resp = jsonify({"success": True})
    resp.delete_cookie("access_token")
    return resp

@bp.route('/api/me', methods=["GET"])
@is_authenticated
def me():
    return jsonify(get_current_user().to_dict())
