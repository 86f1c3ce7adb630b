import logging
from functools import wraps
from flask import request, jsonify, current_app, g
from models import User, GenerationLog, db
from flask_jwt_extended import decode_token
import boto3


def get_s3_client():
    """
	Returns an S3 client for the configured object storage.

    The client is built from the application config and cached on `flask.g`
    for the rest of the request.

    Returns:
        botocore.client.S3: A client bound to the configured endpoint and credentials.
    """
    if "s3_client" not in g:
        g.s3_client = boto3.client('s3',
            region_name=current_app.config.get("S3_REGION"),
            endpoint_url=current_app.config.get("S3_ENDPOINT"),
            aws_access_key_id=current_app.config.get("S3_IMAGE_ACCESS_KEY_ID"),
            aws_secret_access_key=current_app.config.get("S3_IMAGE_SECRET_KEY"))
    return g.s3_client

def get_image_url(image_key):
    """
	Builds the public URL of an object in the image bucket.

    Args:
        image_key (str): The key of the image in the bucket.

    Returns:
        str: `S3_PUBLIC_BASE_URL/<key>` when a public base is configured, otherwise
        `<S3_ENDPOINT>/<bucket>/<key>`.
    """
    image_key = image_key.lstrip("/")
    public_base = (current_app.config.get("S3_PUBLIC_BASE_URL") or "").rstrip("/")
    if public_base:
        return f"{public_base}/{image_key}"
    endpoint = (current_app.config.get("S3_ENDPOINT") or "").rstrip("/")
    return f"{endpoint}/{current_app.config.get('S3_IMAGE_BUCKET')}/{image_key}"

def put_image(image_key, image_data, content_type="image/png"):
    """
	Uploads an image to the image bucket.

    Args:
        image_key (str): The key under which the image will be stored in the bucket.
        image_data (bytes): The binary data of the image to be uploaded.
        content_type (str, optional): MIME type stored with the object. Defaults to "image/png".

    Returns:
        str: The public URL of the uploaded image.

    Raises:
        botocore.exceptions.ClientError: If the upload fails due to an S3 client error.
    """
    get_s3_client().put_object(
        Bucket=current_app.config.get("S3_IMAGE_BUCKET"),
        Key=image_key,
        Body=image_data,
        ContentType=content_type,
        CacheControl="max-age=3600"
    )
    return get_image_url(image_key)

def log_generation(user_id, generation_type, usage=None, status="succeeded", error_message=None):
    """
	Records one model call in the generation log.

    Args:
        user_id (int): The user the call was made for.
        generation_type (str): One of "outline", "chapter", "image_prompt", "cover".
        usage (dict, optional): 'model', 'input_tokens' and 'output_tokens' of the call.
        status (str, optional): "succeeded" or "failed". Defaults to "succeeded".
        error_message (str, optional): The failure reason, if any.

    Returns:
        GenerationLog: The added (not yet committed) log entry.
    """
    usage = usage or {}
    log_entry = GenerationLog(
        user_id=user_id,
        generation_type=generation_type,
        status=status,
        error_message=error_message,
        model=usage.get("model"),
        input_tokens=usage.get("input_tokens", 0),
        output_tokens=usage.get("output_tokens", 0)
    )
    db.session.add(log_entry)
    return log_entry

def get_access_token():
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return request.cookies.get("access_token")

def get_current_user():
    """
	Retrieves the current user from the request's access token.

    The token is read from an `Authorization: Bearer` header first and the
    `access_token` cookie second. If the token is missing, invalid, or does not
    contain a user ID, the function returns None.

    Returns:
        User or None: The current user object if found, otherwise None.
    """
    if "current_user" in g:
        return g.current_user
    token = get_access_token()
    user = None
    if token:
        try:
            decoded_token = decode_token(token)
            user_id = decoded_token.get("sub")
            if user_id:
                user = db.session.get(User, int(user_id))
            else:
                logging.warning("Token decoded but no user id found.")
        except Exception as e:
            logging.error(f"Failed to decode token: {e}")
    g.current_user = user
    return user

def is_authenticated(func):
    """
	Decorator requiring a valid access token.

    Requests without a token, or whose token does not resolve to a user, are
    answered with a JSON 401 before the view runs.

    Args:
        func (Callable): The view to be wrapped.

    Returns:
        Callable: The wrapped view.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if not user:
            return jsonify({"error": "Unauthorized - Please sign in"}), 401
        return func(*args, **kwargs)
    return wrapper

def missing_fields(data, *fields):
    return [name for name in fields if data.get(name) in (None, "")]

def get_json_body():
    """
	Returns the request's JSON body when it is an object, otherwise an empty dict.

    Arrays, strings, numbers and unparseable bodies all come back as `{}`, so
    handlers report them as missing fields (400) rather than failing on `.get`.
    """
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
