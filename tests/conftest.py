import base64
import json
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

import helpers
import openai_handler
from app import create_app
from models import User, db
from prompt_templates import OUTLINE_SYSTEM_PROMPT, CHAPTER_SYSTEM_PROMPT, IMAGE_PROMPT_SYSTEM_PROMPT

WEBHOOK_SECRET = "whsec_test_secret"

LOST_KITTEN_OUTLINE = {
    "title": "The Lost Kitten",
    "chapters": [
        {"chapter_number": 1, "title": "A Rainy Morning", "summary": "Whiskers slips out of the house chasing a butterfly."},
        {"chapter_number": 2, "title": "The Big Wide Street", "summary": "Lost among tall buildings, Whiskers meets a friendly pigeon."},
        {"chapter_number": 3, "title": "Pip Joins the Search", "summary": "Pip the pigeon promises to help find the way home."},
        {"chapter_number": 4, "title": "The Park Puzzle", "summary": "They follow clues through the park and spot a red door."},
        {"chapter_number": 5, "title": "Home Sweet Home", "summary": "Whiskers is reunited with Mia and thanks Pip with a treat."}
    ]
}

CHAPTER_TEXT = (
    "SPLASH! Whiskers landed right in a puddle. **What a morning!** The butterfly "
    "fluttered away and Whiskers followed it, *tail high*, out through the garden gate.\n\n"
    "The street was enormous. Cars went WHOOSH and people went tap-tap-tap."
)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


class FakeCompletions:
    def __init__(self, client):
        self.client = client

    def create(self, **kwargs):
        self.client.chat_calls.append(kwargs)
        system_prompt = kwargs["messages"][0]["content"]
        content = self.client.replies.get(system_prompt, "")
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=34)
        )


class FakeImages:
    def __init__(self, client):
        self.client = client

    def generate(self, **kwargs):
        self.client.image_calls.append(kwargs)
        if self.client.image_data is None:
            return SimpleNamespace(data=[])
        return SimpleNamespace(data=[SimpleNamespace(url=None, b64_json=base64.b64encode(self.client.image_data).decode())])


class FakeOpenAI:
    """Stands in for the OpenAI client; answers are picked by system prompt."""

    def __init__(self):
        self.chat_calls = []
        self.image_calls = []
        self.image_data = PNG_BYTES
        self.replies = {
            OUTLINE_SYSTEM_PROMPT: json.dumps(LOST_KITTEN_OUTLINE),
            CHAPTER_SYSTEM_PROMPT: CHAPTER_TEXT,
            IMAGE_PROMPT_SYSTEM_PROMPT: "A small orange kitten in a rainy street, bright watercolor style."
        }
        self.chat = SimpleNamespace(completions=FakeCompletions(self))
        self.images = FakeImages(self)


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, **kwargs):
        self.objects[kwargs["Key"]] = kwargs


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SECRET_KEY": "test-secret",
        "JWT_SECRET_KEY": "test-jwt-secret-with-enough-length",
        "OPENAI_API_KEY": "sk-test",
        "S3_IMAGE_BUCKET": "cover-images",
        "S3_PUBLIC_BASE_URL": "https://cdn.example.com",
        "STRIPE_SECRET_KEY": "sk_test_123",
        "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "STRIPE_PRICE_ID": "price_pro",
        "STRIPE_CHECKOUT_MODE": "payment",
        "BASE_URL": "https://onceies.test"
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_openai(monkeypatch):
    fake = FakeOpenAI()
    monkeypatch.setattr(openai_handler, "get_client", lambda: fake)
    return fake


@pytest.fixture
def fake_s3(monkeypatch):
    fake = FakeS3()
    monkeypatch.setattr(helpers, "get_s3_client", lambda: fake)
    return fake


@pytest.fixture
def make_user(app):
    def _make_user(email="parent@example.com", name="Mia's Mum", plan="free", story_count=0):
        with app.app_context():
            user = User(email=email, name=name, plan=plan, story_count=story_count)
            user.set_password("correct-horse")
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make_user


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user_id):
        with app.app_context():
            token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def headers(auth_headers, user_id):
    return auth_headers(user_id)
