import os
from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
JWT_TOKEN_LOCATION = ["headers", "cookies"]
JWT_COOKIE_CSRF_PROTECT = False

SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///onceies.db")
SQLALCHEMY_TRACK_MODIFICATIONS = False

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
TEXT_MODEL = os.environ.get("TEXT_MODEL", "gpt-4o-mini")
IMAGE_MODEL = os.environ.get("IMAGE_MODEL", "dall-e-3")

S3_REGION = os.environ.get("S3_REGION")
S3_ENDPOINT = os.environ.get("S3_ENDPOINT")
S3_IMAGE_ACCESS_KEY_ID = os.environ.get("S3_IMAGE_ACCESS_KEY_ID")
S3_IMAGE_SECRET_KEY = os.environ.get("S3_IMAGE_SECRET_KEY")
S3_IMAGE_BUCKET = os.environ.get("S3_IMAGE_BUCKET", "cover-images")
S3_PUBLIC_BASE_URL = os.environ.get("S3_PUBLIC_BASE_URL", "")

STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
STRIPE_PRICE_ID = os.environ.get("STRIPE_PRICE_ID")
# "payment" for a one-off purchase, "subscription" for a recurring plan
STRIPE_CHECKOUT_MODE = os.environ.get("STRIPE_CHECKOUT_MODE", "payment")

BASE_URL = os.environ.get("BASE_URL", "")
