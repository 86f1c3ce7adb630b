from flask_bcrypt import Bcrypt
from datetime import datetime
from . import db
bcrypt = Bcrypt()

PLAN_FREE = "free"
PLAN_PRO = "pro"

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(128), nullable=False)
    plan = db.Column(db.String(10), nullable=False, default=PLAN_FREE)
    story_count = db.Column(db.Integer, nullable=False, default=0)
    upgraded_at = db.Column(db.DateTime, nullable=True)
    stripe_customer_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    stories = db.relationship('Story', backref='user', lazy=True)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "plan": self.plan or PLAN_FREE,
            "story_count": self.story_count or 0,
            "upgraded_at": self.upgraded_at.isoformat() if self.upgraded_at else None,
        }
