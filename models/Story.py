import re
from datetime import datetime
from . import db

CHAPTER_PREFIX = re.compile(r"^Chapter \d+:\s*")

class Story(db.Model):
    __tablename__ = "stories"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    user_input_id = db.Column(db.Integer, db.ForeignKey('user_inputs.id'), nullable=True)
    cover_image = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    user_input = db.relationship('UserInput', lazy=True)
    chapters = db.relationship('Chapter', backref='story', lazy=True, order_by='Chapter.chapter_number')

    @classmethod
    def owned_by(cls, user_id):
        """Row-scoped query: every user-facing read or write of a story goes through here."""
        return cls.query.filter_by(user_id=user_id)

    @property
    def title(self):
        if self.user_input and self.user_input.title:
            return self.user_input.title
        if self.chapters:
            return CHAPTER_PREFIX.sub("", self.chapters[0].title) or "Untitled Story"
        return "Untitled Story"

    def to_dict(self, include_chapters=False):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "cover_image": self.cover_image,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "user_inputs": self.user_input.to_dict() if self.user_input else None,
        }
        if include_chapters:
            data["chapters"] = [chapter.to_dict() for chapter in self.chapters]
        return data
