from datetime import datetime
from . import db

class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.Integer, primary_key=True)
    story_id = db.Column(db.Integer, db.ForeignKey('stories.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    chapter_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    image_prompt = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def owned_by(cls, user_id):
        return cls.query.filter_by(user_id=user_id)

    def to_dict(self):
        return {
            "id": self.id,
            "story_id": self.story_id,
            "user_id": self.user_id,
            "chapter_number": self.chapter_number,
            "title": self.title,
            "content": self.content,
            "image_prompt": self.image_prompt,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
