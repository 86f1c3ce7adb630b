from datetime import datetime
from . import db

class UserInput(db.Model):
    __tablename__ = "user_inputs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    age_group = db.Column(db.String(10), nullable=True)
    plot = db.Column(db.Text, nullable=False)
    characters = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def owned_by(cls, user_id):
        return cls.query.filter_by(user_id=user_id)

    def to_prompt_input(self):
        """Shape used by the chapter generation endpoint and the wizard."""
        return {
            "title": self.title,
            "ageGroup": self.age_group,
            "plot": self.plot,
            "characters": self.characters,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "age_group": self.age_group,
            "plot": self.plot,
            "characters": self.characters,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
