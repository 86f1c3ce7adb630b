from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
from .User import User
from .UserInput import UserInput
from .Story import Story
from .Chapter import Chapter
from .GenerationLog import GenerationLog
