import os

# configure before quizdesk reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFY_QUEUE_ENABLED"] = "false"
os.environ.pop("TELEGRAM_BOT_TOKEN", None)
os.environ.pop("TELEGRAM_CHAT_ID", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from quizdesk.core.database import build_engine, get_db
from quizdesk.main import app
from quizdesk.models.orm import Base
from quizdesk.services.notifier import Notifier, get_notifier
from quizdesk.services.question_store import import_questions

CORRECT_ID = 2
WRONG_ID = 1


def make_question(number, correct_id=CORRECT_ID):
    return {
        "question_number": number,
        "question_text": f"Question {number}?",
        "answers": [
            {"id": i, "text": f"Option {number}.{i}", "flag": i == correct_id}
            for i in (1, 2, 3)
        ],
        "document_link": f"https://docs.example/{number}",
        "document_text": f"Section {number}",
    }


class RecordingNotifier(Notifier):
    enabled = True

    def __init__(self):
        self.messages = []

    def notify(self, text):
        self.messages.append(text)
        return True


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'quiz.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as s:
        yield s


@pytest.fixture
def seed(session_factory):
    def _seed(count=3):
        with session_factory() as s:
            import_questions(s, [make_question(n) for n in range(1, count + 1)])
    return _seed


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(session_factory, notifier):
    def override_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
