from database.db import db


def get_db():
    """Открыть соединение peewee на время запроса (по одному на поток)."""
    db.connect(reuse_if_open=True)
    try:
        yield db
    finally:
        if not db.is_closed():
            db.close()
