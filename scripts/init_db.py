"""Create the SongShare schema in the database named by ``DATABASE_URL``."""
from backend import models  # noqa: F401  registers the tables
from backend.database import Base, engine


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def main():
    init_db()

if __name__ == "__main__":
    main()
