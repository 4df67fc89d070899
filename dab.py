# dab.py: create tables without running migrations

from app.db.session import init_db


def init():
    print("Connecting to database...")
    print("Creating tables (if not exist)...")
    init_db()
    print("✅ Done.")


if __name__ == "__main__":
    init()
