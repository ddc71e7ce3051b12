"""Initialize the database and create a user with an API key."""
import sys
from sqlalchemy.orm import Session
from chatsync.database import SessionLocal, engine, Base
from chatsync.models import User
from chatsync.middleware.auth import create_user_with_api_key


def init_database(api_key: str = None):
    """Create tables and a user. Prints the API key to use with the client."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()

    try:
        if api_key is None and db.query(User).first():
            print("✓ Database already initialized")
            return

        user = create_user_with_api_key(db, api_key)
        print(f"✓ Created user with ID: {user.id}")

        print("\n" + "="*50)
        print("✓ Database initialized successfully!")
        print("="*50)
        print(f"\nAPI Key: {user.api_key}")
        print("Use this key with the client (CHATSYNC_CLIENT_API_KEY) or with curl:")
        print(f'  curl -H "x-api-key: {user.api_key}" http://localhost:8000/conversations')
        print("\n" + "="*50)

    except Exception as e:
        print(f"✗ Error initializing database: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    init_database(sys.argv[1] if len(sys.argv) > 1 else None)
