"""
Connexion base de données et gestion des sessions (SQLAlchemy).
- engine/SessionLocal construits depuis DATABASE_URL
- get_db: dépendance FastAPI, une session par requête
- transaction: regroupe plusieurs écritures, commit ou rollback complet
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from jerseyshop.config import DATABASE_URL, DB_ECHO


def make_engine(url: str = DATABASE_URL, **kwargs):
    """
    Construit un engine SQLAlchemy.
    - pool_pre_ping: vérifie la connexion avant usage (Postgres managé)
    - SQLite: autorise l'accès multi-thread (threadpool FastAPI)
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
    return create_engine(url, echo=DB_ECHO, **kwargs)


engine = make_engine()

SessionLocal = sessionmaker(autoflush=False, bind=engine)

# Classe de base de tous les modèles (catalog, cart, orders, payments, users)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    Dépendance FastAPI: fournit une session et la ferme après la requête.

    Usage:
        @router.post("/endpoint")
        def my_endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Bloc transactionnel: commit si tout passe, rollback complet sur n'importe quelle exception.
    L'exception est relancée telle quelle pour l'appelant.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def create_all(bind=None) -> None:
    """Crée les tables manquantes (dev/tests). Importe les modèles pour les enregistrer sur Base."""
    import jerseyshop.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
