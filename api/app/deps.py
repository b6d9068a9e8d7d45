from fastapi import HTTPException

from .database import SessionLocal
from .services.stores import SqlMatchStore, SqlProfileStore


def validate_admin_token(token: str | None, admin_token: str | None) -> None:
    if not admin_token or not token or token != admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def get_db():
    with SessionLocal() as db:
        yield db


def stores_for(db) -> tuple[SqlProfileStore, SqlMatchStore]:
    return SqlProfileStore(db), SqlMatchStore(db)
