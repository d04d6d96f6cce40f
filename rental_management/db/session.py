from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from settings import RENTAL_DB_URL


engine_rental = create_engine(
    RENTAL_DB_URL,
    pool_pre_ping=True,
    future=True,
)

SessionLocalRental = sessionmaker(
    bind=engine_rental,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)
