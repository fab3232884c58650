from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base

DB_FILE = Path("btc_cost_basis.db")


def init_db(db_file: Path | str = DB_FILE, *, reset: bool = False, echo: bool = False) -> Session:
    db_path = Path(db_file)
    if reset and db_path.exists():
        db_path.unlink()

    engine: Engine = create_engine(f"sqlite:///{db_path}", echo=echo)

    Base.metadata.create_all(engine)
    return sessionmaker(engine)()
