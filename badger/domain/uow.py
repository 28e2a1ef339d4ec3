import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from badger.domain.errors import BadgerError, InternalError

log = logging.getLogger("badger")


@contextmanager
def unit_of_work(db: Session, operation: str, **context) -> Iterator[Session]:
    """
    Una operación = una transacción. El bloque hace su propio commit; si sale
    con error se hace rollback. Los errores de dominio pasan tal cual; los de
    la BD se registran con su contexto y se convierten en InternalError.
    """
    try:
        yield db
    except BadgerError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("%s failed %s", operation, context)
        raise InternalError(operation) from e
