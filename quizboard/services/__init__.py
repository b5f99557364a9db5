"""Quiz lifecycle services: enrollment, live sessions, scoring and read-side rollups."""

import logging

from sqlalchemy.exc import IntegrityError, OperationalError

from ..errors import StoreUnavailable
from ..extensions import db

log = logging.getLogger(__name__)


def commit(conflict=None):
    """Commit the current unit of work.

    A unique-constraint violation is rolled back and re-raised as ``conflict``
    (an error instance) when one is given; store outages become
    ``StoreUnavailable`` so the caller can retry.
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if conflict is None:
            raise
        log.warning("commit rejected: %s", conflict.detail)
        raise conflict
    except OperationalError as exc:
        db.session.rollback()
        log.error("data store unavailable: %s", exc)
        raise StoreUnavailable("data store unavailable, please retry") from exc
