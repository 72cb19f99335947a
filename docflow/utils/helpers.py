"""Shared helpers for services and blueprints.

json_body:       request body as a dict, or ValidationError
commit_or_raise: commit the session; roll back and translate DB failures
"""
import logging

from flask import request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from docflow.core.exceptions import ConflictError, ValidationError
from docflow.models import db

logger = logging.getLogger(__name__)


def json_body() -> dict:
    """Return the JSON object body of the current request.

    Raises ValidationError when the body is missing, malformed, or not an
    object, so every route reports a bad body the same way.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "required"})
    return data


def commit_or_raise(resource: str = "Record", field: str = "id"):
    """Commit the current SQLAlchemy session.

    IntegrityError → rollback + ConflictError(resource, field)
    Other SQLAlchemyError → rollback, logged, re-raised (500 envelope)
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(resource, field) from exc
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise
