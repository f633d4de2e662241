from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Query

from app.extensions import db
from app.security_utils import audit_log
from app.utils.logging_utils import get_logger, log_context

ModelType = TypeVar("ModelType", bound=db.Model)

_SENSITIVE_TOKENS = ("password", "secret", "token", "key", "credential")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _sanitize_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        lower = key.lower()
        if any(token in lower for token in _SENSITIVE_TOKENS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = _serialize_value(value)
    return sanitized


def _instance_identity(instance: ModelType) -> Optional[str]:
    try:
        state = db.inspect(instance)
        if state.identity:
            return ":".join(str(_serialize_value(part)) for part in state.identity)
    except NoInspectionAvailable:
        pass
    value = getattr(instance, "id", None)
    return str(value) if value is not None else None


def _emit_audit(event_name: str, actor_id: Optional[str], detail: Dict[str, Any]) -> None:
    audit_log(
        event_name,
        user_id=str(actor_id) if actor_id is not None else None,
        detail=json.dumps(detail, default=_serialize_value),
    )


def _build_context(model_name: str, action: str, actor_id: Optional[str], context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    built = {"model": model_name, "action": action}
    if actor_id is not None:
        built["actor_id"] = str(actor_id)
    if context:
        for key, value in context.items():
            built[f"ctx_{key}"] = value
    return built


def _apply_query(
    model_cls: Type[ModelType],
    filters: Optional[Sequence[Any]],
    order_by: Optional[Union[Any, Sequence[Any]]],
) -> Query:
    query: Query = db.session.query(model_cls)
    for clause in filters or ():
        query = query.filter(clause)
    if order_by is not None:
        if isinstance(order_by, (list, tuple)):
            query = query.order_by(*order_by)
        else:
            query = query.order_by(order_by)
    return query


def create_instance(
    model_cls: Type[ModelType],
    commit: bool = True,
    flush: bool = False,
    *,
    actor_id: Optional[str] = None,
    event_name: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> ModelType:
    """
    Create a row and optionally persist it.  A committed create is audited
    as ``<model>.create`` unless ``event_name`` overrides it.
    """

    logger = get_logger("model_utils")
    action = event_name or f"{model_cls.__name__.lower()}.create"
    sanitized_attrs = _sanitize_payload(attributes)
    with log_context(**_build_context(model_cls.__name__, "create", actor_id, context)):
        logger.info("Creating %s commit=%s attributes=%s", model_cls.__name__, commit, sanitized_attrs)
        try:
            instance = model_cls(**attributes)
            db.session.add(instance)

            if flush:
                db.session.flush()

            if commit:
                db.session.commit()
                _emit_audit(
                    action,
                    actor_id,
                    {
                        "operation": "create",
                        "model": model_cls.__name__,
                        "target_id": _instance_identity(instance),
                        "attributes": sanitized_attrs,
                    },
                )

            logger.info("Created %s target_id=%s", model_cls.__name__, _instance_identity(instance))
            return instance
        except Exception:
            logger.exception("Failed to create %s attributes=%s", model_cls.__name__, sanitized_attrs)
            raise


def get_instance(
    model_cls: Type[ModelType],
    instance_id: Any,
    *,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[ModelType]:
    """Fetch a single row by primary key; reads are logged, not audited."""

    logger = get_logger("model_utils")
    with log_context(**_build_context(model_cls.__name__, "get", None, context)):
        instance = db.session.get(model_cls, instance_id) if instance_id is not None else None
        logger.debug("Fetched %s id=%s found=%s", model_cls.__name__, instance_id, instance is not None)
        return instance


def first_instance(
    model_cls: Type[ModelType],
    *,
    filters: Optional[Sequence[Any]] = None,
    order_by: Optional[Union[Any, Sequence[Any]]] = None,
) -> Optional[ModelType]:
    return _apply_query(model_cls, filters, order_by).first()


def list_instances(
    model_cls: Type[ModelType],
    *,
    filters: Optional[Sequence[Any]] = None,
    order_by: Optional[Union[Any, Sequence[Any]]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[ModelType]:
    """List rows subject to optional filters, ordering, and paging."""

    logger = get_logger("model_utils")
    with log_context(**_build_context(model_cls.__name__, "list", None, context)):
        query = _apply_query(model_cls, filters, order_by)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        results = list(query)
        logger.debug("Listed %s count=%s filters=%s", model_cls.__name__, len(results),
                     [str(f) for f in filters or ()])
        return results


def paginate_instances(
    model_cls: Type[ModelType],
    *,
    page: int = 1,
    page_size: int = 20,
    filters: Optional[Sequence[Any]] = None,
    order_by: Optional[Union[Any, Sequence[Any]]] = None,
) -> Tuple[List[ModelType], int]:
    """Return ``(items, total)`` for one page."""
    query = _apply_query(model_cls, filters, order_by)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def update_instance(
    instance: ModelType,
    commit: bool = True,
    flush: bool = False,
    *,
    actor_id: Optional[str] = None,
    event_name: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> ModelType:
    """
    Update attributes on an instance.  Attributes with value ``None`` are
    written as ``None``; callers pre-filter when they mean "leave unchanged".
    """

    logger = get_logger("model_utils")
    model_name = instance.__class__.__name__
    action = event_name or f"{model_name.lower()}.update"
    before = {key: _serialize_value(getattr(instance, key, None)) for key in attributes}
    sanitized_attrs = _sanitize_payload(attributes)
    with log_context(**_build_context(model_name, "update", actor_id, context)):
        logger.info("Updating %s target_id=%s attributes=%s", model_name, _instance_identity(instance), sanitized_attrs)
        try:
            for key, value in attributes.items():
                setattr(instance, key, value)

            if flush:
                db.session.flush()

            if commit:
                db.session.commit()
                _emit_audit(
                    action,
                    actor_id,
                    {
                        "operation": "update",
                        "model": model_name,
                        "target_id": _instance_identity(instance),
                        "before": before,
                        "after": sanitized_attrs,
                    },
                )
            return instance
        except Exception:
            logger.exception("Failed to update %s target_id=%s", model_name, _instance_identity(instance))
            raise


def delete_instance(
    model_cls: Type[ModelType],
    instance_or_id: Union[ModelType, Any],
    commit: bool = True,
    flush: bool = False,
    *,
    actor_id: Optional[str] = None,
    event_name: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> bool:
    """Delete by object or identifier; ``False`` when the target does not exist."""

    logger = get_logger("model_utils")
    action = event_name or f"{model_cls.__name__.lower()}.delete"
    identity = None

    with log_context(**_build_context(model_cls.__name__, "delete", actor_id, context)):
        try:
            if isinstance(instance_or_id, model_cls):
                instance = instance_or_id
            else:
                instance = get_instance(model_cls, instance_or_id, context=context)

            if instance is None:
                logger.warning("Delete skipped for %s; target not found id=%s", model_cls.__name__, instance_or_id)
                return False

            identity = _instance_identity(instance)
            snapshot = {
                column.key: _serialize_value(getattr(instance, column.key, None))
                for column in instance.__table__.columns
            }

            logger.info("Deleting %s target_id=%s", model_cls.__name__, identity)
            db.session.delete(instance)

            if flush:
                db.session.flush()

            if commit:
                db.session.commit()
                _emit_audit(
                    action,
                    actor_id,
                    {
                        "operation": "delete",
                        "model": model_cls.__name__,
                        "target_id": identity,
                        "snapshot": snapshot,
                    },
                )
            return True
        except Exception:
            logger.exception("Failed to delete %s target=%s", model_cls.__name__, identity or instance_or_id)
            raise
