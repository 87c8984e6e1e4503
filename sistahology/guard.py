"""Session-level enforcement of the row policies.

Every SQLAlchemy session carries the principal it acts for in
``session.info``. Listeners registered on the ``Session`` class, so no
session can opt out, enforce :mod:`sistahology.policy` at the point where
SQL is actually emitted:

* ``do_orm_execute`` adds the principal's row filter to every ORM query and
  bulk UPDATE/DELETE, and stops bulk statements that write the admin flag
  or an owner column.
* ``before_flush`` checks every pending INSERT/UPDATE/DELETE against the
  policy and runs the privilege-escalation guard on ``profiles.is_admin``.

A third listener sits on the engine. Each session tags the connections it
begins with its ``info``, and statements sent straight to such a
connection (``session.connection().execute(...)``) are refused for every
principal but the service actor, since they skip both checks above.

A session with no bound principal acts as the anonymous caller.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import Insert, TextClause, Update, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, with_loader_criteria

from . import models, policy
from .errors import Forbidden, PrivilegeEscalationError, ValidationFailed

logger = logging.getLogger(__name__)

PRINCIPAL_KEY = "sistahology.principal"
FLUSHING_KEY = "sistahology.flushing"

# Execution options.
SESSION_INFO_OPTION = "sistahology_session_info"
CHECKED_OPTION = "sistahology_checked"
TOKEN_CONSUMPTION_OPTION = "sistahology_token_consumption"

_IMMUTABLE = {
    models.Profile: ("id",),
    models.Journal: ("user_id",),
    models.Entry: ("user_id",),
}

# Columns only a flush may change, so the new value is checked per row.
_FLUSH_ONLY = {
    policy.EntityKind.ENTRY: ("journal_id",),
}

_TOKEN_CONSUMPTION_COLUMNS = {"used_at", "used_by_user_id"}


def bind_principal(session: Session, principal) -> Session:
    """Make ``session`` act for ``principal`` from now on."""
    session.info[PRINCIPAL_KEY] = principal
    return session


def current_principal(session: Session):
    return session.info.get(PRINCIPAL_KEY) or policy.ANONYMOUS


@contextmanager
def acting_as(session: Session, principal):
    """Temporarily run ``session`` as another principal.

    Used for operations that legitimately need elevated rights, such as
    admin token consumption, account management and maintenance jobs.
    """
    previous = session.info.get(PRINCIPAL_KEY)
    session.info[PRINCIPAL_KEY] = principal
    try:
        yield session
    finally:
        if previous is None:
            session.info.pop(PRINCIPAL_KEY, None)
        else:
            session.info[PRINCIPAL_KEY] = previous


def _table_name(statement):
    table = getattr(statement, "table", None)
    return getattr(table, "name", None)


def _parameter_rows(parameters):
    if not parameters:
        return []
    if isinstance(parameters, (list, tuple)):
        return list(parameters)
    return [parameters]


def _written_columns(statement, parameters=None) -> set:
    """Names of the target table's columns an INSERT or UPDATE assigns."""
    if not isinstance(statement, (Insert, Update)):
        return set()
    names = set(statement.compile().params)
    # Executemany rows of an UPDATE name the primary key to locate the row.
    located_by = (
        {column.key for column in statement.table.primary_key}
        if isinstance(statement, Update) else set()
    )
    for row in _parameter_rows(parameters):
        names.update(key for key in row if key not in located_by)
    return names & set(statement.table.c.keys())


def _writes_admin_flag(statement, parameters=None) -> bool:
    if isinstance(statement, TextClause):
        sql = statement.text.lower()
        return "profiles" in sql and "is_admin" in sql and (
            "update" in sql or "insert" in sql
        )
    if _table_name(statement) != models.Profile.__tablename__:
        return False
    return "is_admin" in _written_columns(statement, parameters)


def _bulk_target_kind(state):
    name = _table_name(state.statement)
    for model, kind in policy.MODEL_KINDS.items():
        if model.__tablename__ == name:
            return kind
    return None


def _guard_bulk_columns(state, kind, principal) -> None:
    written = _written_columns(state.statement, state.parameters)
    for name in _IMMUTABLE.get(policy.KIND_MODELS[kind], ()):
        if name in written:
            raise ValidationFailed(name, "cannot be changed after creation")
    if principal.is_service:
        return
    if written.intersection(_FLUSH_ONLY.get(kind, ())):
        logger.warning(
            "Blocked bulk %s reassignment by principal %s",
            kind.value,
            principal.id or "anonymous",
        )
        raise Forbidden()


def _is_token_consumption(state, kind, principal) -> bool:
    return (
        principal.is_service
        and kind is policy.EntityKind.ADMIN_TOKEN
        and state.is_update
        and bool(state.execution_options.get(TOKEN_CONSUMPTION_OPTION))
        and _written_columns(state.statement, state.parameters)
        <= _TOKEN_CONSUMPTION_COLUMNS
    )


@event.listens_for(Session, "do_orm_execute")
def _apply_row_policies(state):
    principal = current_principal(state.session)
    state.update_execution_options(**{CHECKED_OPTION: True})

    if not principal.is_service and _writes_admin_flag(state.statement, state.parameters):
        logger.warning(
            "Blocked admin flag write by principal %s", principal.id or "anonymous"
        )
        raise PrivilegeEscalationError()

    # Raw SQL cannot be row-filtered, so only the service actor may send it.
    if isinstance(state.statement, TextClause):
        if not principal.is_service:
            raise Forbidden()
        return

    if state.is_insert or state.is_update or state.is_delete:
        if _table_name(state.statement) == models.Account.__tablename__:
            if not principal.is_service:
                raise Forbidden()
            return
        kind = _bulk_target_kind(state)
        if kind is None:
            return
        operation = (
            policy.Operation.UPDATE if state.is_update
            else policy.Operation.DELETE if state.is_delete
            else policy.Operation.INSERT
        )
        if (kind, operation) in policy.CLOSED_OPERATIONS:
            if not _is_token_consumption(state, kind, principal):
                raise Forbidden()
        if state.is_update:
            _guard_bulk_columns(state, kind, principal)
        if principal.is_service:
            return
        if state.is_insert:
            raise Forbidden()
        criteria = policy.row_filter(principal, kind, operation)
        if criteria is not None:
            state.statement = state.statement.options(
                with_loader_criteria(policy.KIND_MODELS[kind], criteria)
            )
        return

    if principal.is_service:
        return
    if not state.is_select or state.is_column_load or state.is_relationship_load:
        return

    options = []
    for kind, model in policy.KIND_MODELS.items():
        criteria = policy.row_filter(principal, kind)
        if criteria is not None:
            options.append(with_loader_criteria(model, criteria, include_aliases=True))
    if options:
        state.statement = state.statement.options(*options)


@event.listens_for(Session, "after_begin")
def _tag_connection(session, transaction, connection):
    connection.execution_options(**{SESSION_INFO_OPTION: session.info})


@event.listens_for(Session, "after_flush_postexec")
def _end_flush(session, flush_context):
    session.info.pop(FLUSHING_KEY, None)


@event.listens_for(Session, "after_soft_rollback")
def _end_failed_flush(session, previous_transaction):
    session.info.pop(FLUSHING_KEY, None)


def _flush_in_progress(info) -> bool:
    # The flush only opens its transaction once it has rows to write.
    transaction = getattr(info.get(FLUSHING_KEY), "transaction", None)
    return transaction is not None and transaction.is_active


@event.listens_for(Engine, "before_execute")
def _guard_direct_execution(conn, clauseelement, multiparams, params, execution_options):
    info = execution_options.get(SESSION_INFO_OPTION)
    if info is None:
        return
    principal = info.get(PRINCIPAL_KEY) or policy.ANONYMOUS
    if principal.is_service:
        return
    if execution_options.get(CHECKED_OPTION) or _flush_in_progress(info):
        return
    if _writes_admin_flag(clauseelement, multiparams or params):
        logger.warning(
            "Blocked admin flag write on a session connection by principal %s",
            principal.id or "anonymous",
        )
        raise PrivilegeEscalationError()
    logger.warning(
        "Blocked unchecked statement on a session connection by principal %s",
        principal.id or "anonymous",
    )
    raise Forbidden()


def _attribute_changed(obj, name: str) -> bool:
    history = inspect(obj).attrs[name].history
    if not history.has_changes():
        return False
    old = history.deleted[0] if history.deleted else None
    new = history.added[0] if history.added else None
    return old != new


def _guard_admin_flag(principal, profile: models.Profile, inserting: bool) -> None:
    if principal.is_service:
        return
    if inserting:
        changed = bool(profile.is_admin)
    else:
        changed = _attribute_changed(profile, "is_admin")
    if changed:
        logger.warning(
            "Blocked admin flag change on profile %s by principal %s",
            profile.id,
            principal.id or "anonymous",
        )
        raise PrivilegeEscalationError()


def _guard_immutable(obj) -> None:
    for name in _IMMUTABLE.get(type(obj), ()):
        if _attribute_changed(obj, name):
            raise ValidationFailed(name, "cannot be changed after creation")


def _guard_entry_consistency(entry: models.Entry) -> None:
    if not policy.entry_owner_consistent(entry):
        raise ValidationFailed("user_id", "must match the journal owner")


@event.listens_for(Session, "before_flush")
def _check_pending_writes(session, flush_context, instances):
    principal = current_principal(session)

    for obj in list(session.new):
        if isinstance(obj, models.Account):
            if not principal.is_service:
                raise Forbidden()
            continue
        kind = policy.kind_of(obj)
        if kind is None:
            continue
        if isinstance(obj, models.Profile):
            _guard_admin_flag(principal, obj, inserting=True)
        policy.authorize(principal, kind, policy.Operation.INSERT, obj)
        if isinstance(obj, models.Entry):
            _guard_entry_consistency(obj)

    for obj in list(session.dirty):
        if not session.is_modified(obj, include_collections=False):
            continue
        if isinstance(obj, models.Account):
            if not principal.is_service:
                raise Forbidden()
            continue
        kind = policy.kind_of(obj)
        if kind is None:
            continue
        if isinstance(obj, models.Profile):
            _guard_admin_flag(principal, obj, inserting=False)
        _guard_immutable(obj)
        policy.authorize(principal, kind, policy.Operation.UPDATE, obj)
        if isinstance(obj, models.Entry):
            _guard_entry_consistency(obj)

    for obj in list(session.deleted):
        if isinstance(obj, models.Account):
            if not principal.is_service:
                raise Forbidden()
            continue
        kind = policy.kind_of(obj)
        if kind is None:
            continue
        policy.authorize(principal, kind, policy.Operation.DELETE, obj)

    # Statements emitted by the flush itself were checked row by row above.
    session.info[FLUSHING_KEY] = flush_context
