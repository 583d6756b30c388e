"""
Transaction orchestrator for administrative operations.

Every admin operation runs as: lock shop row -> mutate -> cascade -> write
ledger entry -> commit. Any exception rolls the whole unit back, so a state
change is never visible without its ledger entry (and vice versa).
"""
from typing import Callable, Optional, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopledger.core.database import get_db_session, shops
from shopledger.core.errors import AppError, ConflictOrStorageError, NotFoundError
from shopledger.core.identity import coerce_key, to_external_id
from shopledger.core.logging import log_event

T = TypeVar("T")

AtomicFn = Callable[[Session, bytes, bytes], T]


def _supports_select_for_update(session: Session) -> bool:
    bind = session.get_bind()
    dialect_name = str(getattr(getattr(bind, "dialect", None), "name", "")).lower()
    # SQLite has no row locks; it serializes writers at the database level
    return dialect_name not in {"sqlite"}


def lock_shop_row(session: Session, shop_key: bytes):
    """Load the shop row, holding a row lock until the transaction ends."""
    query = select(shops).where(shops.c.id == shop_key)
    if _supports_select_for_update(session):
        query = query.with_for_update()
    row = session.execute(query).first()
    if row is None:
        raise NotFoundError(f"Shop not found: {to_external_id(shop_key)}", code="shop_not_found")
    return row


def run_atomic(
    shop_id: Union[str, bytes],
    admin_id: Union[str, bytes],
    fn: AtomicFn,
    *,
    action: Optional[str] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> T:
    """
    Run `fn(session, shop_key, admin_key)` inside one transaction.

    The shop row is locked before `fn` runs so concurrent subscribe/cancel
    calls on the same shop are serialized. On success the transaction
    commits and `fn`'s result is returned. On any error it rolls back and
    re-raises; raw storage errors surface as ConflictOrStorageError and
    anything else propagates unchanged after the rollback is logged.

    Args:
        shop_id: Shop identifier (UUID string or 16-byte key)
        admin_id: Acting admin identifier (UUID string or 16-byte key)
        fn: Mutation callback; must perform one state change and one ledger write
        action: Label used in logs
        session_factory: Optional session factory override (tests)
    """
    shop_key = coerce_key(shop_id)
    admin_key = coerce_key(admin_id)
    shop_ext = to_external_id(shop_key)
    admin_ext = to_external_id(admin_key)
    label = action or getattr(fn, "__name__", "admin_operation")

    try:
        with get_db_session(session_factory) as session:
            lock_shop_row(session, shop_key)
            result = fn(session, shop_key, admin_key)
    except AppError as exc:
        log_event(
            "warning",
            f"admin.rollback {label}",
            shop_id=shop_ext,
            admin_id=admin_ext,
            action_type=label,
            error_code=exc.code,
            extra={"error": exc.message},
        )
        raise
    except SQLAlchemyError as exc:
        log_event(
            "error",
            f"admin.rollback {label}",
            shop_id=shop_ext,
            admin_id=admin_ext,
            action_type=label,
            error_code=ConflictOrStorageError.code,
            extra={"error": exc},
        )
        raise ConflictOrStorageError(f"Transaction failed for {label}: {exc}") from exc
    except Exception as exc:
        log_event(
            "error",
            f"admin.rollback {label}",
            shop_id=shop_ext,
            admin_id=admin_ext,
            action_type=label,
            error_code="internal_error",
            extra={"error": f"{type(exc).__name__}: {exc}"},
        )
        raise

    log_event("info", f"admin.committed {label}", shop_id=shop_ext, admin_id=admin_ext, action_type=label)
    return result
