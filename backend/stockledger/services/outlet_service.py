# Overview: Outlet directory; which outlets exist and which are active.

from __future__ import annotations

from ..extensions import db
from ..models import Outlet
from ..results import ErrorKind, Result
from ..validation import ValidationError, coerce_optional_text
from .concurrency import lock_for_update, run_with_retry
from . import outlet_stock_service


def create_outlet(
    code: str,
    name: str,
    *,
    address: str | None = None,
    phone: str | None = None,
    is_active: bool = True,
) -> Result[Outlet]:
    """
    Register an outlet. Active outlets get a 0 baseline for every active product.
    """
    try:
        code = coerce_optional_text(code, "code", max_length=32)
        name = coerce_optional_text(name, "name", max_length=120)
        address = coerce_optional_text(address, "address")
        phone = coerce_optional_text(phone, "phone", max_length=32)
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    if not code:
        return Result.fail(ErrorKind.VALIDATION, "Outlet code is required")
    if not name:
        return Result.fail(ErrorKind.VALIDATION, "Outlet name is required")

    code = code.upper()

    def _op():
        if db.session.query(Outlet).filter_by(code=code).first():
            return Result.fail(ErrorKind.VALIDATION, f"Outlet code {code} already exists")

        outlet = Outlet(code=code, name=name, address=address, phone=phone, is_active=bool(is_active))
        db.session.add(outlet)
        db.session.flush()

        if outlet.is_active:
            outlet_stock_service.initialize_outlet_stock(outlet.id)

        return Result.ok(outlet)

    return run_with_retry(_op)


def set_outlet_active(outlet_id: int, is_active: bool) -> Result[Outlet]:
    def _op():
        outlet = lock_for_update(db.session.query(Outlet).filter_by(id=outlet_id)).first()
        if outlet is None:
            return Result.fail(ErrorKind.NOT_FOUND, f"Outlet {outlet_id} not found")

        reactivated = is_active and not outlet.is_active
        outlet.is_active = bool(is_active)
        db.session.flush()

        if reactivated:
            outlet_stock_service.initialize_outlet_stock(outlet.id)

        return Result.ok(outlet)

    return run_with_retry(_op)


def get_outlet(outlet_id: int) -> Outlet | None:
    return db.session.get(Outlet, outlet_id)


def list_outlets(*, include_inactive: bool = False) -> list[Outlet]:
    query = db.session.query(Outlet)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Outlet.code.asc()).all()


def list_active_outlet_ids() -> set[int]:
    return {oid for (oid,) in db.session.query(Outlet.id).filter_by(is_active=True)}
