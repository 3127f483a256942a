from decimal import Decimal

import pytest

from app.errors import ForbiddenError, NotFoundError, PreconditionError
from app.models.enrollment import Enrollment
from app.models.ledger_entry import LedgerEntry
from app.models.notification import Notification
from app.models.program import RewardTier
from app.services import enrollment_service, ledger_service, program_service
from app.services.account_service import create_account
from app.services.permission_service import OWNER_ONLY_FLAGS, STAFF_PERMISSION_FLAGS


ALL_STAFF_FLAGS = {flag: True for flag in list(STAFF_PERMISSION_FLAGS.values()) + list(OWNER_ONLY_FLAGS)}


class TestCreateProgram:

    def test_owner_creates_program_with_tiers(self, db_session, business, program):
        assert program.business_id == business.id
        assert program.status == "active"
        assert [(t.threshold, t.reward, t.position) for t in program.tiers] == [
            (50, "Free Coffee", 0),
            (100, "Free Lunch", 1),
        ]

    def test_staff_with_flag_creates_for_own_business(self, db_session, business, make_staff):
        staff = make_staff(business, can_create_programs=True)

        prog = program_service.create_program(db_session, staff, business.id, {"name": "Staff Pick"})
        assert prog.business_id == business.id

    def test_staff_without_flag_forbidden(self, db_session, business, make_staff):
        staff = make_staff(business, can_edit_programs=True)

        with pytest.raises(ForbiddenError):
            program_service.create_program(db_session, staff, business.id, {"name": "Nope"})

    def test_owner_cannot_create_for_other_business(self, db_session, business, other_business):
        with pytest.raises(ForbiddenError):
            program_service.create_program(db_session, business, other_business.id, {"name": "Hijack"})

    def test_name_required(self, db_session, business):
        with pytest.raises(PreconditionError):
            program_service.create_program(db_session, business, business.id, {"name": "  "})

    def test_invalid_tier_rejected(self, db_session, business):
        with pytest.raises(PreconditionError):
            program_service.create_program(
                db_session, business, business.id, {"name": "Bad", "reward_tiers": [{"threshold": 0, "reward": "x"}]}
            )


class TestUpdateProgram:

    def test_owner_updates_fields(self, db_session, business, program):
        program_service.update_program(
            db_session, business, program.id, {"name": "Coffee Club Gold", "point_value": "2.5", "description": None}
        )
        db_session.commit()

        assert program.name == "Coffee Club Gold"
        assert program.point_value == Decimal("2.5")
        assert program.description is None

    def test_owner_change_forbidden(self, db_session, business, other_business, program):
        with pytest.raises(ForbiddenError) as exc:
            program_service.update_program(db_session, business, program.id, {"business_id": other_business.id})
        assert exc.value.code == "OWNER_CHANGE"

    def test_same_owner_in_payload_is_fine(self, db_session, business, program):
        program_service.update_program(db_session, business, program.id, {"business_id": business.id, "name": "Same"})
        assert program.name == "Same"

    def test_replacing_tiers_retires_old_rows(self, db_session, business, program):
        program_service.update_program(
            db_session, business, program.id, {"reward_tiers": [{"threshold": 30, "reward": "Cookie"}]}
        )
        db_session.commit()

        assert [t.reward for t in program.tiers] == ["Cookie"]
        assert db_session.query(RewardTier).filter_by(program_id=program.id, active=False).count() == 2

    def test_staff_with_edit_flag(self, db_session, business, program, make_staff):
        staff = make_staff(business, can_edit_programs=True)

        program_service.update_program(db_session, staff, program.id, {"welcome_points": 10})
        assert program.welcome_points == 10

    def test_other_business_forbidden(self, db_session, other_business, program):
        with pytest.raises(ForbiddenError):
            program_service.update_program(db_session, other_business, program.id, {"name": "Mine now"})


class TestDeleteProgram:

    def test_staff_with_every_flag_still_forbidden(self, db_session, business, program, make_staff):
        staff = make_staff(business, **ALL_STAFF_FLAGS)

        with pytest.raises(ForbiddenError):
            program_service.delete_program(db_session, staff, program.id)

        assert program_service.get_program(db_session, program.id).status == "active"

    def test_delete_cancels_enrollments_and_notifies(self, db_session, business, program):
        customers = [create_account(db_session, role="customer", name=f"Customer {i}") for i in range(3)]
        for i, c in enumerate(customers):
            enrollment_service.enroll(db_session, c.id, program.id)
            ledger_service.award(db_session, c.id, program.id, 10 * (i + 1))
        db_session.commit()

        cancelled = program_service.delete_program(db_session, business, program.id)
        db_session.commit()

        assert cancelled == 3
        assert db_session.query(Enrollment).filter_by(program_id=program.id, status="active").count() == 0

        notices = db_session.query(Notification).filter_by(kind="PROGRAM_DELETED").all()
        assert sorted(n.payload["points"] for n in notices) == [10, 20, 30]
        assert {n.recipient_id for n in notices} == {c.id for c in customers}

        # history stays attributable to the program
        assert db_session.query(LedgerEntry).filter_by(program_id=program.id).count() == 3

    def test_deleted_program_hidden(self, db_session, business, customer, program, enrolled):
        program_service.delete_program(db_session, business, program.id)
        db_session.commit()

        with pytest.raises(NotFoundError):
            program_service.get_program(db_session, program.id)

        assert program_service.get_program(db_session, program.id, include_deleted=True).deleted_at is not None
        assert program_service.list_business_programs(db_session, business.id) == []

        rows = enrollment_service.list_programs_for(db_session, customer.id)
        assert [(e.status, p.status) for e, p, _ in rows] == [("cancelled", "deleted")]

    def test_no_enrollment_after_delete(self, db_session, business, other_customer, program):
        program_service.delete_program(db_session, business, program.id)

        with pytest.raises(NotFoundError):
            enrollment_service.enroll(db_session, other_customer.id, program.id)

    def test_delete_twice_not_found(self, db_session, business, program):
        program_service.delete_program(db_session, business, program.id)

        with pytest.raises(NotFoundError):
            program_service.delete_program(db_session, business, program.id)
