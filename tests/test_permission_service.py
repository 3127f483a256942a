"""
Permission evaluator tests.

The evaluator is pure, so most cases use plain attribute bags instead of
database rows.
"""

import uuid
from types import SimpleNamespace

import pytest

from app.errors import ForbiddenError
from app.services import permission_service as perms


BUSINESS_A = uuid.uuid4()
BUSINESS_B = uuid.uuid4()


def _actor(role, *, business_id=None, permissions=None, status="active", actor_id=None):
    return SimpleNamespace(
        id=actor_id or uuid.uuid4(),
        role=role,
        business_id=business_id,
        permissions=permissions,
        status=status,
    )


def _owner(business_id=BUSINESS_A):
    return _actor("business", actor_id=business_id)


def _all_flags():
    return {flag: True for flag in list(perms.STAFF_PERMISSION_FLAGS.values()) + list(perms.OWNER_ONLY_FLAGS)}


class TestAdminAndOwner:

    @pytest.mark.parametrize("action", sorted(perms.ACTIONS))
    def test_admin_can_do_everything(self, action):
        assert perms.can_perform(_actor("admin"), action, BUSINESS_A) is True

    @pytest.mark.parametrize("action", sorted(perms.ACTIONS))
    def test_owner_can_do_everything_on_own_business(self, action):
        assert perms.can_perform(_owner(), action, BUSINESS_A) is True

    @pytest.mark.parametrize("action", sorted(perms.ACTIONS))
    def test_owner_cannot_touch_other_business(self, action):
        assert perms.can_perform(_owner(), action, BUSINESS_B) is False

    def test_owner_id_compared_across_types(self):
        """String and UUID forms of the same id match."""
        assert perms.can_perform(_owner(), perms.EDIT_PROGRAM, str(BUSINESS_A)) is True


class TestStaff:

    @pytest.mark.parametrize("action", sorted(perms.OWNER_ONLY_ACTIONS))
    def test_owner_only_actions_denied_even_with_every_flag(self, action):
        staff = _actor("staff", business_id=BUSINESS_A, permissions=_all_flags())
        assert perms.can_perform(staff, action, BUSINESS_A) is False

    @pytest.mark.parametrize("action,flag", sorted(perms.STAFF_PERMISSION_FLAGS.items()))
    def test_flag_grants_matching_action(self, action, flag):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={flag: True})
        assert perms.can_perform(staff, action, BUSINESS_A) is True

    @pytest.mark.parametrize("action", sorted(perms.STAFF_PERMISSION_FLAGS))
    def test_missing_flag_denies(self, action):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={})
        assert perms.can_perform(staff, action, BUSINESS_A) is False

    def test_flags_do_not_leak_across_actions(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={"can_scan_qr": True})
        assert perms.can_perform(staff, perms.SCAN_QR, BUSINESS_A) is True
        assert perms.can_perform(staff, perms.AWARD_POINTS, BUSINESS_A) is False

    def test_truthy_non_bool_flag_is_not_a_grant(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={"can_award_points": "yes"})
        assert perms.can_perform(staff, perms.AWARD_POINTS, BUSINESS_A) is False

    def test_staff_of_other_business_denied(self):
        staff = _actor("staff", business_id=BUSINESS_B, permissions=_all_flags())
        assert perms.can_perform(staff, perms.AWARD_POINTS, BUSINESS_A) is False

    def test_null_permissions_deny(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions=None)
        assert perms.can_perform(staff, perms.SCAN_QR, BUSINESS_A) is False

    def test_inactive_staff_denied(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions=_all_flags(), status="inactive")
        assert perms.can_perform(staff, perms.SCAN_QR, BUSINESS_A) is False


class TestDenials:

    @pytest.mark.parametrize("action", sorted(perms.ACTIONS))
    def test_customer_denied_every_business_action(self, action):
        assert perms.can_perform(_actor("customer"), action, BUSINESS_A) is False

    def test_unknown_action_denied_even_for_admin(self):
        assert perms.can_perform(_actor("admin"), "launch-rockets", BUSINESS_A) is False

    def test_missing_actor_denied(self):
        assert perms.can_perform(None, perms.EDIT_PROGRAM, BUSINESS_A) is False

    def test_unknown_role_denied(self):
        assert perms.can_perform(_actor("auditor"), perms.EDIT_PROGRAM, BUSINESS_A) is False

    def test_require_permission_raises_forbidden(self):
        with pytest.raises(ForbiddenError) as exc:
            perms.require_permission(_actor("customer"), perms.DELETE_PROGRAM, BUSINESS_A)

        assert exc.value.status_code == 403
        assert exc.value.code == "FORBIDDEN"
        assert exc.value.details["action"] == perms.DELETE_PROGRAM

    def test_require_permission_passes_silently(self):
        assert perms.require_permission(_owner(), perms.DELETE_PROGRAM, BUSINESS_A) is None


class TestCustomerAccess:

    def test_customer_acts_for_self(self):
        customer = _actor("customer")
        assert perms.can_act_for_customer(customer, customer.id, BUSINESS_A) is True

    def test_customer_cannot_act_for_another(self):
        assert perms.can_act_for_customer(_actor("customer"), uuid.uuid4(), BUSINESS_A) is False

    def test_scanning_staff_acts_for_customer(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={"can_scan_qr": True})
        assert perms.can_act_for_customer(staff, uuid.uuid4(), BUSINESS_A) is True

    def test_staff_without_scan_denied(self):
        staff = _actor("staff", business_id=BUSINESS_A, permissions={"can_award_points": True})
        with pytest.raises(ForbiddenError):
            perms.require_customer_access(staff, uuid.uuid4(), BUSINESS_A)
