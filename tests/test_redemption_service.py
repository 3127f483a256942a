"""
Redemption tests: reward tiers debit the ledger, promo codes are consumed
exactly once.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from app.errors import ConflictError, InsufficientBalanceError, NotFoundError, PreconditionError
from app.models.ledger_entry import LedgerEntry
from app.models.notification import Notification
from app.models.promo_code import PromoCode
from app.services import enrollment_service, ledger_service, program_service, promo_service, redemption_service
from app.time_utils import utcnow


class TestRewardTier:

    def test_exact_threshold_succeeds(self, db_session, customer, program, enrolled, tier_for):
        ledger_service.award(db_session, customer.id, program.id, 50)
        tier = tier_for(program, 50)

        entry = redemption_service.redeem_reward_tier(db_session, customer.id, program.id, tier.id)
        db_session.commit()

        assert entry.delta == -50
        assert entry.balance_after == 0
        assert entry.reward_tier_id == tier.id
        assert entry.source == "redemption"

    def test_one_point_short_fails(self, db_session, customer, program, enrolled, tier_for):
        ledger_service.award(db_session, customer.id, program.id, 49)
        db_session.commit()

        with pytest.raises(InsufficientBalanceError):
            redemption_service.redeem_reward_tier(db_session, customer.id, program.id, tier_for(program, 50).id)
        db_session.rollback()

        assert ledger_service.current_balance(db_session, customer.id, program.id) == 49
        assert db_session.query(LedgerEntry).filter_by(source="redemption").count() == 0

    def test_second_redemption_beyond_balance_fails(self, db_session, business, customer):
        prog = program_service.create_program(
            db_session,
            business,
            business.id,
            {"name": "Sandwich Card", "reward_tiers": [{"threshold": 60, "reward": "Sandwich"}]},
        )
        enrollment_service.enroll(db_session, customer.id, prog.id)
        ledger_service.award(db_session, customer.id, prog.id, 100)
        db_session.commit()
        tier = prog.tiers[0]

        entry = redemption_service.redeem_reward_tier(db_session, customer.id, prog.id, tier.id)
        db_session.commit()
        assert entry.balance_after == 40

        with pytest.raises(InsufficientBalanceError):
            redemption_service.redeem_reward_tier(db_session, customer.id, prog.id, tier.id)
        db_session.rollback()

        assert ledger_service.current_balance(db_session, customer.id, prog.id) == 40

    def test_reward_delivered_notification(self, db_session, customer, program, enrolled, tier_for):
        ledger_service.award(db_session, customer.id, program.id, 120)
        redemption_service.redeem_reward_tier(db_session, customer.id, program.id, tier_for(program, 100).id)
        db_session.commit()

        notification = db_session.query(Notification).filter_by(kind="REWARD_DELIVERED").one()
        assert notification.payload["reward"] == "Free Lunch"
        assert notification.payload["pointsUsed"] == 100
        assert notification.payload["balance"] == 20

    def test_tier_of_other_program_not_found(self, db_session, business, customer, program, enrolled):
        other = program_service.create_program(
            db_session, business, business.id, {"name": "Other", "reward_tiers": [{"threshold": 5, "reward": "Mint"}]}
        )
        db_session.commit()
        ledger_service.award(db_session, customer.id, program.id, 10)

        with pytest.raises(NotFoundError) as exc:
            redemption_service.redeem_reward_tier(db_session, customer.id, program.id, other.tiers[0].id)
        assert exc.value.code == "TIER_NOT_FOUND"

    def test_retired_tier_not_redeemable(self, db_session, business, customer, program, enrolled, tier_for):
        old_tier = tier_for(program, 50)
        ledger_service.award(db_session, customer.id, program.id, 80)
        program_service.update_program(
            db_session, business, program.id, {"reward_tiers": [{"threshold": 70, "reward": "Cake"}]}
        )
        db_session.commit()

        with pytest.raises(NotFoundError):
            redemption_service.redeem_reward_tier(db_session, customer.id, program.id, old_tier.id)

    def test_requires_enrollment(self, db_session, customer, program, tier_for):
        with pytest.raises(PreconditionError):
            redemption_service.redeem_reward_tier(db_session, customer.id, program.id, tier_for(program, 50).id)

    def test_expired_points_cannot_buy_reward(self, db_session, business, customer, program, enrolled, tier_for):
        program_service.update_program(db_session, business, program.id, {"expiration_days": 30})
        ledger_service.award(db_session, customer.id, program.id, 100, now=utcnow() - timedelta(days=60))
        db_session.commit()

        with pytest.raises(InsufficientBalanceError):
            redemption_service.redeem_reward_tier(db_session, customer.id, program.id, tier_for(program, 100).id)
        db_session.rollback()

        assert ledger_service.balance_as_of(db_session, customer.id, program.id) == 0
        assert db_session.query(LedgerEntry).filter_by(source="redemption").count() == 0
        assert db_session.query(Notification).filter_by(kind="REWARD_DELIVERED").count() == 0


class TestPromoCode:

    @pytest.fixture
    def promo(self, db_session, business):
        code = promo_service.create_promo_code(
            db_session, business, business.id, {"code": "welcome10", "name": "Welcome", "type": "points", "value": 10}
        )
        db_session.commit()
        return code

    def test_redeem_points_code_credits_ledger(self, db_session, customer, program, enrolled, promo):
        result = redemption_service.redeem_code(db_session, "WELCOME10", customer.id)
        db_session.commit()

        assert result.value == Decimal("10")
        assert result.currency == "points"
        assert result.promotion_name == "Welcome"
        assert result.points_awarded == 10
        assert result.balance == 10
        assert result.program_id == program.id

        entry = db_session.query(LedgerEntry).one()
        assert entry.promo_code_id == promo.id

        db_session.refresh(promo)
        assert promo.status == "consumed"
        assert promo.redeemed_by == customer.id

    def test_code_lookup_is_case_insensitive(self, db_session, customer, program, enrolled, promo):
        result = redemption_service.redeem_code(db_session, "  welcome10 ", customer.id)
        assert result.code == "WELCOME10"

    def test_second_redemption_conflicts(self, db_session, customer, other_customer, program, enrolled, promo):
        enrollment_service.enroll(db_session, other_customer.id, program.id)
        redemption_service.redeem_code(db_session, "WELCOME10", customer.id)
        db_session.commit()

        with pytest.raises(ConflictError) as exc:
            redemption_service.redeem_code(db_session, "WELCOME10", other_customer.id)
        assert exc.value.code == "CODE_ALREADY_REDEEMED"
        assert exc.value.to_dict()["promo_code"] == "WELCOME10"

    def test_concurrent_redemption_single_winner(
        self, session_factory, db_session, customer, other_customer, program, enrolled, promo
    ):
        enrollment_service.enroll(db_session, other_customer.id, program.id)
        db_session.commit()

        winner = session_factory()
        loser = session_factory()
        try:
            # the loser already saw the code as active
            stale = loser.query(PromoCode).filter_by(code="WELCOME10").one()
            assert stale.status == "active"

            redemption_service.redeem_code(winner, "WELCOME10", customer.id)
            winner.commit()

            with pytest.raises(ConflictError) as exc:
                redemption_service.redeem_code(loser, "WELCOME10", other_customer.id)
            assert exc.value.code == "CODE_ALREADY_REDEEMED"
            loser.rollback()
        finally:
            winner.close()
            loser.close()

        db_session.expire_all()
        assert ledger_service.current_balance(db_session, customer.id, program.id) == 10
        assert ledger_service.current_balance(db_session, other_customer.id, program.id) == 0
        assert db_session.query(Notification).filter_by(kind="PROMO_CODE").count() == 1

    def test_expired_code(self, db_session, business, customer, program, enrolled):
        promo_service.create_promo_code(
            db_session,
            business,
            business.id,
            {"code": "OLD", "value": 5, "expires_at": utcnow() - timedelta(days=1)},
        )
        db_session.commit()

        with pytest.raises(ConflictError) as exc:
            redemption_service.redeem_code(db_session, "OLD", customer.id)
        assert exc.value.code == "CODE_EXPIRED"

    def test_unknown_code(self, db_session, customer):
        with pytest.raises(NotFoundError) as exc:
            redemption_service.redeem_code(db_session, "NOPE", customer.id)
        assert exc.value.code == "CODE_NOT_FOUND"
        assert exc.value.details == {"promo_code": "NOPE"}

    def test_customer_must_be_enrolled_with_business(self, db_session, customer, program, promo):
        with pytest.raises(PreconditionError) as exc:
            redemption_service.redeem_code(db_session, "WELCOME10", customer.id)
        assert exc.value.code == "NOT_ENROLLED"

        db_session.refresh(promo)
        assert promo.status == "active"

    def test_enrollment_with_other_business_not_enough(
        self, db_session, other_business, customer, program, enrolled
    ):
        promo_service.create_promo_code(db_session, other_business, other_business.id, {"code": "BETA5", "value": 5})
        db_session.commit()

        with pytest.raises(PreconditionError):
            redemption_service.redeem_code(db_session, "BETA5", customer.id)

    def test_discount_code_credits_no_points(self, db_session, business, customer, program, enrolled):
        promo_service.create_promo_code(
            db_session, business, business.id, {"code": "TENOFF", "type": "discount", "value": "2.50", "unit": "EUR"}
        )
        db_session.commit()

        result = redemption_service.redeem_code(db_session, "TENOFF", customer.id)
        db_session.commit()

        assert result.points_awarded == 0
        assert result.balance is None
        assert result.currency == "EUR"
        assert result.value == Decimal("2.50")
        assert db_session.query(LedgerEntry).count() == 0

    def test_program_bound_code_needs_that_program(self, db_session, business, customer, program, enrolled):
        other = program_service.create_program(db_session, business, business.id, {"name": "Juice Bar"})
        promo_service.create_promo_code(
            db_session, business, business.id, {"code": "JUICE", "value": 7, "program_id": other.id}
        )
        db_session.commit()

        with pytest.raises(PreconditionError):
            redemption_service.redeem_code(db_session, "JUICE", customer.id)

    def test_redeem_scoped_to_business(self, db_session, business, other_business, customer, program, enrolled, promo):
        with pytest.raises(NotFoundError):
            redemption_service.redeem_code(db_session, "WELCOME10", customer.id, business_id=other_business.id)

    def test_unknown_customer(self, db_session, promo):
        with pytest.raises(NotFoundError):
            redemption_service.redeem_code(db_session, "WELCOME10", uuid.uuid4())
