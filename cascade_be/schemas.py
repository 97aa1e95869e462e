from marshmallow import Schema, fields, ValidationError, validates_schema
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema
from marshmallow.validate import OneOf, Range, Length

from .models import db, SpinRecord

MONEY = dict(as_string=True, places=2)


# --- Economy snapshot (persistence collaborator shape) ---
class FreeSpinsSessionSchema(Schema):
    active = fields.Bool(required=True)
    remaining = fields.Int(required=True, validate=Range(min=0))
    multiplier_accumulator = fields.Int(required=True, validate=Range(min=1))
    total_win = fields.Decimal(required=True, validate=Range(min=0), **MONEY)

    @validates_schema
    def validate_inactive_session(self, data, **kwargs):
        if not data.get('active') and data.get('remaining', 0) > 0:
            raise ValidationError('An inactive session cannot have free spins remaining.', 'remaining')


class EconomySnapshotSchema(Schema):
    balance = fields.Decimal(required=True, validate=Range(min=0), **MONEY)
    current_bet = fields.Decimal(required=True, validate=Range(min=0, min_inclusive=False), **MONEY)
    free_spins_session = fields.Nested(FreeSpinsSessionSchema, required=True)
    autoplay_remaining = fields.Int(required=True, validate=Range(min=0))


class PlayerSchema(EconomySnapshotSchema):
    id = fields.Int(dump_only=True)
    display_name = fields.Str(allow_none=True)
    game_short_name = fields.Str(dump_only=True)
    spin_in_progress = fields.Bool(dump_only=True)


# --- Request schemas ---
class CreatePlayerSchema(Schema):
    display_name = fields.Str(load_default=None, allow_none=True, validate=Length(min=1, max=50))


class SpinRequestSchema(Schema):
    # Off-table bets are clamped, so only the type is validated here
    bet = fields.Decimal(load_default=None, allow_none=True)


class BetRequestSchema(Schema):
    bet = fields.Decimal(load_default=None, allow_none=True)
    direction = fields.Int(load_default=None, allow_none=True, validate=OneOf([-1, 1]))

    @validates_schema
    def validate_one_of_bet_or_direction(self, data, **kwargs):
        has_bet = data.get('bet') is not None
        has_direction = data.get('direction') is not None
        if has_bet == has_direction:
            raise ValidationError('Provide exactly one of "bet" or "direction".')


class AutoplayRequestSchema(Schema):
    spins = fields.Int(load_default=None, allow_none=True,
                       validate=Range(min=1, max=1000, error="Autoplay spins must be between 1 and 1000"))


# --- Spin outcome ---
class MatchWinSchema(Schema):
    symbol_id = fields.Str()
    match_size = fields.Int()
    cells = fields.List(fields.List(fields.Int()))
    base_payout = fields.Decimal(as_string=True)
    base_win = fields.Decimal(**MONEY)
    size_multiplier = fields.Decimal(as_string=True)
    symbol_multiplier = fields.Int()
    win = fields.Decimal(**MONEY)


class MatchSchema(Schema):
    symbol_id = fields.Str()
    size = fields.Int()
    cells = fields.List(fields.List(fields.Int()))


class CascadeStepSchema(Schema):
    index = fields.Int()
    matches = fields.List(fields.Nested(MatchSchema))
    breakdown = fields.List(fields.Nested(MatchWinSchema))
    win = fields.Decimal(**MONEY)
    removed = fields.Int()
    refilled = fields.List(fields.List(fields.Int()))
    multiplier_added = fields.Int(allow_none=True)


class InfinityPowerSchema(Schema):
    column = fields.Int()
    row = fields.Int()
    multiplier = fields.Int()


class SpinOutcomeSchema(Schema):
    bet = fields.Decimal(**MONEY)
    is_free_spin = fields.Bool()
    cascade_steps = fields.List(fields.Nested(CascadeStepSchema))
    cascade_count = fields.Int()
    base_win = fields.Decimal(**MONEY)
    free_spins_multiplier = fields.Int()
    total_win = fields.Decimal(**MONEY)
    win_category = fields.Str(allow_none=True)
    scatter_count = fields.Int()
    triggered_free_spins = fields.Int(allow_none=True)
    retriggered_spins = fields.Int(allow_none=True)
    infinity_power = fields.Nested(InfinityPowerSchema, allow_none=True)
    free_spins_session_ended = fields.Decimal(allow_none=True, **MONEY)
    free_spins_remaining = fields.Int()
    autoplay_remaining = fields.Int()
    balance_after = fields.Decimal(**MONEY)
    final_grid = fields.List(fields.List(fields.Str(allow_none=True)))
    cascade_limit_reached = fields.Bool()


# --- Records ---
class SpinRecordSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = SpinRecord
        load_instance = True
        sqla_session = db.session

