from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import BigInteger, JSON

db = SQLAlchemy()

CENTS_PER_UNIT = 100


def to_cents(amount):
    """Convert a Decimal money amount to integer cents."""
    return int((Decimal(str(amount)) * CENTS_PER_UNIT).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents):
    return (Decimal(int(cents or 0)) / CENTS_PER_UNIT).quantize(Decimal('0.01'))


class PlayerState(db.Model):
    __tablename__ = 'player_state'
    id = db.Column(db.Integer, primary_key=True)
    display_name = db.Column(db.String(50), nullable=True)
    game_short_name = db.Column(db.String(50), nullable=False, index=True)
    # Money columns are stored in cents
    balance = db.Column(BigInteger, default=0, nullable=False)
    current_bet = db.Column(BigInteger, nullable=False)
    autoplay_remaining = db.Column(db.Integer, default=0, nullable=False)

    free_spins_active = db.Column(db.Boolean, default=False, nullable=False)
    free_spins_remaining = db.Column(db.Integer, default=0, nullable=False)
    free_spins_multiplier = db.Column(db.Integer, default=1, nullable=False)
    free_spins_total_win = db.Column(BigInteger, default=0, nullable=False)

    spin_in_progress = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    spins = db.relationship('SpinRecord', back_populates='player', lazy='dynamic')
    transactions = db.relationship('Transaction', back_populates='player', lazy='dynamic')

    def __repr__(self):
        return f"<PlayerState {self.id} (Balance: {self.balance}, Bet: {self.current_bet})>"


class SpinRecord(db.Model):
    __tablename__ = 'spin_record'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player_state.id'), nullable=False, index=True)
    spin_result = db.Column(JSON, nullable=False)
    bet_amount = db.Column(BigInteger, nullable=False)
    win_amount = db.Column(BigInteger, nullable=False)
    is_free_spin = db.Column(db.Boolean, default=False, nullable=False)
    cascade_count = db.Column(db.Integer, default=0, nullable=False)
    free_spins_multiplier = db.Column(db.Integer, default=1, nullable=False)
    spin_time = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    player = db.relationship('PlayerState', back_populates='spins')

    def __repr__(self):
        return f"<SpinRecord {self.id} (Player: {self.player_id}, Bet: {self.bet_amount}, Win: {self.win_amount})>"


class Transaction(db.Model):
    __tablename__ = 'transaction'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player_state.id'), nullable=False, index=True)
    amount = db.Column(BigInteger, nullable=False)
    transaction_type = db.Column(db.String(50), nullable=False, index=True)
    spin_record_id = db.Column(db.Integer, db.ForeignKey('spin_record.id'), nullable=True, index=True)
    details = db.Column(JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    player = db.relationship('PlayerState', back_populates='transactions')
    spin_record = db.relationship('SpinRecord', backref=db.backref('transactions', lazy='dynamic'))

    def __repr__(self):
        return f"<Transaction {self.id} ({self.transaction_type}: {self.amount})>"
