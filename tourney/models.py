from datetime import datetime
import uuid

from flask_sqlalchemy import SQLAlchemy

from workflow.state_machine import TournamentStatus, CategoryStatus, RegistrationStatus

db = SQLAlchemy()


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def conditional_update(model, criteria: dict, values: dict) -> bool:
    """
    Apply ``values`` to the row matching every column in ``criteria`` and commit.

    Returns False when no row matched, i.e. the expected prior state no
    longer holds. The caller decides whether that is a lost race.
    """
    query = db.session.query(model)
    for column, expected in criteria.items():
        attr = getattr(model, column)
        query = query.filter(attr.is_(None) if expected is None else attr == expected)

    try:
        rows = query.update(
            {getattr(model, column): value for column, value in values.items()},
            synchronize_session=False
        )
        if rows == 0:
            db.session.rollback()
            return False
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return True


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(50), unique=True, nullable=False, index=True,
                              default=lambda: generate_id('t'))
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(2000), nullable=True)
    sport = db.Column(db.String(30), nullable=False, default='badminton')
    status = db.Column(db.String(30), nullable=False, default=TournamentStatus.DRAFT.value, index=True)
    created_by = db.Column(db.String(50), nullable=False, index=True)

    # Settings
    max_teams = db.Column(db.Integer, nullable=False, default=8)
    default_budget = db.Column(db.Integer, nullable=False, default=100000)
    auction_type = db.Column(db.String(20), nullable=False, default='manual')  # manual | live (label only)
    allow_late_registration = db.Column(db.Boolean, default=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff = db.relationship('TournamentStaff', back_populates='tournament', cascade='all, delete-orphan')

    @property
    def staff_ids(self):
        return sorted(s.staff_id for s in self.staff)

    def to_dict(self):
        return {
            'tournament_id': self.tournament_id,
            'name': self.name,
            'description': self.description,
            'sport': self.sport,
            'status': self.status,
            'created_by': self.created_by,
            'staff_ids': self.staff_ids,
            'settings': {
                'max_teams': self.max_teams,
                'default_budget': self.default_budget,
                'auction_type': self.auction_type,
                'allow_late_registration': self.allow_late_registration,
            },
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class TournamentStaff(db.Model):
    __tablename__ = 'tournament_staff'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(50), db.ForeignKey('tournaments.tournament_id'), nullable=False)
    staff_id = db.Column(db.String(50), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tournament = db.relationship('Tournament', back_populates='staff')

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'staff_id', name='unique_staff_per_tournament'),
    )


class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.String(50), unique=True, nullable=False, index=True,
                            default=lambda: generate_id('c'))
    tournament_id = db.Column(db.String(50), db.ForeignKey('tournaments.tournament_id'),
                              nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    gender = db.Column(db.String(20), nullable=False, default='mixed')  # male, female, mixed
    match_type = db.Column(db.String(20), nullable=False, default='singles')  # singles, doubles
    bracket_type = db.Column(db.String(20), nullable=False, default='knockout')  # league, knockout, hybrid

    # Hybrid bracket settings
    league_size = db.Column(db.Integer, nullable=True)
    top_n = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(30), nullable=False, default=CategoryStatus.SETUP.value)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'category_id': self.category_id,
            'tournament_id': self.tournament_id,
            'name': self.name,
            'gender': self.gender,
            'match_type': self.match_type,
            'bracket_type': self.bracket_type,
            'hybrid_config': {
                'league_size': self.league_size,
                'top_n': self.top_n,
            } if self.bracket_type == 'hybrid' else None,
            'status': self.status,
        }


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(50), unique=True, nullable=False, index=True,
                        default=lambda: generate_id('tm'))
    tournament_id = db.Column(db.String(50), db.ForeignKey('tournaments.tournament_id'),
                              nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    owner_name = db.Column(db.String(100), nullable=True)
    owner_phone = db.Column(db.String(30), nullable=True)
    budget = db.Column(db.Integer, nullable=False)
    initial_budget = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('budget >= 0', name='team_budget_non_negative'),
    )

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'tournament_id': self.tournament_id,
            'name': self.name,
            'owner_name': self.owner_name,
            'budget': self.budget,
            'initial_budget': self.initial_budget,
        }


class Registration(db.Model):
    __tablename__ = 'registrations'

    id = db.Column(db.Integer, primary_key=True)
    registration_id = db.Column(db.String(50), unique=True, nullable=False, index=True,
                                default=lambda: generate_id('r'))
    player_id = db.Column(db.String(50), nullable=False, index=True)
    tournament_id = db.Column(db.String(50), db.ForeignKey('tournaments.tournament_id'), nullable=False)
    category_id = db.Column(db.String(50), db.ForeignKey('categories.category_id'), nullable=False)

    # Player profile as submitted at registration time
    player_name = db.Column(db.String(100), nullable=False)
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    skill_level = db.Column(db.String(20), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=RegistrationStatus.PENDING.value)
    team_id = db.Column(db.String(50), db.ForeignKey('teams.team_id'), nullable=True, index=True)

    # Auction data
    base_price = db.Column(db.Integer, nullable=False, default=1000)
    sold_price = db.Column(db.Integer, nullable=True)
    auctioned_at = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_registration_tournament_category_status', 'tournament_id', 'category_id', 'status'),
        db.UniqueConstraint('player_id', 'tournament_id', 'category_id', name='unique_registration_per_category'),
    )

    def to_dict(self):
        return {
            'registration_id': self.registration_id,
            'player_id': self.player_id,
            'tournament_id': self.tournament_id,
            'category_id': self.category_id,
            'profile': {
                'name': self.player_name,
                'age': self.age,
                'gender': self.gender,
                'phone': self.phone,
                'skill_level': self.skill_level,
            },
            'status': self.status,
            'team_id': self.team_id,
            'auction_data': {
                'base_price': self.base_price,
                'sold_price': self.sold_price,
                'auctioned_at': self.auctioned_at.isoformat() if self.auctioned_at else None,
            },
        }
