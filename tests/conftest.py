"""
Pytest configuration and fixtures for tournament service tests.

Seed fixtures write through their own short-lived app context and return
public ids, so API tests run every request in a fresh context.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from tourney.app import create_app
from tourney.models import db, Tournament, TournamentStaff, Category, Team, Registration
from workflow.state_machine import TournamentStatus, RegistrationStatus

ORGANIZER = 'organizer-1'
STAFF = 'staff-1'
OUTSIDER = 'outsider-1'
PLAYER = 'player-1'


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')
    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def clean_db(app):
    """Clear all tables before each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture(scope='function')
def db_session(app, clean_db):
    """Application context and session for calling services directly."""
    with app.app_context():
        yield db.session
        db.session.rollback()


def auth(principal_id: str) -> dict:
    """Request headers identifying the acting principal."""
    return {'X-Principal-Id': principal_id}


def _seed(app, *records):
    with app.app_context():
        for record in records:
            db.session.add(record)
        db.session.commit()


@pytest.fixture
def sample_tournament(app, clean_db):
    """Tournament open for registration, owned by ORGANIZER with one staff member."""
    _seed(
        app,
        Tournament(
            tournament_id='t_test0001',
            name='Test Open',
            sport='badminton',
            status=TournamentStatus.REGISTRATION_OPEN.value,
            created_by=ORGANIZER,
            max_teams=2,
            default_budget=1000
        ),
        TournamentStaff(tournament_id='t_test0001', staff_id=STAFF)
    )
    return 't_test0001'


@pytest.fixture
def sample_category(app, sample_tournament):
    _seed(app, Category(
        category_id='c_test0001',
        tournament_id=sample_tournament,
        name="Men's Singles",
        gender='male',
        match_type='singles',
        bracket_type='knockout'
    ))
    return 'c_test0001'


@pytest.fixture
def sample_teams(app, sample_tournament):
    """Two teams with an initial budget of 1000 each."""
    teams = [
        Team(
            team_id=f'tm_team_{suffix}',
            tournament_id=sample_tournament,
            name=f'Team {suffix.upper()}',
            owner_name=f'Owner {suffix.upper()}',
            budget=1000,
            initial_budget=1000
        )
        for suffix in ('a', 'b')
    ]
    _seed(app, *teams)
    return ['tm_team_a', 'tm_team_b']


@pytest.fixture
def make_registration(app, sample_tournament, sample_category):
    """Factory for registrations in the sample category."""
    counter = {'n': 0}

    def _make(status: RegistrationStatus = RegistrationStatus.APPROVED, player_id: str = None,
              base_price: int = 200) -> str:
        counter['n'] += 1
        registration_id = f"r_test{counter['n']:04d}"
        _seed(app, Registration(
            registration_id=registration_id,
            player_id=player_id or f"player-{counter['n']}",
            tournament_id=sample_tournament,
            category_id=sample_category,
            player_name=f"Player {counter['n']}",
            status=status.value,
            base_price=base_price
        ))
        return registration_id

    return _make


@pytest.fixture
def approved_registration(make_registration):
    return make_registration(RegistrationStatus.APPROVED, player_id=PLAYER)


def get_team(team_id: str) -> Team:
    db.session.expire_all()
    return Team.query.filter_by(team_id=team_id).first()


def get_registration(registration_id: str) -> Registration:
    db.session.expire_all()
    return Registration.query.filter_by(registration_id=registration_id).first()


def get_tournament(tournament_id: str) -> Tournament:
    db.session.expire_all()
    return Tournament.query.filter_by(tournament_id=tournament_id).first()
