"""Fixtures for users, conversations and messages."""

import pytest

from continuum.models.user import User


@pytest.fixture
def phone(faker):
    return faker.numerify("+1555#######")


@pytest.fixture(scope="function")
def setup_user(db, phone):
    """A user with no profile, memory or transcripts."""
    user = User(phone=phone)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def setup_user_with_profile(db, faker):
    user = User(
        phone=faker.numerify("+1555#######"),
        full_name=faker.name(),
        email=faker.email(),
        memory_summary="[SMS] [2025-01-02] [NAME] User's name is on file.",
        intro_sent=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
