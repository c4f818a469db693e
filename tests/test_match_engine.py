from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from core.errors import NotFound, QueryValidationError
from matching import Company, Industry, Location, Recruiter, RecruiterMatchEngine
from schemas.recruiter import OutreachStatus

CONTACTED_AT = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(sqlite_engine):
    matcher = RecruiterMatchEngine(sqlite_engine, max_page_size=50, max_query_length=40)
    matcher.create_schema()
    with Session(sqlite_engine) as session:
        acme = Company(id=1, name="Acme Corp", website="https://acme.example", size="51-200")
        beta = Company(id=2, name="Beta Labs")
        fintech = Industry(id=1, name="Fintech")
        health = Industry(id=2, name="Healthcare")
        austin = Location(id=1, city="Austin", state="TX", country="USA")
        berlin = Location(id=2, city="Berlin", country="Germany")
        session.add_all([acme, beta, fintech, health, austin, berlin])
        session.add_all(
            [
                Recruiter(id=1, first_name="Alice", last_name="Smith", title="Technical Recruiter",
                          company_id=1, industry_id=1, location_id=1, rating=4.5),
                Recruiter(id=2, first_name="Bob", last_name="Stone", title="Talent Partner",
                          company_id=2, industry_id=2, location_id=2),
                Recruiter(id=3, first_name=None, last_name="Nolan", title="Sourcer",
                          company_id=1, industry_id=1, location_id=1),
                Recruiter(id=4, first_name="Al", last_name=None, title=None),
                Recruiter(id=5, first_name="Alice", last_name="Archer", title="Recruiter"),
                Recruiter(id=6, first_name="Dora", last_name="100% Hire", title="Recruiter_Lead"),
                Recruiter(id=7, first_name="Alice", last_name="Gone", is_active=False),
            ]
        )
        session.commit()
    return matcher


def ids(page):
    return [r.id for r in page.results]


def test_name_search_is_case_insensitive(engine):
    page = engine.search("alice")

    assert ids(page) == [1, 5]
    assert page.total_count == 2
    assert page.results[0].full_name == "Alice Smith"


def test_null_name_parts_still_match(engine):
    assert ids(engine.search("nolan")) == [3]
    # "Talent Partner" matches on title
    assert ids(engine.search("al")) == [4, 1, 5, 2]
    assert engine.search("nolan").results[0].full_name == "Nolan"


def test_full_name_with_space(engine):
    assert ids(engine.search("Bob Stone")) == [2]


def test_title_matches(engine):
    assert ids(engine.search("recruiter")) == [1, 5, 6]


def test_inactive_recruiters_are_hidden(engine):
    assert 7 not in ids(engine.search("gone"))
    assert engine.search("gone").total_count == 0


def test_empty_query_lists_everyone_in_order(engine):
    page = engine.search()

    # Missing first names sort as empty, then ties by id
    assert ids(page) == [3, 4, 1, 5, 2, 6]
    assert page.total_count == 6


@pytest.mark.parametrize("query", ["A.*", "(Alice", "[a-z]+", "\\"])
def test_regex_metacharacters_are_literal(engine, query):
    page = engine.search(query)

    assert page.results == []
    assert page.total_count == 0


def test_like_wildcards_are_literal(engine):
    assert ids(engine.search("%")) == [6]
    assert ids(engine.search("_")) == [6]
    assert ids(engine.search("100%")) == [6]
    assert engine.search("a%e").results == []


def test_pagination_is_deterministic_and_counts_agree(engine):
    first = engine.search(page=1, page_size=4)
    second = engine.search(page=2, page_size=4)

    assert ids(first) + ids(second) == ids(engine.search(page_size=50))
    assert first.total_count == second.total_count == 6
    assert second.total_pages == 2
    assert engine.search(page=3, page_size=4).results == []
    assert ids(engine.search(page=1, page_size=4)) == ids(first)


def test_filters(engine):
    assert ids(engine.search(company="acme")) == [3, 1]
    assert ids(engine.search(industry="health")) == [2]
    assert ids(engine.search(location="germany")) == [2]
    assert ids(engine.search(location="tx")) == [3, 1]
    assert ids(engine.search("alice", company="acme")) == [1]
    assert ids(engine.search(title="sourcer")) == [3]
    assert engine.search(company="acme").total_count == 2


def test_directory_fields(engine):
    alice = engine.search("smith").results[0]

    assert alice.company.name == "Acme Corp"
    assert alice.company.size == "51-200"
    assert alice.industry == "Fintech"
    assert alice.location.city == "Austin"
    assert alice.rating == 4.5


def test_outreach_is_per_user(engine):
    engine.record_contact("u1", 1, OutreachStatus.CONTACTED, contacted_at=CONTACTED_AT)

    mine = engine.search("alice", user_id="u1")
    theirs = engine.search("alice", user_id="u2")
    anonymous = engine.search("alice")

    assert mine.results[0].outreach.has_contacted
    assert mine.results[0].outreach.status is OutreachStatus.CONTACTED
    assert not mine.results[1].outreach.has_contacted
    assert not theirs.results[0].outreach.has_contacted
    assert not anonymous.results[0].outreach.has_contacted
    assert mine.total_count == theirs.total_count == 2


def test_record_contact_upserts(engine):
    first = engine.record_contact("u1", 2)
    second = engine.record_contact("u1", 2, OutreachStatus.RESPONDED, contacted_at=CONTACTED_AT)

    assert first.status is OutreachStatus.DRAFTED
    assert second.status is OutreachStatus.RESPONDED
    stored = engine.get_outreach("u1", 2)
    assert stored.status is OutreachStatus.RESPONDED
    assert stored.last_contact_date.replace(tzinfo=timezone.utc) == CONTACTED_AT
    assert len(engine.search("bob", user_id="u1").results) == 1


def test_record_contact_unknown_recruiter(engine):
    with pytest.raises(NotFound):
        engine.record_contact("u1", 999)
    assert engine.get_outreach("u1", 999) is None


@pytest.mark.parametrize(
    "params",
    [
        {"page": 0},
        {"page": -1},
        {"page_size": 0},
        {"page_size": 51},
        {"query": "x" * 41},
        {"company": "x" * 41},
    ],
)
def test_invalid_parameters(engine, params):
    with pytest.raises(QueryValidationError) as exc:
        engine.search(**params)
    assert exc.value.errors


def test_literal_metacharacters_still_match_themselves(engine, sqlite_engine):
    with Session(sqlite_engine) as session:
        session.add(Recruiter(id=8, first_name="A.*", last_name="Smith"))
        session.commit()

    assert ids(engine.search("A.*")) == [8]
    assert ids(engine.search("a.* smith")) == [8]


def test_non_ascii_names_match_as_written(engine, sqlite_engine):
    with Session(sqlite_engine) as session:
        session.add(Recruiter(id=8, first_name="Émile", last_name="Zola"))
        session.commit()

    assert ids(engine.search("Émile")) == [8]
    assert ids(engine.search("mile zo")) == [8]


def test_surrounding_whitespace_is_part_of_the_query(engine):
    assert ids(engine.search("Stone")) == [2]
    assert engine.search("Stone ").results == []
    assert ids(engine.search("Bob ")) == [2]


@pytest.mark.parametrize(
    "params",
    [{"query": "   "}, {"company": " "}, {"location": "\t"}],
)
def test_whitespace_only_text_is_rejected(engine, params):
    with pytest.raises(QueryValidationError):
        engine.search(**params)


def test_empty_text_means_no_filter(engine):
    assert engine.search("").total_count == 6
    assert engine.search(company="").total_count == 6
