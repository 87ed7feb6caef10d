"""Unit tests for resource id lookup precedence."""

from adoption.app.authz.context import IdentityContext, ResourceRef
from adoption.app.models.common import Role


def test_path_wins_over_body_and_query() -> None:
    """Test path parameters take precedence."""
    ref = ResourceRef(
        path_params={"user_id": "from-path"},
        body={"user_id": "from-body"},
        query={"user_id": "from-query"},
    )

    assert ref.lookup(["user_id"], ["user_id"], ["user_id"]) == "from-path"


def test_body_wins_over_query() -> None:
    """Test body is consulted before the query string."""
    ref = ResourceRef(body={"user_id": "from-body"}, query={"user_id": "from-query"})

    assert ref.lookup(["user_id"], ["user_id"], ["user_id"]) == "from-body"


def test_falls_back_to_query() -> None:
    """Test the query string is the last resort."""
    ref = ResourceRef(query={"user_id": "from-query"})

    assert ref.lookup(["user_id"], ["user_id"], ["user_id"]) == "from-query"


def test_path_keys_checked_in_order() -> None:
    """Test the first path key present wins."""
    ref = ResourceRef(path_params={"id": "generic", "user_id": "specific"})

    assert ref.lookup(["user_id", "id"]) == "specific"
    assert ResourceRef(path_params={"id": "generic"}).lookup(["user_id", "id"]) == "generic"


def test_empty_values_are_skipped() -> None:
    """Test empty strings and None do not count as references."""
    ref = ResourceRef(path_params={"user_id": ""}, body={"user_id": None}, query={"user_id": "q"})

    assert ref.lookup(["user_id"], ["user_id"], ["user_id"]) == "q"


def test_missing_everywhere_returns_none() -> None:
    """Test absent references yield None."""
    assert ResourceRef().lookup(["user_id"], ["user_id"], ["user_id"]) is None


def test_non_string_values_are_stringified() -> None:
    """Test numeric ids from JSON bodies compare as strings."""
    ref = ResourceRef(body={"user_id": 42})

    assert ref.lookup([], ["user_id"]) == "42"


def test_identity_summary_has_no_credentials() -> None:
    """Test the identity summary only carries subject, role and org."""
    identity = IdentityContext(subject_id="u1", role=Role.org_member, org_id="o1")

    assert identity.summary() == {"subject_id": "u1", "role": "org_member", "org_id": "o1"}
