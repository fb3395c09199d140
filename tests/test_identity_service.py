import pytest

from blizzardup.models import Identity
from blizzardup.services.errors import IdentityMismatchError
from blizzardup.services.identity_service import check_identity

from conftest import IDENTITY, OTHER_IDENTITY


def test_absent_identity_adopts_current():
    assert check_identity(None, IDENTITY) == IDENTITY


def test_equal_identity_is_kept():
    assert check_identity(IDENTITY, IDENTITY.model_copy()) == IDENTITY


def test_different_identity_is_rejected():
    with pytest.raises(IdentityMismatchError, match="does not match"):
        check_identity(IDENTITY, OTHER_IDENTITY)


def test_identity_from_sts_response():
    identity = Identity.from_sts_response(
        {"Account": "123456789012", "Arn": "arn:aws:iam::123456789012:role/operator", "UserId": "AROA:op"}
    )
    assert identity.account_id == "123456789012"
    assert identity.role_arn.endswith("role/operator")
