"""Club membership gate."""

import pytest

from zkp_auth.membership import ClubCheckError

from conftest import OTHER_ADDRESS, USER_ADDRESS, club_details


@pytest.fixture
def flags_key(settings):
    return (settings.MEMBERSHIP_QUERY_ADDRESS, "checkDetailedMembership")


@pytest.fixture
def details_key(settings):
    return (settings.CLUB_MANAGER_ADDRESS, "getClubDetails")


class TestMembershipChecker:
    def test_permanent_member(self, checker, chain):
        club = checker.check(USER_ADDRESS)

        assert club.is_member
        assert not club.is_owner
        assert club.club_name == "justhub"

        (details_call,) = chain.calls_to("getClubDetails")
        assert details_call[2] == ("justhub",)
        (flags_call,) = chain.calls_to("checkDetailedMembership")
        assert flags_call[2] == (USER_ADDRESS, "justhub")

    @pytest.mark.parametrize("index", range(4))
    def test_any_single_flag_admits(self, checker, chain, flags_key, index):
        flags = [False] * 4
        flags[index] = True
        chain.answers[flags_key] = flags
        assert checker.check(USER_ADDRESS).is_member

    def test_no_flags_not_member(self, checker, chain, flags_key):
        chain.answers[flags_key] = [False, False, False, False]
        club = checker.check(USER_ADDRESS)
        assert not club.is_member
        assert not club.is_owner

    def test_owner_matches_case_insensitively(self, checker, chain, details_key, flags_key):
        chain.answers[details_key] = club_details(USER_ADDRESS.lower())
        chain.answers[flags_key] = [False, False, False, False]

        club = checker.check(USER_ADDRESS)

        assert club.is_owner
        assert club.is_member

    def test_inactive_club_admits_nobody(self, checker, chain, details_key, flags_key):
        chain.answers[details_key] = club_details(USER_ADDRESS, active=False)
        chain.answers[flags_key] = [True, True, True, True]

        club = checker.check(USER_ADDRESS)

        assert not club.is_member
        assert not club.is_owner
        assert chain.calls_to("checkDetailedMembership") == []

    def test_lowercase_candidate_is_checksummed_for_query(self, checker, chain):
        checker.check(OTHER_ADDRESS.lower())
        (flags_call,) = chain.calls_to("checkDetailedMembership")
        assert flags_call[2][0] == OTHER_ADDRESS

    def test_details_failure(self, checker, chain, details_key):
        chain.answers[details_key] = TimeoutError("read timed out")
        with pytest.raises(ClubCheckError):
            checker.check(USER_ADDRESS)

    def test_membership_failure(self, checker, chain, flags_key):
        chain.answers[flags_key] = ValueError("execution reverted")
        with pytest.raises(ClubCheckError) as exc:
            checker.check(USER_ADDRESS)
        assert exc.value.code == "CLUB_CHECK_FAILED"
